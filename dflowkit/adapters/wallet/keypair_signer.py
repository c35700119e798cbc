"""Solana keypair loading and transaction signing.

Key material is accepted as a base58 string (64-byte secret key or 32-byte
seed), a JSON number array, or an AES-256-GCM encrypted wallet file. Errors
raised here never echo the key or any part of it.
"""

from __future__ import annotations

import base64
import json
import os
from hashlib import scrypt
from pathlib import Path
from typing import Any

import base58
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from solders.keypair import Keypair
from solders.message import to_bytes_versioned
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from dflowkit.domain.model.errors import SignerError

SECRET_KEY_LENGTH = 64
SEED_LENGTH = 32
KEY_FORMAT_HINT = "expected a base58 string or a JSON array, e.g. [1,2,3,...]"
ENCRYPTED_WALLET_REQUIRED_KEYS = frozenset(
    {
        "version",
        "algorithm",
        "kdf",
        "salt_base64",
        "iv_base64",
        "auth_tag_base64",
        "ciphertext_base64",
    }
)


def _keypair_from_bytes(secret: bytes) -> Keypair:
    if len(secret) == SECRET_KEY_LENGTH:
        try:
            return Keypair.from_bytes(secret)
        except Exception:
            raise SignerError("Failed to parse private key: invalid 64-byte secret key") from None
    if len(secret) == SEED_LENGTH:
        return Keypair.from_seed(secret)
    raise SignerError(
        f"Failed to parse private key: decoded length must be {SEED_LENGTH} or {SECRET_KEY_LENGTH}, got {len(secret)}"
    )


def parse_secret_key(private_key: str) -> Keypair:
    stripped = private_key.strip() if isinstance(private_key, str) else ""
    if stripped == "":
        raise SignerError(f"Private key is empty: {KEY_FORMAT_HINT}")

    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except ValueError:
            raise SignerError(f"Failed to parse private key: invalid JSON array, {KEY_FORMAT_HINT}") from None
        if not isinstance(parsed, list) or any(
            isinstance(item, bool) or not isinstance(item, int) or not 0 <= item <= 255 for item in parsed
        ):
            raise SignerError("Failed to parse private key: JSON array must contain byte values")
        return _keypair_from_bytes(bytes(parsed))

    try:
        decoded = base58.b58decode(stripped)
    except ValueError:
        raise SignerError(f"Failed to parse private key: invalid base58, {KEY_FORMAT_HINT}") from None
    return _keypair_from_bytes(decoded)


def _parse_encrypted_wallet_file(path: str) -> dict[str, Any]:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as error:
        raise SignerError(f"Failed to read encrypted wallet file {path}: {error.strerror}") from None
    try:
        parsed = json.loads(raw)
    except ValueError:
        raise SignerError(f"Encrypted wallet file {path} is not valid JSON") from None
    if (
        not isinstance(parsed, dict)
        or parsed.get("version") != 1
        or parsed.get("algorithm") != "aes-256-gcm"
        or parsed.get("kdf") != "scrypt"
        or not ENCRYPTED_WALLET_REQUIRED_KEYS.issubset(parsed.keys())
    ):
        raise SignerError("Invalid encrypted wallet file format")
    return parsed


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    return scrypt(passphrase.encode("utf-8"), salt=salt, n=16384, r=8, p=1, dklen=32)


def decrypt_secret_key(path: str, passphrase: str) -> bytes:
    encrypted = _parse_encrypted_wallet_file(path)
    try:
        salt = base64.b64decode(encrypted["salt_base64"])
        iv = base64.b64decode(encrypted["iv_base64"])
        auth_tag = base64.b64decode(encrypted["auth_tag_base64"])
        ciphertext = base64.b64decode(encrypted["ciphertext_base64"])
    except ValueError:
        raise SignerError("Invalid encrypted wallet file encoding") from None

    try:
        plaintext = AESGCM(_derive_key(passphrase, salt)).decrypt(iv, ciphertext + auth_tag, None)
    except InvalidTag:
        raise SignerError("Failed to decrypt wallet: wrong passphrase or corrupted file") from None

    try:
        secret_array = json.loads(plaintext.decode("utf-8"))
    except ValueError:
        raise SignerError("Decrypted wallet payload must be a number array") from None
    if not isinstance(secret_array, list) or any(
        isinstance(item, bool) or not isinstance(item, int) or not 0 <= item <= 255 for item in secret_array
    ):
        raise SignerError("Decrypted wallet payload must be a byte array")
    if len(secret_array) != SECRET_KEY_LENGTH:
        raise SignerError(f"Decrypted secret key length must be {SECRET_KEY_LENGTH}, got {len(secret_array)}")
    return bytes(secret_array)


def encrypt_secret_key(secret_key: bytes, passphrase: str) -> dict[str, str | int]:
    if len(secret_key) != SECRET_KEY_LENGTH:
        raise SignerError(f"Secret key length must be {SECRET_KEY_LENGTH}, got {len(secret_key)}")
    salt = os.urandom(16)
    iv = os.urandom(12)
    plaintext = json.dumps(list(secret_key)).encode("utf-8")
    encrypted = AESGCM(_derive_key(passphrase, salt)).encrypt(iv, plaintext, None)
    return {
        "version": 1,
        "algorithm": "aes-256-gcm",
        "kdf": "scrypt",
        "salt_base64": base64.b64encode(salt).decode("utf-8"),
        "iv_base64": base64.b64encode(iv).decode("utf-8"),
        "auth_tag_base64": base64.b64encode(encrypted[-16:]).decode("utf-8"),
        "ciphertext_base64": base64.b64encode(encrypted[:-16]).decode("utf-8"),
    }


class KeypairSigner:
    def __init__(self, keypair: Keypair):
        self.keypair = keypair

    @classmethod
    def from_private_key(cls, private_key: str) -> "KeypairSigner":
        return cls(parse_secret_key(private_key))

    @classmethod
    def from_encrypted_file(cls, path: str, passphrase: str) -> "KeypairSigner":
        return cls(_keypair_from_bytes(decrypt_secret_key(path, passphrase)))

    def public_key_base58(self) -> str:
        return str(self.keypair.pubkey())

    def sign_transaction(self, raw_transaction: bytes) -> bytes:
        try:
            tx = VersionedTransaction.from_bytes(raw_transaction)
        except Exception:
            raise SignerError("Failed to deserialize transaction for signing") from None

        message = tx.message
        required = message.header.num_required_signatures
        signer_keys = list(message.account_keys)[:required]
        pubkey = self.keypair.pubkey()
        if pubkey not in signer_keys:
            raise SignerError(f"Wallet {pubkey} is not a required signer of this transaction")

        signatures = list(tx.signatures)
        while len(signatures) < required:
            signatures.append(Signature.default())
        signatures[signer_keys.index(pubkey)] = self.keypair.sign_message(to_bytes_versioned(message))
        return bytes(VersionedTransaction.populate(message, signatures))
