from __future__ import annotations

import argparse
import getpass
import json
from pathlib import Path

from dflowkit.adapters.wallet.keypair_signer import encrypt_secret_key, parse_secret_key


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Encrypt a Solana secret key with AES-256-GCM for WALLET_KEY_PATH. "
            "Use either --input id.json or --base58 private key."
        )
    )
    parser.add_argument("--input", type=str, help="Path to id.json (64-length number array)")
    parser.add_argument("--base58", type=str, help="Base58 private key (64-byte secret or 32-byte seed)")
    parser.add_argument("--output", type=str, required=True, help="Output path for encrypted wallet")
    parser.add_argument("--passphrase", type=str, help="Passphrase (prompted when omitted)")
    args = parser.parse_args()

    if bool(args.input) == bool(args.base58):
        parser.error("Provide exactly one of --input or --base58")
    return args


def main() -> int:
    args = parse_args()
    raw_key = Path(args.input).read_text(encoding="utf-8") if args.input else args.base58
    keypair = parse_secret_key(raw_key)
    passphrase = args.passphrase or getpass.getpass("Passphrase: ")
    if not passphrase:
        raise ValueError("Passphrase must not be empty")

    encrypted = encrypt_secret_key(bytes(keypair), passphrase)
    output_path = Path(args.output)
    output_path.write_text(json.dumps(encrypted, indent=2), encoding="utf-8")
    print(f"Encrypted wallet for {keypair.pubkey()} saved to {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
