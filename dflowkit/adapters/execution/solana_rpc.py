from __future__ import annotations

import base64
import json
import time
from typing import Any

import requests

from dflowkit.adapters.http.http_retry import RETRIABLE_HTTP_STATUS_CODES, retry_delay_seconds
from dflowkit.app.ports.logger_port import LoggerPort
from dflowkit.domain.model.errors import MalformedResponse, NetworkError, RpcError
from dflowkit.domain.model.markets import TokenBalance
from dflowkit.domain.model.types import TOKEN_2022_PROGRAM_ID, SignatureConfirmation

DEFAULT_SOLANA_RPC_URL = "https://api.mainnet-beta.solana.com"
RPC_RETRY_ATTEMPTS = 4
RPC_RETRY_BASE_DELAY_SECONDS = 0.35
RPC_HTTP_TIMEOUT_SECONDS = 8
RETRIABLE_RPC_ERROR_CODES = {-32005, -32004, -32603}
RETRIABLE_RPC_ERROR_MARKERS = (
    "too many requests",
    "rate limit",
    "temporarily unavailable",
    "node is behind",
    "timed out",
    "timeout",
    "service unavailable",
)


def _extract_rpc_error_text(error_obj: Any) -> str:
    if isinstance(error_obj, dict):
        message = error_obj.get("message")
        if isinstance(message, str):
            return message
    return str(error_obj)


def _is_retriable_rpc_error(error_obj: Any) -> bool:
    if isinstance(error_obj, dict):
        code = error_obj.get("code")
        if isinstance(code, int) and code in RETRIABLE_RPC_ERROR_CODES:
            return True
    message = _extract_rpc_error_text(error_obj).lower()
    return any(marker in message for marker in RETRIABLE_RPC_ERROR_MARKERS)


def _parse_token_balance(account: Any) -> TokenBalance | None:
    if not isinstance(account, dict):
        return None
    account_obj = account.get("account")
    if not isinstance(account_obj, dict):
        return None
    data = account_obj.get("data")
    if not isinstance(data, dict):
        return None
    parsed = data.get("parsed")
    if not isinstance(parsed, dict):
        return None
    info = parsed.get("info")
    if not isinstance(info, dict):
        return None
    mint = info.get("mint")
    token_amount = info.get("tokenAmount")
    if not isinstance(mint, str) or not isinstance(token_amount, dict):
        return None

    raw_amount = token_amount.get("amount")
    decimals = token_amount.get("decimals")
    if not isinstance(raw_amount, str) or not isinstance(decimals, int) or decimals < 0:
        return None
    try:
        amount = int(raw_amount)
    except ValueError:
        return None

    ui_amount = token_amount.get("uiAmount")
    if not isinstance(ui_amount, (int, float)):
        ui_amount = amount / (10**decimals)
    return TokenBalance(mint=mint, raw_amount=amount, decimals=decimals, ui_amount=float(ui_amount))


class SolanaRpcClient:
    def __init__(self, rpc_url: str, logger: LoggerPort, timeout_seconds: float = RPC_HTTP_TIMEOUT_SECONDS):
        self.rpc_url = rpc_url
        self.logger = logger
        self.timeout_seconds = timeout_seconds

    def _rpc(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params,
        }
        for attempt in range(1, RPC_RETRY_ATTEMPTS + 1):
            try:
                response = requests.post(self.rpc_url, json=payload, timeout=self.timeout_seconds)
            except requests.RequestException as error:
                if attempt < RPC_RETRY_ATTEMPTS:
                    time.sleep(retry_delay_seconds(RPC_RETRY_BASE_DELAY_SECONDS, attempt))
                    continue
                raise NetworkError(f"RPC {method} failed: {error}") from error

            if response.status_code != 200:
                should_retry = (
                    response.status_code in RETRIABLE_HTTP_STATUS_CODES and attempt < RPC_RETRY_ATTEMPTS
                )
                if should_retry:
                    time.sleep(retry_delay_seconds(RPC_RETRY_BASE_DELAY_SECONDS, attempt))
                    continue
                raise RpcError(f"RPC {method} failed: HTTP {response.status_code}")

            try:
                data = response.json()
            except ValueError as error:
                if attempt < RPC_RETRY_ATTEMPTS:
                    time.sleep(retry_delay_seconds(RPC_RETRY_BASE_DELAY_SECONDS, attempt))
                    continue
                raise MalformedResponse(f"RPC {method} returned invalid JSON: {error}") from error

            if "error" in data:
                rpc_error = data["error"]
                if attempt < RPC_RETRY_ATTEMPTS and _is_retriable_rpc_error(rpc_error):
                    time.sleep(retry_delay_seconds(RPC_RETRY_BASE_DELAY_SECONDS, attempt))
                    continue
                raise RpcError(f"RPC {method} failed: {_extract_rpc_error_text(rpc_error)}")

            return data.get("result")

        raise NetworkError(f"RPC {method} failed: retry attempts exhausted")

    def send_raw_transaction(self, raw_transaction: bytes) -> str:
        wire_base64 = base64.b64encode(raw_transaction).decode("utf-8")
        result = self._rpc(
            "sendTransaction",
            [wire_base64, {"encoding": "base64", "skipPreflight": False, "maxRetries": 3}],
        )
        if not isinstance(result, str):
            raise MalformedResponse("sendTransaction result is invalid")

        self.logger.info("Transaction submitted", {"signature": result})
        return result

    def get_signature_status(self, signature: str) -> dict[str, Any] | None:
        result = self._rpc("getSignatureStatuses", [[signature], {"searchTransactionHistory": True}])
        if not isinstance(result, dict):
            return None
        values = result.get("value")
        if isinstance(values, list) and values and isinstance(values[0], dict):
            return values[0]
        return None

    def confirm_signature(
        self, signature: str, timeout_ms: int, poll_interval_ms: int = 1000
    ) -> SignatureConfirmation:
        deadline = time.monotonic() + timeout_ms / 1000
        while time.monotonic() <= deadline:
            status = self.get_signature_status(signature)
            if status is not None:
                if status.get("err") is not None:
                    return SignatureConfirmation(confirmed=False, error=json.dumps(status.get("err")))
                confirmation_status = status.get("confirmationStatus")
                if confirmation_status in ("confirmed", "finalized"):
                    self.logger.info("Transaction confirmed", {"signature": signature})
                    return SignatureConfirmation(confirmed=True)

            time.sleep(poll_interval_ms / 1000)

        return SignatureConfirmation(
            confirmed=False,
            error=f"confirmation timeout after {timeout_ms}ms",
        )

    def is_blockhash_valid(self, blockhash: str) -> bool:
        result = self._rpc("isBlockhashValid", [blockhash, {"commitment": "processed"}])
        if isinstance(result, dict):
            return result.get("value") is True
        return result is True

    def get_account_data(self, address: str) -> bytes | None:
        result = self._rpc(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": "confirmed"}],
        )
        if not isinstance(result, dict):
            return None
        value = result.get("value")
        if value is None:
            return None
        if not isinstance(value, dict):
            raise MalformedResponse(f"getAccountInfo returned an unexpected value for {address}")
        data = value.get("data")
        if isinstance(data, list) and data and isinstance(data[0], str):
            return base64.b64decode(data[0])
        raise MalformedResponse(f"getAccountInfo returned no base64 data for {address}")

    def get_signatures_for_address(self, address: str, limit: int = 10) -> list[dict[str, Any]]:
        result = self._rpc("getSignaturesForAddress", [address, {"limit": limit, "commitment": "confirmed"}])
        if not isinstance(result, list):
            raise MalformedResponse(f"getSignaturesForAddress returned an unexpected value for {address}")
        return [entry for entry in result if isinstance(entry, dict)]

    def get_token_balances(self, owner: str, program_id: str = TOKEN_2022_PROGRAM_ID) -> list[TokenBalance]:
        result = self._rpc(
            "getTokenAccountsByOwner",
            [owner, {"programId": program_id}, {"encoding": "jsonParsed"}],
        )
        if not isinstance(result, dict):
            return []
        value = result.get("value")
        if not isinstance(value, list):
            return []

        balances: list[TokenBalance] = []
        for account in value:
            balance = _parse_token_balance(account)
            if balance is not None:
                balances.append(balance)
        return balances
