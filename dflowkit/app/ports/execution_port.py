from __future__ import annotations

from typing import Protocol

from dflowkit.domain.model.types import (
    IntentQuote,
    IntentSubmission,
    OrderQuote,
    OrderSnapshot,
    SignatureConfirmation,
    TradeRequest,
)


class SignerPort(Protocol):
    def public_key_base58(self) -> str: ...

    def sign_transaction(self, raw_transaction: bytes) -> bytes: ...


class QuotePort(Protocol):
    def request_order(self, request: TradeRequest) -> OrderQuote: ...

    def request_intent(self, request: TradeRequest) -> IntentQuote: ...


class IntentSubmitPort(Protocol):
    def submit_intent(self, intent: IntentQuote, signed_open_transaction: bytes) -> IntentSubmission: ...


class ChainPort(Protocol):
    def send_raw_transaction(self, raw_transaction: bytes) -> str: ...

    def confirm_signature(self, signature: str, timeout_ms: int) -> SignatureConfirmation: ...


class OrderMonitorPort(Protocol):
    def wait_for_terminal(
        self, submission: IntentSubmission, signed_open_transaction: bytes
    ) -> OrderSnapshot: ...
