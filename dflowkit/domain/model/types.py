from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Literal

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
MAX_SLIPPAGE_BPS = 10_000

OrderStatus = Literal["PENDING_CLOSE", "CLOSED", "OPEN_EXPIRED", "OPEN_FAILED"]
OutcomeSide = Literal["yes", "no"]
SwapOutcomeStatus = Literal[
    "CONFIRMED",
    "FILLED",
    "PARTIALLY_FILLED",
    "CLOSED_UNVERIFIED",
    "NOT_FILLED",
    "EXPIRED",
    "FAILED",
    "NO_TRADE",
    "SKIPPED",
]

TERMINAL_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({"CLOSED", "OPEN_EXPIRED", "OPEN_FAILED"})


def is_terminal_status(status: OrderStatus) -> bool:
    return status in TERMINAL_ORDER_STATUSES


@dataclass(frozen=True)
class TradeRequest:
    input_mint: str
    output_mint: str
    amount: int
    slippage_bps: int
    user_public_key: str
    venues: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError("amount must be an integer in the smallest token unit")
        if self.amount <= 0:
            raise ValueError(f"amount must be > 0, got {self.amount}")
        if not 0 <= self.slippage_bps <= MAX_SLIPPAGE_BPS:
            raise ValueError(f"slippage_bps must be within [0, {MAX_SLIPPAGE_BPS}], got {self.slippage_bps}")
        if self.input_mint == self.output_mint:
            raise ValueError("input_mint and output_mint must differ")


def _decode_base64(value: str) -> bytes:
    return base64.b64decode(value, validate=True)


@dataclass
class OrderQuote:
    raw: dict[str, Any]
    transaction_base64: str
    in_amount: int | None = None
    out_amount: int | None = None

    @property
    def transaction_bytes(self) -> bytes:
        return _decode_base64(self.transaction_base64)


@dataclass
class IntentQuote:
    raw: dict[str, Any]
    open_transaction_base64: str
    in_amount: int | None = None
    out_amount: int | None = None

    @property
    def open_transaction_bytes(self) -> bytes:
        return _decode_base64(self.open_transaction_base64)


@dataclass(frozen=True)
class IntentSubmission:
    order_address: str
    program_id: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class SignatureConfirmation:
    confirmed: bool
    error: str | None = None


@dataclass(frozen=True)
class Fill:
    qty_in: int
    qty_out: int


@dataclass(frozen=True)
class FillTotals:
    total_in: int
    total_out: int
    count: int


@dataclass
class OrderSnapshot:
    status: OrderStatus
    fills: list[Fill] = field(default_factory=list)
    transaction_error: str | None = None
    # False when the account was gone before its fills could be read
    fills_observed: bool = True
    close_signature: str | None = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.status)


@dataclass
class SwapOutcome:
    status: SwapOutcomeStatus
    summary: str
    signature: str | None = None
    order_address: str | None = None
    total_in: int | None = None
    total_out: int | None = None
    error_code: str | None = None
