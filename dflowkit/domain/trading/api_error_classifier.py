from __future__ import annotations

from typing import Literal

ApiErrorKind = Literal["ZERO_OUT_AMOUNT", "INSUFFICIENT_LIQUIDITY", "RATE_LIMITED", "UNKNOWN"]

NO_TRADE_KINDS: frozenset[ApiErrorKind] = frozenset({"ZERO_OUT_AMOUNT", "INSUFFICIENT_LIQUIDITY"})

ZERO_OUT_AMOUNT_CODES = frozenset({"zero_out_amount", "zero_output_amount"})
INSUFFICIENT_LIQUIDITY_CODES = frozenset(
    {
        "insufficient_liquidity",
        "route_not_found",
        "no_routes_found",
    }
)

ZERO_OUT_AMOUNT_MARKERS = (
    "zero out amount",
    "zero output amount",
    "out amount is zero",
)

INSUFFICIENT_LIQUIDITY_MARKERS = (
    "insufficient liquidity",
    "not enough liquidity",
    "no routes found",
    "could not find any route",
)


def normalize_error_code(code: str) -> str:
    return code.strip().lower().replace(" ", "_").replace("-", "_")


def classify_api_error(status_code: int, code: str | None, message: str | None) -> ApiErrorKind:
    if code:
        normalized_code = normalize_error_code(code)
        if normalized_code in ZERO_OUT_AMOUNT_CODES:
            return "ZERO_OUT_AMOUNT"
        if normalized_code in INSUFFICIENT_LIQUIDITY_CODES:
            return "INSUFFICIENT_LIQUIDITY"

    normalized_message = (message or "").strip().lower()
    if any(marker in normalized_message for marker in ZERO_OUT_AMOUNT_MARKERS):
        return "ZERO_OUT_AMOUNT"
    if any(marker in normalized_message for marker in INSUFFICIENT_LIQUIDITY_MARKERS):
        return "INSUFFICIENT_LIQUIDITY"

    if status_code == 429:
        return "RATE_LIMITED"
    return "UNKNOWN"


def is_no_trade_kind(kind: ApiErrorKind) -> bool:
    return kind in NO_TRADE_KINDS
