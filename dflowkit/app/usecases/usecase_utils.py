from __future__ import annotations

import re

from dflowkit.domain.model.errors import ApiError
from dflowkit.domain.model.types import SwapOutcome

SUMMARY_ERROR_MAX_LENGTH = 220


def summarize_error_for_log(message: str, max_length: int = SUMMARY_ERROR_MAX_LENGTH) -> str:
    normalized = " ".join(message.strip().split())
    for pattern in (r"'message':\s*'([^']+)'", r'"message"\s*:\s*"([^"]+)"', r'"msg"\s*:\s*"([^"]+)"'):
        matched = re.search(pattern, normalized)
        if matched:
            normalized = matched.group(1).strip()
            break
    if len(normalized) > max_length:
        return f"{normalized[: max_length - 3]}..."
    return normalized


def no_trade_outcome(error: ApiError) -> SwapOutcome:
    reason = "zero output amount" if error.kind == "ZERO_OUT_AMOUNT" else "insufficient liquidity"
    return SwapOutcome(
        status="NO_TRADE",
        summary=f"No trade possible ({reason}): {summarize_error_for_log(error.message)}",
        error_code=error.code,
    )
