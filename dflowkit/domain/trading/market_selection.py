"""Market, side and order-size selection for the market-lifecycle flow.

The side rule buys whichever outcome has the lower best bid. YES and NO bids
are complementary probabilities, so this is a simple "cheaper leg" heuristic
and not a pricing model.
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping

from dflowkit.domain.model.markets import Market, Orderbook
from dflowkit.domain.model.types import OutcomeSide

CONTRACT_ATOMIC_AMOUNT = 1_000_000


def select_top_active_market(markets: Iterable[Market]) -> Market | None:
    best: Market | None = None
    for market in markets:
        if not market.is_active:
            continue
        # strict comparison keeps the first market seen on equal volume
        if best is None or market.volume > best.volume:
            best = market
    return best


def find_first_market_above_volume(markets: Iterable[Market], min_volume: float) -> Market | None:
    for market in markets:
        if market.volume > min_volume:
            return market
    return None


def best_bid(bids: Mapping[str, float]) -> float | None:
    prices: list[float] = []
    for raw_price in bids.keys():
        try:
            price = float(raw_price)
        except (TypeError, ValueError):
            continue
        if math.isfinite(price) and price > 0:
            prices.append(price)
    return max(prices) if prices else None


def choose_cheaper_side(orderbook: Orderbook) -> OutcomeSide | None:
    yes_best = best_bid(orderbook.yes_bids)
    no_best = best_bid(orderbook.no_bids)
    if yes_best is None and no_best is None:
        return None
    if yes_best is not None and no_best is not None:
        return "yes" if yes_best <= no_best else "no"
    return "yes" if yes_best is not None else "no"


def resolve_outcome_mint(market: Market, side: OutcomeSide, settlement_mint: str) -> str | None:
    if not market.accounts:
        return None
    account = next(
        (item for item in market.accounts if item.settlement_mint == settlement_mint),
        market.accounts[0],
    )
    return account.yes_mint if side == "yes" else account.no_mint


def scale_amount_for_exact_output(
    in_amount: int,
    out_amount: int,
    target_out_amount: int = CONTRACT_ATOMIC_AMOUNT,
) -> int:
    if in_amount <= 0 or out_amount <= 0:
        raise ValueError("probe amounts must be > 0")
    # integer ceil of target * in / out
    return -(-target_out_amount * in_amount // out_amount)
