from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MarketAccount:
    settlement_mint: str
    yes_mint: str | None = None
    no_mint: str | None = None


@dataclass
class Market:
    ticker: str | None
    title: str | None = None
    status: str | None = None
    volume: float = 0.0
    accounts: list[MarketAccount] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass
class Event:
    ticker: str | None
    title: str | None = None
    subtitle: str | None = None
    series_ticker: str | None = None
    markets: list[Market] = field(default_factory=list)


@dataclass(frozen=True)
class Series:
    ticker: str
    title: str | None = None
    category: str | None = None
    tags: tuple[str, ...] = ()


@dataclass
class Orderbook:
    ticker: str
    yes_bids: dict[str, float] = field(default_factory=dict)
    no_bids: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenBalance:
    mint: str
    raw_amount: int
    decimals: int
    ui_amount: float


@dataclass
class Position:
    mint: str
    balance: float
    decimals: int
    side: str
    market: Market | None = None
