from __future__ import annotations

from typing import Iterator, Protocol, Sequence

from dflowkit.domain.model.markets import Event, Market, Orderbook, Series, TokenBalance


class MarketDataPort(Protocol):
    def iter_events(
        self,
        *,
        status: str | None = None,
        series_tickers: Sequence[str] = (),
        with_nested_markets: bool = True,
        limit: int = 200,
        max_pages: int | None = None,
    ) -> Iterator[Event]: ...

    def get_orderbook(self, ticker: str) -> Orderbook: ...

    def get_tags_by_categories(self) -> dict[str, list[str]]: ...

    def list_series(self, *, category: str | None = None, tags: Sequence[str] = ()) -> list[Series]: ...

    def filter_outcome_mints(self, addresses: Sequence[str]) -> list[str]: ...

    def get_markets_batch(self, mints: Sequence[str]) -> list[Market]: ...


class TokenBalancePort(Protocol):
    def get_token_balances(self, owner: str, program_id: str) -> list[TokenBalance]: ...
