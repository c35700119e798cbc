from __future__ import annotations

from dataclasses import dataclass
from itertools import islice
from typing import Any, Sequence

from dflowkit.app.ports.logger_port import LoggerPort
from dflowkit.app.ports.market_data_port import MarketDataPort
from dflowkit.domain.model.markets import Event, Market


@dataclass
class DiscoverMarketsDependencies:
    market_data: MarketDataPort
    logger: LoggerPort


def summarize_market(market: Market) -> dict[str, Any]:
    return {
        "ticker": market.ticker,
        "title": market.title,
        "status": market.status,
        "volume": market.volume,
        "accounts": [{"yesMint": account.yes_mint, "noMint": account.no_mint} for account in market.accounts],
    }


def summarize_event(event: Event) -> dict[str, Any]:
    return {
        "ticker": event.ticker,
        "title": event.title,
        "subtitle": event.subtitle,
        "seriesTicker": event.series_ticker,
        "markets": [summarize_market(market) for market in event.markets],
    }


def list_events(
    dependencies: DiscoverMarketsDependencies,
    *,
    status: str | None = None,
    series_tickers: Sequence[str] = (),
    max_events: int | None = None,
) -> list[dict[str, Any]]:
    events = dependencies.market_data.iter_events(status=status, series_tickers=series_tickers)
    summaries = [summarize_event(event) for event in islice(events, max_events)]
    for summary in summaries:
        dependencies.logger.info("event", summary)
    return summaries


def list_tags_by_category(dependencies: DiscoverMarketsDependencies) -> dict[str, list[str]]:
    tags_by_category = dependencies.market_data.get_tags_by_categories()
    for category, tags in tags_by_category.items():
        dependencies.logger.info(f"tags for {category}", {"tags": ", ".join(tags)})
    return tags_by_category


def find_series_tickers(
    dependencies: DiscoverMarketsDependencies,
    *,
    category: str | None = None,
    tags: Sequence[str] = (),
) -> list[str]:
    tickers = [series.ticker for series in dependencies.market_data.list_series(category=category, tags=tags)]
    dependencies.logger.info(
        "series tickers",
        {"category": category, "tags": list(tags), "tickers": tickers},
    )
    return tickers
