from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Sequence

import requests

from dflowkit.adapters.http.api_response import read_json_object
from dflowkit.adapters.http.http_retry import request_with_retry
from dflowkit.app.ports.logger_port import LoggerPort
from dflowkit.domain.model.errors import MalformedResponse
from dflowkit.domain.model.markets import Event, Market, MarketAccount, Orderbook, Series

DEFAULT_METADATA_API_URL = "https://dev-prediction-markets-api.dflow.net"
METADATA_HTTP_TIMEOUT_SECONDS = 10
METADATA_RETRY_ATTEMPTS = 3
METADATA_RETRY_BASE_DELAY_SECONDS = 0.35
DEFAULT_PAGE_LIMIT = 200


@dataclass(frozen=True)
class MetadataApiConfig:
    base_url: str = DEFAULT_METADATA_API_URL
    api_key: str | None = None
    timeout_seconds: float = METADATA_HTTP_TIMEOUT_SECONDS


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def parse_market(payload: dict[str, Any]) -> Market:
    accounts: list[MarketAccount] = []
    raw_accounts = payload.get("accounts")
    if isinstance(raw_accounts, dict):
        for settlement_mint, account in raw_accounts.items():
            if not isinstance(account, dict):
                continue
            accounts.append(
                MarketAccount(
                    settlement_mint=str(settlement_mint),
                    yes_mint=_optional_str(account.get("yesMint")),
                    no_mint=_optional_str(account.get("noMint")),
                )
            )
    return Market(
        ticker=_optional_str(payload.get("ticker")),
        title=_optional_str(payload.get("title")),
        status=_optional_str(payload.get("status")),
        volume=_to_float(payload.get("volume")),
        accounts=accounts,
        raw=payload,
    )


def parse_event(payload: dict[str, Any]) -> Event:
    raw_markets = payload.get("markets")
    markets = (
        [parse_market(item) for item in raw_markets if isinstance(item, dict)]
        if isinstance(raw_markets, list)
        else []
    )
    return Event(
        ticker=_optional_str(payload.get("ticker")),
        title=_optional_str(payload.get("title")),
        subtitle=_optional_str(payload.get("subtitle")),
        series_ticker=_optional_str(payload.get("seriesTicker")),
        markets=markets,
    )


def _parse_bids(value: Any) -> dict[str, float]:
    if not isinstance(value, dict):
        return {}
    return {str(price): _to_float(size) for price, size in value.items()}


def _require_list(payload: dict[str, Any], key: str, context: str) -> list[Any]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedResponse(f"{context}: '{key}' must be a list")
    return value


class PredictionMarketsClient:
    def __init__(self, config: MetadataApiConfig, logger: LoggerPort):
        self.config = config
        self.logger = logger

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["x-api-key"] = self.config.api_key
        return headers

    def _get(self, path: str, params: dict[str, str] | None, context: str) -> dict[str, Any]:
        response = request_with_retry(
            lambda: requests.get(
                self._url(path),
                params=params,
                headers=self._headers(),
                timeout=self.config.timeout_seconds,
            ),
            attempts=METADATA_RETRY_ATTEMPTS,
            base_delay_seconds=METADATA_RETRY_BASE_DELAY_SECONDS,
            context=context,
        )
        return read_json_object(response, context)

    def _post(self, path: str, body: dict[str, Any], context: str) -> dict[str, Any]:
        response = request_with_retry(
            lambda: requests.post(
                self._url(path),
                json=body,
                headers=self._headers(),
                timeout=self.config.timeout_seconds,
            ),
            attempts=METADATA_RETRY_ATTEMPTS,
            base_delay_seconds=METADATA_RETRY_BASE_DELAY_SECONDS,
            context=context,
        )
        return read_json_object(response, context)

    def iter_events(
        self,
        *,
        status: str | None = None,
        series_tickers: Sequence[str] = (),
        with_nested_markets: bool = True,
        limit: int = DEFAULT_PAGE_LIMIT,
        max_pages: int | None = None,
    ) -> Iterator[Event]:
        """Yield events page by page, following the server cursor.

        Each call starts from the first page, so the sequence can be restarted
        by calling again.
        """
        if limit <= 0:
            raise ValueError("limit must be > 0")

        cursor: str | None = None
        pages = 0
        while max_pages is None or pages < max_pages:
            params = {
                "withNestedMarkets": str(with_nested_markets).lower(),
                "limit": str(limit),
            }
            if status:
                params["status"] = status
            if series_tickers:
                params["seriesTickers"] = ",".join(series_tickers)
            if cursor:
                params["cursor"] = cursor

            payload = self._get("/api/v1/events", params, "events request")
            page = _require_list(payload, "events", "events request")
            pages += 1
            self.logger.debug("events page fetched", {"page": pages, "events": len(page)})

            for item in page:
                if isinstance(item, dict):
                    yield parse_event(item)

            next_cursor = payload.get("cursor")
            if not page or not next_cursor or next_cursor == cursor:
                return
            cursor = str(next_cursor)

    def get_orderbook(self, ticker: str) -> Orderbook:
        payload = self._get(f"/api/v1/orderbook/{ticker}", None, f"orderbook request for {ticker}")
        return Orderbook(
            ticker=ticker,
            yes_bids=_parse_bids(payload.get("yes_bids")),
            no_bids=_parse_bids(payload.get("no_bids")),
        )

    def get_tags_by_categories(self) -> dict[str, list[str]]:
        payload = self._get("/api/v1/tags_by_categories", None, "tags by categories request")
        raw = payload.get("tagsByCategories")
        if not isinstance(raw, dict):
            raise MalformedResponse("tags by categories response is missing tagsByCategories")
        tags_by_category: dict[str, list[str]] = {}
        for category, tags in raw.items():
            if isinstance(tags, list):
                tags_by_category[str(category)] = [str(tag) for tag in tags]
            elif tags is None:
                tags_by_category[str(category)] = []
            else:
                tags_by_category[str(category)] = [str(tags)]
        return tags_by_category

    def list_series(self, *, category: str | None = None, tags: Sequence[str] = ()) -> list[Series]:
        params: dict[str, str] = {}
        if category:
            params["category"] = category
        if tags:
            params["tags"] = ",".join(tags)
        payload = self._get("/api/v1/series", params or None, "series request")

        series: list[Series] = []
        for item in _require_list(payload, "series", "series request"):
            if not isinstance(item, dict) or not isinstance(item.get("ticker"), str):
                continue
            raw_tags = item.get("tags")
            series.append(
                Series(
                    ticker=item["ticker"],
                    title=_optional_str(item.get("title")),
                    category=_optional_str(item.get("category")),
                    tags=tuple(str(tag) for tag in raw_tags) if isinstance(raw_tags, list) else (),
                )
            )
        return series

    def filter_outcome_mints(self, addresses: Sequence[str]) -> list[str]:
        if not addresses:
            return []
        payload = self._post(
            "/api/v1/filter_outcome_mints",
            {"addresses": list(addresses)},
            "filter outcome mints request",
        )
        return [str(mint) for mint in _require_list(payload, "outcomeMints", "filter outcome mints request")]

    def get_markets_batch(self, mints: Sequence[str]) -> list[Market]:
        if not mints:
            return []
        payload = self._post("/api/v1/markets/batch", {"mints": list(mints)}, "markets batch request")
        return [
            parse_market(item)
            for item in _require_list(payload, "markets", "markets batch request")
            if isinstance(item, dict)
        ]
