from __future__ import annotations

import unittest
from typing import Any, Iterator, Sequence

from dflowkit.app.usecases.market_lifecycle import (
    MarketLifecycleDependencies,
    MarketLifecycleInput,
    run_market_lifecycle,
)
from dflowkit.domain.model.errors import ApiError
from dflowkit.domain.model.markets import Event, Market, MarketAccount, Orderbook
from dflowkit.domain.model.types import USDC_MINT, OrderQuote, SignatureConfirmation, TradeRequest


class InMemoryLogger:
    def debug(self, message: str, context: dict[str, Any] | None = None) -> None:
        _ = message
        _ = context

    def info(self, message: str, context: dict[str, Any] | None = None) -> None:
        _ = message
        _ = context

    def warn(self, message: str, context: dict[str, Any] | None = None) -> None:
        _ = message
        _ = context

    def error(self, message: str, context: dict[str, Any] | None = None) -> None:
        _ = message
        _ = context


class FakeMarketData:
    def __init__(self, events: list[Event], orderbook: Orderbook):
        self.events = events
        self.orderbook = orderbook
        self.orderbook_requests: list[str] = []

    def iter_events(
        self,
        *,
        status: str | None = None,
        series_tickers: Sequence[str] = (),
        with_nested_markets: bool = True,
        limit: int = 200,
        max_pages: int | None = None,
    ) -> Iterator[Event]:
        _ = (status, series_tickers, with_nested_markets, limit, max_pages)
        return iter(self.events)

    def get_orderbook(self, ticker: str) -> Orderbook:
        self.orderbook_requests.append(ticker)
        return self.orderbook


class ScriptedQuotes:
    def __init__(self, responses: list[OrderQuote | Exception]):
        self.responses = list(responses)
        self.requests: list[TradeRequest] = []

    def request_order(self, request: TradeRequest) -> OrderQuote:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeSigner:
    def public_key_base58(self) -> str:
        return "wallet-pubkey"

    def sign_transaction(self, raw_transaction: bytes) -> bytes:
        return raw_transaction


class FakeChain:
    def __init__(self) -> None:
        self.sent = 0

    def send_raw_transaction(self, raw_transaction: bytes) -> str:
        _ = raw_transaction
        self.sent += 1
        return f"sig-{self.sent}"

    def confirm_signature(self, signature: str, timeout_ms: int) -> SignatureConfirmation:
        _ = signature
        _ = timeout_ms
        return SignatureConfirmation(confirmed=True)


def _market(ticker: str, volume: float, status: str = "active") -> Market:
    return Market(
        ticker=ticker,
        status=status,
        volume=volume,
        accounts=[MarketAccount(settlement_mint=USDC_MINT, yes_mint=f"{ticker}-yes", no_mint=f"{ticker}-no")],
    )


def _quote(in_amount: int, out_amount: int) -> OrderQuote:
    return OrderQuote(raw={}, transaction_base64="AQID", in_amount=in_amount, out_amount=out_amount)


EVENTS = [
    Event(ticker="QUIET", markets=[_market("Q1", 10)]),
    Event(ticker="BUSY", markets=[_market("B1", 1_200_000), _market("B2", 1_500_000), _market("B3", 9e9, "closed")]),
]
ORDERBOOK = Orderbook(ticker="B2", yes_bids={"0.62": 3}, no_bids={"0.41": 8})


class MarketLifecycleTest(unittest.TestCase):
    def _dependencies(self, quotes: ScriptedQuotes, market_data: FakeMarketData, chain: FakeChain):
        return MarketLifecycleDependencies(
            market_data=market_data,
            quotes=quotes,
            signer=FakeSigner(),
            chain=chain,
            logger=InMemoryLogger(),
        )

    def test_buys_cheaper_side_of_top_market_then_sells(self) -> None:
        market_data = FakeMarketData(EVENTS, ORDERBOOK)
        quotes = ScriptedQuotes([_quote(500_000, 1_250_000), _quote(400_000, 1_000_000), _quote(1_000_000, 380_000)])
        chain = FakeChain()

        result = run_market_lifecycle(
            self._dependencies(quotes, market_data, chain),
            MarketLifecycleInput(max_trade_amount=500_000),
        )

        self.assertEqual("BUSY", result.event_ticker)
        self.assertEqual("B2", result.market_ticker)
        self.assertEqual(["B2"], market_data.orderbook_requests)
        self.assertEqual("no", result.side)
        self.assertEqual("B2-no", result.outcome_mint)
        self.assertEqual(["CONFIRMED", "CONFIRMED"], [outcome.status for outcome in result.outcomes])
        self.assertEqual(2, chain.sent)

        probe, buy, sell = quotes.requests
        self.assertEqual((USDC_MINT, "B2-no", 500_000), (probe.input_mint, probe.output_mint, probe.amount))
        self.assertEqual(400_000, buy.amount)
        self.assertEqual(("B2-no", USDC_MINT, 1_000_000), (sell.input_mint, sell.output_mint, sell.amount))

    def test_skips_when_one_contract_exceeds_maximum(self) -> None:
        quotes = ScriptedQuotes([_quote(1_000_000, 900_000)])
        chain = FakeChain()

        result = run_market_lifecycle(
            self._dependencies(quotes, FakeMarketData(EVENTS, ORDERBOOK), chain),
            MarketLifecycleInput(max_trade_amount=1_000_000),
        )

        self.assertEqual("SKIPPED", result.final_outcome.status)
        self.assertIn("1111112", result.final_outcome.summary)
        self.assertIn("exceeds maximum", result.final_outcome.summary)
        self.assertEqual(1, len(quotes.requests))
        self.assertEqual(0, chain.sent)

    def test_skips_when_requote_is_not_exactly_one_contract(self) -> None:
        quotes = ScriptedQuotes([_quote(500_000, 1_250_000), _quote(400_000, 999_999)])
        chain = FakeChain()

        result = run_market_lifecycle(
            self._dependencies(quotes, FakeMarketData(EVENTS, ORDERBOOK), chain),
            MarketLifecycleInput(max_trade_amount=500_000),
        )

        self.assertEqual("SKIPPED", result.final_outcome.status)
        self.assertIn("instead of exactly 1000000", result.final_outcome.summary)
        self.assertEqual(0, chain.sent)

    def test_skips_when_orderbook_is_empty(self) -> None:
        quotes = ScriptedQuotes([])

        result = run_market_lifecycle(
            self._dependencies(quotes, FakeMarketData(EVENTS, Orderbook(ticker="B2")), FakeChain()),
            MarketLifecycleInput(),
        )

        self.assertEqual("SKIPPED", result.final_outcome.status)
        self.assertIn("Orderbook is empty", result.final_outcome.summary)
        self.assertEqual([], quotes.requests)

    def test_skips_when_no_market_above_volume(self) -> None:
        result = run_market_lifecycle(
            self._dependencies(ScriptedQuotes([]), FakeMarketData(EVENTS[:1], ORDERBOOK), FakeChain()),
            MarketLifecycleInput(),
        )

        self.assertIsNone(result.event_ticker)
        self.assertEqual("SKIPPED", result.final_outcome.status)
        self.assertIn("No market with volume > 1,000,000 found.", result.final_outcome.summary)

    def test_zero_out_probe_is_no_trade(self) -> None:
        quotes = ScriptedQuotes([ApiError(400, "Route resulted in zero out amount", code="zero_out_amount")])

        result = run_market_lifecycle(
            self._dependencies(quotes, FakeMarketData(EVENTS, ORDERBOOK), FakeChain()),
            MarketLifecycleInput(),
        )

        self.assertEqual("NO_TRADE", result.final_outcome.status)

    def test_no_sell_keeps_contract(self) -> None:
        quotes = ScriptedQuotes([_quote(500_000, 1_250_000), _quote(400_000, 1_000_000)])
        chain = FakeChain()

        result = run_market_lifecycle(
            self._dependencies(quotes, FakeMarketData(EVENTS, ORDERBOOK), chain),
            MarketLifecycleInput(max_trade_amount=500_000, sell_after_buy=False),
        )

        self.assertEqual(["CONFIRMED"], [outcome.status for outcome in result.outcomes])
        self.assertEqual(1, chain.sent)


if __name__ == "__main__":
    unittest.main()
