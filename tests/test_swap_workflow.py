from __future__ import annotations

import unittest
from typing import Any

from dflowkit.app.usecases.swap_workflow import (
    DeclarativeSwapDependencies,
    ImperativeSwapDependencies,
    SwapInput,
    classify_order_result,
    execute_declarative_swap,
    execute_imperative_swap,
)
from dflowkit.domain.model.errors import ApiError, MonitorTimeout, SignerError
from dflowkit.domain.model.types import (
    SOL_MINT,
    USDC_MINT,
    Fill,
    IntentQuote,
    IntentSubmission,
    OrderQuote,
    OrderSnapshot,
    SignatureConfirmation,
    TradeRequest,
)


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


class FakeSigner:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.signed: list[bytes] = []

    def public_key_base58(self) -> str:
        return "wallet-pubkey"

    def sign_transaction(self, raw_transaction: bytes) -> bytes:
        if self.error is not None:
            raise self.error
        self.signed.append(raw_transaction)
        return b"signed:" + raw_transaction


class FakeQuotes:
    def __init__(self, order: OrderQuote | None = None, intent: IntentQuote | None = None, error: Exception | None = None):
        self.order = order
        self.intent = intent
        self.error = error
        self.requests: list[TradeRequest] = []

    def request_order(self, request: TradeRequest) -> OrderQuote:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        assert self.order is not None
        return self.order

    def request_intent(self, request: TradeRequest) -> IntentQuote:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        assert self.intent is not None
        return self.intent


class FakeChain:
    def __init__(self, confirmation: SignatureConfirmation):
        self.confirmation = confirmation
        self.sent: list[bytes] = []

    def send_raw_transaction(self, raw_transaction: bytes) -> str:
        self.sent.append(raw_transaction)
        return "sig-1"

    def confirm_signature(self, signature: str, timeout_ms: int) -> SignatureConfirmation:
        _ = signature
        _ = timeout_ms
        return self.confirmation


class FakeSubmitter:
    def __init__(self) -> None:
        self.submitted: list[tuple[IntentQuote, bytes]] = []

    def submit_intent(self, intent: IntentQuote, signed_open_transaction: bytes) -> IntentSubmission:
        self.submitted.append((intent, signed_open_transaction))
        return IntentSubmission(order_address="order-1", program_id="program-1")


class FakeMonitor:
    def __init__(self, snapshot: OrderSnapshot | None = None, error: Exception | None = None):
        self.snapshot = snapshot
        self.error = error
        self.watched: list[tuple[IntentSubmission, bytes]] = []

    def wait_for_terminal(self, submission: IntentSubmission, signed_open_transaction: bytes) -> OrderSnapshot:
        self.watched.append((submission, signed_open_transaction))
        if self.error is not None:
            raise self.error
        assert self.snapshot is not None
        return self.snapshot


SWAP_INPUT = SwapInput(
    input_mint=SOL_MINT,
    output_mint=USDC_MINT,
    amount=100_000,
    slippage_bps=50,
    venues=("Raydium AMM",),
)


class ClassifyOrderResultTest(unittest.TestCase):
    def test_closed_with_fills_is_filled_with_totals(self) -> None:
        outcome = classify_order_result(OrderSnapshot(status="CLOSED", fills=[Fill(2, 3), Fill(3, 9)]), "order-1")

        self.assertEqual("FILLED", outcome.status)
        self.assertEqual((5, 12), (outcome.total_in, outcome.total_out))
        self.assertIn("sent 5, received 12", outcome.summary)

    def test_closed_without_fills_is_not_filled(self) -> None:
        outcome = classify_order_result(OrderSnapshot(status="CLOSED"), "order-1")

        self.assertEqual("NOT_FILLED", outcome.status)
        self.assertIn("did not fill", outcome.summary)

    def test_pending_close_with_fills_is_filled(self) -> None:
        outcome = classify_order_result(OrderSnapshot(status="PENDING_CLOSE", fills=[Fill(1, 1)]), "order-1")

        self.assertEqual("FILLED", outcome.status)

    def test_closed_without_observed_fills_is_unverified(self) -> None:
        outcome = classify_order_result(
            OrderSnapshot(status="CLOSED", fills_observed=False, close_signature="sig-close"), "order-1"
        )

        self.assertEqual("CLOSED_UNVERIFIED", outcome.status)
        self.assertEqual("sig-close", outcome.signature)
        self.assertIsNone(outcome.total_in)

    def test_expired_suggests_higher_slippage(self) -> None:
        outcome = classify_order_result(OrderSnapshot(status="OPEN_EXPIRED"), "order-1")

        self.assertEqual("EXPIRED", outcome.status)
        self.assertIn("higher slippage tolerance", outcome.summary)

    def test_failed_carries_transaction_error(self) -> None:
        outcome = classify_order_result(
            OrderSnapshot(status="OPEN_FAILED", transaction_error='{"InstructionError": [0, "Custom"]}'),
            "order-1",
        )

        self.assertEqual("FAILED", outcome.status)
        self.assertIn("InstructionError", outcome.summary)


class ImperativeSwapTest(unittest.TestCase):
    def test_signs_sends_and_confirms_order(self) -> None:
        quotes = FakeQuotes(order=OrderQuote(raw={}, transaction_base64="AQID", in_amount=100_000, out_amount=15))
        signer = FakeSigner()
        chain = FakeChain(SignatureConfirmation(confirmed=True))

        outcome = execute_imperative_swap(
            ImperativeSwapDependencies(quotes=quotes, signer=signer, chain=chain, logger=InMemoryLogger()),
            SWAP_INPUT,
        )

        self.assertEqual("CONFIRMED", outcome.status)
        self.assertEqual("sig-1", outcome.signature)
        self.assertEqual([b"\x01\x02\x03"], signer.signed)
        self.assertEqual([b"signed:\x01\x02\x03"], chain.sent)
        self.assertEqual("wallet-pubkey", quotes.requests[0].user_public_key)
        self.assertEqual(("Raydium AMM",), quotes.requests[0].venues)

    def test_unconfirmed_transaction_is_failed(self) -> None:
        quotes = FakeQuotes(order=OrderQuote(raw={}, transaction_base64="AQID"))
        chain = FakeChain(SignatureConfirmation(confirmed=False, error="confirmation timeout after 75000ms"))

        outcome = execute_imperative_swap(
            ImperativeSwapDependencies(quotes=quotes, signer=FakeSigner(), chain=chain, logger=InMemoryLogger()),
            SWAP_INPUT,
        )

        self.assertEqual("FAILED", outcome.status)
        self.assertIn("confirmation timeout", outcome.summary)

    def test_zero_out_amount_is_reported_as_no_trade(self) -> None:
        quotes = FakeQuotes(error=ApiError(400, "zero out amount", code="zero_out_amount"))
        chain = FakeChain(SignatureConfirmation(confirmed=True))

        outcome = execute_imperative_swap(
            ImperativeSwapDependencies(quotes=quotes, signer=FakeSigner(), chain=chain, logger=InMemoryLogger()),
            SWAP_INPUT,
        )

        self.assertEqual("NO_TRADE", outcome.status)
        self.assertEqual("zero_out_amount", outcome.error_code)
        self.assertEqual([], chain.sent)

    def test_other_api_errors_propagate(self) -> None:
        quotes = FakeQuotes(error=ApiError(500, "internal", code="internal_error"))

        with self.assertRaises(ApiError):
            execute_imperative_swap(
                ImperativeSwapDependencies(
                    quotes=quotes,
                    signer=FakeSigner(),
                    chain=FakeChain(SignatureConfirmation(confirmed=True)),
                    logger=InMemoryLogger(),
                ),
                SWAP_INPUT,
            )

    def test_signer_error_aborts_before_submission(self) -> None:
        chain = FakeChain(SignatureConfirmation(confirmed=True))

        with self.assertRaises(SignerError):
            execute_imperative_swap(
                ImperativeSwapDependencies(
                    quotes=FakeQuotes(order=OrderQuote(raw={}, transaction_base64="AQID")),
                    signer=FakeSigner(error=SignerError("bad transaction")),
                    chain=chain,
                    logger=InMemoryLogger(),
                ),
                SWAP_INPUT,
            )
        self.assertEqual([], chain.sent)


class DeclarativeSwapTest(unittest.TestCase):
    def _dependencies(
        self, quotes: FakeQuotes, monitor: FakeMonitor, signer: FakeSigner | None = None
    ) -> tuple[DeclarativeSwapDependencies, FakeSubmitter]:
        submitter = FakeSubmitter()
        return (
            DeclarativeSwapDependencies(
                quotes=quotes,
                submitter=submitter,
                signer=signer or FakeSigner(),
                monitor=monitor,
                logger=InMemoryLogger(),
            ),
            submitter,
        )

    def test_filled_order_reports_totals(self) -> None:
        intent = IntentQuote(raw={"openTransaction": "AQID"}, open_transaction_base64="AQID")
        monitor = FakeMonitor(OrderSnapshot(status="CLOSED", fills=[Fill(60_000, 9), Fill(40_000, 6)]))
        dependencies, submitter = self._dependencies(FakeQuotes(intent=intent), monitor)

        outcome = execute_declarative_swap(dependencies, SWAP_INPUT)

        self.assertEqual("FILLED", outcome.status)
        self.assertEqual((100_000, 15), (outcome.total_in, outcome.total_out))
        self.assertEqual("order-1", outcome.order_address)
        self.assertIs(intent, submitter.submitted[0][0])
        self.assertEqual(b"signed:\x01\x02\x03", submitter.submitted[0][1])
        self.assertEqual(b"signed:\x01\x02\x03", monitor.watched[0][1])

    def test_insufficient_liquidity_is_no_trade(self) -> None:
        monitor = FakeMonitor(OrderSnapshot(status="CLOSED"))
        dependencies, submitter = self._dependencies(
            FakeQuotes(error=ApiError(400, "Insufficient liquidity for route")),
            monitor,
        )

        outcome = execute_declarative_swap(dependencies, SWAP_INPUT)

        self.assertEqual("NO_TRADE", outcome.status)
        self.assertIn("insufficient liquidity", outcome.summary)
        self.assertEqual([], submitter.submitted)

    def test_monitor_timeout_propagates(self) -> None:
        intent = IntentQuote(raw={}, open_transaction_base64="AQID")
        dependencies, _ = self._dependencies(
            FakeQuotes(intent=intent),
            FakeMonitor(error=MonitorTimeout("order order-1 not terminal")),
        )

        with self.assertRaises(MonitorTimeout):
            execute_declarative_swap(dependencies, SWAP_INPUT)

    def test_timeout_after_partial_fills_reports_partial_totals(self) -> None:
        intent = IntentQuote(raw={}, open_transaction_base64="AQID")
        last_snapshot = OrderSnapshot(status="PENDING_CLOSE", fills=[Fill(3, 7), Fill(2, 5)])
        dependencies, _ = self._dependencies(
            FakeQuotes(intent=intent),
            FakeMonitor(error=MonitorTimeout("order order-1 not terminal", last_snapshot=last_snapshot)),
        )

        outcome = execute_declarative_swap(dependencies, SWAP_INPUT)

        self.assertEqual("PARTIALLY_FILLED", outcome.status)
        self.assertEqual((5, 12), (outcome.total_in, outcome.total_out))
        self.assertEqual("order-1", outcome.order_address)
        self.assertIn("timed out", outcome.summary)

    def test_timeout_with_pending_order_and_no_fills_propagates(self) -> None:
        intent = IntentQuote(raw={}, open_transaction_base64="AQID")
        dependencies, _ = self._dependencies(
            FakeQuotes(intent=intent),
            FakeMonitor(
                error=MonitorTimeout("order order-1 not terminal", last_snapshot=OrderSnapshot(status="PENDING_CLOSE"))
            ),
        )

        with self.assertRaises(MonitorTimeout):
            execute_declarative_swap(dependencies, SWAP_INPUT)

    def test_signer_error_aborts_before_submit(self) -> None:
        intent = IntentQuote(raw={}, open_transaction_base64="AQID")
        dependencies, submitter = self._dependencies(
            FakeQuotes(intent=intent),
            FakeMonitor(OrderSnapshot(status="CLOSED")),
            signer=FakeSigner(error=SignerError("not a required signer")),
        )

        with self.assertRaises(SignerError):
            execute_declarative_swap(dependencies, SWAP_INPUT)
        self.assertEqual([], submitter.submitted)


if __name__ == "__main__":
    unittest.main()
