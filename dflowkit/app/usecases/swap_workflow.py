from __future__ import annotations

from dataclasses import dataclass, field

from dflowkit.app.ports.execution_port import (
    ChainPort,
    IntentSubmitPort,
    OrderMonitorPort,
    QuotePort,
    SignerPort,
)
from dflowkit.app.ports.logger_port import LoggerPort
from dflowkit.app.usecases.usecase_utils import no_trade_outcome
from dflowkit.domain.model.errors import ApiError, MonitorTimeout
from dflowkit.domain.model.types import OrderQuote, OrderSnapshot, SwapOutcome, TradeRequest
from dflowkit.domain.trading.api_error_classifier import is_no_trade_kind
from dflowkit.domain.trading.fills import sum_fills

TX_CONFIRM_TIMEOUT_MS = 75_000


@dataclass
class SwapInput:
    input_mint: str
    output_mint: str
    amount: int
    slippage_bps: int
    venues: tuple[str, ...] = field(default_factory=tuple)


@dataclass
class ImperativeSwapDependencies:
    quotes: QuotePort
    signer: SignerPort
    chain: ChainPort
    logger: LoggerPort
    confirm_timeout_ms: int = TX_CONFIRM_TIMEOUT_MS


@dataclass
class DeclarativeSwapDependencies:
    quotes: QuotePort
    submitter: IntentSubmitPort
    signer: SignerPort
    monitor: OrderMonitorPort
    logger: LoggerPort


def build_trade_request(input_data: SwapInput, signer: SignerPort) -> TradeRequest:
    return TradeRequest(
        input_mint=input_data.input_mint,
        output_mint=input_data.output_mint,
        amount=input_data.amount,
        slippage_bps=input_data.slippage_bps,
        user_public_key=signer.public_key_base58(),
        venues=tuple(input_data.venues),
    )


def classify_order_result(snapshot: OrderSnapshot, order_address: str) -> SwapOutcome:
    if snapshot.status == "CLOSED" and not snapshot.fills_observed:
        return SwapOutcome(
            status="CLOSED_UNVERIFIED",
            summary=(
                f"Order closed before its fills could be read; check closing transaction {snapshot.close_signature}"
            ),
            signature=snapshot.close_signature,
            order_address=order_address,
        )
    if snapshot.status in ("CLOSED", "PENDING_CLOSE"):
        totals = sum_fills(snapshot.fills)
        if totals.count > 0:
            return SwapOutcome(
                status="FILLED",
                summary=f"Order succeeded: sent {totals.total_in}, received {totals.total_out}",
                order_address=order_address,
                total_in=totals.total_in,
                total_out=totals.total_out,
            )
        return SwapOutcome(
            status="NOT_FILLED",
            summary="Order did not fill; input funds were returned",
            order_address=order_address,
            total_in=0,
            total_out=0,
        )
    if snapshot.status == "OPEN_EXPIRED":
        return SwapOutcome(
            status="EXPIRED",
            summary="Transaction expired. Try again with a higher slippage tolerance.",
            order_address=order_address,
        )
    return SwapOutcome(
        status="FAILED",
        summary=f"Order failed: {snapshot.transaction_error or 'unknown transaction error'}",
        order_address=order_address,
    )


def partial_fill_outcome(error: MonitorTimeout, order_address: str) -> SwapOutcome | None:
    snapshot = error.last_snapshot
    if snapshot is None or snapshot.status != "PENDING_CLOSE":
        return None
    totals = sum_fills(snapshot.fills)
    if totals.count == 0:
        return None
    return SwapOutcome(
        status="PARTIALLY_FILLED",
        summary=(
            f"Order partially filled before the monitor timed out: sent {totals.total_in}, "
            f"received {totals.total_out}; the order is still open"
        ),
        order_address=order_address,
        total_in=totals.total_in,
        total_out=totals.total_out,
    )


def sign_and_submit_order(
    signer: SignerPort,
    chain: ChainPort,
    logger: LoggerPort,
    order: OrderQuote,
    *,
    confirm_timeout_ms: int = TX_CONFIRM_TIMEOUT_MS,
) -> SwapOutcome:
    logger.info("order received, signing transaction")
    signed = signer.sign_transaction(order.transaction_bytes)

    logger.info("submitting transaction to Solana")
    signature = chain.send_raw_transaction(signed)
    confirmation = chain.confirm_signature(signature, confirm_timeout_ms)
    if not confirmation.confirmed:
        logger.error("transaction not confirmed", {"signature": signature, "error": confirmation.error})
        return SwapOutcome(
            status="FAILED",
            summary=f"Transaction {signature} not confirmed: {confirmation.error}",
            signature=signature,
        )

    return SwapOutcome(
        status="CONFIRMED",
        summary=f"Transaction confirmed: {signature}",
        signature=signature,
        total_in=order.in_amount,
        total_out=order.out_amount,
    )


def execute_imperative_swap(dependencies: ImperativeSwapDependencies, input_data: SwapInput) -> SwapOutcome:
    logger = dependencies.logger
    request = build_trade_request(input_data, dependencies.signer)

    logger.info(
        "fetching order",
        {
            "input_mint": request.input_mint,
            "output_mint": request.output_mint,
            "amount": request.amount,
            "slippage_bps": request.slippage_bps,
            "venues": list(request.venues),
        },
    )
    try:
        order = dependencies.quotes.request_order(request)
    except ApiError as error:
        if is_no_trade_kind(error.kind):
            logger.warn("no trade possible", {"code": error.code, "message": error.message})
            return no_trade_outcome(error)
        raise

    return sign_and_submit_order(
        dependencies.signer,
        dependencies.chain,
        logger,
        order,
        confirm_timeout_ms=dependencies.confirm_timeout_ms,
    )


def execute_declarative_swap(dependencies: DeclarativeSwapDependencies, input_data: SwapInput) -> SwapOutcome:
    logger = dependencies.logger
    request = build_trade_request(input_data, dependencies.signer)

    logger.info(
        "requesting intent",
        {
            "input_mint": request.input_mint,
            "output_mint": request.output_mint,
            "amount": request.amount,
            "slippage_bps": request.slippage_bps,
        },
    )
    try:
        intent = dependencies.quotes.request_intent(request)
    except ApiError as error:
        if is_no_trade_kind(error.kind):
            logger.warn("no trade possible", {"code": error.code, "message": error.message})
            return no_trade_outcome(error)
        raise

    signed_open_transaction = dependencies.signer.sign_transaction(intent.open_transaction_bytes)
    submission = dependencies.submitter.submit_intent(intent, signed_open_transaction)

    logger.info("monitoring order", {"order_address": submission.order_address, "program_id": submission.program_id})
    try:
        snapshot = dependencies.monitor.wait_for_terminal(submission, signed_open_transaction)
    except MonitorTimeout as error:
        partial = partial_fill_outcome(error, submission.order_address)
        if partial is None:
            raise
        logger.warn(
            "order monitor timed out after partial fills",
            {"order_address": submission.order_address, "total_in": partial.total_in, "total_out": partial.total_out},
        )
        return partial
    outcome = classify_order_result(snapshot, submission.order_address)
    logger.info(
        "order resolved",
        {
            "order_address": submission.order_address,
            "status": snapshot.status,
            "outcome": outcome.status,
            "total_in": outcome.total_in,
            "total_out": outcome.total_out,
        },
    )
    return outcome
