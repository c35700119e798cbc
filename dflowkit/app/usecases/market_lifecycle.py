from __future__ import annotations

from dataclasses import dataclass, field

from dflowkit.app.ports.execution_port import ChainPort, QuotePort, SignerPort
from dflowkit.app.ports.logger_port import LoggerPort
from dflowkit.app.ports.market_data_port import MarketDataPort
from dflowkit.app.usecases.swap_workflow import TX_CONFIRM_TIMEOUT_MS, sign_and_submit_order
from dflowkit.app.usecases.usecase_utils import no_trade_outcome
from dflowkit.domain.model.errors import ApiError
from dflowkit.domain.model.markets import Market
from dflowkit.domain.model.types import OrderQuote, OutcomeSide, SwapOutcome, TradeRequest, USDC_MINT
from dflowkit.domain.trading.api_error_classifier import is_no_trade_kind
from dflowkit.domain.trading.market_selection import (
    CONTRACT_ATOMIC_AMOUNT,
    best_bid,
    choose_cheaper_side,
    find_first_market_above_volume,
    resolve_outcome_mint,
    scale_amount_for_exact_output,
    select_top_active_market,
)

MIN_VOLUME = 1_000_000
DEFAULT_MAX_TRADE_AMOUNT = 1_000_000


@dataclass
class MarketLifecycleInput:
    settlement_mint: str = USDC_MINT
    max_trade_amount: int = DEFAULT_MAX_TRADE_AMOUNT
    slippage_bps: int = 50
    min_volume: float = MIN_VOLUME
    sell_after_buy: bool = True
    max_event_pages: int | None = 1


@dataclass
class MarketLifecycleDependencies:
    market_data: MarketDataPort
    quotes: QuotePort
    signer: SignerPort
    chain: ChainPort
    logger: LoggerPort
    confirm_timeout_ms: int = TX_CONFIRM_TIMEOUT_MS


@dataclass
class MarketLifecycleResult:
    outcomes: list[SwapOutcome] = field(default_factory=list)
    event_ticker: str | None = None
    market_ticker: str | None = None
    side: OutcomeSide | None = None
    outcome_mint: str | None = None

    @property
    def final_outcome(self) -> SwapOutcome:
        return self.outcomes[-1]


def _skipped(summary: str) -> SwapOutcome:
    return SwapOutcome(status="SKIPPED", summary=summary)


def _request_order(
    dependencies: MarketLifecycleDependencies,
    input_mint: str,
    output_mint: str,
    amount: int,
    slippage_bps: int,
) -> OrderQuote:
    return dependencies.quotes.request_order(
        TradeRequest(
            input_mint=input_mint,
            output_mint=output_mint,
            amount=amount,
            slippage_bps=slippage_bps,
            user_public_key=dependencies.signer.public_key_base58(),
        )
    )


def buy_one_contract(
    dependencies: MarketLifecycleDependencies,
    input_data: MarketLifecycleInput,
    outcome_mint: str,
) -> SwapOutcome:
    logger = dependencies.logger
    max_amount = input_data.max_trade_amount

    try:
        probe = _request_order(
            dependencies, input_data.settlement_mint, outcome_mint, max_amount, input_data.slippage_bps
        )
    except ApiError as error:
        if is_no_trade_kind(error.kind):
            return no_trade_outcome(error)
        raise

    if not probe.out_amount:
        return _skipped("Probe order returned no output estimate. Skipping trade.")
    probe_in = probe.in_amount or max_amount
    scaled_amount = scale_amount_for_exact_output(probe_in, probe.out_amount, CONTRACT_ATOMIC_AMOUNT)
    logger.info(
        "probe order priced",
        {"probe_in": probe_in, "probe_out": probe.out_amount, "scaled_amount": scaled_amount},
    )
    if scaled_amount > max_amount:
        return _skipped(
            f"1 contract costs {scaled_amount} which exceeds maximum {max_amount}. Skipping trade."
        )

    try:
        order = _request_order(
            dependencies, input_data.settlement_mint, outcome_mint, scaled_amount, input_data.slippage_bps
        )
    except ApiError as error:
        if is_no_trade_kind(error.kind):
            return no_trade_outcome(error)
        raise

    if order.out_amount != CONTRACT_ATOMIC_AMOUNT:
        return _skipped(
            f"Order returned {order.out_amount} instead of exactly {CONTRACT_ATOMIC_AMOUNT}. Skipping trade."
        )

    logger.info("estimated cost", {"in_amount": scaled_amount, "settlement_mint": input_data.settlement_mint})
    return sign_and_submit_order(
        dependencies.signer,
        dependencies.chain,
        logger,
        order,
        confirm_timeout_ms=dependencies.confirm_timeout_ms,
    )


def sell_one_contract(
    dependencies: MarketLifecycleDependencies,
    input_data: MarketLifecycleInput,
    outcome_mint: str,
) -> SwapOutcome:
    dependencies.logger.info("requesting order to sell 1 contract", {"outcome_mint": outcome_mint})
    try:
        order = _request_order(
            dependencies, outcome_mint, input_data.settlement_mint, CONTRACT_ATOMIC_AMOUNT, input_data.slippage_bps
        )
    except ApiError as error:
        if is_no_trade_kind(error.kind):
            return no_trade_outcome(error)
        raise

    return sign_and_submit_order(
        dependencies.signer,
        dependencies.chain,
        dependencies.logger,
        order,
        confirm_timeout_ms=dependencies.confirm_timeout_ms,
    )


def _trade_market(
    dependencies: MarketLifecycleDependencies,
    input_data: MarketLifecycleInput,
    market: Market,
    result: MarketLifecycleResult,
) -> MarketLifecycleResult:
    logger = dependencies.logger
    if market.ticker is None:
        result.outcomes.append(_skipped("Top active market has no ticker."))
        return result

    orderbook = dependencies.market_data.get_orderbook(market.ticker)
    logger.info(
        "orderbook fetched",
        {
            "market_ticker": market.ticker,
            "yes_bids": len(orderbook.yes_bids),
            "no_bids": len(orderbook.no_bids),
            "best_yes_bid": best_bid(orderbook.yes_bids),
            "best_no_bid": best_bid(orderbook.no_bids),
        },
    )

    side = choose_cheaper_side(orderbook)
    if side is None:
        result.outcomes.append(_skipped("Orderbook is empty. Cannot price a 1-contract buy."))
        return result
    result.side = side

    outcome_mint = resolve_outcome_mint(market, side, input_data.settlement_mint)
    if outcome_mint is None:
        result.outcomes.append(_skipped("No outcome mint found for market."))
        return result
    result.outcome_mint = outcome_mint

    logger.info(
        "requesting order for 1 contract",
        {"market_ticker": market.ticker, "side": side.upper(), "outcome_mint": outcome_mint},
    )
    bought = buy_one_contract(dependencies, input_data, outcome_mint)
    result.outcomes.append(bought)
    if bought.status == "CONFIRMED" and input_data.sell_after_buy:
        result.outcomes.append(sell_one_contract(dependencies, input_data, outcome_mint))
    return result


def run_market_lifecycle(
    dependencies: MarketLifecycleDependencies,
    input_data: MarketLifecycleInput,
) -> MarketLifecycleResult:
    logger = dependencies.logger
    logger.info("looking for market", {"min_volume": input_data.min_volume})

    for event in dependencies.market_data.iter_events(max_pages=input_data.max_event_pages):
        trigger = find_first_market_above_volume(event.markets, input_data.min_volume)
        if trigger is None:
            continue

        logger.info(
            "found market above volume threshold",
            {"event_ticker": event.ticker, "market_ticker": trigger.ticker, "volume": trigger.volume},
        )
        result = MarketLifecycleResult(event_ticker=event.ticker)
        top_market = select_top_active_market(event.markets)
        if top_market is None:
            result.outcomes.append(_skipped("No active markets found for this event."))
            return result

        result.market_ticker = top_market.ticker
        return _trade_market(dependencies, input_data, top_market, result)

    return MarketLifecycleResult(
        outcomes=[_skipped(f"No market with volume > {input_data.min_volume:,.0f} found.")]
    )
