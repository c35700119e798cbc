from __future__ import annotations

import argparse
import signal
import threading
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from dflowkit.adapters.execution.order_monitor import DEFAULT_MONITOR_TIMEOUT_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS
from dflowkit.app.ports.logger_port import LoggerPort
from dflowkit.app.usecases.discover_markets import (
    DiscoverMarketsDependencies,
    find_series_tickers,
    list_events,
    list_tags_by_category,
)
from dflowkit.app.usecases.market_lifecycle import (
    MIN_VOLUME,
    MarketLifecycleDependencies,
    MarketLifecycleInput,
    run_market_lifecycle,
)
from dflowkit.app.usecases.swap_workflow import (
    DeclarativeSwapDependencies,
    ImperativeSwapDependencies,
    SwapInput,
    execute_declarative_swap,
    execute_imperative_swap,
)
from dflowkit.app.usecases.track_positions import TrackPositionsDependencies, track_positions
from dflowkit.domain.model.types import SwapOutcome
from dflowkit.infra.bootstrap import AppContext, bootstrap, create_order_monitor, create_signer
from dflowkit.infra.config.env import load_settings
from dflowkit.infra.logging.logger import create_logger

FAILED_OUTCOME_STATUSES = frozenset({"FAILED", "EXPIRED"})
WARNING_OUTCOME_STATUSES = frozenset({"PARTIALLY_FILLED", "CLOSED_UNVERIFIED"})


def _split_csv(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(item.strip() for item in value.split(",") if item.strip())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dflowkit", description="DFlow swap and prediction-market toolkit")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("imperative", "fetch an order, sign it and send it to Solana"),
        ("declarative", "request an intent, submit it and monitor the order"),
    ):
        swap = subparsers.add_parser(name, help=help_text)
        swap.add_argument("--input-mint", help="defaults to DFLOW_INPUT_MINT")
        swap.add_argument("--output-mint", help="defaults to DFLOW_OUTPUT_MINT")
        swap.add_argument("--amount", type=int, help="atomic units, defaults to DFLOW_INPUT_AMOUNT")
        swap.add_argument("--slippage-bps", type=int, help="defaults to DFLOW_SLIPPAGE_BPS")
        swap.add_argument("--dexes", help="comma separated venues, defaults to DFLOW_DEXES")
        if name == "declarative":
            swap.add_argument("--poll-interval", type=float, default=DEFAULT_POLL_INTERVAL_SECONDS)
            swap.add_argument("--timeout", type=float, default=DEFAULT_MONITOR_TIMEOUT_SECONDS)

    lifecycle = subparsers.add_parser("lifecycle", help="buy then sell one contract in a liquid market")
    lifecycle.add_argument("--max-amount", type=int, help="defaults to DFLOW_MAX_TRADE_AMOUNT")
    lifecycle.add_argument("--settlement-mint", help="defaults to DFLOW_SETTLEMENT_MINT")
    lifecycle.add_argument("--slippage-bps", type=int, help="defaults to DFLOW_SLIPPAGE_BPS")
    lifecycle.add_argument("--min-volume", type=float, default=MIN_VOLUME)
    lifecycle.add_argument("--max-event-pages", type=int, default=1)
    lifecycle.add_argument("--no-sell", action="store_true", help="keep the contract after buying")

    discover = subparsers.add_parser("discover", help="list events, tags and series")
    discover.add_argument("--status", help="event status filter, e.g. active")
    discover.add_argument("--max-events", type=int, default=20)
    discover.add_argument("--category", help="series category filter")
    discover.add_argument("--tags", help="comma separated series tags filter")
    discover.add_argument("--show-tags", action="store_true", help="also list tags by category")

    positions = subparsers.add_parser("positions", help="list prediction-market positions of a wallet")
    positions.add_argument("--wallet", help="defaults to USER_WALLET_ADDRESS, then the signer key")

    return parser


def _report_outcome(logger: LoggerPort, outcome: SwapOutcome) -> int:
    context = {
        "status": outcome.status,
        "signature": outcome.signature,
        "order_address": outcome.order_address,
        "total_in": outcome.total_in,
        "total_out": outcome.total_out,
    }
    if outcome.status in FAILED_OUTCOME_STATUSES:
        logger.error(outcome.summary, context)
        return 1
    if outcome.status in WARNING_OUTCOME_STATUSES:
        logger.warn(outcome.summary, context)
        return 0
    logger.info(outcome.summary, context)
    return 0


def _swap_input(context: AppContext, args: argparse.Namespace) -> SwapInput:
    settings = context.settings
    venues = _split_csv(args.dexes)
    return SwapInput(
        input_mint=args.input_mint or settings.INPUT_MINT,
        output_mint=args.output_mint or settings.OUTPUT_MINT,
        amount=args.amount if args.amount is not None else settings.INPUT_AMOUNT,
        slippage_bps=args.slippage_bps if args.slippage_bps is not None else settings.SLIPPAGE_BPS,
        venues=venues if venues is not None else settings.DEXES,
    )


def run_imperative(context: AppContext, args: argparse.Namespace) -> int:
    outcome = execute_imperative_swap(
        ImperativeSwapDependencies(
            quotes=context.trade_client,
            signer=create_signer(context.settings),
            chain=context.rpc,
            logger=context.logger,
        ),
        _swap_input(context, args),
    )
    return _report_outcome(context.logger, outcome)


def run_declarative(context: AppContext, args: argparse.Namespace) -> int:
    cancel_event = threading.Event()

    def cancel(sig_name: str) -> None:
        context.logger.info("received shutdown signal, cancelling monitor", {"signal": sig_name})
        cancel_event.set()

    signal.signal(signal.SIGTERM, lambda _signum, _frame: cancel("SIGTERM"))

    monitor = create_order_monitor(
        context.rpc,
        context.logger,
        poll_interval_seconds=args.poll_interval,
        timeout_seconds=args.timeout,
        cancel_event=cancel_event,
    )
    outcome = execute_declarative_swap(
        DeclarativeSwapDependencies(
            quotes=context.trade_client,
            submitter=context.trade_client,
            signer=create_signer(context.settings),
            monitor=monitor,
            logger=context.logger,
        ),
        _swap_input(context, args),
    )
    return _report_outcome(context.logger, outcome)


def run_lifecycle(context: AppContext, args: argparse.Namespace) -> int:
    settings = context.settings
    result = run_market_lifecycle(
        MarketLifecycleDependencies(
            market_data=context.markets,
            quotes=context.trade_client,
            signer=create_signer(settings),
            chain=context.rpc,
            logger=context.logger,
        ),
        MarketLifecycleInput(
            settlement_mint=args.settlement_mint or settings.SETTLEMENT_MINT,
            max_trade_amount=args.max_amount if args.max_amount is not None else settings.MAX_TRADE_AMOUNT,
            slippage_bps=args.slippage_bps if args.slippage_bps is not None else settings.SLIPPAGE_BPS,
            min_volume=args.min_volume,
            sell_after_buy=not args.no_sell,
            max_event_pages=args.max_event_pages,
        ),
    )
    exit_code = 0
    for outcome in result.outcomes:
        exit_code = max(exit_code, _report_outcome(context.logger, outcome))
    return exit_code


def run_discover(context: AppContext, args: argparse.Namespace) -> int:
    dependencies = DiscoverMarketsDependencies(market_data=context.markets, logger=context.logger)
    if args.show_tags:
        list_tags_by_category(dependencies)

    tags = _split_csv(args.tags) or ()
    series_tickers: list[str] = []
    if args.category or tags:
        series_tickers = find_series_tickers(dependencies, category=args.category, tags=tags)
        if not series_tickers:
            context.logger.warn("no series matched filters", {"category": args.category, "tags": list(tags)})
            return 0

    events = list_events(
        dependencies,
        status=args.status,
        series_tickers=series_tickers,
        max_events=args.max_events,
    )
    context.logger.info("events listed", {"count": len(events)})
    return 0


def run_positions(context: AppContext, args: argparse.Namespace) -> int:
    wallet = args.wallet or context.settings.USER_WALLET_ADDRESS
    if not wallet:
        wallet = create_signer(context.settings).public_key_base58()

    positions = track_positions(
        TrackPositionsDependencies(market_data=context.markets, balances=context.rpc, logger=context.logger),
        wallet,
    )
    context.logger.info("positions listed", {"wallet": wallet, "count": len(positions)})
    return 0


COMMANDS = {
    "imperative": run_imperative,
    "declarative": run_declarative,
    "lifecycle": run_lifecycle,
    "discover": run_discover,
    "positions": run_positions,
}


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv(dotenv_path=Path(".env"))
    logger = create_logger(args.command)
    context = bootstrap(load_settings(), logger)
    return COMMANDS[args.command](context, args)


def run() -> None:
    try:
        raise SystemExit(main())
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except Exception as error:
        logger = create_logger("dflowkit")
        logger.error("command failed", {"error": str(error), "type": type(error).__name__})
        raise SystemExit(1) from error


if __name__ == "__main__":
    run()
