from __future__ import annotations

import threading
from dataclasses import dataclass

from dflowkit.adapters.execution.dflow_trade_client import DflowTradeClient
from dflowkit.adapters.execution.order_monitor import (
    DEFAULT_MONITOR_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    ChainOrderStateSource,
    OrderMonitor,
)
from dflowkit.adapters.execution.solana_rpc import SolanaRpcClient
from dflowkit.adapters.market_data.prediction_markets_client import PredictionMarketsClient
from dflowkit.adapters.wallet.keypair_signer import KeypairSigner
from dflowkit.app.ports.logger_port import LoggerPort
from dflowkit.domain.model.errors import SignerError
from dflowkit.infra.config.env import Settings
from dflowkit.infra.logging.logger import mask_secret

MISSING_KEY_MESSAGE = (
    "SOLANA_PRIVATE_KEY environment variable is required "
    "(base58 string or JSON array, e.g. [1,2,3,...]), "
    "or set WALLET_KEY_PATH and WALLET_KEY_PASSPHRASE for an encrypted wallet file"
)


@dataclass
class AppContext:
    settings: Settings
    logger: LoggerPort
    trade_client: DflowTradeClient
    markets: PredictionMarketsClient
    rpc: SolanaRpcClient


def create_signer(settings: Settings) -> KeypairSigner:
    if settings.WALLET_KEY_PATH:
        if not settings.WALLET_KEY_PASSPHRASE:
            raise SignerError("WALLET_KEY_PASSPHRASE is required when WALLET_KEY_PATH is set")
        return KeypairSigner.from_encrypted_file(settings.WALLET_KEY_PATH, settings.WALLET_KEY_PASSPHRASE)
    if not settings.SOLANA_PRIVATE_KEY:
        raise SignerError(MISSING_KEY_MESSAGE)
    return KeypairSigner.from_private_key(settings.SOLANA_PRIVATE_KEY)


def create_order_monitor(
    rpc: SolanaRpcClient,
    logger: LoggerPort,
    *,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    timeout_seconds: float = DEFAULT_MONITOR_TIMEOUT_SECONDS,
    cancel_event: threading.Event | None = None,
) -> OrderMonitor:
    return OrderMonitor(
        ChainOrderStateSource(rpc),
        logger,
        poll_interval_seconds=poll_interval_seconds,
        timeout_seconds=timeout_seconds,
        cancel_event=cancel_event,
    )


def bootstrap(settings: Settings, logger: LoggerPort) -> AppContext:
    logger.info(
        "configuration loaded",
        {
            "rpc": settings.SOLANA_RPC_URL,
            "trade_api": settings.TRADE_API_URL,
            "metadata_api": settings.METADATA_API_URL,
            "api_key": mask_secret(settings.API_KEY),
        },
    )
    return AppContext(
        settings=settings,
        logger=logger,
        trade_client=DflowTradeClient(settings.trade_api, logger),
        markets=PredictionMarketsClient(settings.metadata_api, logger),
        rpc=SolanaRpcClient(settings.SOLANA_RPC_URL, logger),
    )
