from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from dflowkit.adapters.execution.dflow_trade_client import DEFAULT_TRADE_API_URL, TradeApiConfig
from dflowkit.adapters.execution.solana_rpc import DEFAULT_SOLANA_RPC_URL
from dflowkit.adapters.market_data.prediction_markets_client import DEFAULT_METADATA_API_URL, MetadataApiConfig
from dflowkit.domain.model.types import SOL_MINT, USDC_MINT

DEFAULT_INPUT_AMOUNT = 100_000
DEFAULT_SLIPPAGE_BPS = 50
DEFAULT_DEXES = ("Raydium AMM",)
DEFAULT_MAX_TRADE_AMOUNT = 1_000_000


@dataclass(frozen=True)
class Settings:
    TRADE_API_URL: str
    METADATA_API_URL: str
    API_KEY: str | None
    SOLANA_RPC_URL: str
    SOLANA_PRIVATE_KEY: str | None
    WALLET_KEY_PATH: str | None
    WALLET_KEY_PASSPHRASE: str | None
    INPUT_MINT: str
    OUTPUT_MINT: str
    INPUT_AMOUNT: int
    SLIPPAGE_BPS: int
    DEXES: tuple[str, ...]
    MAX_TRADE_AMOUNT: int
    SETTLEMENT_MINT: str
    USER_WALLET_ADDRESS: str | None

    @property
    def trade_api(self) -> TradeApiConfig:
        return TradeApiConfig(base_url=self.TRADE_API_URL, api_key=self.API_KEY)

    @property
    def metadata_api(self) -> MetadataApiConfig:
        return MetadataApiConfig(base_url=self.METADATA_API_URL, api_key=self.API_KEY)


def _load_optional_str(source: Mapping[str, str], key: str) -> str | None:
    raw = source.get(key)
    if raw is None:
        return None
    stripped = raw.strip()
    return stripped if stripped else None


def _load_str(source: Mapping[str, str], key: str, default: str) -> str:
    return _load_optional_str(source, key) or default


def _load_int(source: Mapping[str, str], key: str, default: int) -> int:
    raw = _load_optional_str(source, key)
    if raw is None:
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError:
        raise RuntimeError(f"Env var {key} must be an integer, got {raw!r}") from None


def _load_list(source: Mapping[str, str], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = source.get(key)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_settings(source: Mapping[str, str] | None = None) -> Settings:
    env_source: Mapping[str, str] = source if source is not None else os.environ

    return Settings(
        TRADE_API_URL=_load_str(env_source, "DFLOW_TRADE_API_URL", DEFAULT_TRADE_API_URL),
        METADATA_API_URL=_load_str(env_source, "DFLOW_PREDICTION_MARKETS_API_URL", DEFAULT_METADATA_API_URL),
        API_KEY=_load_optional_str(env_source, "DFLOW_API_KEY"),
        SOLANA_RPC_URL=_load_str(env_source, "SOLANA_RPC_URL", DEFAULT_SOLANA_RPC_URL),
        SOLANA_PRIVATE_KEY=_load_optional_str(env_source, "SOLANA_PRIVATE_KEY"),
        WALLET_KEY_PATH=_load_optional_str(env_source, "WALLET_KEY_PATH"),
        WALLET_KEY_PASSPHRASE=_load_optional_str(env_source, "WALLET_KEY_PASSPHRASE"),
        INPUT_MINT=_load_str(env_source, "DFLOW_INPUT_MINT", SOL_MINT),
        OUTPUT_MINT=_load_str(env_source, "DFLOW_OUTPUT_MINT", USDC_MINT),
        INPUT_AMOUNT=_load_int(env_source, "DFLOW_INPUT_AMOUNT", DEFAULT_INPUT_AMOUNT),
        SLIPPAGE_BPS=_load_int(env_source, "DFLOW_SLIPPAGE_BPS", DEFAULT_SLIPPAGE_BPS),
        DEXES=_load_list(env_source, "DFLOW_DEXES", DEFAULT_DEXES),
        MAX_TRADE_AMOUNT=_load_int(env_source, "DFLOW_MAX_TRADE_AMOUNT", DEFAULT_MAX_TRADE_AMOUNT),
        SETTLEMENT_MINT=_load_str(env_source, "DFLOW_SETTLEMENT_MINT", USDC_MINT),
        USER_WALLET_ADDRESS=_load_optional_str(env_source, "USER_WALLET_ADDRESS"),
    )
