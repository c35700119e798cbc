from __future__ import annotations

from dataclasses import dataclass

from dflowkit.app.ports.logger_port import LoggerPort
from dflowkit.app.ports.market_data_port import MarketDataPort, TokenBalancePort
from dflowkit.domain.model.markets import Market, Position, TokenBalance
from dflowkit.domain.model.types import TOKEN_2022_PROGRAM_ID


@dataclass
class TrackPositionsDependencies:
    market_data: MarketDataPort
    balances: TokenBalancePort
    logger: LoggerPort


def index_markets_by_mint(markets: list[Market]) -> dict[str, Market]:
    markets_by_mint: dict[str, Market] = {}
    for market in markets:
        for account in market.accounts:
            if account.yes_mint:
                markets_by_mint[account.yes_mint] = market
            if account.no_mint:
                markets_by_mint[account.no_mint] = market
    return markets_by_mint


def _position_side(mint: str, market: Market) -> str:
    if any(account.yes_mint == mint for account in market.accounts):
        return "YES"
    if any(account.no_mint == mint for account in market.accounts):
        return "NO"
    return "UNKNOWN"


def build_positions(tokens: list[TokenBalance], markets_by_mint: dict[str, Market]) -> list[Position]:
    positions: list[Position] = []
    for token in tokens:
        market = markets_by_mint.get(token.mint)
        positions.append(
            Position(
                mint=token.mint,
                balance=token.ui_amount,
                decimals=token.decimals,
                side=_position_side(token.mint, market) if market is not None else "UNKNOWN",
                market=market,
            )
        )
    return positions


def track_positions(dependencies: TrackPositionsDependencies, wallet_address: str) -> list[Position]:
    logger = dependencies.logger
    balances = dependencies.balances.get_token_balances(wallet_address, TOKEN_2022_PROGRAM_ID)
    non_zero = [balance for balance in balances if balance.raw_amount > 0]
    logger.info("non-zero token balances", {"wallet": wallet_address, "count": len(non_zero)})
    if not non_zero:
        return []

    outcome_mints = set(dependencies.market_data.filter_outcome_mints([token.mint for token in non_zero]))
    outcome_tokens = [token for token in non_zero if token.mint in outcome_mints]
    logger.info("outcome tokens", {"count": len(outcome_tokens)})
    if not outcome_tokens:
        return []

    markets = dependencies.market_data.get_markets_batch(sorted(outcome_mints))
    positions = build_positions(outcome_tokens, index_markets_by_mint(markets))
    for position in positions:
        logger.info(
            "position",
            {
                "mint": position.mint,
                "balance": position.balance,
                "decimals": position.decimals,
                "position": position.side,
                "market_ticker": position.market.ticker if position.market else None,
                "market_title": position.market.title if position.market else None,
            },
        )
    return positions
