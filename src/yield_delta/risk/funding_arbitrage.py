"""
Funding Rate Arbitrage - cross-venue spread scanning and hedged position tracking
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ..data.models import FundingRate, PerpsTradeParams, SwapParams
from ..data.pipelines.funding_rates import FundingRateProvider
from ..errors import ConfigurationError, TransactionError
from ..execution.dex import DragonSwapAPI
from ..execution.perps import PerpsAPI

TRUST_SCORES = {
    "Binance": 1.0,
    "Bybit": 0.9,
    "BitMEX": 0.8,
    "Huobi": 0.7,
    "Hyperliquid": 0.8,
    "Kraken": 0.8,
    "WooX": 0.6,
}
DEFAULT_TRUST = 0.5

MIN_SPREAD = 0.0001
NOTIONAL = 1000
FUNDINGS_PER_DAY = 3
TRADING_COSTS = 0.02  # annual, DEX fees and slippage
DEFAULT_SYMBOLS = ("BTC", "ETH", "SEI", "SOL")
DEFAULT_CAPITAL = 5000
MAX_HOLD_DAYS = 7
TARGET_RETURN_FRACTION = 0.1
HEDGE_SLIPPAGE_BPS = 50
DAY_SECONDS = 24 * 60 * 60


class SpreadRisk(Enum):
    """Wider spreads are more likely to survive costs, so they rank as lower risk"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class PositionStatus(Enum):
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class ArbitrageOpportunity:
    symbol: str
    long_exchange: str
    short_exchange: str
    long_rate: float  # per 8h
    short_rate: float  # per 8h
    funding_spread: float  # per 8h
    estimated_profit: float  # per year on NOTIONAL
    confidence: float
    risk_level: SpreadRisk
    required_capital: float = DEFAULT_CAPITAL

    @property
    def hedge_action(self) -> str:
        """long_dex when the CEX leg collects funding as a short"""
        return "long_dex" if self.short_rate > 0 else "short_dex"

    @property
    def cex_side(self) -> str:
        return "short" if self.hedge_action == "long_dex" else "long"

    @property
    def cex_exchange(self) -> str:
        return self.short_exchange if self.cex_side == "short" else self.long_exchange

    @property
    def expected_return(self) -> float:
        """Annualized spread after trading costs"""
        return self.funding_spread * FUNDINGS_PER_DAY * 365 - TRADING_COSTS

    def as_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "long_exchange": self.long_exchange,
            "short_exchange": self.short_exchange,
            "funding_spread": self.funding_spread,
            "estimated_profit": self.estimated_profit,
            "confidence": self.confidence,
            "risk_level": self.risk_level.value,
            "hedge_action": self.hedge_action,
            "required_capital": self.required_capital,
            "expected_return": self.expected_return,
        }


@dataclass
class ArbitragePosition:
    id: str
    symbol: str
    cex_exchange: str
    cex_side: str
    dex_side: str
    size: float  # USD
    entry_time: float  # epoch seconds
    expected_return: float
    status: PositionStatus = PositionStatus.ACTIVE
    hedge_tx: Optional[str] = None
    hedge_amount: float = 0.0  # USD for perps, tokens for spot
    net_pnl: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "cex_exchange": self.cex_exchange,
            "cex_side": self.cex_side,
            "dex_side": self.dex_side,
            "size": self.size,
            "entry_time": self.entry_time,
            "expected_return": self.expected_return,
            "status": self.status.value,
            "hedge_tx": self.hedge_tx,
            "hedge_amount": self.hedge_amount,
            "net_pnl": self.net_pnl,
        }


def trust_score(exchange: str) -> float:
    return TRUST_SCORES.get(exchange, DEFAULT_TRUST)


def classify_spread(spread: float) -> SpreadRisk:
    if spread > 0.001:
        return SpreadRisk.LOW
    if spread > 0.0005:
        return SpreadRisk.MEDIUM
    return SpreadRisk.HIGH


def _per_8h(rate: FundingRate) -> float:
    return rate.rate * 8 / rate.interval_hours


def find_spread_opportunities(rates: Sequence[FundingRate],
                              min_spread: float = MIN_SPREAD) -> List[ArbitrageOpportunity]:
    """
    Compare every pair of venues for one symbol.

    Rates are normalized to an 8h interval first. The long leg goes to the
    lower rate, the short leg to the higher; results are sorted by
    estimated profit, highest first.
    """
    opportunities = []
    for i, first in enumerate(rates):
        for second in rates[i + 1:]:
            r1, r2 = _per_8h(first), _per_8h(second)
            spread = abs(r1 - r2)
            if spread <= min_spread:
                continue
            low, high = (first, second) if r1 < r2 else (second, first)
            opportunities.append(ArbitrageOpportunity(
                symbol=first.symbol.upper(),
                long_exchange=low.exchange,
                short_exchange=high.exchange,
                long_rate=min(r1, r2),
                short_rate=max(r1, r2),
                funding_spread=spread,
                estimated_profit=spread * NOTIONAL * FUNDINGS_PER_DAY * 365,
                confidence=min(trust_score(first.exchange) * trust_score(second.exchange), 1.0),
                risk_level=classify_spread(spread),
            ))
    return sorted(opportunities, key=lambda o: o.estimated_profit, reverse=True)


class FundingArbitrageEngine:
    """
    Opens the DEX hedge leg of funding-rate arbitrage trades and tracks them.

    The CEX leg is recorded, not placed. Positions move
    active -> closing -> closed; a failed close reverts to active.
    """

    def __init__(self, rate_source: FundingRateProvider, dex: Optional[DragonSwapAPI] = None,
                 perps: Optional[PerpsAPI] = None,
                 symbols: Sequence[str] = DEFAULT_SYMBOLS, min_spread: float = MIN_SPREAD,
                 max_position_size: float = 10000, risk_tolerance: float = 0.5,
                 clock: Callable[[], float] = time.time):
        self.rate_source = rate_source
        self.dex = dex
        self.perps = perps
        self.symbols = list(symbols)
        self.min_spread = min_spread
        self.max_position_size = max_position_size
        self.risk_tolerance = risk_tolerance
        self.clock = clock
        self.positions: Dict[str, ArbitragePosition] = {}

    async def scan_opportunities(self) -> List[ArbitrageOpportunity]:
        """Opportunities across all tracked symbols that pass confidence and return gates"""
        found = []
        for symbol in self.symbols:
            try:
                rates = await self.rate_source.get_funding_rates(symbol)
            except Exception as e:
                logger.error(f"Error scanning arbitrage opportunities for {symbol}: {e}")
                continue
            for opportunity in find_spread_opportunities(rates, self.min_spread):
                if opportunity.confidence < self.risk_tolerance or opportunity.expected_return <= 0:
                    continue
                opportunity.required_capital = min(self.max_position_size, DEFAULT_CAPITAL)
                found.append(opportunity)
        return sorted(found, key=lambda o: o.estimated_profit, reverse=True)

    async def execute_arbitrage(self, opportunity: ArbitrageOpportunity) -> Optional[str]:
        """Open the hedge leg and record the position. Returns its id, or None on failure."""
        logger.info(f"Executing funding arbitrage for {opportunity.symbol}")
        size = min(opportunity.required_capital, self.max_position_size)
        try:
            hedge_tx, hedge_amount = await self._open_hedge(opportunity.symbol, opportunity.hedge_action, size)
        except Exception as e:
            logger.error(f"Failed to execute arbitrage: {e}")
            return None

        now = self.clock()
        position_id = self._new_position_id(opportunity.symbol, now)
        self.positions[position_id] = ArbitragePosition(
            id=position_id,
            symbol=opportunity.symbol,
            cex_exchange=opportunity.cex_exchange,
            cex_side=opportunity.cex_side,
            dex_side="long" if opportunity.hedge_action == "long_dex" else "short",
            size=size,
            entry_time=now,
            expected_return=opportunity.expected_return,
            hedge_tx=hedge_tx,
            hedge_amount=hedge_amount,
        )
        logger.info(f"Arbitrage position opened: {position_id}")
        return position_id

    def _new_position_id(self, symbol: str, now: float) -> str:
        position_id = f"{symbol}_{int(now * 1000)}"
        suffix = 1
        while position_id in self.positions:
            suffix += 1
            position_id = f"{symbol}_{int(now * 1000)}_{suffix}"
        return position_id

    def _require(self, client, name: str):
        if client is None:
            raise ConfigurationError(f"{name} is required to trade the hedge leg")
        return client

    async def _open_hedge(self, symbol: str, hedge_action: str, size: float) -> Tuple[str, float]:
        if hedge_action == "short_dex":
            logger.info(f"Opening short hedge on perps for {symbol}")
            tx_hash = await self._require(self.perps, "Perps client").open_position(PerpsTradeParams(
                symbol=symbol, size=size, side="short", leverage=1, slippage_bps=HEDGE_SLIPPAGE_BPS))
            return tx_hash, size
        logger.info(f"Opening long hedge for {symbol} via DragonSwap")
        dex = self._require(self.dex, "DragonSwap client")
        quote = await dex.get_quote("USDC", symbol, size)
        if quote is None:
            raise TransactionError(f"No DragonSwap quote for USDC -> {symbol}")
        tx_hash = await dex.execute_swap(SwapParams(
            token_in="USDC", token_out=symbol, amount_in=size, slippage_bps=HEDGE_SLIPPAGE_BPS))
        return tx_hash, quote.amount_out

    async def _close_hedge(self, position: ArbitragePosition) -> str:
        if position.dex_side == "short":
            return await self._require(self.perps, "Perps client").close_position(position.symbol)
        return await self._require(self.dex, "DragonSwap client").execute_swap(SwapParams(
            token_in=position.symbol, token_out="USDC", amount_in=position.hedge_amount,
            slippage_bps=HEDGE_SLIPPAGE_BPS))

    async def close_arbitrage(self, position_id: str) -> bool:
        position = self.positions.get(position_id)
        if position is None or position.status is not PositionStatus.ACTIVE:
            return False

        logger.info(f"Closing arbitrage position: {position_id}")
        position.status = PositionStatus.CLOSING
        try:
            await self._close_hedge(position)
        except Exception as e:
            logger.error(f"Failed to close hedge position for {position_id}: {e}")
            position.status = PositionStatus.ACTIVE
            return False
        position.status = PositionStatus.CLOSED
        return True

    def _days_active(self, position: ArbitragePosition) -> float:
        return (self.clock() - position.entry_time) / DAY_SECONDS

    def _should_close(self, position: ArbitragePosition) -> bool:
        target = position.size * position.expected_return * TARGET_RETURN_FRACTION
        return self._days_active(position) > MAX_HOLD_DAYS or position.net_pnl > target

    async def update_position_pnl(self) -> List[str]:
        """Accrue funding on active positions and close those past their target. Returns closed ids."""
        closed = []
        for position in list(self.positions.values()):
            if position.status is not PositionStatus.ACTIVE:
                continue
            position.net_pnl = position.size * (position.expected_return / 365) * self._days_active(position)
            if self._should_close(position) and await self.close_arbitrage(position.id):
                closed.append(position.id)
        return closed

    def get_active_positions(self) -> List[ArbitragePosition]:
        return [p for p in self.positions.values() if p.status is PositionStatus.ACTIVE]

    def get_position(self, position_id: str) -> Optional[ArbitragePosition]:
        return self.positions.get(position_id)
