"""
AMM Layer Manager - concentrated liquidity position bookkeeping
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from loguru import logger

from ..errors import OrderPlacerNotConfiguredError, PositionNotFoundError


class DeviationBasis(Enum):
    """How far a price must drift before a position is rebalanced"""
    RANGE_BOUNDS = "range_bounds"  # outside [min*(1-t), max*(1+t)]
    MIDPOINT = "midpoint"          # |p - mid| / mid > t


class EscapeStatus(str, Enum):
    OPTIONS_HEDGE_ACTIVATED = "options-hedge-activated"


@dataclass
class LiquidityRange:
    min: float
    max: float

    def __post_init__(self):
        if not self.min < self.max:
            raise ValueError(f"Invalid range: min {self.min} must be below max {self.max}")

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2

    def contains(self, price: float) -> bool:
        return self.min <= price <= self.max

    def as_dict(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max}


@dataclass
class PositionAnalytics:
    fees: float = 0.0
    slippage: float = 0.0
    rebalances: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {"fees": self.fees, "slippage": self.slippage, "rebalances": self.rebalances}


@dataclass
class LiquidityPosition:
    symbol: str
    range: LiquidityRange
    size: float
    analytics: PositionAnalytics = field(default_factory=PositionAnalytics)


class OrderPlacer(Protocol):
    """CLOB-like collaborator that places liquidity for a range"""

    async def place_range_order(self, symbol: str, price_range: LiquidityRange, size: float) -> Any:
        ...


class AMMLayerManager:
    """
    Tracks liquidity positions per trading pair and decides when to
    rebalance or escape to a hedge.

    All mutation happens synchronously; only ``place_range_order`` awaits the
    injected order placer. Hooks are called with the symbol only.
    """

    DEFAULT_THRESHOLD = 0.02
    DEFAULT_WIDTH = 0.05

    def __init__(self,
                 order_placer: Optional[OrderPlacer] = None,
                 on_rebalance: Optional[Callable[[str], Any]] = None,
                 on_fallback: Optional[Callable[[str], Any]] = None,
                 deviation_basis: DeviationBasis = DeviationBasis.RANGE_BOUNDS):
        self.order_placer = order_placer
        self.on_rebalance = on_rebalance
        self.on_fallback = on_fallback
        self.deviation_basis = deviation_basis
        self.positions: Dict[str, LiquidityPosition] = {}

    def init_position(self, symbol: str, min_price: float, max_price: float, size: float) -> LiquidityPosition:
        """
        Start tracking a position with zeroed analytics.

        Re-initialising a tracked symbol replaces it, analytics included.
        """
        if size < 0:
            raise ValueError(f"Position size must be non-negative, got {size}")
        price_range = LiquidityRange(min_price, max_price)
        if symbol in self.positions:
            logger.warning(f"Overwriting existing AMM position for {symbol}")
        position = LiquidityPosition(symbol=symbol, range=price_range, size=size)
        self.positions[symbol] = position
        logger.info(f"Initialized AMM position {symbol}: range [{min_price}, {max_price}] size {size}")
        return position

    def get_position(self, symbol: str) -> LiquidityPosition:
        try:
            return self.positions[symbol]
        except KeyError:
            raise PositionNotFoundError(symbol) from None

    def symbols(self) -> List[str]:
        return list(self.positions)

    def is_out_of_band(self, symbol: str, current_price: float, threshold: float = DEFAULT_THRESHOLD) -> bool:
        price_range = self.get_position(symbol).range
        if self.deviation_basis is DeviationBasis.MIDPOINT:
            mid = price_range.midpoint
            return abs(current_price - mid) / mid > threshold
        return (current_price < price_range.min * (1 - threshold)
                or current_price > price_range.max * (1 + threshold))

    def rebalance(self, symbol: str, current_price: float, fee_delta: float = 0.0,
                  slippage_delta: float = 0.0, threshold: float = DEFAULT_THRESHOLD) -> bool:
        """
        Record a rebalance when the price has left the tolerated band.

        Args:
            symbol: tracked trading pair
            current_price: latest pool price
            fee_delta: fees earned since the last rebalance
            slippage_delta: slippage paid by the rebalance
            threshold: tolerated deviation as a fraction

        Returns:
            True if the position was rebalanced.
        """
        if not self.is_out_of_band(symbol, current_price, threshold):
            return False

        analytics = self.positions[symbol].analytics
        analytics.fees += fee_delta
        analytics.slippage += slippage_delta
        analytics.rebalances += 1
        logger.info(f"Rebalanced {symbol} at {current_price} (rebalances={analytics.rebalances})")
        if self.on_rebalance:
            self.on_rebalance(symbol)
        return True

    def rebalance_all(self, price_map: Mapping[str, float], fee_delta: float = 0.0,
                      slippage_delta: float = 0.0, threshold: float = DEFAULT_THRESHOLD) -> List[str]:
        rebalanced = []
        for symbol, price in price_map.items():
            if symbol not in self.positions:
                logger.debug(f"Skipping untracked symbol {symbol}")
                continue
            if self.rebalance(symbol, price, fee_delta, slippage_delta, threshold):
                rebalanced.append(symbol)
        return rebalanced

    def set_dynamic_range(self, symbol: str, current_price: float, width: float = DEFAULT_WIDTH) -> LiquidityRange:
        """Recentre the range on the current price; analytics are untouched."""
        if not 0 < width < 1:
            raise ValueError(f"Range width must be between 0 and 1, got {width}")
        position = self.get_position(symbol)
        position.range = LiquidityRange(current_price * (1 - width), current_price * (1 + width))
        logger.info(f"Set dynamic range for {symbol}: [{position.range.min:.4f}, {position.range.max:.4f}]")
        return position.range

    async def place_range_order(self, symbol: str) -> Any:
        if self.order_placer is None:
            raise OrderPlacerNotConfiguredError(f"No order placer configured for {symbol}")
        position = self.get_position(symbol)
        return await self.order_placer.place_range_order(symbol, position.range, position.size)

    def handle_escape(self, symbol: str, current_price: float) -> EscapeStatus:
        """
        Fallback when the price left the band entirely.

        No options trade is placed; the status only signals that the
        fallback hedge path was taken.
        """
        logger.warning(f"Escape triggered for {symbol} at {current_price}; options hedge not yet implemented")
        if self.on_fallback:
            self.on_fallback(symbol)
        return EscapeStatus.OPTIONS_HEDGE_ACTIVATED

    def get_analytics(self, symbol: str) -> Optional[Dict[str, Any]]:
        position = self.positions.get(symbol)
        return position.analytics.as_dict() if position else None
