"""
Impermanent Loss Protection - risk classification and hedge selection for LP positions
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from ..data.models import LPPosition
from ..errors import InvalidParametersError
from ..execution.routing import GeographicTradingRouter


class RiskLevel(Enum):
    """IL risk level classifications"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class StrategyType(Enum):
    PERP_HEDGE = "PERP_HEDGE"
    OPTIONS_COLLAR = "OPTIONS_COLLAR"
    REBALANCE_ONLY = "REBALANCE_ONLY"


class RiskTolerance(Enum):
    """User override for strategy selection"""
    AUTO = "AUTO"
    CONSERVATIVE = "CONSERVATIVE"
    AGGRESSIVE = "AGGRESSIVE"


VOLATILITY = {
    "BTC": 0.6,
    "ETH": 0.7,
    "SEI": 1.2,
    "USDC": 0.05,
    "USDT": 0.05,
}
DEFAULT_VOLATILITY = 0.8
STABLECOINS = {"USDC", "USDT"}
MAJORS = {"BTC", "ETH"}

TIME_IN_POSITION_HOURS = 24
HEDGE_EFFECTIVENESS = 0.8

BASE_HEDGE_RATIO = {
    RiskLevel.LOW: 0.1,
    RiskLevel.MEDIUM: 0.4,
    RiskLevel.HIGH: 0.6,
    RiskLevel.CRITICAL: 0.8,
}
MAX_HEDGE_RATIO = 0.9


@dataclass
class ILRiskMetrics:
    """IL risk for one LP position"""
    volatility: float
    correlation: float
    time_in_position: float  # hours
    current_il: float  # %
    projected_il: float  # %
    risk_level: RiskLevel

    def as_dict(self) -> Dict[str, Any]:
        return {
            "volatility": self.volatility,
            "correlation": self.correlation,
            "time_in_position": self.time_in_position,
            "current_il": self.current_il,
            "projected_il": self.projected_il,
            "risk_level": self.risk_level.value,
        }


FALLBACK_METRICS = ILRiskMetrics(
    volatility=0.5,
    correlation=0.3,
    time_in_position=TIME_IN_POSITION_HOURS,
    current_il=5.0,
    projected_il=10.0,
    risk_level=RiskLevel.MEDIUM,
)


@dataclass
class ProtectionStrategy:
    """Outcome of a protection request"""
    type: StrategyType
    provider: str
    hedge_ratio: float
    expected_il_reduction: str
    cost: str
    reason: str = ""
    executed: bool = False
    tx_hash: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "provider": self.provider,
            "hedge_ratio": self.hedge_ratio,
            "expected_il_reduction": self.expected_il_reduction,
            "cost": self.cost,
            "reason": self.reason,
            "executed": self.executed,
            "tx_hash": self.tx_hash,
        }


def estimate_volatility(token: str) -> float:
    return VOLATILITY.get(token.upper(), DEFAULT_VOLATILITY)


def estimate_correlation(token_a: str, token_b: str) -> float:
    a, b = token_a.upper(), token_b.upper()
    if a == b:
        return 1.0
    if a in STABLECOINS or b in STABLECOINS:
        return 0.1
    if a in MAJORS and b in MAJORS:
        return 0.7
    return 0.4


def classify_risk(projected_il: float, volatility: float) -> RiskLevel:
    if projected_il < 5 and volatility < 0.3:
        return RiskLevel.LOW
    if projected_il < 10 and volatility < 0.6:
        return RiskLevel.MEDIUM
    if projected_il < 20 and volatility < 1.0:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def impermanent_loss(price_ratio: float) -> float:
    """Constant-product IL for a price ratio, as a positive fraction"""
    return abs(2 * np.sqrt(price_ratio) / (1 + price_ratio) - 1)


def select_strategy(metrics: ILRiskMetrics,
                    risk_tolerance: RiskTolerance = RiskTolerance.AUTO) -> StrategyType:
    """
    LOW risk never hedges. Otherwise an explicit user tolerance wins; AUTO
    hedges MEDIUM positions only when volatility is above 0.5.
    """
    if metrics.risk_level is RiskLevel.LOW:
        return StrategyType.REBALANCE_ONLY
    if risk_tolerance is RiskTolerance.CONSERVATIVE:
        return StrategyType.REBALANCE_ONLY
    if risk_tolerance is RiskTolerance.AGGRESSIVE:
        return StrategyType.PERP_HEDGE
    if metrics.risk_level is RiskLevel.MEDIUM:
        return StrategyType.PERP_HEDGE if metrics.volatility > 0.5 else StrategyType.REBALANCE_ONLY
    return StrategyType.PERP_HEDGE


def hedge_ratio(metrics: ILRiskMetrics) -> float:
    adjustment = min(metrics.volatility * 0.3, 0.2)
    return min(BASE_HEDGE_RATIO[metrics.risk_level] + adjustment, MAX_HEDGE_RATIO)


def estimate_cost(position: LPPosition, ratio: float) -> str:
    trading_fees = position.value * ratio * 0.001
    funding_costs = position.value * ratio * 0.0001 * 24
    return f"${trading_fees + funding_costs:.2f}"


class ImpermanentLossProtector:
    """
    Picks and executes an IL protection strategy for an LP position.

    Hedges go through the geographic router; a failed hedge degrades to
    REBALANCE_ONLY instead of raising.
    """

    def __init__(self, router: GeographicTradingRouter):
        self.router = router

    def calculate_il_risk(self, position: LPPosition) -> ILRiskMetrics:
        try:
            volatility = estimate_volatility(position.base_token)
            correlation = estimate_correlation(position.base_token, position.quote_token)
            current_il = volatility * 10
            projected_il = current_il * (1 + volatility * float(np.sqrt(TIME_IN_POSITION_HOURS / 24)))
            return ILRiskMetrics(
                volatility=volatility,
                correlation=correlation,
                time_in_position=TIME_IN_POSITION_HOURS,
                current_il=current_il,
                projected_il=projected_il,
                risk_level=classify_risk(projected_il, volatility),
            )
        except Exception as e:
            logger.error(f"IL risk calculation failed for {position.pair}: {e}")
            return FALLBACK_METRICS

    async def protect_position(self, position: LPPosition,
                               risk_tolerance: RiskTolerance = RiskTolerance.AUTO) -> ProtectionStrategy:
        logger.info(f"Analyzing IL protection for {position.pair} position")
        metrics = self.calculate_il_risk(position)
        logger.info(f"IL Risk Assessment: {metrics.risk_level.value}, Current IL: {metrics.current_il:.2f}%")

        strategy = select_strategy(metrics, risk_tolerance)
        if strategy is StrategyType.OPTIONS_COLLAR:
            logger.info("Options strategy not yet implemented, using perps hedge")
            strategy = StrategyType.PERP_HEDGE
        if strategy is StrategyType.PERP_HEDGE:
            return await self._perp_hedge(position, metrics)
        return self.rebalance_only(metrics)

    async def _perp_hedge(self, position: LPPosition, metrics: ILRiskMetrics) -> ProtectionStrategy:
        logger.info("Executing perpetual hedge strategy")
        ratio = hedge_ratio(metrics)
        result = await self.router.execute_geographic_hedge(position)
        if not result.success:
            logger.warning(f"Hedge failed ({result.error}), falling back to rebalance strategy")
            return self.rebalance_only(metrics)
        return ProtectionStrategy(
            type=StrategyType.PERP_HEDGE,
            provider=result.provider,
            hedge_ratio=result.hedge_ratio,
            expected_il_reduction=result.expected_il_reduction,
            cost=estimate_cost(position, ratio),
            reason=f"Risk level: {metrics.risk_level.value}, Projected IL: {metrics.projected_il:.2f}%",
            executed=True,
            tx_hash=result.tx_hash,
        )

    @staticmethod
    def rebalance_only(metrics: ILRiskMetrics) -> ProtectionStrategy:
        return ProtectionStrategy(
            type=StrategyType.REBALANCE_ONLY,
            provider="Internal",
            hedge_ratio=0.0,
            expected_il_reduction="15%",
            cost="0.1%",
            reason=f"Risk level {metrics.risk_level.value}, rebalancing sufficient",
        )

    def simulate_il_scenarios(self, position: LPPosition,
                              price_changes: Sequence[float]) -> List[Dict[str, float]]:
        """
        IL at each relative price change, unhedged and hedged.

        All values are percentages; a change of 0.25 is reported as 25.
        """
        scenarios = []
        for change in price_changes:
            if change < -1:
                raise InvalidParametersError(f"Price change {change} would make the price negative")
            il = impermanent_loss(1 + change)
            scenarios.append({
                "price_change": change * 100,
                "il": float(il) * 100,
                "hedged_il": float(il * (1 - HEDGE_EFFECTIVENESS)) * 100,
            })
        return scenarios
