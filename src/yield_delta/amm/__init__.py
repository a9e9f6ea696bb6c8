"""
AMM layer - liquidity position state, rebalancing and escape-to-hedge
"""

from .manager import (AMMLayerManager, DeviationBasis, EscapeStatus, LiquidityPosition, LiquidityRange,
                      OrderPlacer, PositionAnalytics)
from .risk import evaluate_amm_risk

__all__ = [
    "AMMLayerManager",
    "DeviationBasis",
    "EscapeStatus",
    "LiquidityPosition",
    "LiquidityRange",
    "OrderPlacer",
    "PositionAnalytics",
    "evaluate_amm_risk",
]
