"""
Risk Management - impermanent loss protection and funding-rate arbitrage
"""

from .funding_arbitrage import (ArbitrageOpportunity, ArbitragePosition, FundingArbitrageEngine, PositionStatus,
                                SpreadRisk, find_spread_opportunities)
from .il_protection import (ILRiskMetrics, ImpermanentLossProtector, ProtectionStrategy, RiskLevel, RiskTolerance,
                            StrategyType)

__all__ = [
    "ArbitrageOpportunity",
    "ArbitragePosition",
    "FundingArbitrageEngine",
    "ILRiskMetrics",
    "ImpermanentLossProtector",
    "PositionStatus",
    "ProtectionStrategy",
    "RiskLevel",
    "RiskTolerance",
    "SpreadRisk",
    "StrategyType",
    "find_spread_opportunities",
]
