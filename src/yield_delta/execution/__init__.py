"""
Execution - wallet, transfers, DEX swaps and quote aggregation, perps and hedge routing on Sei
"""

from .aggregator import BestQuote, DexAggregator
from .coinbase import CoinbaseAdvancedProvider
from .dex import DragonSwapAPI
from .perps import PerpsAPI
from .providers import OnChainPerpProvider, PerpProvider
from .rebalance import STRATEGIES, PortfolioAnalysis, PortfolioRebalancer, RebalanceRecommendation
from .routing import GeographicConfig, GeographicTradingRouter, HedgeResult, PerpPreference, UserGeography
from .symphony import SymphonyDEX
from .transfer import TransferAction
from .wallet import WalletProvider

__all__ = [
    "BestQuote",
    "CoinbaseAdvancedProvider",
    "DexAggregator",
    "DragonSwapAPI",
    "GeographicConfig",
    "GeographicTradingRouter",
    "HedgeResult",
    "OnChainPerpProvider",
    "PerpPreference",
    "PerpProvider",
    "PerpsAPI",
    "PortfolioAnalysis",
    "PortfolioRebalancer",
    "RebalanceRecommendation",
    "STRATEGIES",
    "SymphonyDEX",
    "TransferAction",
    "UserGeography",
    "WalletProvider",
]
