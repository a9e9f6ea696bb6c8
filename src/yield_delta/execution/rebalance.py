"""
Portfolio rebalancing against target allocation strategies
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from loguru import logger

from ..data.models import SwapParams
from ..data.networks import ERC20_ABI, get_token_address
from ..data.pipelines.price_oracle import SeiPriceOracle
from ..errors import InvalidParametersError
from .dex import DragonSwapAPI, from_base_units
from .wallet import WalletProvider

PORTFOLIO_SYMBOLS = ("SEI", "USDC", "ETH", "BTC", "ATOM", "OSMO")
SETTLEMENT_TOKEN = "USDC"


@dataclass(frozen=True)
class AllocationStrategy:
    name: str
    description: str
    allocations: Mapping[str, float]  # symbol -> target %
    rebalance_threshold: float  # % deviation
    risk_level: str


STRATEGIES = {
    s.name: s for s in (
        AllocationStrategy("Conservative DeFi", "Low-risk allocation focused on stable yields",
                           {"SEI": 40, "USDC": 30, "ETH": 20, "BTC": 10}, 5, "conservative"),
        AllocationStrategy("Balanced Growth", "Moderate risk with diversified DeFi exposure",
                           {"SEI": 25, "USDC": 25, "ETH": 25, "BTC": 15, "ATOM": 10}, 7.5, "moderate"),
        AllocationStrategy("Aggressive DeFi", "High-risk, high-reward DeFi strategy",
                           {"SEI": 30, "ETH": 25, "BTC": 20, "ATOM": 15, "OSMO": 10}, 10, "aggressive"),
        AllocationStrategy("Yield Farming Focus", "Optimized for maximum yield opportunities",
                           {"SEI": 35, "USDC": 20, "ETH": 20, "LP_TOKENS": 25}, 8, "moderate"),
    )
}
DEFAULT_STRATEGY = "Balanced Growth"


@dataclass
class AssetAllocation:
    symbol: str
    target_percentage: float
    current_percentage: float
    current_value: float
    deviation: float
    recommended: str = "hold"
    amount: float = 0.0


@dataclass
class RebalanceRecommendation:
    asset: str
    action: str  # buy | sell
    amount: float  # USD
    reason: str
    priority: str  # high | medium


@dataclass
class PortfolioAnalysis:
    total_value: float
    strategy: AllocationStrategy
    assets: List[AssetAllocation] = field(default_factory=list)
    recommendations: List[RebalanceRecommendation] = field(default_factory=list)

    @property
    def rebalance_needed(self) -> bool:
        return bool(self.recommendations)


def get_strategy(name: Optional[str] = None) -> AllocationStrategy:
    """Strategy by case-insensitive name; unknown or empty names give Balanced Growth"""
    if name:
        for strategy in STRATEGIES.values():
            if strategy.name.lower() == name.strip().lower():
                return strategy
        logger.warning(f"Unknown strategy '{name}', using {DEFAULT_STRATEGY}")
    return STRATEGIES[DEFAULT_STRATEGY]


class PortfolioRebalancer:
    """Compares USD holdings with a strategy and optionally trades back to target via DragonSwap"""

    def __init__(self, wallet: Optional[WalletProvider] = None, oracle: Optional[SeiPriceOracle] = None,
                 dex: Optional[DragonSwapAPI] = None):
        self.wallet = wallet
        self.oracle = oracle
        self.dex = dex

    def analyze(self, portfolio: Mapping[str, float], strategy_name: Optional[str] = None) -> PortfolioAnalysis:
        """
        Args:
            portfolio: USD value per asset symbol
            strategy_name: one of STRATEGIES, Balanced Growth when omitted

        Raises:
            InvalidParametersError: when the portfolio has no value
        """
        strategy = get_strategy(strategy_name)
        total_value = sum(portfolio.values())
        if total_value <= 0:
            raise InvalidParametersError("Portfolio has no value")

        analysis = PortfolioAnalysis(total_value=total_value, strategy=strategy)
        threshold = strategy.rebalance_threshold
        for symbol, target in strategy.allocations.items():
            current_value = portfolio.get(symbol, 0.0)
            current_pct = current_value / total_value * 100
            deviation = current_pct - target
            asset = AssetAllocation(symbol=symbol, target_percentage=target, current_percentage=current_pct,
                                    current_value=current_value, deviation=deviation)
            if abs(deviation) > threshold:
                asset.recommended = "sell" if deviation > 0 else "buy"
                asset.amount = abs(deviation) / 100 * total_value
                analysis.recommendations.append(RebalanceRecommendation(
                    asset=symbol,
                    action=asset.recommended,
                    amount=asset.amount,
                    reason=f"{abs(deviation):.2f}% deviation from target",
                    priority="high" if abs(deviation) > threshold * 2 else "medium",
                ))
            analysis.assets.append(asset)
        return analysis

    async def _balance(self, symbol: str) -> float:
        if symbol == "SEI":
            return await self.wallet.get_balance()
        try:
            token = get_token_address(self.wallet.chain.network, symbol)
        except ValueError:
            return 0.0
        raw = await self.wallet.read_contract(token, ERC20_ABI, "balanceOf", [self.wallet.address])
        return from_base_units(raw, symbol)

    async def get_portfolio_values(self, symbols=PORTFOLIO_SYMBOLS) -> Dict[str, float]:
        """USD value per symbol for the wallet; assets without a price or balance count as 0"""
        if self.wallet is None or self.oracle is None:
            raise InvalidParametersError("Wallet and price oracle are required to value a portfolio")
        values = {}
        for symbol in symbols:
            feed = await self.oracle.get_price(symbol)
            if feed is None:
                values[symbol] = 0.0
                continue
            try:
                balance = await self._balance(symbol)
            except Exception as e:
                logger.error(f"Failed to get balance for {symbol}: {e}")
                balance = 0.0
            values[symbol] = balance * feed.price
        return values

    async def execute(self, analysis: PortfolioAnalysis) -> List[str]:
        """Trade each recommendation against USDC. Returns the hashes of swaps that went through."""
        if self.dex is None or self.oracle is None:
            raise InvalidParametersError("DragonSwap and price oracle are required to execute a rebalance")
        hashes = []
        for rec in analysis.recommendations:
            if rec.asset == SETTLEMENT_TOKEN:
                continue
            try:
                if rec.action == "buy":
                    params = SwapParams(token_in=SETTLEMENT_TOKEN, token_out=rec.asset, amount_in=rec.amount)
                else:
                    feed = await self.oracle.get_price(rec.asset)
                    if feed is None:
                        logger.warning(f"No price for {rec.asset}, skipping sell")
                        continue
                    params = SwapParams(token_in=rec.asset, token_out=SETTLEMENT_TOKEN,
                                        amount_in=rec.amount / feed.price)
                tx_hash = await self.dex.execute_swap(params)
            except Exception as e:
                logger.error(f"Failed to execute {rec.action} for {rec.asset}: {e}")
                continue
            logger.info(f"Executed {rec.action} for {rec.asset}: {tx_hash}")
            hashes.append(tx_hash)
        return hashes
