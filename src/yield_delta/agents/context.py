"""
Shared runtime for actions - settings and lazily built collaborators
"""

from functools import cached_property
from typing import Optional

from loguru import logger

from ..amm import AMMLayerManager, DeviationBasis, OrderPlacer
from ..data.cache import MemoryCache
from ..data.config import ConfigManager, SeiConfig, validate_sei_config
from ..data.networks import get_chain_config
from ..data.pipelines.funding_rates import FundingRateProvider
from ..data.pipelines.price_oracle import SeiPriceOracle
from ..execution.aggregator import DexAggregator
from ..execution.dex import DragonSwapAPI
from ..execution.perps import PerpsAPI
from ..execution.rebalance import PortfolioRebalancer
from ..execution.routing import GeographicConfig, GeographicTradingRouter
from ..execution.symphony import SymphonyDEX
from ..execution.transfer import TransferAction
from ..execution.wallet import WalletProvider
from ..risk.funding_arbitrage import FundingArbitrageEngine
from ..risk.il_protection import ImpermanentLossProtector


class YieldDeltaContext:
    """
    Everything an action needs, built on first use.

    Settings are validated on first access; a ConfigurationError surfaces to
    the action that needed them. Collaborators may be injected directly,
    which is how tests substitute fakes.
    """

    def __init__(self, config: Optional[SeiConfig] = None, config_manager: Optional[ConfigManager] = None,
                 cache: Optional[MemoryCache] = None, order_placer: Optional[OrderPlacer] = None):
        self._config = config
        self.order_placer = order_placer
        self.config_manager = config_manager or ConfigManager()
        self.cache = cache or MemoryCache()

    @property
    def config(self) -> SeiConfig:
        if self._config is None:
            self._config = validate_sei_config(self.config_manager)
        return self._config

    @cached_property
    def oracle(self) -> SeiPriceOracle:
        oracle_settings = self.config_manager.oracle_config
        return SeiPriceOracle(
            cache=self.cache,
            network=self.config.sei_network,
            rpc_url=self.config.sei_rpc_url,
            redstone_address=self.config.redstone_oracle_address,
            update_interval=oracle_settings.get("update_interval", 30),
        )

    @cached_property
    def wallet(self) -> WalletProvider:
        return WalletProvider.from_config(self.config)

    @property
    def has_wallet(self) -> bool:
        return bool(self.config.sei_private_key)

    @cached_property
    def dex(self) -> DragonSwapAPI:
        return DragonSwapAPI(
            wallet=self.wallet if self.has_wallet else None,
            network=self.config.sei_network,
            api_url=self.config.dragonswap_api_url,
            router_address=self.config.dragonswap_router_address,
        )

    @cached_property
    def symphony(self) -> SymphonyDEX:
        return SymphonyDEX(wallet=self.wallet if self.has_wallet else None, network=self.config.sei_network)

    @cached_property
    def aggregator(self) -> DexAggregator:
        return DexAggregator({"dragonswap": self.dex, "symphony": self.symphony})

    @cached_property
    def perps(self) -> PerpsAPI:
        return PerpsAPI(self.wallet, self.oracle, self.config.perps_contract_address,
                        testnet=self.config.is_testnet)

    @cached_property
    def transfers(self) -> TransferAction:
        return TransferAction(self.wallet)

    @cached_property
    def router(self) -> GeographicTradingRouter:
        return GeographicTradingRouter(GeographicConfig.from_sei_config(self.config))

    @cached_property
    def il_protector(self) -> ImpermanentLossProtector:
        return ImpermanentLossProtector(self.router)

    @cached_property
    def funding_rates(self) -> FundingRateProvider:
        return FundingRateProvider(cache=self.cache)

    @cached_property
    def arbitrage(self) -> FundingArbitrageEngine:
        settings = self.config_manager.arbitrage_config
        return FundingArbitrageEngine(
            self.funding_rates,
            dex=self.dex,
            perps=self.perps if self.has_wallet else None,
            symbols=settings.get("symbols", ["BTC", "ETH", "SEI", "SOL"]),
            min_spread=settings.get("min_spread", 0.0001),
            max_position_size=settings.get("max_position_size", 10000),
            risk_tolerance=settings.get("risk_tolerance", 0.5),
        )

    @cached_property
    def amm(self) -> AMMLayerManager:
        basis = self.config_manager.amm_config.get("deviation_basis", DeviationBasis.RANGE_BOUNDS.value)
        return AMMLayerManager(
            order_placer=self.order_placer,
            deviation_basis=DeviationBasis(basis),
            on_rebalance=lambda symbol: logger.info(f"AMM position {symbol} rebalanced"),
            on_fallback=lambda symbol: logger.warning(f"AMM position {symbol} escaped to options hedge"),
        )

    @cached_property
    def rebalancer(self) -> PortfolioRebalancer:
        return PortfolioRebalancer(
            wallet=self.wallet if self.has_wallet else None,
            oracle=self.oracle,
            dex=self.dex,
        )

    def describe_network(self) -> str:
        chain = get_chain_config(self.config.sei_network)
        return f"{chain.name} (chain id {chain.chain_id})"
