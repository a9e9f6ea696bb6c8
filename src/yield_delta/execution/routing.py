"""
Geographic trading router - picks a hedge venue by jurisdiction and preference
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from ..data.config import SeiConfig
from ..data.models import LPPosition, PerpsTradeParams
from ..errors import ProviderUnavailableError
from .coinbase import CoinbaseAdvancedProvider
from .providers import OnChainPerpProvider, PerpProvider

HEDGE_LEVERAGE = 1
HEDGE_SLIPPAGE_BPS = 50


class UserGeography(Enum):
    US = "US"
    EU = "EU"
    ASIA = "ASIA"
    GLOBAL = "GLOBAL"


class PerpPreference(Enum):
    GEOGRAPHIC = "GEOGRAPHIC"
    GLOBAL = "GLOBAL"
    COINBASE_ONLY = "COINBASE_ONLY"
    ONCHAIN_ONLY = "ONCHAIN_ONLY"


@dataclass(frozen=True)
class GeographicConfig:
    user_geography: UserGeography = UserGeography.GLOBAL
    perp_preference: PerpPreference = PerpPreference.GEOGRAPHIC
    coinbase_api_key: Optional[str] = None
    coinbase_api_secret: Optional[str] = None
    coinbase_passphrase: Optional[str] = None
    coinbase_sandbox: bool = False

    @property
    def has_coinbase_credentials(self) -> bool:
        return bool(self.coinbase_api_key and self.coinbase_api_secret and self.coinbase_passphrase)

    @classmethod
    def from_sei_config(cls, config: SeiConfig) -> "GeographicConfig":
        return cls(
            user_geography=UserGeography(config.user_geography),
            perp_preference=PerpPreference(config.perp_preference),
            coinbase_api_key=config.coinbase_advanced_api_key,
            coinbase_api_secret=config.coinbase_advanced_secret,
            coinbase_passphrase=config.coinbase_advanced_passphrase,
            coinbase_sandbox=config.coinbase_sandbox,
        )


@dataclass
class HedgeResult:
    success: bool
    provider: str
    hedge_ratio: float = 0.0
    expected_il_reduction: str = "0%"
    tx_hash: Optional[str] = None
    error: Optional[str] = None


class GeographicTradingRouter:
    """
    Chooses between the regulated Coinbase provider and on-chain perps.

    The provider is resolved once, at construction. When no provider fits
    (COINBASE_ONLY without credentials) the failure is kept and reported by
    every call that needs a provider.
    """

    def __init__(self, config: GeographicConfig,
                 coinbase: Optional[PerpProvider] = None,
                 onchain: Optional[PerpProvider] = None):
        self.config = config
        if coinbase is None and config.has_coinbase_credentials:
            coinbase = CoinbaseAdvancedProvider(config.coinbase_api_key, config.coinbase_api_secret,
                                                config.coinbase_passphrase, config.coinbase_sandbox)
        self.coinbase = coinbase
        self.onchain = onchain or OnChainPerpProvider()
        self.provider: Optional[PerpProvider] = None
        self.selection_error: Optional[str] = None
        try:
            self.provider = self._select_provider()
        except ProviderUnavailableError as e:
            self.selection_error = str(e)
            logger.warning(f"No perp provider available: {e}")

    def _select_provider(self) -> PerpProvider:
        preference = self.config.perp_preference
        geography = self.config.user_geography
        logger.info(f"Selecting perp provider for {geography.value} with preference {preference.value}")

        if preference is PerpPreference.COINBASE_ONLY:
            if self.coinbase is None:
                raise ProviderUnavailableError("Coinbase credentials not configured")
            return self.coinbase
        if preference is PerpPreference.ONCHAIN_ONLY:
            return self.onchain

        if geography is UserGeography.US:
            if self.coinbase is not None and preference in (PerpPreference.GEOGRAPHIC, PerpPreference.GLOBAL):
                logger.info("Using Coinbase Advanced for US user")
                return self.coinbase
            logger.info("Fallback to on-chain perps for US user")
            return self.onchain
        if geography in (UserGeography.EU, UserGeography.ASIA):
            return self.onchain
        if self.coinbase is not None and preference is PerpPreference.GEOGRAPHIC:
            return self.coinbase
        return self.onchain

    def get_best_perp_provider(self) -> PerpProvider:
        if self.provider is None:
            raise ProviderUnavailableError(self.selection_error or "No perp provider available")
        return self.provider

    async def execute_geographic_hedge(self, position: LPPosition) -> HedgeResult:
        """
        Open the hedge recommended by the selected provider.

        Never raises; failures come back as an unsuccessful HedgeResult.
        """
        logger.info(f"Executing geographic hedge for LP position: {position.pair}")
        provider_name = "unknown"
        try:
            provider = self.get_best_perp_provider()
            provider_name = provider.name
            strategy = await provider.get_hedge_recommendation(position)
            params = PerpsTradeParams(
                symbol=strategy.symbol,
                size=strategy.size,
                side=strategy.action,
                leverage=HEDGE_LEVERAGE,
                slippage_bps=HEDGE_SLIPPAGE_BPS,
            )
            tx_hash = await provider.open_position(params)
        except Exception as e:
            logger.error(f"Geographic hedge execution failed: {e}")
            return HedgeResult(success=False, provider=provider_name, error=str(e))

        if not tx_hash:
            return HedgeResult(success=False, provider=provider_name, error="Failed to execute hedge position")
        return HedgeResult(
            success=True,
            provider=provider_name,
            tx_hash=tx_hash,
            hedge_ratio=strategy.size / position.value if position.value else 0.0,
            expected_il_reduction=strategy.expected_il_reduction,
        )

    def get_provider_capabilities(self) -> Dict[str, Any]:
        provider = self.get_best_perp_provider()
        return {
            "name": provider.name,
            "geographic": provider.geographic,
            "regulated": provider.regulated,
            "supports_hedging": provider.supports_hedging,
            "geography": self.config.user_geography.value,
            "preference": self.config.perp_preference.value,
        }

    def get_available_providers(self) -> List[str]:
        providers = [self.coinbase.name] if self.coinbase is not None else []
        providers.append(self.onchain.name)
        return providers
