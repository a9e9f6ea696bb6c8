from abc import ABC, abstractmethod
from typing import List, Optional

from loguru import logger

from ..data.models import HedgeStrategy, LPPosition, PerpsPosition, PerpsTradeParams
from ..errors import ProviderUnsupportedError


class PerpProvider(ABC):
    """A venue that can open and close perpetual positions"""
    name: str
    geographic: bool = False
    regulated: bool = False
    supports_hedging: bool = False

    @abstractmethod
    async def open_position(self, params: PerpsTradeParams) -> Optional[str]:
        ...

    @abstractmethod
    async def close_position(self, symbol: str, size: Optional[float] = None) -> Optional[str]:
        ...

    @abstractmethod
    async def get_positions(self) -> List[PerpsPosition]:
        ...

    async def get_hedge_recommendation(self, position: LPPosition) -> HedgeStrategy:
        raise ProviderUnsupportedError(f"Provider {self.name} does not support hedge recommendations")


class OnChainPerpProvider(PerpProvider):
    """Sei on-chain perps; not wired to a perps protocol yet"""
    name = "Sei On-Chain Perps"

    async def open_position(self, params: PerpsTradeParams) -> Optional[str]:
        raise ProviderUnsupportedError("On-chain perp trading not yet implemented")

    async def close_position(self, symbol: str, size: Optional[float] = None) -> Optional[str]:
        raise ProviderUnsupportedError("On-chain perp closing not yet implemented")

    async def get_positions(self) -> List[PerpsPosition]:
        logger.warning("On-chain position query not yet implemented")
        return []
