from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

from ..models import FundingRate


class DataSource(ABC):
    name: str

    @abstractmethod
    async def health(self) -> Dict[str, Any]:
        ...


class FundingVenue(DataSource):
    """A perpetual-futures venue publishing funding rates"""
    interval_hours: float = 8

    @abstractmethod
    async def funding_rate(self, symbol: str) -> Optional[FundingRate]:
        """Latest funding rate for a base asset such as ``BTC``"""
        ...

    async def health(self) -> Dict[str, Any]:
        try:
            rate = await self.funding_rate("BTC")
            return {"ok": rate is not None}
        except Exception as e:
            return {"ok": False, "error": str(e)}
