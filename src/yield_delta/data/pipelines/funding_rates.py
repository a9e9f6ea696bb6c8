import asyncio
from typing import Dict, List, Optional

from loguru import logger

from ..cache import MemoryCache
from ..models import FundingRate
from ..sources.base import FundingVenue
from ..sources.funding_venues import default_venues

FUNDING_CACHE_TTL = 5 * 60


class FundingRateProvider:
    """Cross-venue funding rates for one base asset at a time"""

    def __init__(self, venues: Optional[Dict[str, FundingVenue]] = None, cache: Optional[MemoryCache] = None,
                 ttl: float = FUNDING_CACHE_TTL):
        self.venues = venues if venues is not None else default_venues()
        self.cache = cache or MemoryCache(default_ttl=ttl)
        self.ttl = ttl

    async def get_funding_rates(self, symbol: str) -> List[FundingRate]:
        key = f"venues:{symbol.upper()}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        logger.info(f"Fetching funding rates for {symbol} from {len(self.venues)} venues")
        names = list(self.venues)
        results = await asyncio.gather(*(self.venues[n].funding_rate(symbol) for n in names),
                                       return_exceptions=True)
        rates: List[FundingRate] = []
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to fetch from {name}: {result}")
            elif result is None:
                logger.warning(f"Failed to fetch from {name}: no data")
            else:
                rates.append(result)

        self.cache.set(key, rates, self.ttl)
        logger.info(f"Fetched funding rates for {symbol} from {len(rates)} venues")
        return rates