"""
Sei price oracle - spot prices and funding rates with source fallback
"""

import asyncio
import math
from typing import Dict, List, Optional, Sequence

from loguru import logger

from ..cache import MemoryCache
from ..http_client import retry_reads
from ..models import FundingRate, PriceFeed
from ..onchain.web3_client import get_async_w3
from ..sources.base import FundingVenue
from ..sources.funding_venues import OKX, BinanceFutures, Bybit
from ..sources.onchain_oracles import (API3Oracle, ChainlinkOracle, OnChainOracle, PythOracle,
                                       RedstoneOracle)

class SeiPriceOracle:
    """
    Price and funding-rate oracle for assets traded on Sei.

    Price lookup order: cache, YEI multi-oracle (API3, Pyth, Redstone) for the
    assets YEI Finance lists, then Pyth, Chainlink and finally the Binance
    ticker. The first valid positive price wins and is cached.
    """

    YEI_SYMBOLS = ("BTC", "ETH", "SEI", "USDC", "USDT")
    CEX_SYMBOLS = ("BTC", "ETH", "SEI", "USDC", "SOL", "AVAX")
    KNOWN_SYMBOLS = ("BTC", "ETH", "SEI", "USDC", "SOL", "AVAX")
    REFRESH_SYMBOLS = ("BTC", "ETH", "SEI")

    def __init__(self,
                 cache: Optional[MemoryCache] = None,
                 network: str = "sei-mainnet",
                 rpc_url: Optional[str] = None,
                 pyth: Optional[OnChainOracle] = None,
                 chainlink: Optional[OnChainOracle] = None,
                 api3: Optional[OnChainOracle] = None,
                 redstone: Optional[OnChainOracle] = None,
                 redstone_address: Optional[str] = None,
                 cex: Optional[BinanceFutures] = None,
                 funding_venues: Optional[Sequence[FundingVenue]] = None,
                 update_interval: float = 30):
        self.cache = cache or MemoryCache(default_ttl=update_interval)
        self.update_interval = update_interval
        if None in (pyth, chainlink, api3) or (redstone is None and redstone_address):
            w3 = get_async_w3(network, rpc_url)
            pyth = pyth or PythOracle(w3)
            chainlink = chainlink or ChainlinkOracle(w3)
            api3 = api3 or API3Oracle(w3)
            if redstone is None and redstone_address:
                redstone = RedstoneOracle(w3, redstone_address)
        self.pyth = pyth
        self.chainlink = chainlink
        self.api3 = api3
        self.redstone = redstone
        self.cex = cex or BinanceFutures()
        self.funding_venues: List[FundingVenue] = list(funding_venues or [self.cex, Bybit(), OKX()])
        self._update_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------ prices

    async def get_price(self, symbol: str) -> Optional[PriceFeed]:
        symbol = symbol.upper()
        cached = self.cache.get(f"price:{symbol}")
        if cached:
            return cached

        feed = None
        if symbol in self.YEI_SYMBOLS:
            feed = await self._yei_price(symbol)
        if feed is None:
            feed = await self._read(self.pyth, symbol)
        if feed is None:
            feed = await self._read(self.chainlink, symbol)
        if feed is None:
            feed = await self._cex_price(symbol)

        if feed is None:
            logger.warning(f"No price source returned data for {symbol}")
            return None

        self.cache.set(f"price:{symbol}", feed, self.update_interval)
        return feed

    async def _yei_price(self, symbol: str) -> Optional[PriceFeed]:
        # API3 is YEI Finance's primary feed, Pyth and Redstone back it up
        for oracle in (self.api3, self.pyth, self.redstone):
            if oracle is None:
                continue
            feed = await self._read(oracle, symbol)
            if feed is not None:
                logger.debug(f"YEI {oracle.name} price for {symbol}: {feed.price}")
                return PriceFeed(symbol=symbol, price=feed.price, source="yei-multi-oracle",
                                 confidence=0.95, timestamp=feed.timestamp)
        logger.warning(f"YEI oracle failed for {symbol}, falling back to other oracles")
        return None

    async def _read(self, oracle: OnChainOracle, symbol: str) -> Optional[PriceFeed]:
        try:
            feed = await retry_reads(oracle.price)(symbol)
        except Exception as e:
            logger.error(f"{oracle.name} price fetch error for {symbol}: {e}")
            return None
        return feed if feed is not None and _valid(feed.price) else None

    async def _cex_price(self, symbol: str) -> Optional[PriceFeed]:
        if symbol not in self.CEX_SYMBOLS:
            return None
        try:
            price = await self.cex.ticker_price(symbol)
        except Exception as e:
            logger.error(f"CEX price fetch error for {symbol}: {e}")
            return None
        if price is None or not _valid(price):
            return None
        return PriceFeed(symbol=symbol, price=price, source="Binance", confidence=0.95)

    # ----------------------------------------------------------- funding rates

    async def get_funding_rates(self, symbol: str) -> List[FundingRate]:
        symbol = symbol.upper()
        cached = self.cache.get(f"funding:{symbol}")
        if cached:
            return cached

        results = await asyncio.gather(*(v.funding_rate(symbol) for v in self.funding_venues),
                                       return_exceptions=True)
        rates: List[FundingRate] = []
        for venue, result in zip(self.funding_venues, results):
            if isinstance(result, Exception):
                logger.error(f"{venue.name} funding rate error for {symbol}: {result}")
            elif result is not None:
                rates.append(result)

        if rates:
            self.cache.set(f"funding:{symbol}", rates, self.update_interval)
        return rates

    # -------------------------------------------------------------- text query

    def extract_symbols(self, text: str) -> List[str]:
        upper = text.upper()
        return [s for s in self.KNOWN_SYMBOLS if s in upper]

    async def describe(self, text: Optional[str] = None) -> Optional[str]:
        """Answer a price or funding-rate question in plain text"""
        if not text:
            return ("SEI Oracle Provider: Real-time price data and funding rates for assets on the "
                    "SEI blockchain using Pyth, Chainlink, and CEX APIs.")
        lowered = text.lower()
        if "price" in lowered or "quote" in lowered:
            prices = [p for p in [await self.get_price(s) for s in self.extract_symbols(text)] if p]
            if not prices:
                return "No price data available for the requested symbols."
            return "\n".join(f"{p.symbol}: ${p.price:.4f} ({p.source})" for p in prices)
        if "funding" in lowered or "rate" in lowered:
            lines = []
            for symbol in self.extract_symbols(text):
                rates = await self.get_funding_rates(symbol)
                if rates:
                    joined = ", ".join(f"{r.exchange}: {r.rate * 100:.4f}%" for r in rates)
                    lines.append(f"{symbol}: {joined}")
            return "\n".join(lines) if lines else "No funding rate data available."
        return None

    async def health(self) -> Dict[str, Dict]:
        sources = [self.pyth, self.chainlink, self.api3, self.redstone, *self.funding_venues]
        sources = [s for s in sources if s is not None]
        results = await asyncio.gather(*(s.health() for s in sources))
        return {s.name: r for s, r in zip(sources, results)}

    # ---------------------------------------------------------- refresh loop

    def start_price_updates(self, interval: Optional[float] = None):
        if self._update_task and not self._update_task.done():
            return
        self._update_task = asyncio.get_running_loop().create_task(
            self._refresh_loop(interval or self.update_interval))

    async def stop_price_updates(self):
        if self._update_task:
            self._update_task.cancel()
            try:
                await self._update_task
            except asyncio.CancelledError:
                pass
            self._update_task = None

    async def _refresh_loop(self, interval: float):
        while True:
            try:
                for symbol in self.REFRESH_SYMBOLS:
                    self.cache.expire(f"price:{symbol}")
                    self.cache.expire(f"funding:{symbol}")
                await asyncio.gather(*(self.get_price(s) for s in self.REFRESH_SYMBOLS))
                await asyncio.gather(*(self.get_funding_rates(s) for s in self.REFRESH_SYMBOLS))
            except Exception as e:
                logger.error(f"Price update error: {e}")
            await asyncio.sleep(interval)


def _valid(price: float) -> bool:
    return price is not None and math.isfinite(price) and price > 0
