"""
Funding-rate feeds from centralized and on-chain perpetual venues.

Every venue takes a base asset (``BTC``, ``SEI``...) and returns a
:class:`FundingRate` quoted per funding interval, or ``None`` when the venue
does not list the market.
"""

import time
from typing import Dict, Optional, Any

from .base import FundingVenue
from ..http_client import get_json, post_json
from ..models import FundingRate


def _f(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _hours_ms(hours: float) -> int:
    return int(time.time() * 1000 + hours * 3600 * 1000)


class BinanceFutures(FundingVenue):
    name = "Binance"
    BASE = "https://fapi.binance.com/fapi/v1"

    async def funding_rate(self, symbol: str) -> Optional[FundingRate]:
        data = await get_json(f"{self.BASE}/premiumIndex", params={"symbol": f"{symbol.upper()}USDT"})
        if not data or "lastFundingRate" not in data:
            return None
        return FundingRate(
            symbol=symbol.upper(),
            exchange=self.name,
            rate=_f(data["lastFundingRate"]),
            timestamp=int(data.get("time") or time.time() * 1000),
            next_funding_time=int(data.get("nextFundingTime") or 0) or None,
            mark_price=_f(data.get("markPrice")),
            index_price=_f(data.get("indexPrice")),
        )

    async def ticker_price(self, symbol: str) -> Optional[float]:
        data = await get_json(f"{self.BASE}/ticker/price", params={"symbol": f"{symbol.upper()}USDT"})
        price = _f((data or {}).get("price"), default=-1)
        return price if price > 0 else None


class Bybit(FundingVenue):
    name = "Bybit"
    BASE = "https://api.bybit.com/v5"

    async def funding_rate(self, symbol: str) -> Optional[FundingRate]:
        data = await get_json(f"{self.BASE}/market/tickers",
                              params={"category": "linear", "symbol": f"{symbol.upper()}USDT"})
        tickers = ((data or {}).get("result") or {}).get("list") or []
        if not tickers:
            return None
        ticker = tickers[0]
        return FundingRate(
            symbol=symbol.upper(),
            exchange=self.name,
            rate=_f(ticker.get("fundingRate")),
            next_funding_time=int(ticker.get("nextFundingTime") or 0) or None,
            mark_price=_f(ticker.get("markPrice")),
            index_price=_f(ticker.get("indexPrice")),
        )


class OKX(FundingVenue):
    name = "OKX"
    BASE = "https://www.okx.com/api/v5"

    async def funding_rate(self, symbol: str) -> Optional[FundingRate]:
        data = await get_json(f"{self.BASE}/public/funding-rate", params={"instId": f"{symbol.upper()}-USDT-SWAP"})
        rows = (data or {}).get("data") or []
        if not rows:
            return None
        row = rows[0]
        return FundingRate(
            symbol=symbol.upper(),
            exchange=self.name,
            rate=_f(row.get("fundingRate")),
            timestamp=int(row.get("fundingTime") or time.time() * 1000),
            next_funding_time=int(row.get("nextFundingTime") or 0) or None,
        )


class BitMEX(FundingVenue):
    name = "BitMEX"
    BASE = "https://www.bitmex.com/api/v1"

    async def funding_rate(self, symbol: str) -> Optional[FundingRate]:
        base = "XBT" if symbol.upper() == "BTC" else symbol.upper()
        data = await get_json(f"{self.BASE}/funding",
                              params={"symbol": f"{base}USDT", "count": 1, "reverse": "true"})
        if not data:
            return None
        return FundingRate(
            symbol=symbol.upper(),
            exchange=self.name,
            rate=_f(data[0].get("fundingRate")),
            next_funding_time=_hours_ms(self.interval_hours),
        )


class Huobi(FundingVenue):
    name = "Huobi"
    BASE = "https://api.hbdm.com/linear-swap-api/v1"

    async def funding_rate(self, symbol: str) -> Optional[FundingRate]:
        data = await get_json(f"{self.BASE}/swap_funding_rate", params={"contract_code": f"{symbol.upper()}-USDT"})
        row = (data or {}).get("data")
        if isinstance(row, list):
            row = row[0] if row else None
        if not row:
            return None
        return FundingRate(
            symbol=symbol.upper(),
            exchange=self.name,
            rate=_f(row.get("funding_rate")),
            next_funding_time=int(row.get("next_funding_time") or 0) or None,
        )


class Hyperliquid(FundingVenue):
    name = "Hyperliquid"
    BASE = "https://api.hyperliquid.xyz/info"
    interval_hours = 1

    async def funding_rate(self, symbol: str) -> Optional[FundingRate]:
        data = await post_json(self.BASE, {"type": "metaAndAssetCtxs"})
        if not data or len(data) < 2:
            return None
        universe = data[0].get("universe", [])
        contexts = data[1]
        for asset, ctx in zip(universe, contexts):
            if asset.get("name") == symbol.upper() and ctx.get("funding") is not None:
                return FundingRate(
                    symbol=symbol.upper(),
                    exchange=self.name,
                    rate=_f(ctx["funding"]),
                    interval_hours=self.interval_hours,
                    next_funding_time=_hours_ms(self.interval_hours),
                    mark_price=_f(ctx.get("markPx")),
                    index_price=_f(ctx.get("oraclePx")),
                )
        return None


class Kraken(FundingVenue):
    name = "Kraken"
    BASE = "https://futures.kraken.com/derivatives/api/v3"
    interval_hours = 4

    async def funding_rate(self, symbol: str) -> Optional[FundingRate]:
        base = "XBT" if symbol.upper() == "BTC" else symbol.upper()
        data = await get_json(f"{self.BASE}/instruments/PF_{base}USD")
        result = (data or {}).get("result") or {}
        if result.get("fundingRate") is None:
            return None
        return FundingRate(
            symbol=symbol.upper(),
            exchange=self.name,
            rate=_f(result["fundingRate"]),
            interval_hours=self.interval_hours,
            next_funding_time=_hours_ms(self.interval_hours),
            mark_price=_f(result.get("markPrice")),
            index_price=_f(result.get("indexPrice")),
        )


class WooX(FundingVenue):
    name = "WooX"
    BASE = "https://api.woo.org/v1/public"

    async def funding_rate(self, symbol: str) -> Optional[FundingRate]:
        data = await get_json(f"{self.BASE}/funding_rate/PERP_{symbol.upper()}_USDT")
        if not data:
            return None
        rate = data.get("last_funding_rate", data.get("est_funding_rate"))
        if rate is None:
            return None
        return FundingRate(
            symbol=symbol.upper(),
            exchange=self.name,
            rate=_f(rate),
            next_funding_time=int(data.get("next_funding_time") or 0) or None,
        )


def default_venues() -> Dict[str, FundingVenue]:
    """Venues scanned for cross-exchange funding spreads"""
    venues = [BinanceFutures(), Bybit(), BitMEX(), Huobi(), Hyperliquid(), Kraken(), WooX()]
    return {v.name: v for v in venues}
