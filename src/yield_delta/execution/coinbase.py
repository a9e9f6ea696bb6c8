"""
Coinbase Advanced - regulated perp provider used for US hedging
"""

import base64
import hashlib
import hmac
import json
import time
import uuid
from typing import Any, Dict, List, Optional

from loguru import logger

from ..data.http_client import http_session
from ..data.models import HedgeStrategy, LPPosition, PerpsPosition, PerpsTradeParams
from ..errors import TransactionError
from .providers import PerpProvider

HEDGE_RATIO = 0.75


class CoinbaseAdvancedProvider(PerpProvider):
    name = "Coinbase Advanced"
    geographic = True
    regulated = True
    supports_hedging = True

    def __init__(self, api_key: str, api_secret: str, passphrase: str, sandbox: bool = False):
        self.api_key = api_key
        self.api_secret = api_secret
        self.passphrase = passphrase
        self.sandbox = sandbox
        self.base_url = ("https://api-public.sandbox.exchange.coinbase.com" if sandbox
                         else "https://api.exchange.coinbase.com")
        self.positions: Dict[str, PerpsPosition] = {}

    @staticmethod
    def product_id(symbol: str) -> str:
        return f"{symbol.upper()}-PERP"

    def sign(self, timestamp: str, method: str, path: str, body: str = "") -> str:
        message = f"{timestamp}{method.upper()}{path}{body}".encode()
        key = base64.b64decode(self.api_secret)
        return base64.b64encode(hmac.new(key, message, hashlib.sha256).digest()).decode()

    def _headers(self, method: str, path: str, body: str = "") -> Dict[str, str]:
        timestamp = str(time.time())
        return {
            "CB-ACCESS-KEY": self.api_key,
            "CB-ACCESS-SIGN": self.sign(timestamp, method, path, body),
            "CB-ACCESS-TIMESTAMP": timestamp,
            "CB-ACCESS-PASSPHRASE": self.passphrase,
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = json.dumps(payload)
        async with http_session() as s:
            async with s.post(f"{self.base_url}{path}", data=body, headers=self._headers("POST", path, body)) as r:
                data = await r.json(content_type=None)
                if r.status >= 400:
                    raise TransactionError(f"Coinbase {path} failed ({r.status}): {data}")
                return data

    async def open_position(self, params: PerpsTradeParams) -> str:
        logger.info(f"Coinbase: opening {params.side} {params.symbol} ${params.size} at {params.leverage}x")
        order = await self._post("/orders", {
            "client_oid": str(uuid.uuid4()),
            "product_id": self.product_id(params.symbol),
            "side": "buy" if params.side == "long" else "sell",
            "type": "market",
            "funds": f"{params.size:.2f}",
        })
        self._record_fill(params.symbol.upper(), params.side, params.size, params.leverage)
        return order["id"]

    def _record_fill(self, symbol: str, side: str, size: float, leverage: float):
        """Same-side fills add to the position; opposite-side fills net against it."""
        position = self.positions.get(symbol)
        if position is None:
            self.positions[symbol] = PerpsPosition(symbol=symbol, size=size, side=side, leverage=leverage)
        elif position.side == side:
            position.size += size
        elif size < position.size:
            position.size -= size
        elif size > position.size:
            self.positions[symbol] = PerpsPosition(symbol=symbol, size=size - position.size, side=side,
                                                   leverage=leverage)
        else:
            del self.positions[symbol]

    async def close_position(self, symbol: str, size: Optional[float] = None) -> str:
        position = self.positions.get(symbol.upper())
        if position is None:
            raise TransactionError(f"No open Coinbase position for {symbol}")
        close_size = size or position.size
        order = await self._post("/orders", {
            "client_oid": str(uuid.uuid4()),
            "product_id": self.product_id(symbol),
            "side": "sell" if position.side == "long" else "buy",
            "type": "market",
            "funds": f"{close_size:.2f}",
        })
        if close_size >= position.size:
            del self.positions[symbol.upper()]
        else:
            position.size -= close_size
        return order["id"]

    async def get_positions(self) -> List[PerpsPosition]:
        return list(self.positions.values())

    async def get_hedge_recommendation(self, position: LPPosition) -> HedgeStrategy:
        return HedgeStrategy(
            symbol=position.base_token.upper(),
            size=position.value * HEDGE_RATIO,
            action="short",
            hedge_ratio=HEDGE_RATIO,
            expected_il_reduction="~65% IL protection",
        )
