"""
On-chain perpetuals client for Sei
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from ..data.http_client import get_json
from ..data.models import PerpsPosition, PerpsTradeParams
from ..data.pipelines.price_oracle import SeiPriceOracle
from ..data.sources.onchain_oracles import to_bytes32
from ..errors import ConfigurationError, TransactionError
from .wallet import WalletProvider

PERPS_ABI = [
    {
        "name": "openPosition",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {"name": "market", "type": "bytes32"},
            {"name": "sizeDelta", "type": "int256"},
            {"name": "acceptablePrice", "type": "uint256"},
            {"name": "executionFee", "type": "uint256"},
            {"name": "referralCode", "type": "bytes32"},
            {"name": "isLong", "type": "bool"},
        ],
        "outputs": [],
    },
    {
        "name": "closePosition",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {"name": "market", "type": "bytes32"},
            {"name": "sizeDelta", "type": "uint256"},
            {"name": "acceptablePrice", "type": "uint256"},
            {"name": "executionFee", "type": "uint256"},
        ],
        "outputs": [],
    },
]

WAD = 10 ** 18


class PerpsAPI:
    """Opens and closes perpetual positions against a Sei perps contract"""

    def __init__(self, wallet: WalletProvider, oracle: SeiPriceOracle, contract_address: Optional[str],
                 testnet: bool = False, api_url: Optional[str] = None):
        self.wallet = wallet
        self.oracle = oracle
        self.contract_address = contract_address
        self.base_url = api_url or ("https://api-testnet.perpsdex.app/v1" if testnet
                                    else "https://api.perpsdex.app/v1")

    def _require_contract(self) -> str:
        if not self.contract_address:
            raise ConfigurationError("PERPS_CONTRACT_ADDRESS is not configured")
        return self.contract_address

    def build_open_calldata(self, params: PerpsTradeParams, price: float) -> str:
        contract = self._require_contract()
        size_in_tokens = int(params.size / price * WAD)
        size_delta = size_in_tokens if params.side == "long" else -size_in_tokens
        slippage = params.slippage_bps / 10000
        multiplier = 1 + slippage if params.side == "long" else 1 - slippage
        acceptable_price = int(price * multiplier * WAD)
        return self.wallet.encode_call(contract, PERPS_ABI, "openPosition", [
            to_bytes32(params.symbol), size_delta, acceptable_price, 0, b"\0" * 32, params.side == "long",
        ])

    def build_close_calldata(self, symbol: str, size: Optional[float] = None) -> str:
        contract = self._require_contract()
        size_delta = int(size * WAD) if size else 0  # 0 closes the full position
        return self.wallet.encode_call(contract, PERPS_ABI, "closePosition", [to_bytes32(symbol), size_delta, 0, 0])

    async def open_position(self, params: PerpsTradeParams) -> str:
        logger.info(f"Opening {params.side} position: {params.size} USD {params.symbol} at {params.leverage}x")
        feed = await self.oracle.get_price(params.symbol)
        if feed is None:
            raise TransactionError(f"Could not get price for {params.symbol}")
        data = self.build_open_calldata(params, feed.price)
        tx_hash = await self.wallet.send_transaction(self._require_contract(), data=data)
        logger.info(f"Position opened: {tx_hash}")
        return tx_hash

    async def close_position(self, symbol: str, size: Optional[float] = None) -> str:
        logger.info(f"Closing position: {symbol} {f'({size})' if size else '(full)'}")
        data = self.build_close_calldata(symbol, size)
        tx_hash = await self.wallet.send_transaction(self._require_contract(), data=data)
        logger.info(f"Position closed: {tx_hash}")
        return tx_hash

    async def get_positions(self, address: Optional[str] = None) -> List[PerpsPosition]:
        address = address or self.wallet.address
        try:
            data = await get_json(f"{self.base_url}/positions/{address}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to get positions: {e}")
            return []
        return [PerpsPosition(**p) for p in (data or {}).get("positions", [])]

    async def get_market_info(self, symbol: str) -> Optional[Dict[str, Any]]:
        try:
            return await get_json(f"{self.base_url}/markets/{symbol}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to get market info: {e}")
            return None
