"""
On-chain price oracles readable over the Sei EVM RPC: Pyth, Chainlink,
API3 dAPIs and Redstone Classic.
"""

import time
from typing import Dict, Any, Optional

from loguru import logger
from web3 import AsyncWeb3, Web3

from .base import DataSource
from ..models import PriceFeed

PYTH_CONTRACT = "0x2880aB155794e7179c9eE2e38200202908C17B43"

PYTH_PRICE_FEEDS = {
    "BTC": "0xe62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43",
    "ETH": "0xff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace",
    "SEI": "0x53614f1cb0c031d4af66c04cb9c756234adad0e1cee85303795091499a4084eb",
    "USDC": "0xeaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a",
}

CHAINLINK_FEEDS = {
    "BTC/USD": "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419",
    "ETH/USD": "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419",
    "SEI/USD": "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419",
}

PYTH_ABI = [{
    "name": "getPriceUnsafe",
    "type": "function",
    "stateMutability": "view",
    "inputs": [{"name": "id", "type": "bytes32"}],
    "outputs": [{
        "name": "price",
        "type": "tuple",
        "components": [
            {"name": "price", "type": "int64"},
            {"name": "conf", "type": "uint64"},
            {"name": "expo", "type": "int32"},
            {"name": "publishTime", "type": "uint256"},
        ],
    }],
}]

CHAINLINK_ABI = [{
    "name": "latestRoundData",
    "type": "function",
    "stateMutability": "view",
    "inputs": [],
    "outputs": [
        {"name": "roundId", "type": "uint80"},
        {"name": "answer", "type": "int256"},
        {"name": "startedAt", "type": "uint256"},
        {"name": "updatedAt", "type": "uint256"},
        {"name": "answeredInRound", "type": "uint80"},
    ],
}]

API3_ABI = [{
    "name": "readDataFeed",
    "type": "function",
    "stateMutability": "view",
    "inputs": [{"name": "dApiId", "type": "bytes32"}],
    "outputs": [{"name": "value", "type": "int224"}, {"name": "timestamp", "type": "uint32"}],
}]

REDSTONE_ABI = [{
    "name": "getLatestRoundData",
    "type": "function",
    "stateMutability": "view",
    "inputs": [{"name": "feedId", "type": "bytes32"}],
    "outputs": [{"name": "price", "type": "int256"}, {"name": "timestamp", "type": "uint256"}],
}]


def to_bytes32(value: str) -> bytes:
    """Hex feed id or short ASCII label as 32 bytes"""
    if value.startswith("0x"):
        return bytes.fromhex(value[2:]).rjust(32, b"\0")
    raw = value.encode()
    if len(raw) > 32:
        raise ValueError(f"{value!r} does not fit in bytes32")
    return raw.ljust(32, b"\0")


class OnChainOracle(DataSource):
    """Base class for contract-backed price feeds"""

    def __init__(self, w3: AsyncWeb3):
        self.w3 = w3

    def _contract(self, address: str, abi):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    async def health(self) -> Dict[str, Any]:
        try:
            return {"ok": await self.w3.is_connected()}
        except Exception as e:
            return {"ok": False, "error": str(e)}

    async def price(self, symbol: str) -> Optional[PriceFeed]:
        raise NotImplementedError


class PythOracle(OnChainOracle):
    name = "pyth"

    def __init__(self, w3: AsyncWeb3, contract_address: str = PYTH_CONTRACT, feeds: Optional[Dict[str, str]] = None):
        super().__init__(w3)
        self.contract_address = contract_address
        self.feeds = feeds or PYTH_PRICE_FEEDS

    async def price(self, symbol: str) -> Optional[PriceFeed]:
        feed_id = self.feeds.get(symbol.upper())
        if not feed_id:
            return None
        contract = self._contract(self.contract_address, PYTH_ABI)
        raw_price, conf, expo, publish_time = await contract.functions.getPriceUnsafe(to_bytes32(feed_id)).call()
        if raw_price <= 0:
            return None
        scale = 10 ** expo
        return PriceFeed(
            symbol=symbol.upper(),
            price=raw_price * scale,
            source=self.name,
            confidence=conf * scale,
            timestamp=int(publish_time) * 1000,
        )


class ChainlinkOracle(OnChainOracle):
    name = "chainlink"
    DECIMALS = 8

    def __init__(self, w3: AsyncWeb3, feeds: Optional[Dict[str, str]] = None):
        super().__init__(w3)
        self.feeds = feeds or CHAINLINK_FEEDS

    async def price(self, symbol: str) -> Optional[PriceFeed]:
        address = self.feeds.get(f"{symbol.upper()}/USD")
        if not address:
            return None
        contract = self._contract(address, CHAINLINK_ABI)
        _, answer, _, updated_at, _ = await contract.functions.latestRoundData().call()
        if answer <= 0:
            return None
        return PriceFeed(
            symbol=symbol.upper(),
            price=answer / 10 ** self.DECIMALS,
            source=self.name,
            confidence=0.99,
            timestamp=int(updated_at) * 1000,
        )


class API3Oracle(OnChainOracle):
    name = "api3"
    MAX_AGE_SECONDS = 3600

    def __init__(self, w3: AsyncWeb3, contract_address: str = PYTH_CONTRACT, dapi_ids: Optional[Dict[str, str]] = None):
        super().__init__(w3)
        self.contract_address = contract_address
        self.dapi_ids = dapi_ids or PYTH_PRICE_FEEDS

    async def price(self, symbol: str) -> Optional[PriceFeed]:
        dapi_id = self.dapi_ids.get(symbol.upper())
        if not dapi_id:
            return None
        contract = self._contract(self.contract_address, API3_ABI)
        value, ts = await contract.functions.readDataFeed(to_bytes32(dapi_id)).call()
        if time.time() - ts > self.MAX_AGE_SECONDS:
            logger.warning(f"API3 price data too old for {symbol}")
            return None
        if value <= 0:
            return None
        return PriceFeed(symbol=symbol.upper(), price=value / 1e18, source=self.name,
                         confidence=0.95, timestamp=int(ts) * 1000)


class RedstoneOracle(OnChainOracle):
    """Redstone Classic; only stablecoin feeds are published on Sei"""
    name = "redstone"
    SUPPORTED = ("USDT", "USDC")

    def __init__(self, w3: AsyncWeb3, contract_address: str):
        super().__init__(w3)
        self.contract_address = contract_address

    async def price(self, symbol: str) -> Optional[PriceFeed]:
        if symbol.upper() not in self.SUPPORTED:
            return None
        contract = self._contract(self.contract_address, REDSTONE_ABI)
        value, ts = await contract.functions.getLatestRoundData(to_bytes32(f"{symbol.upper()}/USD")).call()
        if value <= 0:
            return None
        return PriceFeed(symbol=symbol.upper(), price=value / 1e8, source=self.name,
                         confidence=0.9, timestamp=int(ts) * 1000)
