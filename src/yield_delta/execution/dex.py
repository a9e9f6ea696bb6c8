"""
DragonSwap DEX client - pool info, quotes and router swaps
"""

import time
from typing import Optional

import aiohttp
from loguru import logger
from web3 import Web3

from ..data.http_client import get_json, post_json
from ..data.models import PoolInfo, SwapParams, SwapQuote
from ..data.networks import ERC20_ABI, NATIVE_TOKEN_ADDRESS, get_token_address
from ..errors import ConfigurationError, TransactionError
from .wallet import WalletProvider

TOKEN_DECIMALS = {"USDC": 6, "USDT": 6}

DRAGONSWAP_ROUTER_ABI = [
    {
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "amountOutMin", "type": "uint256"},
            {"name": "path", "type": "address[]"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
        ],
        "name": "swapExactTokensForTokens",
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "amountOutMin", "type": "uint256"},
            {"name": "path", "type": "address[]"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
        ],
        "name": "swapExactETHForTokens",
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
        "stateMutability": "payable",
        "type": "function",
    },
]


def to_base_units(amount: float, token: str) -> int:
    return int(round(amount * 10 ** TOKEN_DECIMALS.get(token.upper(), 18)))


def from_base_units(amount: int, token: str) -> float:
    return amount / 10 ** TOKEN_DECIMALS.get(token.upper(), 18)


class DragonSwapAPI:
    def __init__(self, wallet: Optional[WalletProvider] = None, network: str = "sei-mainnet",
                 api_url: Optional[str] = None, router_address: Optional[str] = None):
        self.wallet = wallet
        self.network = network
        self.base_url = api_url or ("https://api.dragonswap.app/v1" if network == "sei-mainnet"
                                    else "https://api-testnet.dragonswap.app/v1")
        self.router_address = Web3.to_checksum_address(router_address) if router_address else None

    def _address(self, token: str) -> str:
        if token.startswith("0x"):
            return Web3.to_checksum_address(token)
        return Web3.to_checksum_address(get_token_address(self.network, token))

    async def get_pool_info(self, token_a: str, token_b: str) -> Optional[PoolInfo]:
        try:
            data = await get_json(f"{self.base_url}/pools/{token_a.lower()}/{token_b.lower()}")
        except aiohttp.ClientResponseError as e:
            logger.warning(f"DragonSwap pool info not found for {token_a}/{token_b}: {e.status}")
            return None
        return PoolInfo(**data) if data else None

    async def get_quote(self, token_in: str, token_out: str, amount_in: float) -> Optional[SwapQuote]:
        payload = {
            "tokenIn": token_in.lower(),
            "tokenOut": token_out.lower(),
            "amountIn": str(to_base_units(amount_in, token_in)),
        }
        try:
            data = await post_json(f"{self.base_url}/quote", payload)
        except aiohttp.ClientResponseError as e:
            logger.warning(f"DragonSwap quote failed: {e.status} {e.message}")
            return None
        if not data or data.get("amountOut") is None:
            return None
        return SwapQuote(
            amount_out=from_base_units(int(data["amountOut"]), token_out),
            price_impact=float(data.get("priceImpact") or 0),
            route=data.get("route") or [token_in, token_out],
            gas_estimate=int(data.get("gasEstimate") or 200000),
        )

    async def execute_swap(self, params: SwapParams) -> str:
        """Swap through the DragonSwap router and return the transaction hash"""
        if self.wallet is None:
            raise ConfigurationError("Wallet provider not configured for DragonSwap execution")
        if not self.router_address:
            raise ConfigurationError("DRAGONSWAP_ROUTER_ADDRESS is not configured")

        logger.info(f"Executing swap: {params.amount_in} {params.token_in} -> {params.token_out}")
        quote = await self.get_quote(params.token_in, params.token_out, params.amount_in)
        if quote is None or quote.amount_out <= 0:
            raise TransactionError("Could not get swap quote")

        min_out = to_base_units(quote.amount_out * (1 - params.slippage_bps / 10000), params.token_out)
        amount_in = to_base_units(params.amount_in, params.token_in)
        deadline = int(time.time()) + params.deadline_seconds
        native_in = params.token_in.upper() == "SEI"

        if native_in:
            path = [self._address("WSEI"), self._address(params.token_out)]
            data = self.wallet.encode_call(self.router_address, DRAGONSWAP_ROUTER_ABI, "swapExactETHForTokens",
                                           [min_out, path, self.wallet.address, deadline])
            value = amount_in
        else:
            token_in = self._address(params.token_in)
            out = "WSEI" if params.token_out.upper() == "SEI" else params.token_out
            path = [token_in, self._address(out)]
            await self._approve(token_in, amount_in)
            data = self.wallet.encode_call(self.router_address, DRAGONSWAP_ROUTER_ABI, "swapExactTokensForTokens",
                                           [amount_in, min_out, path, self.wallet.address, deadline])
            value = 0

        tx_hash = await self.wallet.send_transaction(self.router_address, value=value, data=data)
        logger.info(f"Swap executed: {tx_hash}")
        return tx_hash

    async def _approve(self, token_address: str, amount: int):
        if token_address == NATIVE_TOKEN_ADDRESS:
            return
        allowance = await self.wallet.read_contract(token_address, ERC20_ABI, "allowance",
                                                    [self.wallet.address, self.router_address])
        if allowance >= amount:
            logger.debug(f"Token {token_address} already approved with sufficient allowance")
            return
        data = self.wallet.encode_call(token_address, ERC20_ABI, "approve", [self.router_address, amount])
        tx_hash = await self.wallet.send_transaction(token_address, data=data)
        logger.info(f"Token approval transaction: {tx_hash}")
