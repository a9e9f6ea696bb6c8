"""
Symphony DEX client - routed quotes and API-built swaps on Sei
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger

from ..data.http_client import get_json, post_json
from ..data.models import SwapParams, SwapQuote
from ..data.networks import get_chain_config, get_token_address
from ..errors import ConfigurationError, TransactionError
from .dex import from_base_units, to_base_units
from .wallet import WalletProvider

DEFAULT_SLIPPAGE = "0.5"


class SymphonyDEX:
    """Symphony routes across Sei pools; its API returns ready-to-sign swap transactions."""

    def __init__(self, wallet: Optional[WalletProvider] = None, network: str = "sei-mainnet",
                 api_url: str = "https://api.symphony.finance/v1"):
        self.wallet = wallet
        self.network = network
        self.chain_id = get_chain_config(network).chain_id
        self.base_url = api_url

    async def get_quote(self, token_in: str, token_out: str, amount_in: float) -> Optional[SwapQuote]:
        params = {
            "tokenIn": token_in.lower(),
            "tokenOut": token_out.lower(),
            "amountIn": str(to_base_units(amount_in, token_in)),
            "slippage": DEFAULT_SLIPPAGE,
            "chainId": str(self.chain_id),
        }
        try:
            data = await get_json(f"{self.base_url}/quote", params=params)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Symphony quote failed: {e}")
            return None
        if not data or data.get("amountOut") is None:
            return None
        return SwapQuote(
            amount_out=from_base_units(int(data["amountOut"]), token_out),
            price_impact=float(data.get("priceImpact") or 0),
            route=[str(hop) for hop in data.get("route") or [token_in, token_out]],
            gas_estimate=int(data.get("gasEstimate") or 150000),
            exchange="symphony",
        )

    async def get_supported_tokens(self) -> Dict[str, Any]:
        try:
            return await get_json(f"{self.base_url}/tokens", params={"chainId": str(self.chain_id)})
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Failed to fetch Symphony tokens, using WSEI only: {e}")
            wsei = get_token_address(self.network, "WSEI").lower()
            return {wsei: {"address": wsei, "name": "Wrapped SEI", "symbol": "WSEI", "decimals": 18}}

    async def execute_swap(self, params: SwapParams) -> str:
        """Build the swap through the Symphony API and send it from the wallet"""
        if self.wallet is None:
            raise ConfigurationError("Wallet provider not configured for Symphony execution")

        logger.info(f"Executing Symphony swap: {params.amount_in} {params.token_in} -> {params.token_out}")
        quote = await self.get_quote(params.token_in, params.token_out, params.amount_in)
        if quote is None or quote.amount_out <= 0:
            raise TransactionError("Could not get Symphony quote")

        min_out = to_base_units(quote.amount_out * (1 - params.slippage_bps / 10000), params.token_out)
        try:
            data = await post_json(f"{self.base_url}/swap", {
                "tokenIn": params.token_in.lower(),
                "tokenOut": params.token_out.lower(),
                "amountIn": str(to_base_units(params.amount_in, params.token_in)),
                "minAmountOut": str(min_out),
                "recipient": self.wallet.address,
                "slippage": f"{params.slippage_bps / 100:g}",
                "chainId": self.chain_id,
            }, idempotent=False)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransactionError(f"Symphony swap build failed: {e}") from e

        tx = (data or {}).get("tx") or data or {}
        if not tx.get("to") or not tx.get("data"):
            raise TransactionError(f"Symphony returned no transaction: {data}")
        tx_hash = await self.wallet.send_transaction(tx["to"], value=int(tx.get("value") or 0), data=tx["data"])
        logger.info(f"Symphony swap executed: {tx_hash}")
        return tx_hash
