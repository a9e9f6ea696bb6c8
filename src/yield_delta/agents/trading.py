"""
Trading actions - native transfers, DragonSwap swaps and perpetual positions
"""

from typing import List

from loguru import logger
from pydantic import Field

from .base import ActionResult, ActionTool
from .parsing import parse_perps, parse_swap, parse_transfer


class TransferTool(ActionTool):
    """Send native SEI to a 0x or sei1 address"""

    name: str = "SEI_TOKEN_TRANSFER"
    description: str = "Transfer SEI tokens to another address on the Sei network"
    similes: List[str] = Field(default_factory=lambda: ["SEND_SEI", "TRANSFER_SEI", "SEND_TOKENS", "PAY"])

    def matches(self, text: str) -> bool:
        return (any(w in text for w in ("transfer", "send", "move"))
                and ("sei" in text or "token" in text)
                and ("0x" in text or "sei1" in text))

    async def run(self, text: str) -> ActionResult:
        params = parse_transfer(text)
        if params is None:
            return ActionResult.failure(
                "Could not understand the transfer. Try: 'send 10 SEI to 0x...'",
                error="Unable to parse transfer parameters")

        transfers = self.context.transfers
        transfers.validate_params(params)
        balance = await transfers.wallet.get_balance()
        if balance < params.amount:
            return ActionResult.failure(
                f"Insufficient balance: {balance:.4f} SEI available, {params.amount} SEI requested",
                error="Insufficient funds", balance=balance)

        receipt = await transfers.transfer(params)
        logger.info(f"Transfer sent: {receipt.hash}")
        return ActionResult(
            text=(f"✅ Successfully transferred {params.amount} SEI to {params.to_address}\n"
                  f"Transaction: {receipt.hash}"),
            content=receipt.model_dump(mode="json"),
        )


class DragonSwapTool(ActionTool):
    """Swap tokens through the DragonSwap router"""

    name: str = "DRAGONSWAP_TRADE"
    description: str = "Swap tokens on DragonSwap, the native Sei DEX"
    similes: List[str] = Field(default_factory=lambda: ["SWAP_TOKENS", "DEX_TRADE", "DRAGONSWAP"])

    def matches(self, text: str) -> bool:
        return (any(w in text for w in ("swap", "trade", "exchange"))
                and ("dragonswap" in text or "dragon" in text)
                and ("sei" in text or "token" in text))

    async def run(self, text: str) -> ActionResult:
        params = parse_swap(text)
        if params is None:
            return ActionResult.failure(
                "Could not understand the swap. Try: 'swap 10 SEI for USDC on DragonSwap'",
                error="Unable to parse trade parameters")

        dex = self.context.dex
        quote = await dex.get_quote(params.token_in, params.token_out, params.amount_in)
        if quote is None:
            return ActionResult.failure(
                f"No DragonSwap quote for {params.token_in} -> {params.token_out}",
                error="Quote unavailable")

        tx_hash = await dex.execute_swap(params)
        return ActionResult(
            text=(f"✅ Successfully swapped {params.amount_in} {params.token_in} for "
                  f"~{quote.amount_out:.6f} {params.token_out}\n"
                  f"Price impact: {quote.price_impact:.2f}%\nTransaction: {tx_hash}"),
            content={
                "tx_hash": tx_hash,
                "params": params.model_dump(),
                "quote": quote.model_dump(),
            },
        )


class PerpsTool(ActionTool):
    """Open or close perpetual futures positions on Sei"""

    name: str = "PERPS_TRADE"
    description: str = "Open or close leveraged perpetual futures positions"
    similes: List[str] = Field(default_factory=lambda: ["PERPETUAL_TRADE", "LEVERAGE_TRADE", "FUTURES_TRADE"])

    def matches(self, text: str) -> bool:
        return (any(w in text for w in ("open", "close", "short", "long"))
                and any(w in text for w in ("btc", "eth", "sei", "sol", "position")))

    async def run(self, text: str) -> ActionResult:
        params = parse_perps(text)
        if params is None:
            return ActionResult.failure(
                "Could not understand the trade. Try: 'open long BTC 1000 10x' or 'close BTC'",
                error="Unable to parse trading parameters")

        perps = self.context.perps
        if params.reduce_only:
            tx_hash = await perps.close_position(params.symbol)
            return ActionResult(
                text=f"✅ Successfully closed {params.symbol} position\nTransaction: {tx_hash}",
                content={"tx_hash": tx_hash, "symbol": params.symbol, "action": "close"},
            )

        tx_hash = await perps.open_position(params)
        return ActionResult(
            text=(f"✅ Successfully opened {params.side} {params.symbol} position: "
                  f"${params.size:,.2f} at {params.leverage:g}x\nTransaction: {tx_hash}"),
            content={"tx_hash": tx_hash, "params": params.model_dump(), "action": "open"},
        )
