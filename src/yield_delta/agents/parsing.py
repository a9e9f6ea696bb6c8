"""
Natural-language parameter extraction for chat messages
"""

import re
from typing import Optional

from ..data.models import LPPosition, PerpsTradeParams, SwapParams, TransferParams

TRANSFER_AMOUNT = re.compile(r"(\d+(?:\.\d+)?)\s*sei", re.I)
ADDRESS = re.compile(r"(0x[a-fA-F0-9]{40}|sei1[a-z0-9]{38})")

SWAP_AMOUNT = re.compile(r"(?:swap|trade|exchange)\s+(\d+(?:\.\d+)?)\s+(\w+)", re.I)
SWAP_FOR = re.compile(r"\b(?:for|to)\s+(\w+)", re.I)
SLIPPAGE = re.compile(r"(\d+(?:\.\d+)?)\s*%\s*slippage", re.I)

PERPS_OPEN = re.compile(r"open\s+(long|short)\s+(\w+)\s+(\d+(?:\.\d+)?)\s+(\d+)x", re.I)
PERPS_CLOSE = re.compile(r"close\s+(?:(?:my|the|all)\s+)?(?:(?:long|short)\s+)?(\w+)", re.I)

LP_WORTH = re.compile(r"(?:protect|hedge).*?(\w+)[/\-](\w+).*?(?:\$|worth\s*\$?)(\d+(?:,\d{3})*(?:\.\d+)?)", re.I)
LP_ALT = re.compile(r"(\w+)[/\-](\w+).*?lp.*?(\d+)", re.I)

SYMBOL = re.compile(r"\b(btc|eth|sei|sol|avax)\b", re.I)
STRATEGY = re.compile(r"strategy[:\s]+([^,\n]+)", re.I)


def parse_transfer(text: str) -> Optional[TransferParams]:
    """'send 10 SEI to 0x...' -> TransferParams"""
    amount = TRANSFER_AMOUNT.search(text)
    address = ADDRESS.search(text)
    if not amount or not address:
        return None
    return TransferParams(to_address=address.group(1), amount=float(amount.group(1)))


def parse_swap(text: str) -> Optional[SwapParams]:
    """'swap 10 SEI for USDC on dragonswap with 0.5% slippage' -> SwapParams"""
    amount = SWAP_AMOUNT.search(text)
    if not amount:
        return None
    target = SWAP_FOR.search(text, amount.end())
    if not target:
        return None
    slippage = SLIPPAGE.search(text)
    return SwapParams(
        token_in=amount.group(2).upper(),
        token_out=target.group(1).upper(),
        amount_in=float(amount.group(1)),
        slippage_bps=int(float(slippage.group(1)) * 100) if slippage else 100,
    )


def parse_perps(text: str) -> Optional[PerpsTradeParams]:
    """
    'open long BTC 1000 10x' opens; 'close BTC' closes the full position.

    Close requests come back as reduce-only params with a nominal size.
    """
    opened = PERPS_OPEN.search(text)
    if opened:
        return PerpsTradeParams(
            symbol=opened.group(2).upper(),
            size=float(opened.group(3)),
            side=opened.group(1).lower(),
            leverage=int(opened.group(4)),
        )
    closed = PERPS_CLOSE.search(text)
    if closed:
        return PerpsTradeParams(symbol=closed.group(1).upper(), size=1, side="long", reduce_only=True)
    return None


def parse_lp_position(text: str) -> Optional[LPPosition]:
    """'protect my ETH/USDC LP worth $5,000' -> LPPosition split 50/50"""
    match = LP_WORTH.search(text) or LP_ALT.search(text)
    if not match:
        return None
    value = float(match.group(3).replace(",", ""))
    return LPPosition(
        base_token=match.group(1).upper(),
        quote_token=match.group(2).upper(),
        value=value,
        base_amount=value / 2,
        quote_amount=value / 2,
        protocol="auto-detected",
    )


def parse_symbol(text: str) -> Optional[str]:
    match = SYMBOL.search(text)
    return match.group(1).upper() if match else None


def parse_strategy(text: str) -> Optional[str]:
    match = STRATEGY.search(text)
    return match.group(1).strip() if match else None
