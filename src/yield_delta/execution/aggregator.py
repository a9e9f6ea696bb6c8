"""
DEX aggregator - compares DragonSwap and Symphony quotes and trades on the best venue
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from loguru import logger

from ..data.models import SwapParams, SwapQuote
from ..errors import InvalidParametersError, TransactionError


@dataclass
class BestQuote:
    best: SwapQuote
    quotes: List[SwapQuote]
    savings: float  # % more output than the worst quote


class DexAggregator:
    """
    Quote fan-out across DEX venues keyed by exchange name.

    Exposes ``get_quote`` / ``execute_swap`` like a single DEX client, so it
    can stand in wherever a DragonSwapAPI is expected.
    """

    def __init__(self, venues: Mapping[str, Any]):
        self.venues = dict(venues)

    async def get_best_quote(self, token_in: str, token_out: str, amount_in: float) -> BestQuote:
        names = list(self.venues)
        results = await asyncio.gather(
            *(self.venues[n].get_quote(token_in, token_out, amount_in) for n in names),
            return_exceptions=True,
        )
        quotes, errors = [], []
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                errors.append(f"{name}: {result}")
            elif result is None or result.amount_out <= 0:
                errors.append(f"{name}: invalid quote response")
            else:
                quotes.append(result.model_copy(update={"exchange": name}))
        if not quotes:
            raise TransactionError(f"All DEX quotes failed: {', '.join(errors)}")
        if errors:
            logger.warning(f"Some DEX quotes failed: {', '.join(errors)}")

        best = max(quotes, key=lambda q: q.amount_out)
        worst = min(quotes, key=lambda q: q.amount_out)
        savings = (best.amount_out - worst.amount_out) / worst.amount_out * 100 if len(quotes) > 1 else 0.0
        logger.info(f"Best quote for {token_in}->{token_out}: {best.exchange} ({savings:.2f}% better)")
        return BestQuote(best=best, quotes=quotes, savings=savings)

    async def get_quote(self, token_in: str, token_out: str, amount_in: float) -> Optional[SwapQuote]:
        try:
            return (await self.get_best_quote(token_in, token_out, amount_in)).best
        except TransactionError as e:
            logger.warning(str(e))
            return None

    async def execute_swap(self, params: SwapParams, exchange: Optional[str] = None) -> str:
        """Swap on ``exchange``, or on whichever venue quotes the most output"""
        if exchange is None:
            exchange = (await self.get_best_quote(params.token_in, params.token_out, params.amount_in)).best.exchange
        venue = self.venues.get(exchange)
        if venue is None:
            raise InvalidParametersError(f"Unsupported exchange: {exchange}")
        return await venue.execute_swap(params)

    async def get_market_analysis(self, token_in: str, token_out: str, amount_in: float) -> Dict[str, Any]:
        result = await self.get_best_quote(token_in, token_out, amount_in)
        best_amount = result.best.amount_out
        comparison = {
            q.exchange: {"amount_out": q.amount_out,
                         "difference": f"{(q.amount_out - best_amount) / best_amount * 100:.2f}%"}
            for q in result.quotes
        }
        return {
            "best": result.best.model_dump(),
            "comparison": comparison,
            "savings": round(result.savings, 2),
            "liquidity": analyze_liquidity(result.quotes),
            "recommendation": recommend(result),
        }


def analyze_liquidity(quotes: List[SwapQuote]) -> str:
    avg_impact = sum(q.price_impact for q in quotes) / len(quotes)
    if avg_impact < 1:
        return "Excellent liquidity across all DEXes"
    if avg_impact < 3:
        return "Good liquidity with minimal slippage"
    if avg_impact < 5:
        return "Moderate liquidity - consider smaller trades"
    return "Limited liquidity - high price impact expected"


def recommend(result: BestQuote) -> str:
    if result.savings > 2:
        return f"Strong recommendation: use {result.best.exchange} for {result.savings:.2f}% better rate"
    if result.savings > 0.5:
        return f"Moderate recommendation: {result.best.exchange} offers {result.savings:.2f}% better rate"
    return "All DEXes offer similar rates - choose based on gas preferences"
