"""
Yield Delta Agent - tool-calling agent for DeFi operations on Sei
"""

from typing import List, Optional

from loguru import logger
from pydantic import Field
from spoon_ai.agents import ToolCallAgent
from spoon_ai.tools import ToolManager

from .base import ActionResult, ActionTool
from .context import YieldDeltaContext
from .strategies import (AMMOptimizeTool, FundingArbitrageTool, ILProtectionTool, PortfolioRebalanceTool)
from .trading import DragonSwapTool, PerpsTool, TransferTool


def build_actions(context: Optional[YieldDeltaContext] = None) -> List[ActionTool]:
    """All actions sharing one context, most specific validators first"""
    context = context or YieldDeltaContext()
    return [
        TransferTool(context=context),
        DragonSwapTool(context=context),
        FundingArbitrageTool(context=context),
        ILProtectionTool(context=context),
        AMMOptimizeTool(context=context),
        PortfolioRebalanceTool(context=context),
        PerpsTool(context=context),
    ]


class YieldDeltaAgent(ToolCallAgent):
    """AI agent that executes DeFi actions on the Sei EVM"""

    name: str = "yield_delta_agent"
    description: str = """
    DeFi agent for the Sei network. Transfers SEI, swaps on DragonSwap, trades perpetuals,
    runs funding-rate arbitrage, rebalances portfolios, hedges impermanent loss and
    manages concentrated liquidity ranges.
    """

    system_prompt: str = """You are a DeFi execution agent for the Sei EVM network.

    Each tool takes the user's request as a single natural-language message. Pick the
    one tool that matches the request and pass the message through unchanged:
    - SEI_TOKEN_TRANSFER: send SEI to a 0x or sei1 address
    - DRAGONSWAP_TRADE: swap tokens on DragonSwap
    - PERPS_TRADE: open or close perpetual positions
    - FUNDING_ARBITRAGE: scan, execute or check funding-rate arbitrage
    - PORTFOLIO_REBALANCE: analyze allocations and rebalance
    - IL_PROTECTION: assess and hedge impermanent loss on LP positions
    - AMM_OPTIMIZE: rebalance concentrated liquidity ranges

    Report transaction hashes exactly as returned. Never invent prices or balances.
    """

    max_steps: int = 5

    available_tools: ToolManager = Field(default_factory=lambda: ToolManager(build_actions()))

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        logger.info(f"Initialized {self.name} with {len(self.available_tools.tools)} tools")

    @classmethod
    def with_context(cls, context: YieldDeltaContext, **kwargs) -> "YieldDeltaAgent":
        return cls(available_tools=ToolManager(build_actions(context)), **kwargs)

    def actions(self) -> List[ActionTool]:
        return [t for t in self.available_tools.tools if isinstance(t, ActionTool)]

    async def dispatch(self, message: str) -> Optional[ActionResult]:
        """Route a message to the first action whose validator accepts it, without the LLM"""
        for action in self.actions():
            if action.validate_message(message):
                logger.info(f"Dispatching to {action.name}")
                return await action.handle(message)
        return None
