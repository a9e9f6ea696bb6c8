"""
Plugin surface - actions, oracle and evaluators for a host agent
"""

from functools import cached_property
from typing import Any, Callable, Dict, List, Optional

from .agents.base import ActionTool
from .agents.context import YieldDeltaContext
from .agents.yield_delta_agent import build_actions
from .amm import evaluate_amm_risk
from .data.pipelines.price_oracle import SeiPriceOracle


class YieldDeltaPlugin:
    name = "yield-delta"
    description = "Sei DeFi actions: transfers, DragonSwap, perps, funding arbitrage, IL protection and AMM ranges"

    def __init__(self, context: Optional[YieldDeltaContext] = None):
        self._context = context

    @property
    def context(self) -> YieldDeltaContext:
        if self._context is None:
            self._context = YieldDeltaContext()
        return self._context

    @cached_property
    def actions(self) -> List[ActionTool]:
        return build_actions(self.context)

    @property
    def oracle(self) -> SeiPriceOracle:
        return self.context.oracle

    @property
    def evaluators(self) -> List[Callable[..., List[Dict[str, Any]]]]:
        return [evaluate_amm_risk]

    def evaluate_amm(self) -> List[Dict[str, Any]]:
        return evaluate_amm_risk(self.context.amm)


yield_delta_plugin = YieldDeltaPlugin()
