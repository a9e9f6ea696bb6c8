"""
Action tool base - natural-language validation plus a single terminal result
"""

import inspect
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from spoon_ai.tools.base import BaseTool

from .context import YieldDeltaContext

MESSAGE_PARAMETERS = {
    "type": "object",
    "properties": {
        "message": {
            "type": "string",
            "description": "The user's request in natural language",
        }
    },
    "required": ["message"],
}


class ActionResult(BaseModel):
    text: str
    content: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    success: bool = True

    @classmethod
    def failure(cls, text: str, error: str, **content) -> "ActionResult":
        return cls(text=text, content=content, error=error, success=False)


class ActionTool(BaseTool):
    """
    A chat action exposed to the agent as a tool.

    Subclasses implement ``matches`` and ``run``. ``handle`` turns any
    exception into a failed ActionResult and calls the callback exactly once.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    parameters: dict = MESSAGE_PARAMETERS
    similes: List[str] = Field(default_factory=list)
    context: YieldDeltaContext = Field(default_factory=YieldDeltaContext, exclude=True)

    def matches(self, text: str) -> bool:
        raise NotImplementedError

    async def run(self, text: str) -> ActionResult:
        raise NotImplementedError

    def validate_message(self, message: str) -> bool:
        return self.matches((message or "").lower())

    async def handle(self, message: str, callback: Optional[Callable[[ActionResult], Any]] = None) -> ActionResult:
        try:
            result = await self.run(message or "")
        except Exception as e:
            logger.error(f"{self.name} failed: {e}")
            result = ActionResult.failure(f"❌ {self.name} failed: {e}", error=str(e))
        if callback is not None:
            outcome = callback(result)
            if inspect.isawaitable(outcome):
                await outcome
        return result

    async def execute(self, message: str) -> Dict[str, Any]:
        return (await self.handle(message)).model_dump()
