"""Run user-triggered actions and turn domain errors into alerts."""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from questlog.services.confirmation import ConfirmationPrompt
from questlog.services.errors import QuestLogError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ActionOutcome(Generic[T]):
    """What happened to a user-triggered action."""
    success: bool
    result: Optional[T] = None
    error: Optional[QuestLogError] = None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.error_code if self.error else None


class ActionRunner:
    """
    Executes actions for dialog-driven front ends.

    Domain errors never escape: they are shown through the prompt and
    returned in the outcome. The prior view state is untouched because the
    services only apply state after a successful remote call. No retry is
    attempted; the user may trigger the action again.
    """

    def __init__(self, prompt: ConfirmationPrompt):
        self.prompt = prompt

    async def run(self, title: str, action: Callable[[], Awaitable[T]]) -> ActionOutcome[T]:
        try:
            result = await action()
        except QuestLogError as e:
            logger.warning(f"Action {title!r} failed: {e.error_code}: {e.message}")
            await self.prompt.alert(title, e.message)
            return ActionOutcome(success=False, error=e)
        return ActionOutcome(success=True, result=result)

    async def run_many(self, title: str, *actions: Callable[[], Awaitable[Any]]) -> list[ActionOutcome[Any]]:
        """Run actions one after another, stopping at the first failure."""
        outcomes: list[ActionOutcome[Any]] = []
        for action in actions:
            outcome = await self.run(title, action)
            outcomes.append(outcome)
            if not outcome.success:
                break
        return outcomes
