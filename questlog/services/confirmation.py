"""Confirm/alert capability, swapped per front end."""
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class ConfirmationPrompt(ABC):
    """Asks the user to confirm an action and shows error alerts."""

    @abstractmethod
    async def confirm(self, title: str, message: str) -> bool:
        """Return True when the user accepts."""
        pass

    @abstractmethod
    async def alert(self, title: str, message: str) -> None:
        """Show a message the user has to acknowledge."""
        pass


class PresetConfirmation(ConfirmationPrompt):
    """
    Answers every confirmation with a fixed answer.

    HTTP requests carry the user's answer in the request body, so the prompt
    has already been answered by the time the service runs.
    """

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.alerts: List[Tuple[str, str]] = []

    async def confirm(self, title: str, message: str) -> bool:
        logger.debug(f"Preset confirmation {title=} answer={self.answer}")
        return self.answer

    async def alert(self, title: str, message: str) -> None:
        self.alerts.append((title, message))
        logger.info(f"Alert: {title}: {message}")


class RecordingPrompt(ConfirmationPrompt):
    """Headless prompt that records every question and alert.

    ``answers`` is either one answer for every confirmation or a sequence
    consumed in order; once the sequence runs out ``auto_confirm`` is used.
    """

    def __init__(self, answers: Union[bool, Iterable[bool]] = True, auto_confirm: bool = True):
        if isinstance(answers, bool):
            self._answers: List[bool] = []
            self.auto_confirm = answers
        else:
            self._answers = list(answers)
            self.auto_confirm = auto_confirm
        self.confirmations: List[Tuple[str, str]] = []
        self.alerts: List[Tuple[str, str]] = []

    async def confirm(self, title: str, message: str) -> bool:
        self.confirmations.append((title, message))
        if self._answers:
            return self._answers.pop(0)
        return self.auto_confirm

    async def alert(self, title: str, message: str) -> None:
        self.alerts.append((title, message))


ConfirmCallback = Callable[[str, str], Union[bool, Awaitable[bool]]]
AlertCallback = Callable[[str, str], Union[None, Awaitable[None]]]


class CallbackConfirmation(ConfirmationPrompt):
    """Adapts plain (sync or async) callables from an embedding front end."""

    def __init__(self, on_confirm: ConfirmCallback, on_alert: Optional[AlertCallback] = None):
        self._on_confirm = on_confirm
        self._on_alert = on_alert

    async def confirm(self, title: str, message: str) -> bool:
        answer = self._on_confirm(title, message)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def alert(self, title: str, message: str) -> None:
        if self._on_alert is None:
            logger.warning(f"Unhandled alert: {title}: {message}")
            return
        result = self._on_alert(title, message)
        if inspect.isawaitable(result):
            await result
