import asyncio
import inspect
from typing import Any, Callable, Optional

from loguru import logger

from podcast_progress_client.models import JobOutcome, OutcomeKind


class OutcomeChannel:
    """Single-fire delivery of a tracker's terminal outcome.

    The first call to ``settle`` or ``abandon`` wins and every later call is a
    no-op, so ``on_complete`` and ``on_error`` fire at most once and never both.
    Awaiting ``wait`` yields the settled outcome, or ``None`` once abandoned.
    """

    def __init__(
        self,
        on_complete: Optional[Callable[[Any], Any]] = None,
        on_error: Optional[Callable[[str], Any]] = None,
    ):
        self.on_complete = on_complete
        self.on_error = on_error
        self.logger = logger
        self._future: Optional[asyncio.Future] = None
        self._outcome: Optional[JobOutcome] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def outcome(self) -> Optional[JobOutcome]:
        return self._outcome

    def _ensure_future(self) -> asyncio.Future:
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
            if self._closed:
                self._future.set_result(self._outcome)
        return self._future

    async def settle(self, outcome: JobOutcome) -> bool:
        if self._closed:
            return False
        self._closed = True
        self._outcome = outcome
        if self._future is not None:
            self._future.set_result(outcome)
        await self._dispatch(outcome)
        return True

    def abandon(self) -> bool:
        if self._closed:
            return False
        self._closed = True
        if self._future is not None:
            self._future.set_result(None)
        return True

    async def wait(self) -> Optional[JobOutcome]:
        return await asyncio.shield(self._ensure_future())

    async def _dispatch(self, outcome: JobOutcome) -> None:
        if outcome.kind is OutcomeKind.completed:
            callback, argument = self.on_complete, outcome.result
        else:
            callback, argument = self.on_error, outcome.error_message
        if callback is None:
            return

        try:
            result = callback(argument)
            if inspect.isawaitable(result):
                await result
        except Exception:
            self.logger.exception(f"{outcome.kind.value} callback raised")
