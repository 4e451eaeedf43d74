import asyncio
import inspect
from typing import Any, Callable, Optional

from loguru import logger

from podcast_progress_client import messages
from podcast_progress_client.completion import CompletionResolver
from podcast_progress_client.errors import FailureKind, classify_failure, failure_message
from podcast_progress_client.models import (
    JobOutcome,
    JobStatus,
    ProgressSnapshot,
    TrackerState,
)
from podcast_progress_client.outcome import OutcomeChannel


class ProgressStateMachine:
    """Applies poll results to a job's progress.

    ``processing`` may repeat across any number of polls; ``completed``,
    ``failed`` and terminal fetch failures are absorbing. Every input carries
    the sequence number of the poll that produced it, and an input is only
    accepted while the machine is active and its number is newer than the last
    applied one, so late or reordered responses can never reopen a finished
    job or overwrite a fresher snapshot.
    """

    def __init__(
        self,
        job_id: str,
        resolver: CompletionResolver,
        channel: OutcomeChannel,
        on_stop: Optional[Callable[[], Any]] = None,
        on_progress: Optional[Callable[[ProgressSnapshot], Any]] = None,
        locale: str = messages.DEFAULT_LOCALE,
    ):
        self.job_id = job_id
        self.resolver = resolver
        self.channel = channel
        self.on_stop = on_stop
        self.on_progress = on_progress
        self.locale = locale
        self.logger = logger

        self._state = TrackerState.active
        self._snapshot: Optional[ProgressSnapshot] = None
        self._last_sequence = 0
        self._last_error: Optional[str] = None
        self._claimed = False
        self._settlement: Optional[asyncio.Task] = None

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TrackerState.active

    @property
    def snapshot(self) -> Optional[ProgressSnapshot]:
        return self._snapshot

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def settlement(self) -> Optional[asyncio.Task]:
        return self._settlement

    def stop(self) -> bool:
        """Move to the stopped lifecycle state; returns False if already stopped"""
        if self._state is TrackerState.stopped:
            return False
        self._state = TrackerState.stopped
        if not self._claimed:
            self.channel.abandon()
        if self.on_stop is not None:
            self.on_stop()
        return True

    def _accepts(self, sequence: int) -> bool:
        if self._state is not TrackerState.active:
            self.logger.debug(f"Discarding poll #{sequence} for {self.job_id}: tracker stopped")
            return False
        if sequence <= self._last_sequence:
            self.logger.debug(
                f"Discarding stale poll #{sequence} for {self.job_id} "
                f"(already applied #{self._last_sequence})"
            )
            return False
        return True

    def _claim_terminal(self, sequence: int) -> None:
        self._last_sequence = sequence
        self._claimed = True
        self.stop()

    async def handle_snapshot(self, sequence: int, snapshot: ProgressSnapshot) -> None:
        if not self._accepts(sequence):
            return

        self._last_sequence = sequence
        self._snapshot = snapshot
        self._last_error = None

        if snapshot.status is JobStatus.completed:
            self._claim_terminal(sequence)
            self.logger.info(f"Podcast {self.job_id} completed")
            self._settlement = asyncio.create_task(self._complete(snapshot))
        elif snapshot.status is JobStatus.failed:
            self._claim_terminal(sequence)
            message = snapshot.error_message or messages.generation_failed_message(
                self.locale
            )
            self.logger.error(f"Podcast {self.job_id} failed: {message}")
            self._settlement = asyncio.create_task(
                self.channel.settle(JobOutcome.failed(message))
            )
        else:
            self.logger.debug(
                f"Podcast {self.job_id} at {snapshot.progress_percentage}%: "
                f"{snapshot.current_step or '-'}"
            )

        await self._notify_progress(snapshot)

    def handle_failure(self, sequence: int, error: BaseException) -> None:
        if not self._accepts(sequence):
            return

        message = failure_message(error, self.locale)
        if classify_failure(error) is FailureKind.transient:
            self._last_error = message
            self.logger.warning(
                f"Polling {self.job_id} failed, retrying on next tick: {message}"
            )
            return

        self._claim_terminal(sequence)
        self.logger.error(f"Stopped polling {self.job_id}: {message}")
        self._settlement = asyncio.create_task(
            self.channel.settle(JobOutcome.failed(message))
        )

    async def wait_settled(self, timeout: Optional[float] = None) -> None:
        """Wait for the terminal outcome to be delivered, cancelling it after timeout"""
        settlement = self._settlement
        if settlement is None or settlement is asyncio.current_task():
            return
        done, _ = await asyncio.wait({settlement}, timeout=timeout)
        if not done:
            self.logger.warning(
                f"Outcome for {self.job_id} still pending after {timeout}s, cancelling"
            )
            settlement.cancel()
            await asyncio.gather(settlement, return_exceptions=True)
            if not self.channel.closed:
                self.channel.abandon()

    async def _complete(self, snapshot: ProgressSnapshot) -> None:
        try:
            result = await self.resolver.resolve(self.job_id, snapshot)
        except asyncio.CancelledError:
            await self.channel.settle(JobOutcome.completed(snapshot))
            raise
        await self.channel.settle(JobOutcome.completed(result))

    async def _notify_progress(self, snapshot: ProgressSnapshot) -> None:
        if self.on_progress is None:
            return
        try:
            result = self.on_progress(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception:
            self.logger.exception(f"Progress callback for {self.job_id} raised")
