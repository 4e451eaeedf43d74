import asyncio
from typing import Any, Callable, Optional

from loguru import logger

from podcast_progress_client.completion import CompletionResolver
from podcast_progress_client.models import (
    JobOutcome,
    ProgressSnapshot,
    TrackerConfig,
    TrackerState,
)
from podcast_progress_client.outcome import OutcomeChannel
from podcast_progress_client.state_machine import ProgressStateMachine
from podcast_progress_client.status_fetcher import HttpStatusFetcher, StatusFetcher


class PodcastProgressTracker:
    """Polls a podcast generation job until it completes, fails or is cancelled.

    The first poll is issued as soon as the tracker starts and then on a fixed
    cadence of ``config.poll_interval`` seconds. Polls are not serialized: a
    slow request never delays the next tick. The outcome is delivered exactly
    once through ``wait()`` and the optional ``on_complete`` / ``on_error``
    callbacks.

    Use it as an async context manager so the timer, in-flight requests and
    the HTTP session are always released::

        async with PodcastProgressTracker(job_id, base_url=url) as tracker:
            outcome = await tracker.wait()
    """

    def __init__(
        self,
        job_id: str,
        base_url: Optional[str] = None,
        config: Optional[TrackerConfig] = None,
        fetcher: Optional[StatusFetcher] = None,
        on_complete: Optional[Callable[[Any], Any]] = None,
        on_error: Optional[Callable[[str], Any]] = None,
        on_progress: Optional[Callable[[ProgressSnapshot], Any]] = None,
    ):
        if not job_id:
            raise ValueError("job_id is required")
        if fetcher is None and not base_url:
            raise ValueError("Either base_url or fetcher is required")

        self._job_id = job_id
        self.config = config or TrackerConfig()
        self.logger = logger

        self._owned_fetcher: Optional[HttpStatusFetcher] = None
        if fetcher is None:
            fetcher = HttpStatusFetcher(base_url, self.config)
            self._owned_fetcher = fetcher
        self.fetcher = fetcher

        self._channel = OutcomeChannel(on_complete=on_complete, on_error=on_error)
        self._machine = ProgressStateMachine(
            job_id,
            CompletionResolver(fetcher),
            self._channel,
            on_stop=self._stop_timer,
            on_progress=on_progress,
            locale=self.config.locale,
        )

        self._timer: Optional[asyncio.Task] = None
        self._polls: set = set()
        self._sequence = 0
        self._started = False
        self._closed = False

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def state(self) -> TrackerState:
        return self._machine.state

    @property
    def snapshot(self) -> Optional[ProgressSnapshot]:
        return self._machine.snapshot

    @property
    def last_error(self) -> Optional[str]:
        return self._machine.last_error

    @property
    def outcome(self) -> Optional[JobOutcome]:
        return self._channel.outcome

    @property
    def poll_count(self) -> int:
        return self._sequence

    async def __aenter__(self) -> "PodcastProgressTracker":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def start(self) -> None:
        if self._started:
            return
        self._started = True

        try:
            if self._owned_fetcher is not None:
                await self._owned_fetcher.open()
        except BaseException:
            await self.aclose()
            raise

        if not self._machine.is_active:
            return
        self._timer = asyncio.create_task(self._run())
        self.logger.info(
            f"Tracking podcast {self.job_id} every {self.config.poll_interval}s"
        )

    def cancel(self) -> None:
        """Stop polling; late responses are discarded and no callback fires afterwards"""
        if self._machine.stop():
            self.logger.info(f"Cancelled tracking of podcast {self.job_id}")

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.cancel()

        current = asyncio.current_task()
        pending = [task for task in self._polls if task is not current and not task.done()]
        for task in pending:
            task.cancel()
        if self._timer is not None and self._timer is not current:
            pending.append(self._timer)
        try:
            await asyncio.gather(*pending, return_exceptions=True)
            await self._machine.wait_settled(self.config.close_timeout)
        finally:
            if self._owned_fetcher is not None:
                await self._owned_fetcher.close()

    async def wait(self) -> Optional[JobOutcome]:
        """The terminal outcome, or None if the tracker was cancelled first"""
        return await self._channel.wait()

    def _stop_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while self._machine.is_active:
            self._issue_poll()
            next_tick = max(next_tick + self.config.poll_interval, loop.time())
            await asyncio.sleep(next_tick - loop.time())

    def _issue_poll(self) -> None:
        self._sequence += 1
        task = asyncio.create_task(self._poll(self._sequence))
        self._polls.add(task)
        task.add_done_callback(self._polls.discard)

    async def _poll(self, sequence: int) -> None:
        self.logger.debug(f"Polling podcast {self.job_id} (#{sequence})")
        try:
            snapshot = await self.fetcher.fetch_status(self.job_id)
        except Exception as e:
            self._machine.handle_failure(sequence, e)
        else:
            await self._machine.handle_snapshot(sequence, snapshot)
