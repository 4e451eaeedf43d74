from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from podcast_progress_client.models import JobStatus, ProgressSnapshot, TrackerConfig
from progress_server import PodcastProgressServer

JOB_ID = "job-1"


class ScriptedFetcher:
    """Returns (or raises) scripted status results; the last entry repeats"""

    def __init__(self, script, jobs=None, list_error=None):
        self.script = list(script)
        self.jobs = jobs if jobs is not None else []
        self.list_error = list_error
        self.calls = 0
        self.list_calls = 0

    async def fetch_status(self, job_id):
        self.calls += 1
        item = self.script[min(self.calls, len(self.script)) - 1]
        if callable(item):
            item = await item()
        if isinstance(item, BaseException):
            raise item
        return item

    async def list_jobs(self):
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return self.jobs


def make_snapshot(status, percentage=0, **fields) -> ProgressSnapshot:
    return ProgressSnapshot(
        job_id=fields.pop("job_id", JOB_ID),
        status=JobStatus(status),
        progress_percentage=percentage,
        updated_at=fields.pop("updated_at", datetime.now(timezone.utc)),
        **fields,
    )


@pytest.fixture
def config() -> TrackerConfig:
    """Fast polling so scheduler tests finish quickly."""
    return TrackerConfig(poll_interval=0.05, request_timeout=2.0)


@pytest_asyncio.fixture
async def server() -> AsyncGenerator[PodcastProgressServer, None]:
    """Start and yield a mock podcast API on an ephemeral port."""
    server_instance = PodcastProgressServer(completion_time=0.5, failure_rate=0.0)
    await server_instance.start(port=0, host="127.0.0.1")
    try:
        yield server_instance
    finally:
        await server_instance.stop()


@pytest.fixture
def base_url(server) -> str:
    return f"http://127.0.0.1:{server.port}"
