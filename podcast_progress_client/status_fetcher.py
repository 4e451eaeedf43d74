import asyncio
from typing import Any, Optional, Protocol
from urllib.parse import quote

import aiohttp
from loguru import logger
from pydantic import ValidationError

from podcast_progress_client.errors import (
    FetchFailure,
    InvalidTerminalResponseError,
    MalformedResponseError,
    UnrecognizedStatusError,
    server_error_text,
)
from podcast_progress_client.models import JobStatus, ProgressSnapshot, TrackerConfig

_STATUS_VALUES = frozenset(status.value for status in JobStatus)


class StatusFetcher(Protocol):
    async def fetch_status(self, job_id: str) -> ProgressSnapshot:
        ...

    async def list_jobs(self) -> list:
        ...


def parse_status_payload(
    data: Any, job_id: str, http_status: Optional[int] = None
) -> ProgressSnapshot:
    """Turn a status endpoint body into a snapshot or raise a FetchFailure"""
    if not isinstance(data, dict):
        raise MalformedResponseError(
            "Status response is not a JSON object", status=http_status, payload=data
        )

    if not data.get("success"):
        raise FetchFailure(
            data.get("error") or "Failed to fetch progress",
            status=http_status,
            payload=data,
        )

    reported_status = data.get("status")
    if str(reported_status) not in _STATUS_VALUES:
        raise UnrecognizedStatusError(reported_status, status=http_status, payload=data)

    body = dict(data)
    body.setdefault("podcastId", job_id)
    try:
        return ProgressSnapshot.model_validate(body)
    except ValidationError as e:
        if JobStatus(str(reported_status)).is_terminal:
            # the job has finished even though the rest of the body is unreadable
            error_message = data.get("errorMessage")
            if not isinstance(error_message, str) or not error_message:
                error_message = f"Unreadable {reported_status} status payload"
            raise InvalidTerminalResponseError(
                error_message,
                status=http_status,
                payload=data,
            ) from e
        raise MalformedResponseError(
            f"Malformed status payload ({e.error_count()} invalid field(s))",
            status=http_status,
            payload=data,
        ) from e


class HttpStatusFetcher:
    """Reads job status and the job list from the podcast API over aiohttp"""

    def __init__(
        self,
        base_url: str,
        config: Optional[TrackerConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.config = config or TrackerConfig()
        self.logger = logger
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "HttpStatusFetcher":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        if self._session is not None:
            return
        headers = {"Accept": "application/json"}
        if self.config.auth_token:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        self._session = aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
        )
        self._owns_session = True

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def fetch_status(self, job_id: str) -> ProgressSnapshot:
        path = f"/api/podcasts/{quote(job_id, safe='')}/status"
        data, http_status = await self._get_json(path)
        return parse_status_payload(data, job_id, http_status)

    async def list_jobs(self) -> list:
        data, http_status = await self._get_json("/api/podcasts")
        podcasts = data.get("podcasts") if isinstance(data, dict) else None
        if not isinstance(podcasts, list):
            raise MalformedResponseError(
                "Podcast list response has no 'podcasts' array",
                status=http_status,
                payload=data,
            )
        return podcasts

    async def _get_json(self, path: str) -> tuple:
        attempt = 0
        while True:
            try:
                return await self._get_json_once(path)
            except FetchFailure as failure:
                if not self._should_retry(failure, attempt):
                    raise
                attempt += 1
                await self._wait_before_retry(attempt)

    async def _get_json_once(self, path: str) -> tuple:
        """Performs a single GET and returns the decoded body with its HTTP status"""
        if self._session is None:
            raise RuntimeError("HttpStatusFetcher is not open")
        url = f"{self.base_url}{path}"

        try:
            async with self._session.get(url) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None

                if response.status >= 400:
                    failure = FetchFailure(
                        server_error_text(data) or f"HTTP {response.status}",
                        status=response.status,
                        payload=data,
                    )
                    self.logger.error(
                        f"HTTP error {response.status} at {url}: {failure.message}"
                    )
                    raise failure

                if data is None:
                    raise MalformedResponseError(
                        f"Non-JSON response from {url}", status=response.status
                    )
                return data, response.status
        except asyncio.TimeoutError as e:
            self.logger.error(f"Request to {url} timed out")
            raise FetchFailure("Request timeout", status=408) from e
        except aiohttp.ClientError as e:
            self.logger.error(f"Network error at {url}: {e}")
            raise FetchFailure(f"Network error: {e}") from e

    def _should_retry(self, failure: FetchFailure, attempt: int) -> bool:
        if attempt >= self.config.request_retries:
            return False
        if failure.status is None or failure.status == 408:
            return True
        return not 400 <= failure.status < 500

    def _calculate_delay(self, attempt: int) -> float:
        """Calculates the retry delay using exponential backoff with an optional jitter"""
        delay = min(
            self.config.retry_delay * (self.config.backoff_factor ** (attempt - 1)),
            self.config.max_retry_delay,
        )

        # Add random jitter between 0-20% of the delay
        if self.config.jitter:
            delay *= 1 + 0.2 * (asyncio.get_running_loop().time() % 1)
        return delay

    async def _wait_before_retry(self, attempt: int) -> None:
        delay = self._calculate_delay(attempt)
        self.logger.debug(f"Request failed, waiting {delay:.2f}s before retry {attempt}")
        await asyncio.sleep(delay)
