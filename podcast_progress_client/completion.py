from typing import Any

from loguru import logger

from podcast_progress_client.models import ProgressSnapshot
from podcast_progress_client.status_fetcher import StatusFetcher


class CompletionResolver:
    """Looks up the full podcast record once a job has completed.

    Best effort: when the list request fails or the job is missing from it,
    the last known snapshot is handed back instead.
    """

    def __init__(self, fetcher: StatusFetcher, id_field: str = "podcastId"):
        self.fetcher = fetcher
        self.id_field = id_field
        self.logger = logger

    async def resolve(self, job_id: str, snapshot: ProgressSnapshot) -> Any:
        try:
            records = await self.fetcher.list_jobs()
        except Exception as e:
            self.logger.warning(f"Failed to fetch completed podcast {job_id}: {e}")
            return snapshot

        for record in records:
            if isinstance(record, dict) and record.get(self.id_field) == job_id:
                return record

        self.logger.warning(f"Completed podcast {job_id} is missing from the podcast list")
        return snapshot
