import random
from datetime import datetime, timedelta, timezone
from typing import Optional

from aiohttp import web
from loguru import logger

PROCESSING_STEPS = [
    (0, "Analyzing the source content"),
    (30, "Writing the script"),
    (60, "Generating the voices"),
    (85, "Mixing the audio"),
]


class PodcastProgressServer:
    """Mock podcast API serving job status and the podcast list"""

    def __init__(
        self,
        completion_time: float = 10.0,
        failure_rate: float = 0.0,
        error_message: str = "Podcast generation failed",
    ):
        self.completion_time = completion_time
        self.failure_rate = failure_rate
        self.error_message = error_message
        self.jobs = {}
        self.forbidden = set()
        self.unknown_status: Optional[str] = None
        self.transient_errors = 0
        self.list_available = True
        self.status_requests = 0
        self.runner: Optional[web.AppRunner] = None
        self.port: Optional[int] = None
        self.app = web.Application()
        self.app.router.add_get("/api/podcasts/{podcast_id}/status", self.handle_status)
        self.app.router.add_get("/api/podcasts", self.handle_list)
        self.logger = logger

    def add_job(self, podcast_id: str, title: Optional[str] = None) -> None:
        self.jobs[podcast_id] = {
            "title": title or f"Podcast {podcast_id}",
            "started": None,
            "failed": False,
        }

    def _elapsed(self, job: dict) -> float:
        if job["started"] is None:
            job["started"] = datetime.now(timezone.utc)
        return (datetime.now(timezone.utc) - job["started"]).total_seconds()

    def _status_body(self, podcast_id: str, status: str, percentage: int, step: str, **extra):
        body = {
            "success": True,
            "podcastId": podcast_id,
            "status": status,
            "progressPercentage": percentage,
            "currentStep": step,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
        body.update(extra)
        return body

    async def handle_status(self, request):
        podcast_id = request.match_info["podcast_id"]
        self.status_requests += 1

        if podcast_id in self.forbidden:
            self.logger.info(f"Returning 403 for {podcast_id}")
            return web.json_response({"success": False, "error": "Access denied"}, status=403)

        job = self.jobs.get(podcast_id)
        if job is None:
            self.logger.info(f"Returning 404 for {podcast_id}")
            return web.json_response(
                {"success": False, "error": "Podcast not found"}, status=404
            )

        if self.transient_errors > 0:
            self.transient_errors -= 1
            self.logger.info("Returning 500 status")
            return web.json_response(
                {"success": False, "error": "Internal server error"}, status=500
            )

        elapsed = self._elapsed(job)

        if self.unknown_status is not None:
            return web.json_response(
                self._status_body(podcast_id, self.unknown_status, 0, "")
            )

        if job["failed"] or random.random() < self.failure_rate:
            job["failed"] = True
            self.logger.info("Returning failed status")
            return web.json_response(
                self._status_body(
                    podcast_id, "failed", 0, "", errorMessage=self.error_message
                )
            )

        if elapsed >= self.completion_time:
            self.logger.info("Returning completed status")
            return web.json_response(
                self._status_body(podcast_id, "completed", 100, "Done")
            )

        percentage = min(int(elapsed / self.completion_time * 100), 99)
        step = [label for threshold, label in PROCESSING_STEPS if percentage >= threshold][-1]
        remaining = timedelta(seconds=self.completion_time - elapsed)
        self.logger.info(f"Returning processing status (elapsed: {elapsed:.1f}s)")
        return web.json_response(
            self._status_body(
                podcast_id,
                "processing",
                percentage,
                step,
                estimatedCompletion=(datetime.now(timezone.utc) + remaining).isoformat(),
            )
        )

    async def handle_list(self, request):
        if not self.list_available:
            return web.json_response({"error": "Failed to list podcasts"}, status=500)

        podcasts = [
            {
                "podcastId": podcast_id,
                "title": job["title"],
                "audioUrl": f"https://cdn.example.com/podcasts/{podcast_id}.mp3",
            }
            for podcast_id, job in self.jobs.items()
        ]
        return web.json_response({"podcasts": podcasts})

    async def start(self, port: int = 8080, host: str = "localhost"):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, host, port)
        await site.start()
        # port 0 binds an ephemeral port
        self.port = self.runner.addresses[0][1]
        self.logger.info(f"Server started on port {self.port}")
        return site

    async def stop(self):
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
