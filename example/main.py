import asyncio

from podcast_progress_client.messages import (
    display_step,
    format_estimated_time,
    motivational_message,
    status_display_name,
)
from podcast_progress_client.models import OutcomeKind, TrackerConfig
from podcast_progress_client.progress_tracker import PodcastProgressTracker
from progress_server import PodcastProgressServer


def progress_changed(snapshot):
    print(
        f"[{status_display_name(snapshot.status)}] {snapshot.progress_percentage}% "
        f"{display_step(snapshot)}"
    )
    if not snapshot.status.is_terminal:
        print(f"  {motivational_message(snapshot.progress_percentage)}")
        eta = format_estimated_time(snapshot.estimated_completion)
        if eta:
            print(f"  {eta}")


async def main():
    PORT = 8000
    server = PodcastProgressServer(completion_time=10.0, failure_rate=0.02)
    server.add_job("demo-podcast", title="Weekly tech digest")
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    config = TrackerConfig(poll_interval=1.0, request_retries=1)

    async with PodcastProgressTracker(
        "demo-podcast",
        base_url=f"http://localhost:{PORT}",
        config=config,
        on_progress=progress_changed,
    ) as tracker:
        outcome = await tracker.wait()

    if outcome is None:
        print("Tracking was cancelled")
    elif outcome.kind is OutcomeKind.completed:
        print(f"Podcast ready: {outcome.result}")
    else:
        print(f"Podcast failed: {outcome.error_message}")
    print(f"Polls issued: {tracker.poll_count}")

    await asyncio.sleep(1)


if __name__ == "__main__":
    asyncio.run(main())
