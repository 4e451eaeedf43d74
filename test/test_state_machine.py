import pytest
from conftest import JOB_ID, ScriptedFetcher, make_snapshot
from podcast_progress_client.completion import CompletionResolver
from podcast_progress_client.errors import FetchFailure, UnrecognizedStatusError
from podcast_progress_client.models import OutcomeKind, TrackerState
from podcast_progress_client.outcome import OutcomeChannel
from podcast_progress_client.state_machine import ProgressStateMachine


class Recorder:
    def __init__(self):
        self.completed = []
        self.errors = []
        self.stops = 0

    def on_stop(self):
        self.stops += 1


def make_machine(recorder, jobs=None, locale="en") -> ProgressStateMachine:
    channel = OutcomeChannel(
        on_complete=recorder.completed.append, on_error=recorder.errors.append
    )
    resolver = CompletionResolver(ScriptedFetcher([], jobs=jobs or []))
    return ProgressStateMachine(
        JOB_ID, resolver, channel, on_stop=recorder.on_stop, locale=locale
    )


@pytest.mark.asyncio
async def test_starts_unobserved_and_active():
    machine = make_machine(Recorder())

    assert machine.snapshot is None
    assert machine.state is TrackerState.active


@pytest.mark.asyncio
async def test_processing_keeps_machine_active():
    recorder = Recorder()
    machine = make_machine(recorder)

    await machine.handle_snapshot(1, make_snapshot("processing", 10))
    await machine.handle_snapshot(2, make_snapshot("processing", 20))

    assert machine.is_active
    assert machine.snapshot.progress_percentage == 20
    assert recorder.completed == recorder.errors == []
    assert recorder.stops == 0


@pytest.mark.asyncio
async def test_older_response_does_not_overwrite_newer_snapshot():
    machine = make_machine(Recorder())

    await machine.handle_snapshot(2, make_snapshot("processing", 60))
    await machine.handle_snapshot(1, make_snapshot("processing", 30))

    assert machine.snapshot.progress_percentage == 60


@pytest.mark.asyncio
async def test_older_response_is_applied_while_newer_is_in_flight():
    machine = make_machine(Recorder())

    await machine.handle_snapshot(1, make_snapshot("processing", 30))
    await machine.handle_snapshot(3, make_snapshot("processing", 45))

    assert machine.snapshot.progress_percentage == 45


@pytest.mark.asyncio
async def test_completed_is_absorbing():
    recorder = Recorder()
    record = {"podcastId": JOB_ID, "title": "Done"}
    machine = make_machine(recorder, jobs=[record])

    await machine.handle_snapshot(1, make_snapshot("completed", 100))
    await machine.handle_snapshot(2, make_snapshot("failed", 0, error_message="late"))
    machine.handle_failure(3, FetchFailure("gone", status=404))
    await machine.wait_settled()

    assert machine.state is TrackerState.stopped
    assert machine.snapshot.progress_percentage == 100
    assert recorder.completed == [record]
    assert recorder.errors == []
    assert recorder.stops == 1
    assert machine.channel.outcome.kind is OutcomeKind.completed


@pytest.mark.asyncio
async def test_failed_is_absorbing():
    recorder = Recorder()
    machine = make_machine(recorder)

    await machine.handle_snapshot(1, make_snapshot("failed", 0, error_message="boom"))
    await machine.handle_snapshot(2, make_snapshot("completed", 100))
    await machine.wait_settled()

    assert recorder.errors == ["boom"]
    assert recorder.completed == []


@pytest.mark.asyncio
async def test_transient_failure_keeps_polling():
    recorder = Recorder()
    machine = make_machine(recorder)

    machine.handle_failure(1, FetchFailure("Internal server error", status=500))

    assert machine.is_active
    assert machine.last_error == "Internal server error"
    assert recorder.errors == []

    await machine.handle_snapshot(2, make_snapshot("processing", 5))
    assert machine.last_error is None


@pytest.mark.asyncio
async def test_forbidden_is_terminal():
    recorder = Recorder()
    machine = make_machine(recorder)

    machine.handle_failure(1, FetchFailure("HTTP 403", status=403, payload={"error": "Access denied"}))
    await machine.wait_settled()

    assert machine.state is TrackerState.stopped
    assert recorder.errors == ["Access denied"]


@pytest.mark.asyncio
async def test_unrecognized_status_is_terminal():
    recorder = Recorder()
    machine = make_machine(recorder)

    machine.handle_failure(1, UnrecognizedStatusError("queued"))
    await machine.wait_settled()

    assert recorder.errors == ["Received an unrecognized job status: queued"]


@pytest.mark.asyncio
async def test_stop_abandons_outcome_once():
    recorder = Recorder()
    machine = make_machine(recorder)

    assert machine.stop() is True
    assert machine.stop() is False
    assert recorder.stops == 1
    assert await machine.channel.wait() is None

    await machine.handle_snapshot(1, make_snapshot("completed", 100))
    assert machine.snapshot is None
    assert recorder.completed == []


@pytest.mark.asyncio
async def test_stop_during_completion_keeps_outcome():
    recorder = Recorder()
    machine = make_machine(recorder)

    await machine.handle_snapshot(1, make_snapshot("completed", 100))
    assert machine.stop() is False
    await machine.wait_settled()

    outcome = await machine.channel.wait()
    assert outcome.kind is OutcomeKind.completed
    assert recorder.completed == [machine.snapshot]


@pytest.mark.asyncio
async def test_failure_fallback_is_localized():
    recorder = Recorder()
    machine = make_machine(recorder, locale="ko")

    await machine.handle_snapshot(1, make_snapshot("failed", 0))
    await machine.wait_settled()

    assert recorder.errors == ["팟캐스트 생성 중 오류가 발생했습니다"]
