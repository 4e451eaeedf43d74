import pytest
from podcast_progress_client.errors import (
    FailureKind,
    FetchFailure,
    InvalidTerminalResponseError,
    MalformedResponseError,
    UnrecognizedStatusError,
    classify_failure,
    failure_message,
)


@pytest.mark.parametrize("status", [403, 404])
def test_missing_or_forbidden_job_is_terminal(status):
    assert classify_failure(FetchFailure("x", status=status)) is FailureKind.terminal


@pytest.mark.parametrize("status", [None, 200, 400, 401, 408, 429, 500, 502, 503])
def test_other_statuses_are_transient(status):
    assert classify_failure(FetchFailure("x", status=status)) is FailureKind.transient


def test_unrecognized_status_is_terminal():
    assert classify_failure(UnrecognizedStatusError("queued")) is FailureKind.terminal


def test_unreadable_terminal_body_is_terminal():
    failure = InvalidTerminalResponseError("quota exceeded", status=200)
    assert classify_failure(failure) is FailureKind.terminal
    assert failure_message(failure) == "quota exceeded"


def test_unrecognized_null_status_message():
    assert failure_message(UnrecognizedStatusError(None)) == (
        "Received an unrecognized job status: None"
    )


def test_malformed_response_is_transient():
    failure = MalformedResponseError("Non-JSON response", status=200)
    assert classify_failure(failure) is FailureKind.transient


def test_arbitrary_exception_is_transient():
    assert classify_failure(ConnectionResetError("reset")) is FailureKind.transient


def test_message_prefers_server_error():
    failure = FetchFailure("HTTP 404", status=404, payload={"error": "Podcast not found"})
    assert failure_message(failure) == "Podcast not found"


def test_message_uses_payload_message_field():
    failure = FetchFailure("HTTP 500", status=500, payload={"message": "Upstream down"})
    assert failure_message(failure) == "Upstream down"


def test_message_falls_back_to_raw_text():
    assert failure_message(FetchFailure("Request timeout", status=408)) == "Request timeout"
    assert failure_message(RuntimeError("socket closed")) == "socket closed"


def test_message_falls_back_to_generic_text():
    assert failure_message(FetchFailure()) == "An error occurred while checking the status"
    assert failure_message(RuntimeError(), locale="ko") == "상태 확인 중 오류가 발생했습니다"


def test_unknown_locale_uses_english():
    assert failure_message(FetchFailure(), locale="xx") == (
        "An error occurred while checking the status"
    )
