from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


class JobStatus(str, Enum):
    processing = "processing"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.processing


class TrackerState(str, Enum):
    active = "active"
    stopped = "stopped"


TERMINAL_PROGRESS = {JobStatus.completed: 100, JobStatus.failed: 0}


class ProgressSnapshot(BaseModel):
    """One immutable observation of a job's status"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    job_id: str = Field(alias="podcastId")
    status: JobStatus
    progress_percentage: int = Field(alias="progressPercentage", ge=0, le=100)
    current_step: str = Field(default="", alias="currentStep")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    estimated_completion: Optional[datetime] = Field(
        default=None, alias="estimatedCompletion"
    )

    @field_validator("updated_at", "estimated_completion", mode="wrap")
    @classmethod
    def _lenient_timestamp(cls, value: Any, handler) -> Optional[datetime]:
        # unparseable timestamps are dropped, not rejected
        try:
            return handler(value)
        except ValidationError:
            return None

    @model_validator(mode="before")
    @classmethod
    def _drop_irrelevant_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        status = data.get("status")
        if status != JobStatus.failed:
            data.pop("errorMessage", None)
            data.pop("error_message", None)
        if status != JobStatus.processing:
            data.pop("estimatedCompletion", None)
            data.pop("estimated_completion", None)
        if isinstance(status, str) and status in TERMINAL_PROGRESS and data.get("progressPercentage") is None:
            data.pop("progressPercentage", None)
            if data.get("progress_percentage") is None:
                data["progress_percentage"] = TERMINAL_PROGRESS[status]
        if data.get("currentStep") is None and data.get("current_step") is None:
            data.pop("currentStep", None)
            data.pop("current_step", None)
        return data


class OutcomeKind(str, Enum):
    completed = "completed"
    failed = "failed"


class JobOutcome(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: OutcomeKind
    result: Any = None
    error_message: Optional[str] = None

    @classmethod
    def completed(cls, result: Any) -> "JobOutcome":
        return cls(kind=OutcomeKind.completed, result=result)

    @classmethod
    def failed(cls, error_message: str) -> "JobOutcome":
        return cls(kind=OutcomeKind.failed, error_message=error_message)


class TrackerConfig(BaseModel):
    poll_interval: float = Field(default=2.0, gt=0)
    request_timeout: Optional[float] = Field(default=60.0, gt=0)
    close_timeout: float = Field(default=5.0, ge=0)
    request_retries: int = Field(default=0, ge=0)
    retry_delay: float = Field(default=1.0, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)
    max_retry_delay: float = 8.0
    jitter: bool = True
    locale: str = "en"
    auth_token: Optional[str] = None
