"""
Batch API Data Transfer Objects

Wire-level request types for the OpenAI Images/Batch APIs and the result
types exchanged between the submitter, poller and poll orchestrator.
Status and poll outcomes are tagged unions: each variant carries only the
fields that exist in that state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

IMAGES_ENDPOINT = "/v1/images/generations"


class JobStatus(str, Enum):
    """Batch lifecycle states reported by the Batch API."""
    VALIDATING = "validating"
    IN_PROGRESS = "in_progress"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"

    @property
    def is_terminal_failure(self) -> bool:
        return self in (JobStatus.FAILED, JobStatus.EXPIRED, JobStatus.CANCELLED)


class GenerationTask(BaseModel):
    """One image generation request. Frozen once built."""
    model_config = ConfigDict(frozen=True)

    prompt: str
    model: str = "gpt-image-1.5"
    quality: str = "low"
    size: str = "1024x1024"
    n: int = 1
    background: str = "transparent"
    output_format: str = "png"

    def to_request_body(self) -> Dict[str, Any]:
        return self.model_dump()


class BatchItem(BaseModel):
    """One entry of a multi-item submission payload."""
    message: str = ""
    keyword: str = ""

    @field_validator("message", "keyword", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        # null -> "", numbers -> their text, surrounding whitespace dropped
        return "" if value is None else str(value).strip()


class BatchPayload(BaseModel):
    """Multi-item submission payload: {"items": [{message, keyword}, ...]}."""
    items: List[BatchItem] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def _items_list(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        # Non-object entries become blank items and are dropped at submission
        return [item if isinstance(item, (dict, BatchItem)) else {} for item in value]


# =============================================================================
# Submission results
# =============================================================================

@dataclass(frozen=True)
class CorrelationRecord:
    """Links a correlation id to its task and 1-based submission order."""
    correlation_id: str
    order: int
    task: GenerationTask
    message: str = ""
    keyword: str = ""


@dataclass(frozen=True)
class SingleSubmission:
    job_id: str
    correlation_id: str


@dataclass(frozen=True)
class BatchSubmission:
    job_id: str
    records: Tuple[CorrelationRecord, ...]


# =============================================================================
# Batch status (tagged union)
# =============================================================================

@dataclass(frozen=True)
class BatchInFlight:
    status: JobStatus


@dataclass(frozen=True)
class BatchCompleted:
    output_file_id: Optional[str]
    error_file_id: Optional[str] = None

    @property
    def status(self) -> JobStatus:
        return JobStatus.COMPLETED


@dataclass(frozen=True)
class BatchFailed:
    status: JobStatus
    error_file_id: Optional[str] = None


BatchStatus = Union[BatchInFlight, BatchCompleted, BatchFailed]


def parse_batch_status(payload: Dict[str, Any]) -> BatchStatus:
    """Map a batch object to its status variant.

    Raises ValueError for a status string outside the known lifecycle.
    """
    if not isinstance(payload, dict):
        raise ValueError("batch object must be a JSON object")
    status = JobStatus(payload.get("status"))
    if status is JobStatus.COMPLETED:
        return BatchCompleted(
            output_file_id=payload.get("output_file_id") or None,
            error_file_id=payload.get("error_file_id") or None,
        )
    if status.is_terminal_failure:
        return BatchFailed(status=status, error_file_id=payload.get("error_file_id") or None)
    return BatchInFlight(status=status)


# =============================================================================
# Poll outcomes
# =============================================================================

@dataclass(frozen=True)
class Found:
    b64: str


@dataclass(frozen=True)
class NotReady:
    # None when the source only knows "not yet" (the remote polling endpoint)
    status: Optional[JobStatus] = None


FetchResult = Union[Found, NotReady]


@dataclass(frozen=True)
class Ready:
    b64: str


@dataclass(frozen=True)
class Pending:
    job_id: str
    correlation_id: str
    last_status: Optional[JobStatus] = None


PollResult = Union[Ready, Pending]


# =============================================================================
# Service responses
# =============================================================================

class PendingResponse(BaseModel):
    """202 body telling the caller to re-poll with these ids."""
    status: str = "pending"
    job_id: str
    correlation_id: str


class SubmittedItem(BaseModel):
    correlation_id: str
    order: int
    message: str
    keyword: str


class BatchSubmitResponse(BaseModel):
    job_id: str
    items: List[SubmittedItem]
