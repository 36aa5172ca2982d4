"""
Job Submitter

Packages one or many image generation tasks into a JSONL artifact, uploads
it and creates a Batch API job referencing it. Returns the batch id plus the
correlation ids needed to pick each result out of the batch output later.
"""

import json
import secrets
import time
from typing import Callable, List, Optional, Sequence, Tuple

import httpx

from src.core.exceptions import (
    JobCreateError,
    UploadError,
    ValidationError,
    truncate_diagnostic,
)
from src.core.logging import get_logger
from src.core.metrics import record_batch_submission
from src.engines.batch.client import OpenAIClient
from src.engines.batch.schemas import (
    IMAGES_ENDPOINT,
    BatchItem,
    BatchSubmission,
    CorrelationRecord,
    GenerationTask,
    SingleSubmission,
)

logger = get_logger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _random_suffix() -> str:
    return secrets.token_hex(6)


def build_jsonl(entries: Sequence[Tuple[str, GenerationTask]]) -> str:
    """Serialise (correlation_id, task) pairs as newline-terminated JSONL."""
    lines = [
        json.dumps(
            {
                "custom_id": correlation_id,
                "method": "POST",
                "url": IMAGES_ENDPOINT,
                "body": task.to_request_body(),
            },
            ensure_ascii=False,
        )
        for correlation_id, task in entries
    ]
    return "\n".join(lines) + "\n"


class JobSubmitter:
    """Creates Batch API jobs for generation tasks."""

    def __init__(
        self,
        client: OpenAIClient,
        completion_window: str = "24h",
        clock_ms: Callable[[], int] = _epoch_ms,
        random_suffix: Callable[[], str] = _random_suffix
    ):
        self.client = client
        self.completion_window = completion_window
        self._clock_ms = clock_ms
        self._random_suffix = random_suffix

    def new_correlation_id(self) -> str:
        return f"gen-{self._clock_ms()}-{self._random_suffix()}"

    async def submit_single(self, task: GenerationTask) -> SingleSubmission:
        """Submit one task as a single-record batch."""
        correlation_id = self.new_correlation_id()
        job_id = await self._upload_and_create(
            build_jsonl([(correlation_id, task)]),
            kind="single",
        )
        logger.info("batch_submitted", kind="single", job_id=job_id, correlation_id=correlation_id)
        return SingleSubmission(job_id=job_id, correlation_id=correlation_id)

    async def submit_batch(
        self,
        tasks: Sequence[GenerationTask],
        labels: Optional[Sequence[BatchItem]] = None
    ) -> BatchSubmission:
        """
        Submit many tasks in one batch.

        Tasks with a blank prompt are dropped before ids are assigned. The
        surviving tasks get ids "csv-<ms>-<NNNN>" in input order, so the
        returned records can be mapped to results positionally.

        Args:
            tasks: Generation tasks in caller order
            labels: Optional caller-facing message/keyword per task, parallel to tasks
        """
        if labels is not None and len(labels) != len(tasks):
            raise ValidationError("labels must be parallel to tasks")

        survivors: List[Tuple[GenerationTask, BatchItem]] = []
        for index, task in enumerate(tasks):
            if not task.prompt.strip():
                continue
            label = labels[index] if labels is not None else BatchItem()
            survivors.append((task, label))

        if not survivors:
            raise ValidationError("No valid items in payload.")

        ts = self._clock_ms()
        records = tuple(
            CorrelationRecord(
                correlation_id=f"csv-{ts}-{order:04d}",
                order=order,
                task=task,
                message=label.message,
                keyword=label.keyword,
            )
            for order, (task, label) in enumerate(survivors, start=1)
        )

        job_id = await self._upload_and_create(
            build_jsonl([(r.correlation_id, r.task) for r in records]),
            kind="multi",
        )
        logger.info("batch_submitted", kind="multi", job_id=job_id, item_count=len(records))
        return BatchSubmission(job_id=job_id, records=records)

    async def _upload_and_create(self, jsonl: str, kind: str) -> str:
        try:
            input_file_id = await self._upload(jsonl)
            batch_id = await self._create(input_file_id)
        except (UploadError, JobCreateError):
            record_batch_submission(kind=kind, status="error")
            raise
        record_batch_submission(kind=kind, status="success")
        return batch_id

    async def _upload(self, jsonl: str) -> str:
        try:
            response = await self.client.upload_batch_input(jsonl)
        except httpx.HTTPError as e:
            raise UploadError(f"OpenAI file upload failed: {truncate_diagnostic(str(e))}")

        if not response.is_success:
            raise UploadError(
                f"OpenAI file upload failed ({response.status_code}): "
                f"{truncate_diagnostic(response.text)}",
                http_status=response.status_code,
            )

        file_id = _json_id(response)
        if not file_id:
            raise UploadError(
                f"OpenAI file upload returned no file id: {truncate_diagnostic(response.text)}",
                http_status=response.status_code,
            )
        return file_id

    async def _create(self, input_file_id: str) -> str:
        try:
            response = await self.client.create_batch(input_file_id, self.completion_window)
        except httpx.HTTPError as e:
            raise JobCreateError(f"OpenAI batch create failed: {truncate_diagnostic(str(e))}")

        if not response.is_success:
            raise JobCreateError(
                f"OpenAI batch create failed ({response.status_code}): "
                f"{truncate_diagnostic(response.text)}",
                http_status=response.status_code,
            )

        batch_id = _json_id(response)
        if not batch_id:
            raise JobCreateError(
                f"OpenAI batch create returned no batch id: {truncate_diagnostic(response.text)}",
                http_status=response.status_code,
            )
        return batch_id


def _json_id(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    value = body.get("id")
    return value if isinstance(value, str) and value else None
