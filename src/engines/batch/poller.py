"""
Job Poller

Read-only view of a Batch API job. Queries status and, once a batch has
completed, pulls the record for one correlation id out of its output file.
Nothing here mutates local or remote state, so any number of callers may
poll the same job concurrently and repeated polls return identical results.
"""

import json
import re
from typing import Any, Optional

import httpx

from src.core.exceptions import (
    ResultMissingError,
    StatusQueryError,
    truncate_diagnostic,
)
from src.core.logging import get_logger
from src.core.metrics import record_batch_poll
from src.engines.batch.client import OpenAIClient
from src.engines.batch.schemas import (
    BatchCompleted,
    BatchStatus,
    FetchResult,
    Found,
    NotReady,
    parse_batch_status,
)

logger = get_logger(__name__)

_LINE_SPLIT = re.compile(r"\r?\n")


def extract_b64(record: Any) -> Optional[str]:
    """Return response.body.data[0].b64_json from an output record, if present."""
    try:
        b64 = record["response"]["body"]["data"][0]["b64_json"]
    except (KeyError, IndexError, TypeError):
        return None
    if isinstance(b64, str) and b64:
        return b64
    return None


def find_result(output_text: str, correlation_id: str) -> Optional[str]:
    """Scan JSONL output for the first usable record with a matching custom_id.

    Blank and unparsable lines are skipped.
    """
    for line in _LINE_SPLIT.split(output_text):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except ValueError:
            continue
        if not isinstance(record, dict) or record.get("custom_id") != correlation_id:
            continue
        b64 = extract_b64(record)
        if b64:
            return b64
    return None


class JobPoller:
    """Observes batch jobs without mutating them."""

    def __init__(self, client: OpenAIClient):
        self.client = client

    async def status(self, job_id: str) -> BatchStatus:
        try:
            response = await self.client.retrieve_batch(job_id)
        except httpx.HTTPError as e:
            record_batch_poll("error")
            raise StatusQueryError(
                f"OpenAI batch status failed: {truncate_diagnostic(str(e))}",
                job_id=job_id,
            )

        if not response.is_success:
            record_batch_poll("error")
            raise StatusQueryError(
                f"OpenAI batch status failed ({response.status_code}): "
                f"{truncate_diagnostic(response.text)}",
                http_status=response.status_code,
                job_id=job_id,
            )

        try:
            return parse_batch_status(response.json())
        except ValueError:
            record_batch_poll("error")
            raise StatusQueryError(
                f"OpenAI batch status unreadable: {truncate_diagnostic(response.text)}",
                http_status=response.status_code,
                job_id=job_id,
            )

    async def fetch_result(self, job_id: str, correlation_id: str) -> FetchResult:
        """
        Look up the image for one correlation id.

        Returns:
            Found(b64) once the batch is completed and holds the record,
            NotReady(status) for every other batch state.

        Raises:
            StatusQueryError: status or output download failed (retryable)
            ResultMissingError: completed batch without a matching record (terminal)
        """
        batch = await self.status(job_id)

        if not isinstance(batch, BatchCompleted):
            record_batch_poll("not_ready")
            logger.debug("batch_not_ready", job_id=job_id, batch_status=batch.status.value)
            return NotReady(status=batch.status)

        if not batch.output_file_id:
            record_batch_poll("missing")
            raise ResultMissingError(
                "Batch completed but output_file_id is missing.",
                correlation_id=correlation_id,
                job_id=job_id,
            )

        output_text = await self._output_text(job_id, batch.output_file_id)
        b64 = find_result(output_text, correlation_id)
        if b64 is None:
            record_batch_poll("missing")
            raise ResultMissingError(
                "Batch completed but no matching image result was found.",
                correlation_id=correlation_id,
                job_id=job_id,
            )

        record_batch_poll("found")
        return Found(b64=b64)

    async def _output_text(self, job_id: str, output_file_id: str) -> str:
        try:
            response = await self.client.file_content(output_file_id)
        except httpx.HTTPError as e:
            record_batch_poll("error")
            raise StatusQueryError(
                f"OpenAI batch output fetch failed: {truncate_diagnostic(str(e))}",
                job_id=job_id,
            )

        if not response.is_success:
            record_batch_poll("error")
            raise StatusQueryError(
                f"OpenAI batch output fetch failed ({response.status_code}): "
                f"{truncate_diagnostic(response.text)}",
                http_status=response.status_code,
                job_id=job_id,
            )
        return response.text
