"""
Batch Endpoints

GET  /api/v1/batch?job_id=&correlation_id= - One result check for a submitted item
POST /api/v1/batch-csv                     - Submit many stickers as one batch job

The polling endpoint is read-only and safe to call repeatedly; it never
waits, the caller owns the retry loop.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from pydantic import ValidationError as PydanticValidationError

from src.api.dependencies import (
    get_app_settings,
    get_poller,
    get_postprocessor,
    get_submitter,
)
from src.api.v1.responses import pending_response, sticker_response
from src.core.config import Settings
from src.core.exceptions import ValidationError
from src.core.logging import LogContext, get_logger
from src.engines.batch.poller import JobPoller
from src.engines.batch.schemas import (
    BatchPayload,
    BatchSubmitResponse,
    Found,
    GenerationTask,
    Pending,
    PendingResponse,
    SubmittedItem,
)
from src.engines.batch.submitter import JobSubmitter
from src.modules.sticker.prompts import build_batch_prompt
from src.pipeline.stages import StickerPostProcessor

logger = get_logger(__name__)
router = APIRouter()


@router.get(
    "/batch",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}, "description": "Finished 370x320 sticker"},
        202: {"model": PendingResponse, "description": "Not ready yet; poll again"},
    },
)
async def poll_batch_item(
    job_id: Optional[str] = Query(None),
    correlation_id: Optional[str] = Query(None),
    poller: JobPoller = Depends(get_poller),
    postprocessor: StickerPostProcessor = Depends(get_postprocessor),
):
    """Check once whether the image for correlation_id is ready."""
    if not job_id or not correlation_id:
        raise ValidationError("job_id and correlation_id are required.")

    with LogContext(job_id=job_id, correlation_id=correlation_id, stage="poll"):
        result = await poller.fetch_result(job_id, correlation_id)

        if not isinstance(result, Found):
            return pending_response(Pending(job_id=job_id, correlation_id=correlation_id, last_status=result.status))

        return await sticker_response(postprocessor, result.b64)


@router.post("/batch-csv", response_model=BatchSubmitResponse)
async def submit_batch_csv(
    payload: Optional[UploadFile] = File(None, description='JSON file: {"items": [{"message", "keyword"}]}'),
    settings: Settings = Depends(get_app_settings),
    submitter: JobSubmitter = Depends(get_submitter),
):
    """
    Submit every item with a non-blank message as one batch job.

    Returns the job id and, per accepted item, the correlation id and its
    1-based order. Download order follows the returned order.
    """
    if payload is None:
        raise ValidationError("Missing payload (multipart form field 'payload').")

    raw = await payload.read()
    try:
        parsed = BatchPayload.model_validate_json(raw)
    except PydanticValidationError as e:
        logger.warning("batch_payload_invalid", errors=e.error_count())
        raise ValidationError("Invalid payload JSON.")

    # Items without a message get an empty prompt and are dropped by the submitter
    tasks = [
        GenerationTask(
            prompt=build_batch_prompt(item.message, item.keyword) if item.message else "",
            model=settings.OPENAI_IMAGE_MODEL,
            quality=settings.OPENAI_IMAGE_QUALITY,
        )
        for item in parsed.items
    ]

    submission = await submitter.submit_batch(tasks, labels=parsed.items)

    return BatchSubmitResponse(
        job_id=submission.job_id,
        items=[
            SubmittedItem(
                correlation_id=record.correlation_id,
                order=record.order,
                message=record.message,
                keyword=record.keyword,
            )
            for record in submission.records
        ],
    )
