"""
Generate Endpoint

GET /api/v1/generate?message=&keyword= - Generate one sticker

Batch mode (default): submits a single-record batch and waits for it within
the synchronous budget. Returns the PNG when the result shows up in time,
otherwise 202 with the ids to re-poll /api/v1/batch with.

Direct mode (OPENAI_USE_BATCH=false): calls the Images API synchronously.
"""

from fastapi import APIRouter, Depends, Query, Response

from src.api.dependencies import (
    get_app_settings,
    get_direct_generator,
    get_orchestrator,
    get_postprocessor,
    get_submitter,
)
from src.api.v1.responses import pending_response, sticker_response
from src.core.config import Settings
from src.core.logging import LogContext, get_logger
from src.engines.batch.direct import DirectGenerator
from src.engines.batch.orchestrator import PollOrchestrator
from src.engines.batch.schemas import GenerationTask, Pending, PendingResponse
from src.engines.batch.submitter import JobSubmitter
from src.modules.sticker.prompts import build_generate_prompt
from src.pipeline.stages import StickerPostProcessor

logger = get_logger(__name__)
router = APIRouter()


@router.get(
    "/generate",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}, "description": "Finished 370x320 sticker"},
        202: {"model": PendingResponse, "description": "Still generating; poll /api/v1/batch"},
    },
)
async def generate_sticker(
    message: str = Query("", description="Japanese text drawn into the sticker"),
    keyword: str = Query("", description="Character theme"),
    settings: Settings = Depends(get_app_settings),
    submitter: JobSubmitter = Depends(get_submitter),
    orchestrator: PollOrchestrator = Depends(get_orchestrator),
    direct: DirectGenerator = Depends(get_direct_generator),
    postprocessor: StickerPostProcessor = Depends(get_postprocessor),
):
    """
    Generate a sticker for a message and theme.

    Blank message/keyword fall back to the default text and theme.
    """
    task = GenerationTask(
        prompt=build_generate_prompt(message, keyword),
        model=settings.OPENAI_IMAGE_MODEL,
        quality=settings.OPENAI_IMAGE_QUALITY,
    )

    if not settings.OPENAI_USE_BATCH:
        with LogContext(stage="generate"):
            b64 = await direct.generate(task)
            logger.info("direct_generation_completed")
        return await sticker_response(postprocessor, b64)

    submission = await submitter.submit_single(task)
    result = await orchestrator.await_with_budget(
        submission.job_id,
        submission.correlation_id,
        poll_interval_ms=settings.OPENAI_BATCH_POLL_INTERVAL_MS,
        timeout_ms=settings.OPENAI_BATCH_POLL_TIMEOUT_MS,
    )

    if isinstance(result, Pending):
        return pending_response(result)

    with LogContext(job_id=submission.job_id, correlation_id=submission.correlation_id, stage="postprocess"):
        return await sticker_response(postprocessor, result.b64)
