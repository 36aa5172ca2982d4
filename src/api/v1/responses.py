"""
Shared response builders for the sticker endpoints.
"""

import asyncio

from fastapi import Response
from fastapi.responses import JSONResponse

from src.engines.batch.schemas import Pending, PendingResponse
from src.pipeline.stages import StickerPostProcessor


def pending_response(pending: Pending) -> JSONResponse:
    """202 telling the caller to re-poll /batch with the same ids."""
    body = PendingResponse(job_id=pending.job_id, correlation_id=pending.correlation_id)
    return JSONResponse(status_code=202, content=body.model_dump())


async def sticker_response(postprocessor: StickerPostProcessor, b64: str) -> Response:
    """Post-process an upstream image off the event loop and return it as PNG."""
    png = await asyncio.to_thread(postprocessor.process, b64)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Cache-Control": "no-store"},
    )
