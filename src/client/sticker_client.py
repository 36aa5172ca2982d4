"""
Remote Sticker Client

httpx client for the sticker service. Follows 202 responses by polling
GET /api/v1/batch through the same PollOrchestrator the server uses, just
with longer budgets: 5 minutes for a single sticker and 30 minutes for a
whole batch download.

Batch downloads are sequential in submission order. An item that is not
ready yet blocks the ones after it, which keeps the saved file numbering
(001.png, 002.png, ...) aligned with the submission.
"""

import asyncio
import base64
import json
import time
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx

from src.core.exceptions import PollTimeoutError, ServiceError
from src.core.logging import get_logger
from src.core.storage import IStorage
from src.engines.batch.orchestrator import PollOrchestrator
from src.engines.batch.schemas import (
    BatchItem,
    BatchSubmitResponse,
    FetchResult,
    Found,
    NotReady,
    Pending,
    PendingResponse,
)

logger = get_logger(__name__)

POLL_INTERVAL_MS = 2_000
SINGLE_TIMEOUT_MS = 5 * 60 * 1000
DOWNLOAD_TIMEOUT_MS = 30 * 60 * 1000

# Raw bodies quoted in client-side error messages are cut to this length
RAW_SNIPPET_LIMIT = 80


def _service_error(response: httpx.Response) -> ServiceError:
    """Prefer the service's {"error": ...} message, else a raw snippet."""
    raw = response.text
    message = None
    try:
        body = response.json()
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            message = body["error"]
    except ValueError:
        pass
    if message is None:
        message = f"request failed (status {response.status_code}): {raw[:RAW_SNIPPET_LIMIT]}"
    return ServiceError(message, http_status=response.status_code)


class RemoteResultSource:
    """Result source backed by the service's polling endpoint.

    Found carries base64 payloads, so finished PNG bytes are re-encoded.
    """

    def __init__(self, client: "StickerClient"):
        self.client = client

    async def fetch_result(self, job_id: str, correlation_id: str) -> FetchResult:
        png = await self.client.check(job_id, correlation_id)
        if png is None:
            return NotReady()
        return Found(b64=base64.b64encode(png).decode("ascii"))


class StickerClient:
    """Async client for the sticker service HTTP API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http: Optional[httpx.AsyncClient] = None,
        poll_interval_ms: int = POLL_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, timeout=120.0)
        self.poll_interval_ms = poll_interval_ms
        self._clock = clock
        self.orchestrator = PollOrchestrator(RemoteResultSource(self), clock=clock, sleep=sleep)

    async def __aenter__(self) -> "StickerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        if self._owns_http:
            await self.http.aclose()

    async def check(self, job_id: str, correlation_id: str) -> Optional[bytes]:
        """One result check. Returns PNG bytes, or None while still pending."""
        response = await self.http.get(
            "/api/v1/batch",
            params={"job_id": job_id, "correlation_id": correlation_id},
        )
        if response.status_code == 202:
            return None
        if not response.is_success:
            raise _service_error(response)
        return response.content

    async def generate(
        self,
        message: str = "",
        keyword: str = "",
        timeout_ms: int = SINGLE_TIMEOUT_MS
    ) -> bytes:
        """Generate one sticker, following a 202 until the image is ready."""
        response = await self.http.get(
            "/api/v1/generate",
            params={"message": message, "keyword": keyword},
        )

        if response.status_code == 202:
            pending = PendingResponse.model_validate(response.json())
            logger.info("sticker_pending", job_id=pending.job_id, correlation_id=pending.correlation_id)
            return await self._await_png(pending.job_id, pending.correlation_id, timeout_ms)

        if not response.is_success:
            raise _service_error(response)
        return response.content

    async def submit_items(self, items: Sequence[BatchItem]) -> BatchSubmitResponse:
        """POST the items as the multipart 'payload' field of /api/v1/batch-csv."""
        payload = json.dumps(
            {"items": [item.model_dump() for item in items]},
            ensure_ascii=False,
        )
        response = await self.http.post(
            "/api/v1/batch-csv",
            files={"payload": ("payload.json", payload.encode("utf-8"), "application/json")},
        )
        if not response.is_success:
            raise _service_error(response)

        submission = BatchSubmitResponse.model_validate(response.json())
        logger.info("batch_items_submitted", job_id=submission.job_id, item_count=len(submission.items))
        return submission

    async def download_all(
        self,
        submission: BatchSubmitResponse,
        storage: IStorage,
        folder: str = "stickers",
        timeout_ms: int = DOWNLOAD_TIMEOUT_MS,
        on_progress: Optional[Callable[[int, int], None]] = None
    ) -> List[str]:
        """
        Download every item of a batch, one after another, in submission order.

        Args:
            submission: Response of submit_items
            storage: Where to save the PNGs
            folder: Storage folder
            timeout_ms: Budget for the whole download
            on_progress: Called with (done, total) after each saved item

        Returns:
            Storage keys, in submission order

        Raises:
            PollTimeoutError: overall budget spent before every item was saved
            ServiceError: the service answered a check with an error
        """
        items = sorted(submission.items, key=lambda item: item.order)
        total = len(items)
        deadline = self._clock() + timeout_ms / 1000.0
        keys: List[str] = []

        for done, item in enumerate(items):
            remaining_ms = int((deadline - self._clock()) * 1000)
            result = await self.orchestrator.await_with_budget(
                submission.job_id,
                item.correlation_id,
                poll_interval_ms=self.poll_interval_ms,
                timeout_ms=max(remaining_ms, 0),
            )
            if isinstance(result, Pending):
                raise PollTimeoutError(
                    "Timed out: the batch may not have completed.",
                    timeout_ms=timeout_ms,
                    job_id=submission.job_id,
                    details={"done": done, "total": total},
                )

            key = await storage.upload(
                base64.b64decode(result.b64),
                filename=f"{item.order:03d}.png",
                folder=folder,
            )
            keys.append(key)
            logger.info("batch_item_saved", job_id=submission.job_id, order=item.order, key=key)
            if on_progress:
                on_progress(done + 1, total)

        return keys

    async def _await_png(self, job_id: str, correlation_id: str, timeout_ms: int) -> bytes:
        result = await self.orchestrator.await_with_budget(
            job_id,
            correlation_id,
            poll_interval_ms=self.poll_interval_ms,
            timeout_ms=timeout_ms,
        )
        if isinstance(result, Pending):
            raise PollTimeoutError(
                "Batch is busy; try again later.",
                timeout_ms=timeout_ms,
                job_id=job_id,
            )
        return base64.b64decode(result.b64)
