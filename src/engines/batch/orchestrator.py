"""
Poll Orchestrator

Bounded-wait loop over a result source. Returns Ready as soon as the source
reports Found, or Pending once the time budget is spent. Pending is a
"try again later" signal, not an error: nothing has been mutated and the
caller re-polls with the same ids.

Used with two budgets: the synchronous /generate flow (short) and the
remote client loop (long), which plugs in its own HTTP-backed source.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, Protocol

from src.core.logging import LogContext, get_logger
from src.engines.batch.schemas import (
    FetchResult,
    Found,
    JobStatus,
    Pending,
    PollResult,
    Ready,
)

logger = get_logger(__name__)


class ResultSource(Protocol):
    async def fetch_result(self, job_id: str, correlation_id: str) -> FetchResult:
        ...


class PollOrchestrator:
    """Composes a result source with a poll interval and a timeout."""

    def __init__(
        self,
        source: ResultSource,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.source = source
        self._clock = clock
        self._sleep = sleep

    async def await_with_budget(
        self,
        job_id: str,
        correlation_id: str,
        poll_interval_ms: int,
        timeout_ms: int
    ) -> PollResult:
        """
        Poll until the result is found or the budget runs out.

        Each check is cut off when the remaining budget runs out and every
        sleep is clamped to it, so the call never blocks past timeout_ms.
        Cancelling a check is safe because result sources are read-only.
        Errors from the source propagate.
        """
        started = self._clock()
        budget = timeout_ms / 1000.0
        interval = poll_interval_ms / 1000.0
        last_status: Optional[JobStatus] = None
        attempts = 0

        with LogContext(job_id=job_id, correlation_id=correlation_id, stage="poll"):
            while True:
                remaining = budget - (self._clock() - started)
                if remaining <= 0:
                    break

                attempts += 1
                try:
                    result = await asyncio.wait_for(
                        self.source.fetch_result(job_id, correlation_id),
                        timeout=remaining,
                    )
                except asyncio.TimeoutError:
                    logger.warning("batch_poll_check_cut_off", attempts=attempts, timeout_ms=timeout_ms)
                    break

                if isinstance(result, Found):
                    logger.info("batch_poll_ready", attempts=attempts)
                    return Ready(b64=result.b64)

                if result.status is not None and result.status != last_status:
                    logger.info("batch_poll_status", batch_status=result.status.value)
                last_status = result.status

                remaining = budget - (self._clock() - started)
                if remaining <= 0:
                    break
                await self._sleep(min(interval, remaining))

            logger.info(
                "batch_poll_pending",
                attempts=attempts,
                timeout_ms=timeout_ms,
                batch_status=last_status.value if last_status else None
            )
            return Pending(job_id=job_id, correlation_id=correlation_id, last_status=last_status)
