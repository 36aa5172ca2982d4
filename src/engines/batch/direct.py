"""
Direct Image Generation

Synchronous /v1/images/generations call used when batch mode is switched off.
"""

import httpx

from src.core.exceptions import GenerationError, truncate_diagnostic
from src.core.logging import get_logger
from src.core.metrics import record_batch_submission
from src.engines.batch.client import OpenAIClient
from src.engines.batch.poller import extract_b64
from src.engines.batch.schemas import GenerationTask

logger = get_logger(__name__)

# Direct-mode errors carry a shorter upstream snippet
DIRECT_DIAGNOSTIC_LIMIT = 160


class DirectGenerator:
    def __init__(self, client: OpenAIClient):
        self.client = client

    async def generate(self, task: GenerationTask) -> str:
        """Return the base64 PNG for one task, or raise GenerationError."""
        try:
            response = await self.client.generate_image(task.to_request_body())
        except httpx.HTTPError as e:
            record_batch_submission(kind="direct", status="error")
            raise GenerationError(f"OpenAI error: {truncate_diagnostic(str(e), DIRECT_DIAGNOSTIC_LIMIT)}")

        if not response.is_success:
            record_batch_submission(kind="direct", status="error")
            logger.error("direct_generation_failed", http_status=response.status_code)
            raise GenerationError(
                f"OpenAI error (status {response.status_code}): "
                f"{truncate_diagnostic(response.text, DIRECT_DIAGNOSTIC_LIMIT)}",
                http_status=response.status_code,
            )

        try:
            b64 = extract_b64({"response": {"body": response.json()}})
        except ValueError:
            b64 = None
        if not b64:
            record_batch_submission(kind="direct", status="error")
            raise GenerationError("No image data returned from API", http_status=response.status_code)

        record_batch_submission(kind="direct", status="success")
        return b64
