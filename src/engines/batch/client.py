"""
OpenAI HTTP Transport

Thin authenticated wrapper over a shared httpx.AsyncClient. It knows the
endpoints but not their semantics: mapping responses to results or errors
is left to the submitter, poller and direct generator.
"""

from typing import Any, Dict, Optional

import httpx

from src.core.config import Settings
from src.core.exceptions import ConfigurationError
from src.engines.batch.schemas import IMAGES_ENDPOINT


class OpenAIClient:
    """Authenticated access to the Files, Batches and Images endpoints."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com"
    ):
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set on the server.")
        self.http = http
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if extra:
            headers.update(extra)
        return headers

    async def upload_batch_input(self, jsonl: str) -> httpx.Response:
        """POST /v1/files with purpose=batch and the JSONL artifact."""
        return await self.http.post(
            f"{self.base_url}/v1/files",
            headers=self._headers(),
            data={"purpose": "batch"},
            files={"file": ("input.jsonl", jsonl.encode("utf-8"), "application/jsonl")},
        )

    async def create_batch(self, input_file_id: str, completion_window: str) -> httpx.Response:
        """POST /v1/batches referencing an uploaded input file."""
        return await self.http.post(
            f"{self.base_url}/v1/batches",
            headers=self._headers(),
            json={
                "input_file_id": input_file_id,
                "endpoint": IMAGES_ENDPOINT,
                "completion_window": completion_window,
            },
        )

    async def retrieve_batch(self, batch_id: str) -> httpx.Response:
        return await self.http.get(
            f"{self.base_url}/v1/batches/{batch_id}",
            headers=self._headers(),
        )

    async def file_content(self, file_id: str) -> httpx.Response:
        return await self.http.get(
            f"{self.base_url}/v1/files/{file_id}/content",
            headers=self._headers(),
        )

    async def generate_image(self, body: Dict[str, Any]) -> httpx.Response:
        """POST /v1/images/generations synchronously."""
        return await self.http.post(
            f"{self.base_url}{IMAGES_ENDPOINT}",
            headers=self._headers(),
            json=body,
        )


def create_openai_client(settings: Settings, http: httpx.AsyncClient) -> OpenAIClient:
    """Build the transport from settings; fails fast without a credential."""
    return OpenAIClient(
        http=http,
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
    )
