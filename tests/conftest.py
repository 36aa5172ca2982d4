import base64
import io
import json
import re
from typing import AsyncGenerator, Callable, Dict, List, Optional

import httpx
import numpy as np
import pytest
from httpx import AsyncClient, ASGITransport
from PIL import Image

from src.api.dependencies import get_app_settings, get_http_client
from src.core.config import Settings
from src.engines.batch.client import OpenAIClient
from src.main import app


class FakeBatchAPI:
    """In-memory stand-in for the OpenAI Files/Batches/Images endpoints."""

    def __init__(self):
        # Status returned per retrieve; the last one repeats
        self.statuses: List[str] = ["completed"]
        self.output_lines: List[str] = []
        self.output_file_id: Optional[str] = "file-out"
        self.upload_status = 200
        self.create_status = 200
        self.retrieve_status = 200
        self.content_status = 200
        self.images_status = 200
        self.error_body = "upstream exploded"
        self.image_b64: Optional[str] = None
        # When set, every uploaded custom_id gets this image in the output file
        self.auto_b64: Optional[str] = None
        self.calls: List[str] = []
        self.uploads: List[str] = []
        self.batch_requests: List[Dict] = []

    @staticmethod
    def _record(custom_id: str, b64: str) -> str:
        return json.dumps({
            "custom_id": custom_id,
            "response": {"status_code": 200, "body": {"data": [{"b64_json": b64}]}},
        })

    def add_result(self, custom_id: str, b64: str):
        self.output_lines.append(self._record(custom_id, b64))

    def uploaded_custom_ids(self) -> List[str]:
        return re.findall(r'"custom_id": "([^"]+)"', self.uploads[-1])

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(f"{request.method} {path}")

        if request.method == "POST" and path == "/v1/files":
            if self.upload_status != 200:
                return httpx.Response(self.upload_status, text=self.error_body)
            self.uploads.append(request.content.decode("utf-8"))
            return httpx.Response(200, json={"id": "file-in", "purpose": "batch"})

        if request.method == "POST" and path == "/v1/batches":
            if self.create_status != 200:
                return httpx.Response(self.create_status, text=self.error_body)
            self.batch_requests.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "batch_123", "status": "validating"})

        if request.method == "GET" and path.startswith("/v1/batches/"):
            if self.retrieve_status != 200:
                return httpx.Response(self.retrieve_status, text=self.error_body)
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            body = {"id": path.rsplit("/", 1)[-1], "status": status}
            if status == "completed":
                body["output_file_id"] = self.output_file_id
            return httpx.Response(200, json=body)

        if request.method == "GET" and path.endswith("/content"):
            if self.content_status != 200:
                return httpx.Response(self.content_status, text=self.error_body)
            lines = list(self.output_lines)
            if self.auto_b64 and self.uploads:
                for custom_id in self.uploaded_custom_ids():
                    lines.append(self._record(custom_id, self.auto_b64))
            return httpx.Response(200, text="\n".join(lines) + "\n")

        if request.method == "POST" and path == "/v1/images/generations":
            if self.images_status != 200:
                return httpx.Response(self.images_status, text=self.error_body)
            data = [{"b64_json": self.image_b64}] if self.image_b64 else []
            return httpx.Response(200, json={"data": data})

        return httpx.Response(404, json={"error": f"unexpected {request.method} {path}"})


@pytest.fixture
def fake_api() -> FakeBatchAPI:
    return FakeBatchAPI()


@pytest.fixture
async def openai_client(fake_api) -> AsyncGenerator[OpenAIClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler)) as http:
        yield OpenAIClient(http, api_key="sk-test")


@pytest.fixture
def png_b64() -> Callable[[np.ndarray], str]:
    """Encode an (H, W, 4) uint8 array as a base64 PNG."""
    def encode(rgba: np.ndarray) -> str:
        buffer = io.BytesIO()
        Image.fromarray(rgba.astype(np.uint8)).save(buffer, format="PNG")
        return base64.b64encode(buffer.getvalue()).decode("ascii")
    return encode


@pytest.fixture
def sticker_rgba() -> np.ndarray:
    """40x30 opaque red block with a transparent margin and an enclosed hole."""
    rgba = np.zeros((30, 40, 4), dtype=np.uint8)
    rgba[5:25, 5:35] = (200, 30, 30, 200)
    rgba[12:16, 18:22] = 0
    return rgba


def make_settings(**overrides) -> Settings:
    values = {
        "OPENAI_API_KEY": "sk-test",
        "OPENAI_BATCH_POLL_TIMEOUT_MS": 200,
        "OPENAI_BATCH_POLL_INTERVAL_MS": 10,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def app_settings() -> Settings:
    return make_settings()


@pytest.fixture
async def client(fake_api, app_settings) -> AsyncGenerator[AsyncClient, None]:
    # Trigger lifespan events (startup/shutdown)
    async with app.router.lifespan_context(app):
        async with httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler)) as upstream:
            app.dependency_overrides[get_app_settings] = lambda: app_settings
            app.dependency_overrides[get_http_client] = lambda: upstream
            try:
                async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                    yield ac
            finally:
                app.dependency_overrides.clear()


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings
