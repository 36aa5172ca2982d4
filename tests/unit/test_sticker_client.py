import json
from typing import List

import httpx
import pytest

from src.client.csv_items import read_csv_items
from src.client.sticker_client import StickerClient
from src.core.exceptions import PollTimeoutError, ServiceError
from src.core.storage import LocalStorage
from src.engines.batch.schemas import BatchItem, BatchSubmitResponse, SubmittedItem

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class FakeService:
    """Stand-in for the sticker service HTTP API."""

    def __init__(self):
        # Number of 202s each correlation id returns before its PNG
        self.pending_rounds = {}
        self.generate_status = 202
        self.calls: List[str] = []
        self.submitted = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)

        if path == "/api/v1/generate":
            if self.generate_status == 200:
                return httpx.Response(200, content=PNG_BYTES, headers={"Content-Type": "image/png"})
            if self.generate_status == 502:
                return httpx.Response(502, json={"error": "OpenAI batch create failed (400): nope"})
            return httpx.Response(202, json={"status": "pending", "job_id": "batch_1", "correlation_id": "gen-1-aa"})

        if path == "/api/v1/batch":
            correlation_id = request.url.params["correlation_id"]
            remaining = self.pending_rounds.get(correlation_id, 0)
            if remaining < 0:
                return httpx.Response(500, text="<html>boom</html>")
            if remaining > 0:
                self.pending_rounds[correlation_id] = remaining - 1
                return httpx.Response(202, json={"status": "pending"})
            return httpx.Response(200, content=PNG_BYTES + correlation_id.encode())

        if path == "/api/v1/batch-csv":
            self.submitted = request.content.decode("utf-8")
            return httpx.Response(200, json={
                "job_id": "batch_9",
                "items": [
                    {"correlation_id": "csv-1-0001", "order": 1, "message": "a", "keyword": ""},
                ],
            })

        return httpx.Response(404)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.now += seconds


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
async def sticker_client(service):
    clock = FakeClock()
    http = httpx.AsyncClient(transport=httpx.MockTransport(service.handler), base_url="http://svc")
    async with http:
        yield StickerClient(http=http, poll_interval_ms=2000, clock=clock, sleep=clock.sleep)


@pytest.mark.asyncio
async def test_generate_returns_png_directly(sticker_client, service):
    service.generate_status = 200

    assert await sticker_client.generate("hi", "cat") == PNG_BYTES
    assert service.calls == ["/api/v1/generate"]


@pytest.mark.asyncio
async def test_generate_follows_pending(sticker_client, service):
    service.pending_rounds["gen-1-aa"] = 2

    png = await sticker_client.generate("hi", "cat")

    assert png == PNG_BYTES + b"gen-1-aa"
    assert service.calls == ["/api/v1/generate"] + ["/api/v1/batch"] * 3


@pytest.mark.asyncio
async def test_generate_times_out(sticker_client, service):
    service.pending_rounds["gen-1-aa"] = 10_000

    with pytest.raises(PollTimeoutError) as exc:
        await sticker_client.generate("hi", "cat", timeout_ms=10_000)

    assert exc.value.job_id == "batch_1"
    assert exc.value.details["timeout_ms"] == 10_000


@pytest.mark.asyncio
async def test_service_error_uses_error_field(sticker_client, service):
    service.generate_status = 502

    with pytest.raises(ServiceError) as exc:
        await sticker_client.generate()

    assert exc.value.code == 502
    assert exc.value.message == "OpenAI batch create failed (400): nope"


@pytest.mark.asyncio
async def test_poll_error_without_json_quotes_raw_body(sticker_client, service):
    service.pending_rounds["gen-1-aa"] = -1

    with pytest.raises(ServiceError) as exc:
        await sticker_client.generate()

    assert exc.value.message == "request failed (status 500): <html>boom</html>"


@pytest.mark.asyncio
async def test_submit_items_posts_payload_field(sticker_client, service):
    submission = await sticker_client.submit_items([BatchItem(message="ありがとう", keyword="餅")])

    assert submission.job_id == "batch_9"
    assert submission.items[0].correlation_id == "csv-1-0001"
    assert 'name="payload"' in service.submitted
    assert json.dumps({"message": "ありがとう", "keyword": "餅"}, ensure_ascii=False) in service.submitted


@pytest.mark.asyncio
async def test_download_all_saves_in_submission_order(sticker_client, service, tmp_path):
    submission = BatchSubmitResponse(
        job_id="batch_9",
        items=[
            SubmittedItem(correlation_id="csv-1-0002", order=2, message="b", keyword=""),
            SubmittedItem(correlation_id="csv-1-0001", order=1, message="a", keyword=""),
        ],
    )
    service.pending_rounds["csv-1-0001"] = 1
    progress = []
    storage = LocalStorage(str(tmp_path))

    keys = await sticker_client.download_all(
        submission,
        storage,
        on_progress=lambda done, total: progress.append((done, total)),
    )

    assert keys == ["stickers/001.png", "stickers/002.png"]
    assert await storage.exists("stickers/002.png")
    assert not await storage.exists("stickers/003.png")
    assert (tmp_path / "stickers" / "001.png").read_bytes() == PNG_BYTES + b"csv-1-0001"
    assert (tmp_path / "stickers" / "002.png").read_bytes() == PNG_BYTES + b"csv-1-0002"
    assert progress == [(1, 2), (2, 2)]


@pytest.mark.asyncio
async def test_download_all_blocks_on_stalled_item_and_times_out(sticker_client, service, tmp_path):
    submission = BatchSubmitResponse(
        job_id="batch_9",
        items=[
            SubmittedItem(correlation_id="csv-1-0001", order=1, message="a", keyword=""),
            SubmittedItem(correlation_id="csv-1-0002", order=2, message="b", keyword=""),
        ],
    )
    service.pending_rounds["csv-1-0001"] = 10_000

    with pytest.raises(PollTimeoutError) as exc:
        await sticker_client.download_all(submission, LocalStorage(str(tmp_path)), timeout_ms=60_000)

    assert exc.value.details["done"] == 0
    assert exc.value.details["total"] == 2
    assert not (tmp_path / "stickers" / "002.png").exists()


def test_csv_with_header_columns():
    items = read_csv_items("Theme,Message\n猫,こんにちは\n犬,\n,やあ\n", default_keyword="餅")

    assert items == [
        BatchItem(message="こんにちは", keyword="猫"),
        BatchItem(message="やあ", keyword="餅"),
    ]


def test_csv_without_header_and_quoted_fields():
    items = read_csv_items('"hello, world",cat\r\n\r\nsolo\n')

    assert items == [
        BatchItem(message="hello, world", keyword="cat"),
        BatchItem(message="solo", keyword=""),
    ]


def test_csv_empty():
    assert read_csv_items("") == []
