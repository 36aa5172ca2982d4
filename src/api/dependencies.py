"""
FastAPI Dependencies for the Sticker Service

Provides dependency injection for:
- Settings and the shared httpx.AsyncClient (built once in the lifespan, kept on app.state)
- OpenAI transport (per-request, fails fast without OPENAI_API_KEY)
- Job submitter / poller / poll orchestrator / direct generator (per-request)
- Sticker post-processor (singleton on app.state)

Tests swap any of these through app.dependency_overrides.
"""

from fastapi import Depends, Request
import httpx

from src.core.config import Settings
from src.engines.batch.client import OpenAIClient, create_openai_client
from src.engines.batch.direct import DirectGenerator
from src.engines.batch.orchestrator import PollOrchestrator
from src.engines.batch.poller import JobPoller
from src.engines.batch.submitter import JobSubmitter
from src.pipeline.stages import StickerPostProcessor


# =============================================================================
# Process-wide state
# =============================================================================

def get_app_settings(request: Request) -> Settings:
    """Returns the settings object built at startup."""
    return request.app.state.settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Returns the shared HTTP transport (safe for concurrent use)."""
    return request.app.state.http


def get_postprocessor(request: Request) -> StickerPostProcessor:
    """Returns the singleton post-processor."""
    return request.app.state.postprocessor


# =============================================================================
# Batch API engine
# =============================================================================

def get_openai_client(
    settings: Settings = Depends(get_app_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> OpenAIClient:
    """Raises ConfigurationError before any network call if the key is missing."""
    return create_openai_client(settings, http)


def get_submitter(
    client: OpenAIClient = Depends(get_openai_client),
    settings: Settings = Depends(get_app_settings),
) -> JobSubmitter:
    return JobSubmitter(client, completion_window=settings.BATCH_COMPLETION_WINDOW)


def get_poller(client: OpenAIClient = Depends(get_openai_client)) -> JobPoller:
    return JobPoller(client)


def get_orchestrator(poller: JobPoller = Depends(get_poller)) -> PollOrchestrator:
    return PollOrchestrator(poller)


def get_direct_generator(client: OpenAIClient = Depends(get_openai_client)) -> DirectGenerator:
    return DirectGenerator(client)
