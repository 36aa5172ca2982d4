"""
API v1 Router Module - Sticker Service

All v1 endpoints are prefixed with /api/v1/

- GET  /api/v1/generate  - Generate one sticker (bounded wait, 202 if still running)
- GET  /api/v1/batch     - Single result check for a submitted item
- POST /api/v1/batch-csv - Submit many stickers as one batch job
- GET  /api/v1/metrics   - Prometheus metrics
"""

from fastapi import APIRouter

from src.api.v1.generate import router as generate_router
from src.api.v1.batch import router as batch_router
from src.api.v1.metrics import router as metrics_router

# Main v1 router
api_v1_router = APIRouter(prefix="/api/v1")

api_v1_router.include_router(generate_router, tags=["generate"])
api_v1_router.include_router(batch_router, tags=["batch"])
api_v1_router.include_router(metrics_router, tags=["metrics"])
