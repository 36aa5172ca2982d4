"""
Prometheus Metrics for Observability

Tracks post-processing latency, Batch API submissions and polls, and
HTTP traffic. Exposes /api/v1/metrics for Prometheus scraping.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Post-processing latency - per stage
pipeline_latency_seconds = Histogram(
    "pipeline_latency_seconds",
    "Time spent in each post-processing stage",
    labelnames=["stage", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Batch API submissions
batch_submissions_total = Counter(
    "batch_submissions_total",
    "Total number of Batch API submissions",
    labelnames=["kind", "status"]
)

# Result checks against a batch
batch_polls_total = Counter(
    "batch_polls_total",
    "Total number of batch result checks",
    labelnames=["outcome"]
)

# Degraded post-processing
postprocess_fallbacks_total = Counter(
    "postprocess_fallbacks_total",
    "Post-processing stages that fell back to the unmodified image",
    labelnames=["stage"]
)

# API Request Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    labelnames=["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Application Info
app_info = Info(
    "sticker_app",
    "Application information"
)


# =============================================================================
# Helper Functions
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info metric."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.

    Usage:
        with track_stage_latency("normalize"):
            # do work
    """
    start = time.time()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.time() - start
        pipeline_latency_seconds.labels(stage=stage, status=status).observe(duration)


def record_batch_submission(kind: str, status: str):
    """Record a Batch API submission (kind: single | multi | direct)."""
    batch_submissions_total.labels(kind=kind, status=status).inc()


def record_batch_poll(outcome: str):
    """Record one result check (outcome: found | not_ready | missing | error)."""
    batch_polls_total.labels(outcome=outcome).inc()


def record_postprocess_fallback(stage: str):
    """Record a post-processing stage that passed its input through."""
    postprocess_fallbacks_total.labels(stage=stage).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
