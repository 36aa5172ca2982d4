"""
Pipeline Stage Implementations

Post-processing applied to every generated sticker before it is returned:

    base64 PNG -> Stage 1: alpha normalization -> Stage 2: contain resize -> PNG

Each stage is a separate function that can be called independently. A stage
that fails with PostProcessError passes its input through unchanged, so a
request is never failed by post-processing.
"""

import base64
import binascii
import io

import numpy as np
from PIL import Image

from src.core.config import Settings
from src.core.exceptions import PostProcessError
from src.core.logging import get_logger
from src.core.metrics import record_postprocess_fallback, track_stage_latency
from src.pipeline.alpha import AlphaNormalizer
from src.pipeline.resize import ContainResizer

logger = get_logger(__name__)


# =============================================================================
# PNG codec
# =============================================================================

def decode_png(data: bytes, stage: str) -> np.ndarray:
    """Decode an image into an (H, W, 4) uint8 RGBA array."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            return np.array(image.convert("RGBA"), dtype=np.uint8)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise PostProcessError(f"cannot decode image: {e}", stage=stage)


def encode_png(rgba: np.ndarray, stage: str) -> bytes:
    try:
        output_buffer = io.BytesIO()
        Image.fromarray(rgba).save(output_buffer, format="PNG")
    except (OSError, ValueError, TypeError) as e:
        raise PostProcessError(f"cannot encode PNG: {e}", stage=stage)
    return output_buffer.getvalue()


def decode_b64(b64: str) -> bytes:
    """Decode the upstream base64 payload.

    Undecodable payloads are returned as raw bytes so the stages below can
    degrade to pass-through.
    """
    try:
        return base64.b64decode(b64)
    except (binascii.Error, ValueError):
        logger.warning("postprocess_b64_invalid", length=len(b64))
        return b64.encode("ascii", errors="ignore")


# =============================================================================
# Coordinator
# =============================================================================

class StickerPostProcessor:
    """
    Runs the two post-processing stages in order with graceful fallback.

    Stage 1 output (or its input on failure) feeds Stage 2; Stage 2 output
    (or its input on failure) is the response body.
    """

    def __init__(self, normalizer: AlphaNormalizer, resizer: ContainResizer):
        self.normalizer = normalizer
        self.resizer = resizer

    @classmethod
    def from_settings(cls, settings: Settings) -> "StickerPostProcessor":
        return cls(
            normalizer=AlphaNormalizer(
                keep_edge_px=settings.KEEP_EDGE_PX,
                fill_holes=settings.FILL_ENCLOSED_HOLES,
                hole_fill_rgba=settings.HOLE_FILL_RGBA,
            ),
            resizer=ContainResizer(settings.OUTPUT_WIDTH, settings.OUTPUT_HEIGHT),
        )

    def normalize_stage(self, png: bytes) -> bytes:
        with track_stage_latency("normalize"):
            rgba = decode_png(png, stage="normalize")
            return encode_png(self.normalizer.normalize(rgba), stage="normalize")

    def resize_stage(self, png: bytes) -> bytes:
        with track_stage_latency("resize"):
            rgba = decode_png(png, stage="resize")
            return encode_png(self.resizer.resize(rgba), stage="resize")

    def process(self, b64: str) -> bytes:
        """Turn an upstream base64 PNG into the final sticker PNG bytes."""
        original = decode_b64(b64)

        try:
            normalized = self.normalize_stage(original)
        except PostProcessError as e:
            self._fallback(e)
            normalized = original

        try:
            return self.resize_stage(normalized)
        except PostProcessError as e:
            self._fallback(e)
            return normalized

    def _fallback(self, error: PostProcessError):
        record_postprocess_fallback(error.stage)
        logger.warning("postprocess_fallback", stage=error.stage, error=error.message)
