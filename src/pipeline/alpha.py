"""
Alpha Normalization

Repairs the alpha channel of a generated sticker in two ordered phases:

1. Hole fill - transparent pixels that cannot reach the canvas border through
   4-connected transparent pixels are enclosed holes and get the fill colour
   (opaque white by default).
2. Edge clamp - every opaque pixel further than keep_edge_px (4-connected
   graph distance through opaque pixels) from the silhouette edge is forced
   to alpha 255. The band next to real transparency keeps its anti-aliasing.

Images are (height, width, 4) uint8 RGBA arrays. Both phases are pure
functions of the input pixels.
"""

from typing import Optional, Tuple

import cv2
import numpy as np

from src.core.exceptions import PostProcessError

KEEP_EDGE_PX = 2
WHITE = (255, 255, 255, 255)

# 8-neighbourhood offsets used for edge detection
_NEIGHBOURS_8 = [(dy, dx) for dy in (-1, 0, 1) for dx in (-1, 0, 1) if (dy, dx) != (0, 0)]


def check_rgba(image: np.ndarray, stage: str) -> np.ndarray:
    """Validate an RGBA raster, raising PostProcessError if malformed."""
    if not isinstance(image, np.ndarray):
        raise PostProcessError(f"expected ndarray, got {type(image).__name__}", stage=stage)
    if image.ndim != 3 or image.shape[2] != 4:
        raise PostProcessError(f"expected (H, W, 4) RGBA raster, got shape {image.shape}", stage=stage)
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise PostProcessError("raster has no pixels", stage=stage)
    if image.dtype != np.uint8:
        raise PostProcessError(f"expected uint8 channels, got {image.dtype}", stage=stage)
    return image


def enclosed_holes(alpha: np.ndarray) -> np.ndarray:
    """Mask of alpha==0 pixels with no 4-connected transparent path to the border."""
    transparent = (alpha == 0).astype(np.uint8)
    if not transparent.any():
        return np.zeros(alpha.shape, dtype=bool)

    # Flood from the border: a transparent component is background if any
    # of its pixels sits on the canvas border.
    _, labels = cv2.connectedComponents(transparent, connectivity=4)
    border = np.concatenate([labels[0, :], labels[-1, :], labels[:, 0], labels[:, -1]])
    background_labels = np.unique(border[border > 0])

    return (transparent == 1) & ~np.isin(labels, background_labels)


def edge_mask(alpha: np.ndarray) -> np.ndarray:
    """Opaque pixels with an 8-neighbour that is transparent or off-canvas."""
    h, w = alpha.shape
    # Off-canvas counts as transparent
    clear = np.pad(alpha == 0, 1, mode="constant", constant_values=True)

    near_clear = np.zeros((h, w), dtype=bool)
    for dy, dx in _NEIGHBOURS_8:
        near_clear |= clear[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]

    return (alpha > 0) & near_clear


def edge_distance(alpha: np.ndarray, limit: Optional[int] = None) -> np.ndarray:
    """
    Multi-source BFS distance from edge pixels through 4-connected opaque pixels.

    The search expands one ring per level over the whole frame, so every
    pixel gets its shortest graph distance regardless of visiting order.

    Args:
        alpha: (H, W) alpha channel
        limit: stop after this many levels; opaque pixels not reached by then
            are reported as limit + 1

    Returns:
        int32 array: -1 for transparent pixels, otherwise the distance
    """
    opaque = alpha > 0
    dist = np.full(alpha.shape, -1, dtype=np.int32)

    frontier = edge_mask(alpha)
    dist[frontier] = 0

    level = 0
    while frontier.any() and (limit is None or level < limit):
        level += 1
        grown = np.zeros_like(frontier)
        grown[1:, :] |= frontier[:-1, :]
        grown[:-1, :] |= frontier[1:, :]
        grown[:, 1:] |= frontier[:, :-1]
        grown[:, :-1] |= frontier[:, 1:]

        frontier = grown & opaque & (dist == -1)
        dist[frontier] = level

    if limit is not None:
        dist[opaque & (dist == -1)] = limit + 1
    return dist


class AlphaNormalizer:
    """Hole fill followed by the edge-preserving opacity clamp."""

    def __init__(
        self,
        keep_edge_px: int = KEEP_EDGE_PX,
        fill_holes: bool = True,
        hole_fill_rgba: Tuple[int, int, int, int] = WHITE
    ):
        if keep_edge_px < 0:
            raise ValueError("keep_edge_px must be >= 0")
        self.keep_edge_px = keep_edge_px
        self.fill_holes = fill_holes
        self.hole_fill_rgba = np.array(hole_fill_rgba, dtype=np.uint8)

    def fill_enclosed_holes(self, image: np.ndarray) -> Tuple[np.ndarray, int]:
        """Phase 1. Returns the repaired copy and the number of pixels filled."""
        out = image.copy()
        holes = enclosed_holes(out[:, :, 3])
        out[holes] = self.hole_fill_rgba
        return out, int(holes.sum())

    def clamp_interior(self, image: np.ndarray) -> Tuple[np.ndarray, int]:
        """Phase 2. Returns the clamped copy and the number of pixels touched."""
        out = image.copy()
        alpha = out[:, :, 3]
        dist = edge_distance(alpha, limit=self.keep_edge_px)
        interior = dist > self.keep_edge_px
        alpha[interior] = 255
        return out, int(interior.sum())

    def normalize(self, image: np.ndarray) -> np.ndarray:
        check_rgba(image, stage="normalize")
        try:
            out = image
            if self.fill_holes:
                out, _ = self.fill_enclosed_holes(out)
            out, _ = self.clamp_interior(out)
        except cv2.error as e:
            raise PostProcessError(f"alpha normalization failed: {e}", stage="normalize")
        return out
