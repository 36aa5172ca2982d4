"""
Contain Resize

Fits a raster into a fixed target canvas preserving aspect ratio. The image
is centred, sampled bilinearly, and the uncovered border stays fully
transparent (0, 0, 0, 0).
"""

from dataclasses import dataclass

import numpy as np

from src.pipeline.alpha import check_rgba

OUTPUT_WIDTH = 370
OUTPUT_HEIGHT = 320


@dataclass(frozen=True)
class Placement:
    """Where the scaled source lands on the target canvas."""
    scale: float
    offset_x: float
    offset_y: float


def contain_placement(src_w: int, src_h: int, dst_w: int, dst_h: int) -> Placement:
    scale = min(dst_w / src_w, dst_h / src_h)
    return Placement(
        scale=scale,
        offset_x=(dst_w - src_w * scale) / 2,
        offset_y=(dst_h - src_h * scale) / 2,
    )


class ContainResizer:
    """Bilinear contain-fit into a target_width x target_height canvas."""

    def __init__(self, target_width: int = OUTPUT_WIDTH, target_height: int = OUTPUT_HEIGHT):
        if target_width <= 0 or target_height <= 0:
            raise ValueError("target dimensions must be positive")
        self.target_width = target_width
        self.target_height = target_height

    def resize(self, image: np.ndarray) -> np.ndarray:
        """
        Resize an (H, W, 4) uint8 raster into the target canvas.

        Each destination pixel is inverse-mapped into source space. Pixels
        whose source coordinate falls outside [0, W-1] x [0, H-1] are left
        transparent; the rest blend their four neighbours per channel and
        truncate to an integer.
        """
        check_rgba(image, stage="resize")
        src_h, src_w = image.shape[:2]
        dst_w, dst_h = self.target_width, self.target_height

        placement = contain_placement(src_w, src_h, dst_w, dst_h)
        canvas = np.zeros((dst_h, dst_w, 4), dtype=np.uint8)

        xs = (np.arange(dst_w, dtype=np.float64) - placement.offset_x) / placement.scale
        ys = (np.arange(dst_h, dtype=np.float64) - placement.offset_y) / placement.scale
        cols = np.nonzero((xs >= 0) & (xs <= src_w - 1))[0]
        rows = np.nonzero((ys >= 0) & (ys <= src_h - 1))[0]
        if cols.size == 0 or rows.size == 0:
            return canvas

        sx = xs[cols]
        sy = ys[rows]
        x0 = np.floor(sx).astype(np.intp)
        y0 = np.floor(sy).astype(np.intp)
        x1 = np.minimum(x0 + 1, src_w - 1)
        y1 = np.minimum(y0 + 1, src_h - 1)

        # Broadcast weights: tx over columns, ty over rows, shared by channels
        tx = (sx - x0)[np.newaxis, :, np.newaxis]
        ty = (sy - y0)[:, np.newaxis, np.newaxis]

        v00 = image[y0[:, np.newaxis], x0[np.newaxis, :]].astype(np.float64)
        v10 = image[y0[:, np.newaxis], x1[np.newaxis, :]].astype(np.float64)
        v01 = image[y1[:, np.newaxis], x0[np.newaxis, :]].astype(np.float64)
        v11 = image[y1[:, np.newaxis], x1[np.newaxis, :]].astype(np.float64)

        top = v00 * (1 - tx) + v10 * tx
        bottom = v01 * (1 - tx) + v11 * tx
        blended = top * (1 - ty) + bottom * ty

        canvas[rows[:, np.newaxis], cols[np.newaxis, :]] = np.trunc(blended).astype(np.uint8)
        return canvas
