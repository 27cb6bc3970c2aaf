from __future__ import annotations

from functools import lru_cache

import numpy as np

from layerplot.raster.canvas import blend_pixels


def draw_markers(
    dst: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    colors: np.ndarray,
    radius: int | np.ndarray = 1,
) -> None:
    """Draw filled discs in order; `colors` holds one RGBA row per point."""
    radii = np.broadcast_to(np.asarray(radius, dtype=np.int64), xs.shape)
    for x, y, r, color in zip(xs.tolist(), ys.tolist(), radii.tolist(), colors.tolist(), strict=False):
        dy, dx = _disc_offsets(max(0, int(r)))
        blend_pixels(dst, dy + int(y), dx + int(x), tuple(color))


@lru_cache(maxsize=64)
def _disc_offsets(radius: int) -> tuple[np.ndarray, np.ndarray]:
    span = np.arange(-radius, radius + 1, dtype=np.int32)
    yy, xx = np.meshgrid(span, span, indexing="ij")
    inside = (xx * xx + yy * yy) <= radius * radius + radius * 0.5
    return yy[inside].copy(), xx[inside].copy()
