from __future__ import annotations

import numpy as np

from layerplot.colors import RGBA
from layerplot.raster.canvas import blend_pixels


def draw_polyline(dst: np.ndarray, xs: np.ndarray, ys: np.ndarray, color: RGBA, width: int = 1) -> None:
    """Stroke consecutive points with a square brush.

    Covered pixels are collected first and blended once, so a translucent
    stroke keeps a uniform alpha where brush stamps and segments overlap.
    """
    if xs.size < 2:
        return
    px, py = [], []
    for i in range(xs.size - 1):
        sx, sy = _segment_pixels(int(xs[i]), int(ys[i]), int(xs[i + 1]), int(ys[i + 1]))
        px.append(sx)
        py.append(sy)
    cx = np.concatenate(px)
    cy = np.concatenate(py)

    radius = max(0, int(width) // 2)
    if radius:
        span = np.arange(-radius, radius + 1, dtype=np.int64)
        oy, ox = np.meshgrid(span, span, indexing="ij")
        cx = (cx[:, None] + ox.ravel()[None, :]).ravel()
        cy = (cy[:, None] + oy.ravel()[None, :]).ravel()

    covered = np.unique(np.stack([cy, cx], axis=1), axis=0)
    blend_pixels(dst, covered[:, 0], covered[:, 1], color)


def _segment_pixels(x0: int, y0: int, x1: int, y1: int) -> tuple[np.ndarray, np.ndarray]:
    steps = max(abs(x1 - x0), abs(y1 - y0))
    t = np.linspace(0.0, 1.0, steps + 1)
    return (
        np.rint(x0 + (x1 - x0) * t).astype(np.int64),
        np.rint(y0 + (y1 - y0) * t).astype(np.int64),
    )
