from __future__ import annotations

import numpy as np

from layerplot.colors import RGBA


def new_canvas(width: int, height: int, color: RGBA = (0, 0, 0, 0)) -> np.ndarray:
    canvas = np.zeros((height, width, 4), dtype=np.uint8)
    canvas[:, :] = np.asarray(color, dtype=np.uint8)
    return canvas


def blit(dst: np.ndarray, src: np.ndarray, x0: int = 0, y0: int = 0) -> None:
    h, w, _ = src.shape
    sx0 = max(0, -x0)
    sy0 = max(0, -y0)
    x0 = max(0, x0)
    y0 = max(0, y0)
    y1 = min(dst.shape[0], y0 + h - sy0)
    x1 = min(dst.shape[1], x0 + w - sx0)
    if y0 >= y1 or x0 >= x1:
        return

    view = dst[y0:y1, x0:x1]
    patch = src[sy0 : sy0 + (y1 - y0), sx0 : sx0 + (x1 - x0)]
    alpha = patch[:, :, 3:4].astype(np.float32) / 255.0
    inv = 1.0 - alpha
    view[:, :, :3] = (patch[:, :, :3] * alpha + view[:, :, :3] * inv).astype(np.uint8)
    view[:, :, 3] = 255


def blend_pixels(dst: np.ndarray, ys: np.ndarray, xs: np.ndarray, color: RGBA) -> None:
    """Alpha-blend one color onto a set of distinct pixels, skipping those off-canvas."""
    keep = (ys >= 0) & (ys < dst.shape[0]) & (xs >= 0) & (xs < dst.shape[1])
    if not np.any(keep):
        return
    ys = ys[keep]
    xs = xs[keep]
    a = color[3] / 255.0
    current = dst[ys, xs, :3].astype(np.float32)
    dst[ys, xs, :3] = (np.asarray(color[0:3], dtype=np.float32) * a + current * (1.0 - a)).astype(np.uint8)
    dst[ys, xs, 3] = 255


def draw_pixel(dst: np.ndarray, x: int, y: int, color: RGBA) -> None:
    if y < 0 or y >= dst.shape[0] or x < 0 or x >= dst.shape[1]:
        return
    a = color[3] / 255.0
    inv = 1.0 - a
    current = dst[y, x, :3].astype(np.float32)
    dst[y, x, 0:3] = (np.asarray(color[0:3], dtype=np.float32) * a + current * inv).astype(np.uint8)
    dst[y, x, 3] = 255


def fill_rect(dst: np.ndarray, x0: int, y0: int, x1: int, y1: int, color: RGBA) -> None:
    """Fill the inclusive pixel rectangle spanned by two corners."""
    left = max(0, min(x0, x1))
    right = min(dst.shape[1] - 1, max(x0, x1))
    top = max(0, min(y0, y1))
    bottom = min(dst.shape[0] - 1, max(y0, y1))
    if right < left or bottom < top:
        return
    region = dst[top : bottom + 1, left : right + 1]
    a = color[3] / 255.0
    region[:, :, :3] = (
        np.asarray(color[0:3], dtype=np.float32) * a + region[:, :, :3].astype(np.float32) * (1.0 - a)
    ).astype(np.uint8)
    region[:, :, 3] = 255


def draw_hline(dst: np.ndarray, x0: int, x1: int, y: int, color: RGBA, width: int = 1) -> None:
    half = max(1, width) // 2
    fill_rect(dst, x0, y - half, x1, y - half + max(1, width) - 1, color)


def draw_vline(dst: np.ndarray, x: int, y0: int, y1: int, color: RGBA, width: int = 1) -> None:
    half = max(1, width) // 2
    fill_rect(dst, x - half, y0, x - half + max(1, width) - 1, y1, color)
