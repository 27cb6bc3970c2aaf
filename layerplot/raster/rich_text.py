from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np

from layerplot.colors import RGBA, parse_hex
from layerplot.markup import LineBreak, RichText, TextRun
from layerplot.raster.canvas import new_canvas
from layerplot.raster.draw_text import FontFace, draw_text, load_face, text_width
from layerplot.theme import ResolvedText


Align = Literal["left", "center", "right"]


@dataclass(frozen=True)
class PlacedRun:
    x: int
    top: int
    text: str
    color: RGBA
    face: FontFace


@dataclass(frozen=True)
class TextBlock:
    width: int
    height: int
    runs: tuple[PlacedRun, ...]


def points_to_px(size_pt: float, dpi: float) -> float:
    return float(size_pt) * float(dpi) / 72.0


def layout_rich_text(
    runs: RichText,
    base: ResolvedText,
    *,
    dpi: float,
    align: Align = "left",
    line_spacing: float = 1.15,
) -> TextBlock:
    """Place styled runs line by line on a shared baseline.

    Run styles override the role defaults in `base`; bold and italic from the
    role are kept when the run adds none of its own.
    """
    lines: list[list[tuple[str, RGBA, FontFace]]] = [[]]
    for run in runs:
        if isinstance(run, LineBreak):
            lines.append([])
            continue
        if not isinstance(run, TextRun):
            raise TypeError(f"unsupported rich-text run: {run!r}")
        style = run.style
        size_pt = style.font_size_pt if style.font_size_pt is not None else base.size_pt
        face = load_face(
            style.font_family or base.family,
            points_to_px(size_pt, dpi),
            bold=style.bold or base.bold,
            italic=style.italic or base.italic,
        )
        lines[-1].append((run.text, parse_hex(style.color or base.color), face))

    base_face = load_face(base.family, points_to_px(base.size_pt, dpi), bold=base.bold, italic=base.italic)
    measured: list[tuple[int, int, int, list[tuple[str, RGBA, FontFace, int]]]] = []
    for line in lines:
        ascent = max((face.ascent for _, _, face in line), default=base_face.ascent)
        descent = max((face.descent for _, _, face in line), default=base_face.descent)
        pen = 0
        placed: list[tuple[str, RGBA, FontFace, int]] = []
        for text, color, face in line:
            placed.append((text, color, face, pen))
            pen += text_width(text, face)
        measured.append((pen, ascent, descent, placed))

    width = max((m[0] for m in measured), default=0)
    out: list[PlacedRun] = []
    y = 0
    for i, (line_w, ascent, descent, placed) in enumerate(measured):
        if align == "center":
            offset = (width - line_w) // 2
        elif align == "right":
            offset = width - line_w
        else:
            offset = 0
        baseline = y + ascent
        for text, color, face, pen in placed:
            out.append(PlacedRun(x=offset + pen, top=baseline - face.ascent, text=text, color=color, face=face))
        y = baseline + descent
        if i < len(measured) - 1:
            y += int(round((ascent + descent) * (line_spacing - 1.0)))
    return TextBlock(width=max(1, width), height=max(1, y), runs=tuple(out))


def render_text_block(block: TextBlock) -> np.ndarray:
    patch = new_canvas(block.width, block.height)
    for run in block.runs:
        draw_text(patch, run.x, run.top, run.text, run.color, run.face)
    return patch


def rich_text_patch(
    runs: RichText,
    base: ResolvedText,
    *,
    dpi: float,
    align: Align = "left",
    rotate: int = 0,
) -> np.ndarray:
    """Render styled runs into a transparent RGBA patch, optionally turned by quarter turns."""
    patch = render_text_block(layout_rich_text(runs, base, dpi=dpi, align=align))
    if rotate % 4:
        patch = np.ascontiguousarray(np.rot90(patch, k=rotate % 4))
    return patch
