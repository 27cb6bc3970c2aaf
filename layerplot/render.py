from __future__ import annotations

from dataclasses import dataclass
import logging

import numpy as np

from layerplot.colors import RGBA, parse_hex
from layerplot.data.filters import filter_rows
from layerplot.data.table import Table
from layerplot.display import DEFAULT_DPI, DEFAULT_HEIGHT_IN, DEFAULT_WIDTH_IN, Units, resolve_figure_size
from layerplot.errors import DataFormatError, RenderError
from layerplot.markup import RichText, TextRun, escape_markup, resolve_markup
from layerplot.palettes import get_palette, interpolate
from layerplot.plot import Layer, PlotSpec
from layerplot.raster.canvas import blit, draw_hline, draw_vline, fill_rect, new_canvas
from layerplot.raster.draw_lines import draw_polyline
from layerplot.raster.draw_markers import draw_markers
from layerplot.raster.rich_text import Align, rich_text_patch
from layerplot.scales import (
    ColorbarGuide,
    ColorGuide,
    DataLimits,
    KeyGuide,
    PlotTransform,
    build_transform,
    format_ticks,
    map_colors,
    map_to_pixels,
    resolve_breaks,
    resolve_range,
    within_limits,
)
from layerplot.theme import Theme, get_default_theme


LOGGER = logging.getLogger(__name__)

PT_PER_MM = 72.27 / 25.4
DEFAULT_MARK_COLOR = "#000000"
DEFAULT_POINT_SIZE = 1.5
DEFAULT_LINEWIDTH = 0.5
SIZE_RANGE = (1.0, 6.0)
ALPHA_RANGE = (0.1, 1.0)


@dataclass(frozen=True)
class LayerMarks:
    """Pixel positions (figure coordinates) and colors drawn for one layer."""

    geometry: str
    px: np.ndarray
    py: np.ndarray
    colors: np.ndarray
    removed: int


@dataclass(frozen=True)
class RenderedFigure:
    rgba: np.ndarray
    dpi: float
    panel_rect: tuple[int, int, int, int]
    marks: tuple[LayerMarks, ...]

    @property
    def width(self) -> int:
        return int(self.rgba.shape[1])

    @property
    def height(self) -> int:
        return int(self.rgba.shape[0])


@dataclass(frozen=True)
class _PreparedLayer:
    layer: Layer
    aesthetics: dict[str, str]
    table: Table
    x: np.ndarray
    y: np.ndarray
    removed: int


@dataclass(frozen=True)
class _Legend:
    guide: ColorGuide
    title: np.ndarray | None
    key_px: int
    labels: tuple[np.ndarray, ...]
    width: int
    height: int


def render(
    spec: PlotSpec,
    *,
    width: float | None = DEFAULT_WIDTH_IN,
    height: float | None = DEFAULT_HEIGHT_IN,
    units: Units = "in",
    dpi: float = DEFAULT_DPI,
    data: Table | None = None,
) -> RenderedFigure:
    """Render a plot to an RGBA array.

    The process-wide default theme is read once on entry; the result depends
    only on `spec`, the table and the snapshot, so repeated calls produce
    identical pixels.
    """
    theme = spec.resolved_theme(get_default_theme())
    table = data if data is not None else spec.data
    if table is None:
        raise RenderError("plot has no data; pass data= or call PlotSpec.with_data")
    if not spec.layers:
        raise RenderError("plot has no layers")
    try:
        fig_w, fig_h = resolve_figure_size(width, height, units=units, dpi=dpi)
    except ValueError as exc:
        raise RenderError(str(exc)) from exc

    prepared = [_prepare_layer(spec, layer, table, index) for index, layer in enumerate(spec.layers)]
    x_scale = spec.scales.get("x")
    y_scale = spec.scales.get("y")
    xlo, xhi = resolve_range(np.concatenate([p.x for p in prepared]), x_scale)
    ylo, yhi = resolve_range(np.concatenate([p.y for p in prepared]), y_scale)
    layer_colors, guide = _resolve_colors(spec, prepared)

    scale = float(dpi) / 72.0
    labels = _resolve_labels(spec, prepared)

    def text_patch(slot: str, role: str, align: Align = "left", rotate: int = 0) -> np.ndarray | None:
        runs = labels.get(slot)
        if not runs:
            return None
        return rich_text_patch(runs, theme.text(role), dpi=dpi, align=align, rotate=rotate)

    title = text_patch("title", "title")
    subtitle = text_patch("subtitle", "subtitle")
    caption = text_patch("caption", "caption", align="right")
    x_title = text_patch("x", "axis_title", align="center")
    y_title = text_patch("y", "axis_title", align="center", rotate=1)

    x_breaks = resolve_breaks(xlo, xhi, x_scale, target=5)
    y_breaks = resolve_breaks(ylo, yhi, y_scale, target=5)
    x_tick_labels = [_plain_patch(t, theme, "axis_text", dpi, "center") for t in format_ticks(x_breaks)]
    y_tick_labels = [_plain_patch(t, theme, "axis_text", dpi, "right") for t in format_ticks(y_breaks)]
    legend = None
    if guide is not None and theme.legend_position == "right":
        legend = _build_legend(guide, text_patch("color", "legend_title"), theme, dpi)

    gap = max(1, int(round(theme.base_size_pt * 0.25 * scale)))
    m_top, m_right, m_bottom, m_left = (int(round(m * scale)) for m in theme.margin_pt)
    tick_len = int(round(theme.tick_length_pt * scale))
    x_tick_h = max((p.shape[0] for p in x_tick_labels), default=0)
    y_tick_w = max((p.shape[1] for p in y_tick_labels), default=0)

    top = m_top + sum(p.shape[0] + gap for p in (title, subtitle) if p is not None)
    bottom = m_bottom + tick_len + gap + x_tick_h
    bottom += sum(p.shape[0] + gap for p in (x_title, caption) if p is not None)
    left = m_left + tick_len + gap + y_tick_w + (y_title.shape[1] + gap if y_title is not None else 0)
    right = m_right + (legend.width + 2 * gap if legend is not None else 0)
    if x_tick_labels:
        right = max(right, m_right + x_tick_labels[-1].shape[1] // 2)
    panel_w = fig_w - left - right
    panel_h = fig_h - top - bottom
    if panel_w <= 1 or panel_h <= 1:
        raise RenderError(f"figure {fig_w}x{fig_h}px is too small for the plot panel")

    canvas = new_canvas(fig_w, fig_h, parse_hex(theme.background_color))
    fill_rect(canvas, left, top, left + panel_w - 1, top + panel_h - 1, parse_hex(theme.panel_background_color))
    panel = canvas[top : top + panel_h, left : left + panel_w]
    transform = build_transform(DataLimits(xmin=xlo, xmax=xhi, ymin=ylo, ymax=yhi), panel_w, panel_h)

    line_px = max(1, int(round(theme.base_size_pt / 22.0 * PT_PER_MM * scale)))
    bx = _x_pixels(x_breaks, transform)
    by = _y_pixels(y_breaks, transform, panel_h)
    if theme.show_minor_grid:
        minor = parse_hex(theme.minor_grid_color)
        minor_px = max(1, line_px // 2)
        for x in _x_pixels(_minor_breaks(x_breaks, xlo, xhi), transform).tolist():
            draw_vline(panel, x, 0, panel_h - 1, minor, minor_px)
        for y in _y_pixels(_minor_breaks(y_breaks, ylo, yhi), transform, panel_h).tolist():
            draw_hline(panel, 0, panel_w - 1, y, minor, minor_px)
    if theme.show_major_grid:
        major = parse_hex(theme.major_grid_color)
        for x in bx.tolist():
            draw_vline(panel, x, 0, panel_h - 1, major, line_px)
        for y in by.tolist():
            draw_hline(panel, 0, panel_w - 1, y, major, line_px)

    marks = tuple(
        _draw_layer(panel, p, colors, transform, scale, offset=(left, top))
        for p, colors in zip(prepared, layer_colors, strict=True)
    )

    tick_color = parse_hex(theme.tick_color)
    if tick_len > 0:
        for x in bx.tolist():
            draw_vline(canvas, left + x, top + panel_h, top + panel_h + tick_len - 1, tick_color, line_px)
        for y in by.tolist():
            draw_hline(canvas, left - tick_len, left - 1, top + y, tick_color, line_px)

    tick_label_y = top + panel_h + tick_len + gap // 2
    for x, patch in zip(bx.tolist(), x_tick_labels, strict=True):
        blit(canvas, patch, left + x - patch.shape[1] // 2, tick_label_y)
    tick_label_right = left - tick_len - gap // 2
    for y, patch in zip(by.tolist(), y_tick_labels, strict=True):
        blit(canvas, patch, tick_label_right - patch.shape[1], top + y - patch.shape[0] // 2)

    if x_title is not None:
        blit(canvas, x_title, left + (panel_w - x_title.shape[1]) // 2, tick_label_y + x_tick_h + gap)
    if y_title is not None:
        y_title_x = tick_label_right - y_tick_w - gap - y_title.shape[1]
        blit(canvas, y_title, y_title_x, top + (panel_h - y_title.shape[0]) // 2)

    title_x = left if theme.title_position == "panel" else m_left
    cursor_y = m_top
    for patch in (title, subtitle):
        if patch is not None:
            blit(canvas, patch, title_x, cursor_y)
            cursor_y += patch.shape[0] + gap
    if caption is not None:
        blit(canvas, caption, fig_w - m_right - caption.shape[1], fig_h - m_bottom - caption.shape[0])

    if legend is not None:
        legend_x = fig_w - m_right - legend.width
        legend_y = max(0, top + (panel_h - legend.height) // 2)
        _draw_legend(canvas, legend, legend_x, legend_y, theme)

    LOGGER.debug("rendered %dx%d figure with %d layer(s)", fig_w, fig_h, len(marks))
    return RenderedFigure(rgba=canvas, dpi=float(dpi), panel_rect=(left, top, panel_w, panel_h), marks=marks)


def _prepare_layer(spec: PlotSpec, layer: Layer, table: Table, index: int) -> _PreparedLayer:
    aesthetics = layer.resolved_aesthetics(spec.aesthetics)
    where = f"layer {index} (geom_{layer.geometry})"
    for channel, column in aesthetics.items():
        if column not in table:
            raise RenderError(f"{where} maps `{channel}` to missing column {column!r}")
    try:
        filtered = filter_rows(table, layer.data_filter)
    except DataFormatError as exc:
        raise RenderError(f"{where} data filter failed: {exc}") from exc

    keep = np.ones(len(filtered), dtype=bool)
    for channel in ("x", "y", "size", "alpha"):
        if channel not in aesthetics:
            continue
        column = aesthetics[channel]
        if not filtered.is_numeric(column):
            raise RenderError(f"{where} maps `{channel}` to non-numeric column {column!r}")
        keep &= np.isfinite(filtered.column(column))
    x = filtered.column(aesthetics["x"])
    y = filtered.column(aesthetics["y"])
    keep &= within_limits(x, spec.scales.get("x")) & within_limits(y, spec.scales.get("y"))

    removed = int(np.count_nonzero(~keep))
    if removed:
        LOGGER.warning(
            "Removed %d rows containing missing or out-of-range values (geom_%s).", removed, layer.geometry
        )
    kept = filtered.take(keep)
    return _PreparedLayer(
        layer=layer,
        aesthetics=aesthetics,
        table=kept,
        x=kept.column(aesthetics["x"]),
        y=kept.column(aesthetics["y"]),
        removed=removed,
    )


def _resolve_colors(
    spec: PlotSpec, prepared: list[_PreparedLayer]
) -> tuple[list[np.ndarray | None], ColorGuide | None]:
    mapped = [i for i, p in enumerate(prepared) if "color" in p.aesthetics]
    out: list[np.ndarray | None] = [None] * len(prepared)
    if not mapped:
        return out, None
    values = [prepared[i].table.column(prepared[i].aesthetics["color"]) for i in mapped]
    if len({v.dtype.kind == "f" for v in values}) > 1:
        raise RenderError("layers map `color` to both numeric and categorical columns")
    colors, guide = map_colors(np.concatenate(values), spec.scales.get("color"))
    splits = np.cumsum([v.shape[0] for v in values])[:-1]
    for i, chunk in zip(mapped, np.split(colors, splits), strict=True):
        out[i] = chunk
    return out, guide


def _resolve_labels(spec: PlotSpec, prepared: list[_PreparedLayer]) -> dict[str, RichText]:
    raw = dict(spec.labels)
    first = prepared[0].aesthetics
    # Column names are plain text, so defaults are quoted before resolving.
    raw.setdefault("x", escape_markup(first["x"]))
    raw.setdefault("y", escape_markup(first["y"]))
    color_columns = [p.aesthetics["color"] for p in prepared if "color" in p.aesthetics]
    if color_columns:
        raw.setdefault("color", escape_markup(color_columns[0]))
    # Every non-empty slot goes through the resolver, plain text included.
    return {slot: resolve_markup(text) for slot, text in raw.items() if text}


def _plain_patch(text: str, theme: Theme, role: str, dpi: float, align: Align) -> np.ndarray:
    return rich_text_patch((TextRun(text),), theme.text(role), dpi=dpi, align=align)


def _x_pixels(values: np.ndarray, transform: PlotTransform) -> np.ndarray:
    return np.rint(values * transform.sx + transform.tx).astype(np.int32)


def _y_pixels(values: np.ndarray, transform: PlotTransform, height: int) -> np.ndarray:
    return (height - 1) - np.rint(values * transform.sy + transform.ty).astype(np.int32)


def _minor_breaks(major: np.ndarray, lo: float, hi: float) -> np.ndarray:
    if major.size < 2:
        return np.empty(0, dtype=np.float64)
    steps = np.diff(major)
    minor = np.concatenate(
        [[major[0] - steps[0] / 2.0], major[:-1] + steps / 2.0, [major[-1] + steps[-1] / 2.0]]
    )
    return minor[(minor >= lo) & (minor <= hi)]


def _rescale(values: np.ndarray, out_range: tuple[float, float]) -> np.ndarray:
    lo, hi = out_range
    if values.size == 0:
        return values
    vmin = float(np.min(values))
    vmax = float(np.max(values))
    if vmax == vmin:
        return np.full(values.shape, (lo + hi) / 2.0)
    return lo + (values - vmin) / (vmax - vmin) * (hi - lo)


def _draw_layer(
    panel: np.ndarray,
    prepared: _PreparedLayer,
    mapped_colors: np.ndarray | None,
    transform: PlotTransform,
    scale: float,
    *,
    offset: tuple[int, int],
) -> LayerMarks:
    layer = prepared.layer
    n = prepared.x.shape[0]
    if mapped_colors is None:
        base = parse_hex(layer.style.get("color", DEFAULT_MARK_COLOR))
        colors = np.tile(np.asarray(base, dtype=np.uint8), (n, 1))
    else:
        colors = mapped_colors.copy()
    if "alpha" in prepared.aesthetics:
        alpha = _rescale(prepared.table.column(prepared.aesthetics["alpha"]), ALPHA_RANGE)
    else:
        alpha = np.full(n, float(layer.style.get("alpha", 1.0)))
    colors[:, 3] = np.rint(colors[:, 3].astype(np.float64) * alpha).astype(np.uint8)

    panel_h, panel_w = panel.shape[:2]
    px, py, inside = map_to_pixels(prepared.x, prepared.y, transform, panel_w, panel_h)

    if layer.geometry == "point":
        if "size" in prepared.aesthetics:
            sizes = _rescale(prepared.table.column(prepared.aesthetics["size"]), SIZE_RANGE)
        else:
            sizes = np.full(n, float(layer.style.get("size", DEFAULT_POINT_SIZE)))
        radius = np.maximum(1, np.rint(sizes * PT_PER_MM * scale / 2.0)).astype(np.int64)
        draw_markers(panel, px[inside], py[inside], colors[inside], radius[inside])
    else:
        width = max(1, int(round(float(layer.style.get("linewidth", DEFAULT_LINEWIDTH)) * PT_PER_MM * scale)))
        _draw_lines(panel, prepared, px, py, inside, colors, width)

    return LayerMarks(
        geometry=layer.geometry,
        px=px[inside] + offset[0],
        py=py[inside] + offset[1],
        colors=colors[inside],
        removed=prepared.removed,
    )


def _draw_lines(
    panel: np.ndarray,
    prepared: _PreparedLayer,
    px: np.ndarray,
    py: np.ndarray,
    inside: np.ndarray,
    colors: np.ndarray,
    width: int,
) -> None:
    # Categorical color splits the data into one line per level, as a group.
    if "color" in prepared.aesthetics and not prepared.table.is_numeric(prepared.aesthetics["color"]):
        keys = [str(v) for v in prepared.table.column(prepared.aesthetics["color"]).tolist()]
    else:
        keys = [""] * px.shape[0]
    for key in sorted(set(keys)):
        idx = np.asarray([i for i, k in enumerate(keys) if k == key and inside[i]], dtype=np.int64)
        if idx.size < 2:
            continue
        idx = idx[np.argsort(prepared.x[idx], kind="stable")]
        # Each segment takes its start color; same-colored stretches are stroked as one polyline.
        start = 0
        for end in range(1, idx.size):
            if end == idx.size - 1 or not np.array_equal(colors[idx[end]], colors[idx[start]]):
                stretch = idx[start : end + 1]
                draw_polyline(panel, px[stretch], py[stretch], tuple(colors[idx[start]].tolist()), width)
                start = end


def _build_legend(guide: ColorGuide, title: np.ndarray | None, theme: Theme, dpi: float) -> _Legend | None:
    scale = float(dpi) / 72.0
    key_px = max(4, int(round(1.2 * theme.base_size_pt * scale)))
    if isinstance(guide, ColorbarGuide):
        labels = tuple(_plain_patch(t, theme, "legend_text", dpi, "left") for t in format_ticks(np.asarray(guide.breaks)))
        body_h = key_px * 5
    elif isinstance(guide, KeyGuide):
        if not guide.entries:
            return None
        labels = tuple(_plain_patch(name, theme, "legend_text", dpi, "left") for name, _ in guide.entries)
        body_h = key_px * len(guide.entries)
    else:
        return None
    gap = max(1, key_px // 4)
    labels_w = max((p.shape[1] for p in labels), default=0)
    title_w = title.shape[1] if title is not None else 0
    title_h = title.shape[0] + gap if title is not None else 0
    return _Legend(
        guide=guide,
        title=title,
        key_px=key_px,
        labels=labels,
        width=max(title_w, key_px + gap + labels_w),
        height=title_h + body_h,
    )


def _draw_legend(canvas: np.ndarray, legend: _Legend, x0: int, y0: int, theme: Theme) -> None:
    key = legend.key_px
    key_gap = max(1, key // 4)
    y = y0
    if legend.title is not None:
        blit(canvas, legend.title, x0, y)
        y += legend.title.shape[0] + key_gap
    label_x = x0 + key + key_gap

    guide = legend.guide
    if isinstance(guide, ColorbarGuide):
        bar_h = key * 5
        # Top row is the high end of the scale.
        t = np.linspace(1.0, 0.0, bar_h)
        rgb = interpolate(get_palette(guide.palette), t, direction=guide.direction)
        for row, color in enumerate(rgb.tolist()):
            draw_hline(canvas, x0, x0 + key - 1, y + row, (color[0], color[1], color[2], 255))
        span = guide.hi - guide.lo
        tick = parse_hex(theme.background_color)
        for value, patch in zip(guide.breaks, legend.labels, strict=True):
            frac = (value - guide.lo) / span if span > 0 else 0.5
            row = y + int(round((1.0 - frac) * (bar_h - 1)))
            draw_hline(canvas, x0, x0 + key // 5, row, tick)
            draw_hline(canvas, x0 + key - 1 - key // 5, x0 + key - 1, row, tick)
            blit(canvas, patch, label_x, row - patch.shape[0] // 2)
        return

    assert isinstance(guide, KeyGuide)
    radius = max(1, key // 4)
    for i, ((_, color), patch) in enumerate(zip(guide.entries, legend.labels, strict=True)):
        cy = y + i * key + key // 2
        swatch: RGBA = color
        draw_markers(
            canvas,
            np.asarray([x0 + key // 2]),
            np.asarray([cy]),
            np.asarray([swatch], dtype=np.uint8),
            radius,
        )
        blit(canvas, patch, label_x, cy - patch.shape[0] // 2)
