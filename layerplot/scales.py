from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

import numpy as np

from layerplot.colors import RGBA, is_hex_color, parse_hex
from layerplot.errors import InvalidScaleError
from layerplot.palettes import (
    DEFAULT_CONTINUOUS_PALETTE,
    DEFAULT_DISCRETE_PALETTE,
    Direction,
    discrete_colors,
    get_palette,
    interpolate,
)


POSITION_CHANNELS = frozenset({"x", "y"})
COLOR_CHANNELS = frozenset({"color"})
NA_COLOR = "#7F7F7F"
_NICE_STEPS = (1.0, 2.0, 2.5, 5.0)


@dataclass(frozen=True)
class ContinuousScale:
    """Position scale with optional display limits and explicit break positions."""

    limits: tuple[float, float] | None = None
    breaks: tuple[float, ...] | None = None
    expand: float = 0.05

    def __post_init__(self) -> None:
        if self.limits is not None:
            if len(self.limits) != 2:
                raise InvalidScaleError(f"limits must be [min, max], got {self.limits!r}")
            lo, hi = (float(v) for v in self.limits)
            if not (np.isfinite(lo) and np.isfinite(hi)) or lo >= hi:
                raise InvalidScaleError(f"limits must satisfy min < max, got {self.limits!r}")
            object.__setattr__(self, "limits", (lo, hi))
        if self.breaks is not None:
            values = tuple(float(b) for b in self.breaks)
            if any(not np.isfinite(b) for b in values):
                raise InvalidScaleError("breaks must be finite")
            if list(values) != sorted(values):
                raise InvalidScaleError(f"breaks must be ascending, got {values!r}")
            if self.limits is not None:
                lo, hi = self.limits
                outside = [b for b in values if b < lo or b > hi]
                if outside:
                    raise InvalidScaleError(f"breaks {outside!r} lie outside limits {self.limits!r}")
            object.__setattr__(self, "breaks", values)
        if self.expand < 0:
            raise InvalidScaleError("expand must be >= 0")


@dataclass(frozen=True)
class ColorPaletteScale:
    """Binds a named palette to the color channel.

    Numeric columns map continuously across `limits` (or the data range);
    categorical columns take evenly spaced palette colors per level.
    """

    palette: str = DEFAULT_CONTINUOUS_PALETTE
    direction: Direction = "forward"
    limits: tuple[float, float] | None = None
    na_color: str = NA_COLOR

    def __post_init__(self) -> None:
        get_palette(self.palette)
        if self.direction not in ("forward", "reverse"):
            raise InvalidScaleError(f"direction must be forward or reverse, got {self.direction!r}")
        if self.limits is not None:
            if len(self.limits) != 2:
                raise InvalidScaleError(f"limits must be [min, max], got {self.limits!r}")
            lo, hi = (float(v) for v in self.limits)
            if not (np.isfinite(lo) and np.isfinite(hi)) or lo >= hi:
                raise InvalidScaleError(f"limits must satisfy min < max, got {self.limits!r}")
            object.__setattr__(self, "limits", (lo, hi))
        if not is_hex_color(self.na_color):
            raise InvalidScaleError(f"na_color must be a hex color, got {self.na_color!r}")


@dataclass(frozen=True)
class ManualColorScale:
    values: Mapping[str, str] = field(default_factory=dict)
    na_color: str = NA_COLOR

    def __post_init__(self) -> None:
        if not self.values:
            raise InvalidScaleError("manual color scale needs at least one value")
        for key, color in self.values.items():
            if not is_hex_color(color):
                raise InvalidScaleError(f"color for {key!r} must be a hex color, got {color!r}")
        if not is_hex_color(self.na_color):
            raise InvalidScaleError(f"na_color must be a hex color, got {self.na_color!r}")
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))


Scale = Union[ContinuousScale, ColorPaletteScale, ManualColorScale]


def validate_scale_channel(channel: str, scale: Scale) -> None:
    if isinstance(scale, ContinuousScale) and channel not in POSITION_CHANNELS:
        raise InvalidScaleError(f"continuous position scale cannot bind channel {channel!r}")
    if isinstance(scale, (ColorPaletteScale, ManualColorScale)) and channel not in COLOR_CHANNELS:
        raise InvalidScaleError(f"color scale cannot bind channel {channel!r}")
    if not isinstance(scale, (ContinuousScale, ColorPaletteScale, ManualColorScale)):
        raise InvalidScaleError(f"unsupported scale type: {type(scale)!r}")


@dataclass(frozen=True)
class DataLimits:
    xmin: float
    xmax: float
    ymin: float
    ymax: float


@dataclass(frozen=True)
class PlotTransform:
    sx: float
    tx: float
    sy: float
    ty: float


def resolve_range(values: np.ndarray, scale: ContinuousScale | None) -> tuple[float, float]:
    """Display range for a position channel: explicit limits, else the expanded data range."""
    expand = scale.expand if scale is not None else 0.05
    if scale is not None and scale.limits is not None:
        lo, hi = scale.limits
    else:
        finite = values[np.isfinite(values)]
        if finite.size == 0:
            return (0.0, 1.0)
        lo = float(np.min(finite))
        hi = float(np.max(finite))
        if lo == hi:
            delta = max(1.0, abs(lo) * 0.05)
            return (lo - delta, hi + delta)
    pad = (hi - lo) * expand
    return (lo - pad, hi + pad)


def build_transform(limits: DataLimits, width: int, height: int) -> PlotTransform:
    """Affine map from the display range onto pixel centres 0..width-1 and 0..height-1."""
    sx, tx = _fit_axis(limits.xmin, limits.xmax, width)
    sy, ty = _fit_axis(limits.ymin, limits.ymax, height)
    return PlotTransform(sx=sx, tx=tx, sy=sy, ty=ty)


def _fit_axis(lo: float, hi: float, pixels: int) -> tuple[float, float]:
    if pixels <= 1:
        raise ValueError("plot viewport width/height must be > 1")
    if not hi > lo:
        raise ValueError(f"display range must satisfy min < max, got ({lo}, {hi})")
    gain = (pixels - 1) / (hi - lo)
    return gain, -lo * gain


def map_to_pixels(
    x: np.ndarray,
    y: np.ndarray,
    transform: PlotTransform,
    width: int,
    height: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return pixel columns, pixel rows and a mask of points that land inside the viewport."""
    fx = x * transform.sx + transform.tx
    fy = y * transform.sy + transform.ty
    inside = np.isfinite(fx) & np.isfinite(fy)
    inside &= (fx >= -0.5) & (fx <= width - 0.5) & (fy >= -0.5) & (fy <= height - 0.5)
    px = np.rint(np.where(inside, fx, 0.0)).astype(np.int32)
    py = np.rint(np.where(inside, fy, 0.0)).astype(np.int32)
    py = (height - 1) - py
    np.clip(px, 0, width - 1, out=px)
    np.clip(py, 0, height - 1, out=py)
    return px, py, inside


def within_limits(values: np.ndarray, scale: ContinuousScale | None) -> np.ndarray:
    if scale is None or scale.limits is None:
        return np.ones(values.shape, dtype=bool)
    lo, hi = scale.limits
    return (values >= lo) & (values <= hi)


def resolve_breaks(lo: float, hi: float, scale: ContinuousScale | None, *, target: int = 5) -> np.ndarray:
    if scale is not None and scale.breaks is not None:
        ticks = np.asarray(scale.breaks, dtype=np.float64)
    else:
        ticks = generate_nice_ticks(lo, hi, target)
    return ticks[(ticks >= lo) & (ticks <= hi)]


@dataclass(frozen=True)
class ColorbarGuide:
    lo: float
    hi: float
    palette: str
    direction: Direction
    breaks: tuple[float, ...]


@dataclass(frozen=True)
class KeyGuide:
    entries: tuple[tuple[str, RGBA], ...]


ColorGuide = Union[ColorbarGuide, KeyGuide]


def map_colors(values: np.ndarray, scale: Scale | None, *, alpha: float = 1.0) -> tuple[np.ndarray, ColorGuide]:
    """Resolve a column to one RGBA row per value, plus the guide the legend draws."""
    numeric = values.dtype.kind == "f"
    if isinstance(scale, ManualColorScale):
        return _map_manual(values, scale, alpha)
    if scale is None:
        scale = ColorPaletteScale(palette=DEFAULT_CONTINUOUS_PALETTE if numeric else DEFAULT_DISCRETE_PALETTE)
    if not isinstance(scale, ColorPaletteScale):
        raise InvalidScaleError(f"scale {type(scale).__name__} cannot map colors")
    palette = get_palette(scale.palette)
    a = int(round(max(0.0, min(1.0, alpha)) * 255))
    na = parse_hex(scale.na_color)

    if numeric:
        finite = values[np.isfinite(values)]
        if scale.limits is not None:
            lo, hi = scale.limits
        elif finite.size:
            lo, hi = float(np.min(finite)), float(np.max(finite))
        else:
            lo, hi = 0.0, 1.0
        span = hi - lo
        t = (values - lo) / span if span > 0 else np.full(values.shape, 0.5)
        valid = np.isfinite(t) & (t >= 0.0) & (t <= 1.0)
        rgb = interpolate(palette, np.where(valid, t, np.nan), direction=scale.direction)
        out = np.empty((values.shape[0], 4), dtype=np.uint8)
        out[:, :3] = rgb
        out[:, 3] = a
        out[~valid] = (na[0], na[1], na[2], a)
        breaks = generate_nice_ticks(lo, hi, 4) if span > 0 else np.asarray([lo])
        breaks = breaks[(breaks >= lo) & (breaks <= hi)]
        guide: ColorGuide = ColorbarGuide(
            lo=lo,
            hi=hi,
            palette=palette.name,
            direction=scale.direction,
            breaks=tuple(float(b) for b in breaks.tolist()),
        )
        return out, guide

    levels = sorted({v for v in values.tolist() if v is not None})
    colors = discrete_colors(palette, len(levels), direction=scale.direction)
    lookup = {level: colors[i] for i, level in enumerate(levels)}
    out = np.empty((values.shape[0], 4), dtype=np.uint8)
    for i, v in enumerate(values.tolist()):
        c = lookup.get(v, na)
        out[i] = (c[0], c[1], c[2], a)
    return out, KeyGuide(entries=tuple((str(level), lookup[level]) for level in levels))


def _map_manual(values: np.ndarray, scale: ManualColorScale, alpha: float) -> tuple[np.ndarray, ColorGuide]:
    a = int(round(max(0.0, min(1.0, alpha)) * 255))
    na = parse_hex(scale.na_color)
    lookup = {key: parse_hex(color) for key, color in scale.values.items()}
    out = np.empty((values.shape[0], 4), dtype=np.uint8)
    present: set[str] = set()
    for i, v in enumerate(values.tolist()):
        key = _level_key(v)
        c = lookup.get(key, na) if key is not None else na
        if key in lookup:
            present.add(key)
        out[i] = (c[0], c[1], c[2], a)
    entries = tuple((key, lookup[key]) for key in scale.values if key in present)
    return out, KeyGuide(entries=entries)


def _level_key(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float):
        if np.isnan(value):
            return None
        return format_tick(value)
    return str(value)


def generate_nice_ticks(vmin: float, vmax: float, target: int) -> np.ndarray:
    """Round, evenly spaced ticks reaching just past both ends of [vmin, vmax].

    The step is a 1, 2, 2.5 or 5 multiple of a power of ten, picked so the
    number of ticks inside the range is closest to `target`; ties prefer the
    coarser step. Ticks are integer multiples of the step.
    """
    if target <= 0:
        raise ValueError("target must be > 0")
    lo, hi = min(vmin, vmax), max(vmin, vmax)
    if lo == hi:
        return np.asarray([lo], dtype=np.float64)

    decade = 10.0 ** np.floor(np.log10((hi - lo) / target))
    best_step, best_miss = 0.0, np.inf
    for step in (f * decade * scale for scale in (1.0, 10.0) for f in _NICE_STEPS):
        inside = np.floor(hi / step) - np.ceil(lo / step) + 1
        miss = abs(inside - target)
        if miss <= best_miss:
            best_step, best_miss = step, miss

    first = int(np.floor(lo / best_step))
    last = int(np.ceil(hi / best_step))
    return np.arange(first, last + 1, dtype=np.float64) * best_step


def format_tick(value: float, *, decimals: int = 6) -> str:
    """Fixed-point label with trailing zeros trimmed and no negative zero."""
    if not np.isfinite(value):
        return str(value)
    out = f"{value:.{decimals}f}"
    if "." in out:
        out = out.rstrip("0").rstrip(".")
    return "0" if out in ("-0", "") else out


def format_ticks(ticks: Sequence[float] | np.ndarray) -> list[str]:
    """Label a tick sequence with as many decimals as its spacing needs."""
    arr = np.asarray(ticks, dtype=np.float64)
    distinct = np.unique(arr[np.isfinite(arr)])
    if distinct.size > 1:
        decimals = _decimals_for_spacing(float(np.min(np.diff(distinct))))
    else:
        decimals = 6
    return [format_tick(v, decimals=decimals) for v in arr.tolist()]


def _decimals_for_spacing(spacing: float) -> int:
    # Fewest decimals that reproduce the spacing, which keeps neighbours distinct.
    for decimals in range(13):
        if np.isclose(round(spacing, decimals), spacing, rtol=1e-6, atol=0.0):
            return decimals
    return 12
