from __future__ import annotations

import math
from typing import Literal


Units = Literal["in", "cm", "mm", "pt", "px"]

DEFAULT_DPI = 300
DEFAULT_WIDTH_IN = 7.0
DEFAULT_HEIGHT_IN = 5.0
DEFAULT_ASPECT_RATIO = DEFAULT_WIDTH_IN / DEFAULT_HEIGHT_IN

_PER_INCH = {
    "in": 1.0,
    "cm": 2.54,
    "mm": 25.4,
    "pt": 72.0,
}


def to_pixels(value: float, *, units: Units, dpi: float) -> int:
    if units == "px":
        return int(round(value))
    try:
        per_inch = _PER_INCH[units]
    except KeyError:
        raise ValueError(f"units must be one of in, cm, mm, pt, px; got {units!r}") from None
    return int(round(value / per_inch * dpi))


def resolve_figure_size(
    width: float | None = None,
    height: float | None = None,
    *,
    units: Units = "in",
    dpi: float = DEFAULT_DPI,
    aspect_ratio: float = DEFAULT_ASPECT_RATIO,
) -> tuple[int, int]:
    """Return the figure size in pixels; a missing side follows `aspect_ratio`."""
    if not math.isfinite(dpi) or dpi <= 0:
        raise ValueError("dpi must be > 0")
    if aspect_ratio <= 0:
        raise ValueError("aspect_ratio must be > 0")
    if width is None and height is None:
        width, height, units = DEFAULT_WIDTH_IN, DEFAULT_HEIGHT_IN, "in"
    elif width is None and height is not None:
        if height <= 0:
            raise ValueError("height must be > 0")
        width = height * aspect_ratio
    elif width is not None and height is None:
        if width <= 0:
            raise ValueError("width must be > 0")
        height = width / aspect_ratio
    assert width is not None and height is not None
    if width <= 0 or height <= 0:
        raise ValueError("width/height must be > 0")
    return (max(1, to_pixels(width, units=units, dpi=dpi)), max(1, to_pixels(height, units=units, dpi=dpi)))
