from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np

from layerplot.colors import RGBA, parse_hex
from layerplot.errors import UnknownPaletteError


PaletteKind = Literal["sequential", "qualitative"]
Direction = Literal["forward", "reverse"]


@dataclass(frozen=True)
class Palette:
    name: str
    kind: PaletteKind
    stops: tuple[str, ...]

    def rgb_stops(self) -> np.ndarray:
        return np.asarray([parse_hex(s)[:3] for s in self.stops], dtype=np.float64)


_PALETTES: dict[str, Palette] = {}


def _register(name: str, kind: PaletteKind, *stops: str) -> None:
    _PALETTES[name.lower()] = Palette(name=name, kind=kind, stops=tuple(stops))


# Anchor stops sampled evenly from the reference colormaps.
_register(
    "viridis", "sequential",
    "#440154", "#482878", "#3E4A89", "#31688E", "#26828E", "#1F9E89", "#35B779", "#6DCD59", "#B4DE2C", "#FDE725",
)
_register(
    "magma", "sequential",
    "#000004", "#1C1044", "#4F127B", "#812581", "#B5367A", "#E55064", "#FB8761", "#FEC287", "#FCFDBF",
)
_register(
    "inferno", "sequential",
    "#000004", "#1F0C48", "#550F6D", "#88226A", "#BA3655", "#E35933", "#F98C0A", "#F9C932", "#FCFFA4",
)
_register(
    "plasma", "sequential",
    "#0D0887", "#46039F", "#7201A8", "#9C179E", "#BD3786", "#D8576B", "#ED7953", "#FB9F3A", "#FDCA26", "#F0F921",
)
_register("cividis", "sequential", "#00204D", "#31446B", "#666970", "#958F78", "#CBBA69", "#FFEA46")
_register("Emrld", "sequential", "#D3F2A3", "#97E196", "#6CC08B", "#4C9B82", "#217A79", "#105965", "#074050")
_register("BurgYl", "sequential", "#FBE6C5", "#F5BA98", "#EE8A82", "#DC7176", "#C8586C", "#9C3F5D", "#70284A")
_register("Teal", "sequential", "#D1EEEA", "#A8DBD9", "#85C4C9", "#68ABB8", "#4F90A6", "#3B738F", "#2A5674")
_register("Sunset", "sequential", "#F3E79B", "#FAC484", "#F8A07E", "#EB7F86", "#CE6693", "#A059A0", "#5C53A5")
_register(
    "okabe_ito", "qualitative",
    "#E69F00", "#56B4E9", "#009E73", "#F0E442", "#0072B2", "#D55E00", "#CC79A7", "#000000",
)
_register("penguins", "qualitative", "#FF8C00", "#A034F0", "#159090")

DEFAULT_CONTINUOUS_PALETTE = "viridis"
DEFAULT_DISCRETE_PALETTE = "okabe_ito"


def palette_names() -> tuple[str, ...]:
    return tuple(sorted(p.name for p in _PALETTES.values()))


def get_palette(name: str) -> Palette:
    try:
        return _PALETTES[name.lower()]
    except KeyError:
        raise UnknownPaletteError(
            f"unknown palette: {name!r} (known: {', '.join(palette_names())})"
        ) from None


def interpolate(palette: Palette, t: np.ndarray, *, direction: Direction = "forward") -> np.ndarray:
    """Map positions in [0, 1] to uint8 RGB rows.

    NaN positions map to zeros; callers substitute their own missing color.
    """
    t = np.asarray(t, dtype=np.float64)
    if direction == "reverse":
        t = 1.0 - t
    stops = palette.rgb_stops()
    grid = np.linspace(0.0, 1.0, stops.shape[0])
    finite = np.isfinite(t)
    clipped = np.clip(np.where(finite, t, 0.0), 0.0, 1.0)
    out = np.zeros((t.shape[0], 3), dtype=np.uint8)
    for ch in range(3):
        chan = np.interp(clipped, grid, stops[:, ch])
        out[:, ch] = np.rint(chan).astype(np.uint8)
    out[~finite] = 0
    return out


def discrete_colors(palette: Palette, count: int, *, direction: Direction = "forward") -> list[RGBA]:
    if count <= 0:
        return []
    if palette.kind == "qualitative":
        stops = list(palette.stops)
        if direction == "reverse":
            stops.reverse()
        return [parse_hex(stops[i % len(stops)]) for i in range(count)]
    positions = np.linspace(0.0, 1.0, count) if count > 1 else np.asarray([0.5])
    rgb = interpolate(palette, positions, direction=direction)
    return [(int(r), int(g), int(b), 255) for r, g, b in rgb.tolist()]
