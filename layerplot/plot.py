from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from layerplot.colors import is_hex_color
from layerplot.data.filters import FilterPredicate
from layerplot.data.table import Table
from layerplot.errors import InvalidMappingError
from layerplot.palettes import Direction
from layerplot.scales import NA_COLOR, ColorPaletteScale, ContinuousScale, ManualColorScale, Scale, validate_scale_channel
from layerplot.theme import Theme, apply_overrides, theme_gray


CHANNELS = ("x", "y", "color", "size", "alpha")
LABEL_SLOTS = ("title", "subtitle", "caption", "x", "y", "color")
LABEL_ALIASES = {
    "x-axis-label": "x",
    "y-axis-label": "y",
    "x_axis_label": "x",
    "y_axis_label": "y",
    "colour": "color",
}


@dataclass(frozen=True)
class GeometrySpec:
    name: str
    required: frozenset[str]
    optional: frozenset[str]
    style_keys: frozenset[str]

    @property
    def channels(self) -> frozenset[str]:
        return self.required | self.optional


GEOMETRIES: Mapping[str, GeometrySpec] = MappingProxyType(
    {
        "point": GeometrySpec(
            name="point",
            required=frozenset({"x", "y"}),
            optional=frozenset({"color", "size", "alpha"}),
            style_keys=frozenset({"size", "alpha", "color"}),
        ),
        "line": GeometrySpec(
            name="line",
            required=frozenset({"x", "y"}),
            optional=frozenset({"color"}),
            style_keys=frozenset({"linewidth", "alpha", "color"}),
        ),
    }
)


def _frozen(mapping: Mapping[str, Any] | None = None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Layer:
    geometry: str
    aesthetics: Mapping[str, str] = field(default_factory=_frozen)
    style: Mapping[str, Any] = field(default_factory=_frozen)
    data_filter: tuple[FilterPredicate, ...] = ()

    @property
    def geometry_spec(self) -> GeometrySpec:
        return GEOMETRIES[self.geometry]

    def resolved_aesthetics(self, plot_aesthetics: Mapping[str, str]) -> dict[str, str]:
        """Plot-level mapping merged with the layer's own, limited to this geometry's channels."""
        allowed = self.geometry_spec.channels
        merged = {k: v for k, v in plot_aesthetics.items() if k in allowed}
        merged.update(self.aesthetics)
        return merged


@dataclass(frozen=True)
class PlotSpec:
    """Immutable plot description. Every builder call returns a new PlotSpec."""

    data: Table | None = None
    aesthetics: Mapping[str, str] = field(default_factory=_frozen)
    layers: tuple[Layer, ...] = ()
    scales: Mapping[str, Scale] = field(default_factory=_frozen)
    labels: Mapping[str, str] = field(default_factory=_frozen)
    theme_overrides: Mapping[str, Any] = field(default_factory=_frozen)

    def add_layer(
        self,
        geometry: str,
        aesthetics: Mapping[str, str] | None = None,
        style: Mapping[str, Any] | None = None,
        data_filter: Iterable[FilterPredicate] = (),
    ) -> "PlotSpec":
        geom = _geometry(geometry)
        aes = _validate_aesthetics(aesthetics or {}, allowed=geom.channels, where=f"geom_{geom.name}")
        layer = Layer(
            geometry=geom.name,
            aesthetics=_frozen(aes),
            style=_frozen(_validate_style(geom, style or {})),
            data_filter=_validate_filter(data_filter),
        )
        _check_required(layer, self.aesthetics)
        return replace(self, layers=self.layers + (layer,))

    def geom_point(
        self,
        mapping: Mapping[str, str] | None = None,
        *,
        size: float | None = None,
        alpha: float | None = None,
        color: str | None = None,
        data_filter: Iterable[FilterPredicate] = (),
    ) -> "PlotSpec":
        style = {k: v for k, v in (("size", size), ("alpha", alpha), ("color", color)) if v is not None}
        return self.add_layer("point", mapping, style, data_filter)

    def geom_line(
        self,
        mapping: Mapping[str, str] | None = None,
        *,
        linewidth: float | None = None,
        alpha: float | None = None,
        color: str | None = None,
        data_filter: Iterable[FilterPredicate] = (),
    ) -> "PlotSpec":
        style = {k: v for k, v in (("linewidth", linewidth), ("alpha", alpha), ("color", color)) if v is not None}
        return self.add_layer("line", mapping, style, data_filter)

    def set_aesthetics(self, **aesthetics: str) -> "PlotSpec":
        merged = dict(self.aesthetics)
        merged.update(_validate_aesthetics(aesthetics, allowed=frozenset(CHANNELS), where="plot"))
        for layer in self.layers:
            _check_required(layer, merged)
        return replace(self, aesthetics=_frozen(merged))

    def set_scale(self, channel: str, scale: Scale) -> "PlotSpec":
        channel = "color" if channel == "colour" else channel
        if channel not in CHANNELS:
            raise InvalidMappingError(f"unknown channel: {channel}")
        validate_scale_channel(channel, scale)
        scales = dict(self.scales)
        scales[channel] = scale
        return replace(self, scales=_frozen(scales))

    def scale_x_continuous(
        self,
        *,
        breaks: Iterable[float] | None = None,
        limits: tuple[float, float] | None = None,
        expand: float = 0.05,
    ) -> "PlotSpec":
        return self.set_scale("x", _continuous(breaks, limits, expand))

    def scale_y_continuous(
        self,
        *,
        breaks: Iterable[float] | None = None,
        limits: tuple[float, float] | None = None,
        expand: float = 0.05,
    ) -> "PlotSpec":
        return self.set_scale("y", _continuous(breaks, limits, expand))

    def scale_color_palette(
        self,
        palette: str,
        *,
        direction: Direction = "forward",
        limits: tuple[float, float] | None = None,
        na_color: str = NA_COLOR,
    ) -> "PlotSpec":
        return self.set_scale(
            "color",
            ColorPaletteScale(
                palette=palette,
                direction=direction,
                limits=tuple(limits) if limits is not None else None,
                na_color=na_color,
            ),
        )

    def scale_color_manual(self, values: Mapping[str, str], *, na_color: str = NA_COLOR) -> "PlotSpec":
        return self.set_scale("color", ManualColorScale(values=dict(values), na_color=na_color))

    def set_labels(self, mapping: Mapping[str, str | None] | None = None, **slots: str | None) -> "PlotSpec":
        """Store raw label strings. None or "" suppresses a slot's default label."""
        updates = dict(mapping or {})
        updates.update(slots)
        labels = dict(self.labels)
        for raw_slot, value in updates.items():
            slot = LABEL_ALIASES.get(raw_slot, raw_slot)
            if slot not in LABEL_SLOTS:
                raise InvalidMappingError(f"unknown label slot: {raw_slot}")
            if value is not None and not isinstance(value, str):
                raise InvalidMappingError(f"label for `{raw_slot}` must be a string, got {type(value).__name__}")
            labels[slot] = value or ""
        return replace(self, labels=_frozen(labels))

    def set_theme(self, **overrides: Any) -> "PlotSpec":
        merged = dict(self.theme_overrides)
        for key, value in overrides.items():
            current = merged.get(key)
            if isinstance(value, Mapping) and isinstance(current, Mapping):
                combined = dict(current)
                combined.update(value)
                merged[key] = _frozen(combined)
            elif isinstance(value, Mapping):
                merged[key] = _frozen(value)
            else:
                merged[key] = value
        # Validate now so a bad key fails at build time, not at render time.
        apply_overrides(theme_gray(), merged)
        return replace(self, theme_overrides=_frozen(merged))

    def with_data(self, data: Table) -> "PlotSpec":
        if not isinstance(data, Table):
            raise InvalidMappingError(f"data must be a Table, got {type(data).__name__}")
        return replace(self, data=data)

    def resolved_theme(self, base: Theme) -> Theme:
        return apply_overrides(base, self.theme_overrides)


def plot(data: Table | None = None, **aesthetics: str) -> PlotSpec:
    spec = PlotSpec()
    if data is not None:
        spec = spec.with_data(data)
    if aesthetics:
        spec = spec.set_aesthetics(**aesthetics)
    return spec


def _geometry(name: str) -> GeometrySpec:
    try:
        return GEOMETRIES[name]
    except KeyError:
        raise InvalidMappingError(f"unknown geometry: {name} (known: {', '.join(sorted(GEOMETRIES))})") from None


def _validate_aesthetics(aesthetics: Mapping[str, str], *, allowed: frozenset[str], where: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for channel, column in aesthetics.items():
        channel = "color" if channel == "colour" else channel
        if channel not in allowed:
            raise InvalidMappingError(f"channel `{channel}` is not valid for {where}")
        if not isinstance(column, str) or not column:
            raise InvalidMappingError(f"channel `{channel}` must map to a column name")
        out[channel] = column
    return out


def _check_required(layer: Layer, plot_aesthetics: Mapping[str, str]) -> None:
    merged = layer.resolved_aesthetics(plot_aesthetics)
    missing = sorted(layer.geometry_spec.required - merged.keys())
    if missing:
        raise InvalidMappingError(f"geom_{layer.geometry} requires channels: {', '.join(missing)}")


def _validate_style(geom: GeometrySpec, style: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in style.items():
        if key not in geom.style_keys:
            raise InvalidMappingError(f"style key `{key}` is not valid for geom_{geom.name}")
        if key == "alpha":
            if not isinstance(value, (int, float)) or not 0.0 <= float(value) <= 1.0:
                raise InvalidMappingError(f"alpha must be in [0, 1], got {value!r}")
            out[key] = float(value)
        elif key in ("size", "linewidth"):
            if not isinstance(value, (int, float)) or float(value) <= 0:
                raise InvalidMappingError(f"{key} must be > 0, got {value!r}")
            out[key] = float(value)
        elif key == "color":
            if not is_hex_color(value):
                raise InvalidMappingError(f"color must be a hex color, got {value!r}")
            out[key] = value
    return out


def _validate_filter(predicates: Iterable[FilterPredicate]) -> tuple[FilterPredicate, ...]:
    preds = tuple(predicates)
    for pred in preds:
        if not isinstance(pred, FilterPredicate):
            raise InvalidMappingError(f"layer data filter must hold FilterPredicate values, got {type(pred).__name__}")
    return preds


def _continuous(
    breaks: Iterable[float] | None,
    limits: tuple[float, float] | None,
    expand: float,
) -> ContinuousScale:
    return ContinuousScale(
        limits=tuple(limits) if limits is not None else None,
        breaks=tuple(breaks) if breaks is not None else None,
        expand=expand,
    )
