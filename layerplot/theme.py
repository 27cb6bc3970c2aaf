from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields, replace
import threading
from typing import Any, Literal

from layerplot.colors import is_hex_color
from layerplot.errors import InvalidMappingError


TitlePosition = Literal["panel", "plot"]
LegendPosition = Literal["right", "none"]

TEXT_ROLES = ("title", "subtitle", "caption", "axis_title", "axis_text", "legend_title", "legend_text")


@dataclass(frozen=True)
class ElementText:
    """Text style for one role. None means inherit from the theme base."""

    family: str | None = None
    size_pt: float | None = None
    color: str | None = None
    bold: bool = False
    italic: bool = False


@dataclass(frozen=True)
class ResolvedText:
    family: str
    size_pt: float
    color: str
    bold: bool
    italic: bool


@dataclass(frozen=True)
class Theme:
    font_family: str = "sans"
    base_size_pt: float = 11.0
    text_color: str = "#1E1E1E"
    background_color: str = "#FFFFFF"
    panel_background_color: str = "#EBEBEB"
    major_grid_color: str = "#FFFFFF"
    minor_grid_color: str = "#F5F5F5"
    show_major_grid: bool = True
    show_minor_grid: bool = True
    tick_color: str = "#333333"
    tick_length_pt: float = 2.75
    margin_pt: tuple[float, float, float, float] = (5.5, 5.5, 5.5, 5.5)
    title_position: TitlePosition = "panel"
    legend_position: LegendPosition = "right"
    title: ElementText = field(default_factory=ElementText)
    subtitle: ElementText = field(default_factory=ElementText)
    caption: ElementText = field(default_factory=ElementText)
    axis_title: ElementText = field(default_factory=ElementText)
    axis_text: ElementText = field(default_factory=lambda: ElementText(color="#4D4D4D"))
    legend_title: ElementText = field(default_factory=ElementText)
    legend_text: ElementText = field(default_factory=ElementText)

    def text(self, role: str) -> ResolvedText:
        if role not in TEXT_ROLES:
            raise KeyError(role)
        element: ElementText = getattr(self, role)
        return ResolvedText(
            family=element.family or self.font_family,
            size_pt=element.size_pt if element.size_pt is not None else self.base_size_pt * _RELATIVE_SIZE[role],
            color=element.color or self.text_color,
            bold=element.bold,
            italic=element.italic,
        )


_RELATIVE_SIZE = {
    "title": 1.2,
    "subtitle": 1.0,
    "caption": 0.8,
    "axis_title": 1.0,
    "axis_text": 0.8,
    "legend_title": 1.0,
    "legend_text": 0.8,
}

_COLOR_KEYS = (
    "text_color",
    "background_color",
    "panel_background_color",
    "major_grid_color",
    "minor_grid_color",
    "tick_color",
)


def theme_gray(base_size: float = 11.0, base_family: str = "sans") -> Theme:
    return Theme(font_family=base_family, base_size_pt=float(base_size))


def theme_minimal(base_size: float = 11.0, base_family: str = "sans") -> Theme:
    return Theme(
        font_family=base_family,
        base_size_pt=float(base_size),
        panel_background_color="#FFFFFF",
        major_grid_color="#EBEBEB",
        minor_grid_color="#F5F5F5",
        tick_length_pt=0.0,
    )


def apply_overrides(theme: Theme, overrides: Mapping[str, Any] | None = None) -> Theme:
    """Validate overrides against the theme's keys and return the merged theme.

    Text roles accept either an ElementText or a mapping of ElementText fields,
    merged over the role's current value.
    """
    if not overrides:
        return theme
    valid = {f.name for f in fields(Theme)}
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in valid:
            raise InvalidMappingError(f"Unknown theme key: {key}")
        if key in TEXT_ROLES:
            changes[key] = _merge_element(key, getattr(theme, key), value)
        else:
            changes[key] = value
    merged = replace(theme, **changes)
    validate_theme(merged)
    return merged


def _merge_element(role: str, current: ElementText, value: Any) -> ElementText:
    if isinstance(value, ElementText):
        return value
    if not isinstance(value, Mapping):
        raise InvalidMappingError(f"Theme key `{role}` expects an ElementText or mapping")
    raw = asdict(current)
    for key, item in value.items():
        if key not in raw:
            raise InvalidMappingError(f"Unknown text property `{key}` for `{role}`")
        raw[key] = item
    return ElementText(**raw)


def validate_theme(theme: Theme) -> None:
    for key in _COLOR_KEYS:
        if not is_hex_color(getattr(theme, key)):
            raise InvalidMappingError(f"Theme key `{key}` must be a hex color (#RRGGBB or #RRGGBBAA)")
    if not isinstance(theme.font_family, str) or not theme.font_family.strip():
        raise InvalidMappingError("Theme key `font_family` must be a non-empty string")
    if not isinstance(theme.base_size_pt, (int, float)) or theme.base_size_pt <= 0:
        raise InvalidMappingError("Theme key `base_size_pt` must be a positive number")
    if not isinstance(theme.tick_length_pt, (int, float)) or theme.tick_length_pt < 0:
        raise InvalidMappingError("Theme key `tick_length_pt` must be >= 0")
    if len(theme.margin_pt) != 4 or any(m < 0 for m in theme.margin_pt):
        raise InvalidMappingError("Theme key `margin_pt` must be four non-negative numbers (top, right, bottom, left)")
    if theme.title_position not in ("panel", "plot"):
        raise InvalidMappingError("Theme key `title_position` must be `panel` or `plot`")
    if theme.legend_position not in ("right", "none"):
        raise InvalidMappingError("Theme key `legend_position` must be `right` or `none`")
    for role in TEXT_ROLES:
        element: ElementText = getattr(theme, role)
        if element.size_pt is not None and element.size_pt <= 0:
            raise InvalidMappingError(f"Theme `{role}.size_pt` must be a positive number")
        if element.color is not None and not is_hex_color(element.color):
            raise InvalidMappingError(f"Theme `{role}.color` must be a hex color")
        if element.family is not None and not element.family.strip():
            raise InvalidMappingError(f"Theme `{role}.family` must be a non-empty string")


_LOCK = threading.Lock()
_DEFAULT_THEME = theme_gray()


def get_default_theme() -> Theme:
    with _LOCK:
        return _DEFAULT_THEME


def set_default_theme(theme: Theme) -> Theme:
    """Install `theme` as the default for every following render. Returns the previous default."""
    global _DEFAULT_THEME
    validate_theme(theme)
    with _LOCK:
        previous = _DEFAULT_THEME
        _DEFAULT_THEME = theme
    return previous


def update_default_theme(**overrides: Any) -> Theme:
    global _DEFAULT_THEME
    with _LOCK:
        _DEFAULT_THEME = apply_overrides(_DEFAULT_THEME, overrides)
        return _DEFAULT_THEME


def reset_default_theme() -> None:
    global _DEFAULT_THEME
    with _LOCK:
        _DEFAULT_THEME = theme_gray()
