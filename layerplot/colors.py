from __future__ import annotations

import re


RGBA = tuple[int, int, int, int]

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}([0-9a-fA-F]{2})?$")


def is_hex_color(value: object) -> bool:
    return isinstance(value, str) and bool(_HEX_COLOR.match(value.strip()))


def parse_hex(hex_color: str, opacity: float = 1.0) -> RGBA:
    value = hex_color.strip()
    if not _HEX_COLOR.match(value):
        raise ValueError(f"color must be #RRGGBB or #RRGGBBAA, got `{hex_color}`")
    raw = value[1:]
    r = int(raw[0:2], 16)
    g = int(raw[2:4], 16)
    b = int(raw[4:6], 16)
    a = int(raw[6:8], 16) if len(raw) == 8 else 255
    return (r, g, b, apply_opacity(a, opacity))


def to_hex(color: RGBA | tuple[int, int, int]) -> str:
    return "#{:02X}{:02X}{:02X}".format(color[0], color[1], color[2])


def apply_opacity(alpha_u8: int, opacity: float) -> int:
    return int(round(max(0.0, min(1.0, (alpha_u8 / 255.0) * opacity)) * 255.0))


def with_opacity(color: RGBA, opacity: float) -> RGBA:
    r, g, b, a = color
    return (r, g, b, apply_opacity(a, opacity))
