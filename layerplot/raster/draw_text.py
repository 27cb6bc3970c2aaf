from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from layerplot.colors import RGBA


FONT_DIRS_ENV = "LAYERPLOT_FONT_DIRS"
GENERIC_FAMILIES = {
    "sans": ("dejavusans", "liberationsans", "arial", "helvetica", "freesans", "notosans"),
    "serif": ("dejavuserif", "liberationserif", "times", "freeserif", "notoserif"),
    "mono": ("dejavusansmono", "liberationmono", "menlo", "courier", "freemono"),
}
GENERIC_FAMILIES["sans-serif"] = GENERIC_FAMILIES["sans"]
GENERIC_FAMILIES["monospace"] = GENERIC_FAMILIES["mono"]
_BOLD_WORDS = ("bold", "black", "heavy")
_ITALIC_WORDS = ("italic", "oblique")
_ITALIC_SHEAR = 0.2


@dataclass(frozen=True)
class FontFace:
    """A loaded font plus the styles that must be synthesized on top of it."""

    font: ImageFont.FreeTypeFont | ImageFont.ImageFont
    size_px: int
    synthetic_bold: bool
    synthetic_italic: bool

    @property
    def ascent(self) -> int:
        return _metrics(self.font)[0]

    @property
    def descent(self) -> int:
        return _metrics(self.font)[1]


def load_face(family: str, size_px: float, *, bold: bool = False, italic: bool = False) -> FontFace:
    return _load_face(family.strip().lower(), max(1, int(round(size_px))), bool(bold), bool(italic))


def text_width(text: str, face: FontFace) -> int:
    if not text:
        return 0
    width = float(face.font.getlength(text))
    if face.synthetic_bold:
        width += _embolden_px(face)
    if face.synthetic_italic:
        width += face.size_px * _ITALIC_SHEAR * 0.5
    return int(np.ceil(width))


def draw_text(
    dst: np.ndarray,
    x: int,
    y: int,
    text: str,
    color: RGBA,
    face: FontFace,
) -> None:
    """Draw `text` with its ascender line at row `y` and its pen origin at column `x`."""
    if not text:
        return
    mask, left, top = _render_mask(text, face.font)
    if face.synthetic_bold:
        mask = _embolden(mask, _embolden_px(face) + 1)
    if face.synthetic_italic:
        mask = _shear(mask)
    _blend_mask(dst, x + left, y + top, mask, color)


def _metrics(font: ImageFont.FreeTypeFont | ImageFont.ImageFont) -> tuple[int, int]:
    if isinstance(font, ImageFont.FreeTypeFont):
        ascent, descent = font.getmetrics()
        return int(ascent), int(descent)
    # Bitmap fallback fonts carry no metrics; measure a tall glyph pair instead.
    _, _, _, bottom = font.getbbox("Ag")
    return int(bottom), 0


@lru_cache(maxsize=256)
def _load_face(family: str, size: int, bold: bool, italic: bool) -> FontFace:
    path, has_bold, has_italic = _resolve_font_path(family, bold, italic)
    font: ImageFont.FreeTypeFont | ImageFont.ImageFont
    if path is None:
        font = ImageFont.load_default(size=size)
    else:
        try:
            font = ImageFont.truetype(str(path), size=size)
        except OSError:
            font = ImageFont.load_default(size=size)
            has_bold = has_italic = False
    return FontFace(
        font=font,
        size_px=size,
        synthetic_bold=bold and not has_bold,
        synthetic_italic=italic and not has_italic,
    )


def _resolve_font_path(family: str, bold: bool, italic: bool) -> tuple[Path | None, bool, bool]:
    patterns = GENERIC_FAMILIES.get(family, (family.replace(" ", ""),))
    candidates = _font_candidates(os.environ.get(FONT_DIRS_ENV, ""))
    for pattern in patterns:
        matches = [p for p in candidates if _matches_family(p, pattern)]
        if not matches:
            continue
        for want_bold, want_italic in ((bold, italic), (bold, False), (False, italic), (False, False)):
            for path in matches:
                if _face_style(path) == (want_bold, want_italic):
                    return path, want_bold, want_italic
        return matches[0], False, False
    return None, False, False


def _matches_family(path: Path, pattern: str) -> bool:
    stem = path.stem.lower().replace(" ", "").replace("_", "")
    if not stem.startswith(pattern):
        return False
    rest = stem[len(pattern) :].lstrip("-")
    # "dejavusans" must not pick up "dejavusansmono" or "dejavusanscondensed".
    return all(word in _BOLD_WORDS + _ITALIC_WORDS + ("regular", "book", "roman") for word in _split_style(rest))


def _split_style(rest: str) -> list[str]:
    words: list[str] = []
    for chunk in rest.split("-"):
        while chunk:
            for word in _BOLD_WORDS + _ITALIC_WORDS + ("regular", "book", "roman"):
                if chunk.startswith(word):
                    words.append(word)
                    chunk = chunk[len(word) :]
                    break
            else:
                words.append(chunk)
                break
    return words


def _face_style(path: Path) -> tuple[bool, bool]:
    stem = path.stem.lower()
    return (any(w in stem for w in _BOLD_WORDS), any(w in stem for w in _ITALIC_WORDS))


@lru_cache(maxsize=8)
def _font_candidates(extra_dirs: str) -> tuple[Path, ...]:
    font_dirs = [Path(p) for p in extra_dirs.split(os.pathsep) if p.strip()]
    font_dirs += [
        Path.home() / ".fonts",
        Path.home() / "Library" / "Fonts",
        Path("/Library/Fonts"),
        Path("/System/Library/Fonts"),
        Path("/System/Library/Fonts/Supplemental"),
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
    ]
    candidates: list[Path] = []
    for base in font_dirs:
        if not base.exists():
            continue
        found: list[Path] = []
        for ext in ("*.ttf", "*.otf", "*.ttc"):
            found.extend(base.rglob(ext))
        # rglob order depends on the filesystem; sort so lookups are reproducible.
        candidates.extend(sorted(found))
    return tuple(candidates)


@lru_cache(maxsize=512)
def _render_mask(text: str, font: ImageFont.FreeTypeFont | ImageFont.ImageFont) -> tuple[np.ndarray, int, int]:
    left, top, right, bottom = font.getbbox(text)
    width = max(1, int(right - left))
    height = max(1, int(bottom - top))
    image = Image.new("L", (width, height), 0)
    draw = ImageDraw.Draw(image)
    draw.text((-left, -top), text, fill=255, font=font)
    return np.asarray(image, dtype=np.uint8), int(left), int(top)


def _embolden_px(face: FontFace) -> int:
    return max(1, int(round(face.size_px / 18.0)))


def _embolden(mask: np.ndarray, embolden_px: int) -> np.ndarray:
    if embolden_px <= 1:
        return mask
    out = np.zeros((mask.shape[0], mask.shape[1] + embolden_px - 1), dtype=np.uint8)
    for shift in range(embolden_px):
        view = out[:, shift : shift + mask.shape[1]]
        np.maximum(view, mask, out=view)
    return out


def _shear(mask: np.ndarray) -> np.ndarray:
    h, w = mask.shape
    extra = int(np.ceil(h * _ITALIC_SHEAR))
    out = np.zeros((h, w + extra), dtype=np.uint8)
    for row in range(h):
        offset = int(round((h - 1 - row) * _ITALIC_SHEAR))
        out[row, offset : offset + w] = mask[row]
    return out


def _blend_mask(dst: np.ndarray, x: int, y: int, mask: np.ndarray, color: RGBA) -> None:
    h, w = mask.shape
    x0 = max(0, x)
    y0 = max(0, y)
    x1 = min(dst.shape[1], x + w)
    y1 = min(dst.shape[0], y + h)
    if x1 <= x0 or y1 <= y0:
        return

    cov = mask[y0 - y : y1 - y, x0 - x : x1 - x].astype(np.float32) / 255.0
    src_alpha = (color[3] / 255.0) * cov
    if not np.any(src_alpha > 0):
        return

    patch = dst[y0:y1, x0:x1]
    dst_rgb = patch[:, :, :3].astype(np.float32)
    dst_alpha = patch[:, :, 3].astype(np.float32) / 255.0
    src_rgb = np.asarray(color[:3], dtype=np.float32).reshape(1, 1, 3)
    out_alpha = src_alpha + dst_alpha * (1.0 - src_alpha)
    out_rgb_num = src_rgb * src_alpha[:, :, None] + dst_rgb * dst_alpha[:, :, None] * (1.0 - src_alpha[:, :, None])
    safe_alpha = np.where(out_alpha > 1e-6, out_alpha, 1.0)
    out_rgb = out_rgb_num / safe_alpha[:, :, None]

    patch[:, :, :3] = np.clip(out_rgb, 0, 255).astype(np.uint8)
    patch[:, :, 3] = np.clip(out_alpha * 255.0, 0, 255).astype(np.uint8)
