from __future__ import annotations

import io
import logging
import os
from pathlib import Path
import tempfile

from PIL import Image

from layerplot.data.table import Table
from layerplot.display import DEFAULT_DPI, DEFAULT_HEIGHT_IN, DEFAULT_WIDTH_IN, Units
from layerplot.errors import ExportError
from layerplot.plot import PlotSpec
from layerplot.render import RenderedFigure, render


LOGGER = logging.getLogger(__name__)

FORMATS = ("pdf", "png")


def resolve_format(path: str | os.PathLike[str], format: str | None = None) -> str:
    fmt = (format or Path(path).suffix.lstrip(".")).lower()
    if not fmt:
        raise ExportError(f"cannot infer an output format from {os.fspath(path)!r}; pass format=")
    if fmt not in FORMATS:
        raise ExportError(f"unsupported export format: {fmt} (supported: {', '.join(FORMATS)})")
    return fmt


def encode(figure: RenderedFigure, fmt: str) -> bytes:
    """Encode a rendered figure to PNG or PDF bytes.

    PDF output omits creation and modification dates so identical figures
    produce identical files.
    """
    image = Image.fromarray(figure.rgba)
    buf = io.BytesIO()
    if fmt == "png":
        image.save(buf, format="PNG", dpi=(figure.dpi, figure.dpi))
    elif fmt == "pdf":
        flat = Image.alpha_composite(Image.new("RGBA", image.size, (255, 255, 255, 255)), image).convert("RGB")
        flat.save(buf, format="PDF", resolution=figure.dpi, creationDate=None, modDate=None)
    else:
        raise ExportError(f"unsupported export format: {fmt}")
    return buf.getvalue()


def save(figure: RenderedFigure, path: str | os.PathLike[str], *, format: str | None = None) -> Path:
    """Write a rendered figure; the target is replaced atomically or left untouched."""
    fmt = resolve_format(path, format)
    target = Path(path)
    if not target.parent.is_dir():
        raise ExportError(f"output directory does not exist: {target.parent}")
    payload = encode(figure, fmt)

    tmp_path: str | None = None
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
        os.replace(tmp_path, target)
        tmp_path = None
    except OSError as exc:
        raise ExportError(f"cannot write {target}: {exc}") from exc
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)
    LOGGER.info("Saved figure: %s (%dx%d px, %s)", target, figure.width, figure.height, fmt)
    return target


def export(
    spec: PlotSpec,
    path: str | os.PathLike[str],
    *,
    width: float | None = DEFAULT_WIDTH_IN,
    height: float | None = DEFAULT_HEIGHT_IN,
    units: Units = "in",
    dpi: float = DEFAULT_DPI,
    format: str | None = None,
    data: Table | None = None,
) -> Path:
    fmt = resolve_format(path, format)
    figure = render(spec, width=width, height=height, units=units, dpi=dpi, data=data)
    return save(figure, path, format=fmt)
