from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from layerplot.export import export, save
from layerplot.plot import PlotSpec, plot
from layerplot.render import RenderedFigure, render


def save_plot(target: PlotSpec | RenderedFigure, path: str | os.PathLike[str], **options: Any) -> Path:
    """Save either a plot description (rendered on the fly) or an already rendered figure."""
    if isinstance(target, RenderedFigure):
        return save(target, path, **options)
    if isinstance(target, PlotSpec):
        return export(target, path, **options)
    raise TypeError(f"cannot save {type(target).__name__}; expected PlotSpec or RenderedFigure")


__all__ = ["plot", "render", "save_plot"]
