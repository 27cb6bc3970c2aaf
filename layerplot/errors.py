from __future__ import annotations


class LayerplotError(Exception):
    """Base class for every error raised by layerplot."""


class DataLoadError(LayerplotError):
    pass


class DataFormatError(LayerplotError):
    pass


class PlotConfigError(LayerplotError):
    """Raised while building a PlotSpec, before any rendering work."""


class InvalidMappingError(PlotConfigError):
    pass


class InvalidScaleError(PlotConfigError):
    pass


class UnknownPaletteError(PlotConfigError):
    pass


class MarkupParseError(LayerplotError):
    def __init__(self, message: str, *, source: str, start: int, end: int) -> None:
        self.source = source
        self.start = start
        self.end = end
        self.fragment = source[start:end]
        super().__init__(f"{message} at {start}:{end} ({self.fragment!r})")


class RenderError(LayerplotError):
    pass


class ExportError(LayerplotError):
    pass
