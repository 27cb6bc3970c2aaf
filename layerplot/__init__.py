from layerplot.api import plot, render, save_plot
from layerplot.data import PENGUINS_SCHEMA, Table, TableSchema, ValueRemap, filter_rows, load_table, not_null
from layerplot.errors import (
    DataFormatError,
    DataLoadError,
    ExportError,
    InvalidMappingError,
    InvalidScaleError,
    LayerplotError,
    MarkupParseError,
    PlotConfigError,
    RenderError,
    UnknownPaletteError,
)
from layerplot.export import export
from layerplot.markup import LineBreak, TextRun, TextStyle, escape_markup, resolve_markup
from layerplot.plot import Layer, PlotSpec
from layerplot.render import LayerMarks, RenderedFigure
from layerplot.scales import ColorPaletteScale, ContinuousScale, ManualColorScale
from layerplot.theme import (
    ElementText,
    Theme,
    get_default_theme,
    reset_default_theme,
    set_default_theme,
    theme_gray,
    theme_minimal,
    update_default_theme,
)

__all__ = [
    "ColorPaletteScale",
    "ContinuousScale",
    "DataFormatError",
    "DataLoadError",
    "ElementText",
    "ExportError",
    "InvalidMappingError",
    "InvalidScaleError",
    "Layer",
    "LayerMarks",
    "LayerplotError",
    "LineBreak",
    "ManualColorScale",
    "MarkupParseError",
    "PENGUINS_SCHEMA",
    "PlotConfigError",
    "PlotSpec",
    "RenderError",
    "RenderedFigure",
    "Table",
    "TableSchema",
    "TextRun",
    "TextStyle",
    "Theme",
    "UnknownPaletteError",
    "ValueRemap",
    "escape_markup",
    "export",
    "filter_rows",
    "get_default_theme",
    "load_table",
    "not_null",
    "plot",
    "render",
    "reset_default_theme",
    "resolve_markup",
    "save_plot",
    "set_default_theme",
    "theme_gray",
    "theme_minimal",
    "update_default_theme",
]
