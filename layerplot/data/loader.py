from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
import hashlib
import io
import logging
from pathlib import Path
from typing import Literal
import urllib.error
import urllib.request

import numpy as np
import pandas as pd

from layerplot.data.filters import FilterPredicate, filter_rows
from layerplot.data.table import Table
from layerplot.errors import DataFormatError, DataLoadError


LOGGER = logging.getLogger(__name__)

ColumnKind = Literal["numeric", "string", "category"]

PENGUINS_URL = "https://raw.githubusercontent.com/allisonhorst/palmerpenguins/main/inst/extdata/penguins.csv"
NA_VALUES = ("", "NA", "NaN", "nan")


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    kind: ColumnKind
    required: bool = True


@dataclass(frozen=True)
class TableSchema:
    columns: tuple[ColumnSpec, ...]

    def __post_init__(self) -> None:
        names = [c.name for c in self.columns]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate schema columns: {names}")
        for col in self.columns:
            if col.kind not in ("numeric", "string", "category"):
                raise ValueError(f"unknown column kind for {col.name}: {col.kind}")

    def get(self, name: str) -> ColumnSpec | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None


PENGUINS_SCHEMA = TableSchema(
    columns=(
        ColumnSpec("species", "category"),
        ColumnSpec("island", "category", required=False),
        ColumnSpec("bill_length_mm", "numeric"),
        ColumnSpec("bill_depth_mm", "numeric"),
        ColumnSpec("flipper_length_mm", "numeric", required=False),
        ColumnSpec("body_mass_g", "numeric"),
        ColumnSpec("sex", "category", required=False),
        ColumnSpec("year", "numeric", required=False),
    )
)


@dataclass(frozen=True)
class ValueRemap:
    """Rewrite specific values of one categorical column, e.g. restoring diacritics."""

    column: str
    mapping: Mapping[str, str] = field(default_factory=dict)


def load_table(
    source: str | Path,
    *,
    schema: TableSchema | None = None,
    remaps: Iterable[ValueRemap] = (),
    predicates: Iterable[FilterPredicate] = (),
    cache_dir: str | Path | None = None,
    timeout: float = 30.0,
) -> Table:
    raw = _read_source(source, cache_dir=cache_dir, timeout=timeout)
    try:
        frame = pd.read_csv(io.BytesIO(raw), dtype=str, keep_default_na=False, na_values=list(NA_VALUES))
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise DataFormatError(f"could not parse CSV from {source}: {exc}") from exc

    table = _apply_schema(frame, schema)
    for remap in remaps:
        table = apply_remap(table, remap)
    total = len(table)
    table = filter_rows(table, predicates)
    LOGGER.info("loaded %s: %d rows (%d after filtering)", source, total, len(table))
    if total != len(table):
        LOGGER.debug("dropped %d rows failing predicates", total - len(table))
    return table


def apply_remap(table: Table, remap: ValueRemap) -> Table:
    if remap.column not in table:
        raise DataFormatError(f"remap references unknown column: {remap.column}")
    if table.is_numeric(remap.column):
        raise DataFormatError(f"remap column must be categorical: {remap.column}")
    values = [remap.mapping.get(v, v) if v is not None else None for v in table.column(remap.column).tolist()]
    return table.with_column(remap.column, values)


def _read_source(source: str | Path, *, cache_dir: str | Path | None, timeout: float) -> bytes:
    text = str(source)
    if not text.startswith(("http://", "https://")):
        try:
            return Path(text).read_bytes()
        except OSError as exc:
            raise DataLoadError(f"could not read {text}: {exc}") from exc

    cached: Path | None = None
    if cache_dir is not None:
        digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]
        cached = Path(cache_dir) / f"{digest}-{Path(text).name or 'data.csv'}"
        if cached.exists():
            LOGGER.debug("using cached copy of %s at %s", text, cached)
            return cached.read_bytes()

    req = urllib.request.Request(url=text, headers={"User-Agent": "layerplot/0.1"})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            body = resp.read()
    except urllib.error.HTTPError as exc:
        raise DataLoadError(f"HTTP {exc.code} fetching {text}") from exc
    except (urllib.error.URLError, OSError) as exc:
        raise DataLoadError(f"could not fetch {text}: {exc}") from exc

    if cached is not None:
        try:
            cached.parent.mkdir(parents=True, exist_ok=True)
            cached.write_bytes(body)
        except OSError as exc:
            raise DataLoadError(f"could not write cache file {cached}: {exc}") from exc
    return body


def _apply_schema(frame: pd.DataFrame, schema: TableSchema | None) -> Table:
    columns: dict[str, object] = {}
    if schema is not None:
        missing = [c.name for c in schema.columns if c.required and c.name not in frame.columns]
        if missing:
            raise DataFormatError(f"missing required columns: {', '.join(missing)}")

    for name in frame.columns:
        spec = schema.get(str(name)) if schema is not None else None
        series = frame[name]
        if spec is not None and spec.kind == "numeric":
            columns[str(name)] = _numeric_column(series, str(name))
        elif spec is None and schema is None and _looks_numeric(series):
            columns[str(name)] = _numeric_column(series, str(name))
        else:
            columns[str(name)] = [None if pd.isna(v) else str(v) for v in series.tolist()]
    return Table.from_columns(columns)


def _numeric_column(series: pd.Series, name: str) -> np.ndarray:
    try:
        values = pd.to_numeric(series, errors="raise")
    except (ValueError, TypeError) as exc:
        raise DataFormatError(f"column {name} is not numeric: {exc}") from exc
    return values.to_numpy(dtype=np.float64, na_value=np.nan)


def _looks_numeric(series: pd.Series) -> bool:
    present = series.dropna()
    if present.empty:
        return False
    return bool(pd.to_numeric(present, errors="coerce").notna().all())
