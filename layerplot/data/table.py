from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any

import numpy as np
import pandas as pd

from layerplot.errors import DataFormatError


@dataclass(frozen=True)
class Table:
    """Immutable column-wise table.

    Numeric columns are float64 arrays with NaN for missing values. Every other
    column is an object array holding str values or None.
    """

    column_names: tuple[str, ...]
    _columns: Mapping[str, np.ndarray]

    def __post_init__(self) -> None:
        lengths = {name: self._columns[name].shape[0] for name in self.column_names}
        if len(set(lengths.values())) > 1:
            raise DataFormatError(f"columns have unequal lengths: {lengths}")
        for arr in self._columns.values():
            arr.setflags(write=False)
        object.__setattr__(self, "_columns", MappingProxyType(dict(self._columns)))

    @classmethod
    def from_columns(cls, columns: Mapping[str, Any]) -> "Table":
        out: dict[str, np.ndarray] = {}
        for name, values in columns.items():
            out[str(name)] = _coerce_column(values, label=str(name))
        return cls(column_names=tuple(out), _columns=out)

    @classmethod
    def from_rows(cls, rows: Sequence[Mapping[str, Any]]) -> "Table":
        if not rows:
            raise DataFormatError("cannot build a table from zero rows without a column set")
        names = tuple(rows[0].keys())
        for i, row in enumerate(rows):
            if tuple(row.keys()) != names and set(row.keys()) != set(names):
                raise DataFormatError(f"row {i} has columns {sorted(row)}, expected {sorted(names)}")
        return cls.from_columns({name: [row[name] for row in rows] for name in names})

    @classmethod
    def from_dataframe(cls, frame: pd.DataFrame) -> "Table":
        columns: dict[str, Any] = {}
        for name in frame.columns:
            series = frame[name]
            if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
                columns[str(name)] = series.to_numpy(dtype=np.float64, na_value=np.nan)
            else:
                columns[str(name)] = [None if pd.isna(v) else str(v) for v in series.tolist()]
        return cls.from_columns(columns)

    def __len__(self) -> int:
        if not self.column_names:
            return 0
        return int(self._columns[self.column_names[0]].shape[0])

    def __contains__(self, name: object) -> bool:
        return name in self._columns

    def column(self, name: str) -> np.ndarray:
        try:
            return self._columns[name]
        except KeyError:
            raise DataFormatError(f"column not found: {name}") from None

    def is_numeric(self, name: str) -> bool:
        return self.column(name).dtype.kind == "f"

    def row(self, index: int) -> dict[str, Any]:
        return {name: _scalar(self._columns[name][index]) for name in self.column_names}

    def rows(self) -> Iterator[dict[str, Any]]:
        for i in range(len(self)):
            yield self.row(i)

    def take(self, mask: np.ndarray) -> "Table":
        if mask.shape != (len(self),):
            raise DataFormatError(f"mask length {mask.shape} does not match table length {len(self)}")
        return Table(
            column_names=self.column_names,
            _columns={name: self._columns[name][mask] for name in self.column_names},
        )

    def with_column(self, name: str, values: Any) -> "Table":
        arr = _coerce_column(values, label=name)
        if arr.shape[0] != len(self) and self.column_names:
            raise DataFormatError(f"column {name} has {arr.shape[0]} values, expected {len(self)}")
        columns = dict(self._columns)
        columns[name] = arr
        names = self.column_names if name in self._columns else self.column_names + (name,)
        return Table(column_names=names, _columns=columns)

    def unique(self, name: str) -> tuple[Any, ...]:
        """Distinct non-missing values of a column, sorted."""
        values = [_scalar(v) for v in self.column(name).tolist()]
        present = {v for v in values if not _is_missing(v)}
        return tuple(sorted(present, key=lambda v: (isinstance(v, str), v)))


def _coerce_column(values: Any, *, label: str) -> np.ndarray:
    if isinstance(values, pd.Series):
        values = values.to_numpy()
    if isinstance(values, np.ndarray):
        if values.ndim != 1:
            raise DataFormatError(f"{label} must be 1-D")
        if values.dtype.kind in {"i", "u", "f"}:
            return values.astype(np.float64, copy=True)
        values = values.tolist()
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise DataFormatError(f"unsupported {label} input type: {type(values)!r}")

    items = list(values)
    if all(_is_missing(v) or _is_number(v) for v in items) and any(_is_number(v) for v in items):
        out = np.empty(len(items), dtype=np.float64)
        for i, raw in enumerate(items):
            out[i] = np.nan if _is_missing(raw) else float(raw)
        return out

    out_obj = np.empty(len(items), dtype=object)
    for i, raw in enumerate(items):
        out_obj[i] = None if _is_missing(raw) else str(raw)
    return out_obj


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float, Decimal, np.integer, np.floating))


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (float, np.floating)):
        return bool(np.isnan(value))
    return False


def _scalar(value: Any) -> Any:
    if isinstance(value, np.floating):
        value = float(value)
    if isinstance(value, float) and np.isnan(value):
        return None
    return value
