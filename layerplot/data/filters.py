from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from layerplot.data.table import Table
from layerplot.errors import DataFormatError


Row = Mapping[str, Any]


@dataclass(frozen=True)
class FilterPredicate:
    """A named pure row predicate.

    `columns` lists the columns the predicate reads so a table can be checked
    before any row is evaluated.
    """

    name: str
    fn: Callable[[Row], bool]
    columns: tuple[str, ...] = ()

    def __call__(self, row: Row) -> bool:
        return bool(self.fn(row))


def not_null(*columns: str) -> FilterPredicate:
    if not columns:
        raise ValueError("not_null requires at least one column")
    cols = tuple(columns)

    def _check(row: Row) -> bool:
        return all(row[c] is not None for c in cols)

    return FilterPredicate(name=f"not_null({', '.join(cols)})", fn=_check, columns=cols)


def equals(column: str, value: Any) -> FilterPredicate:
    return FilterPredicate(name=f"{column} == {value!r}", fn=lambda row: row[column] == value, columns=(column,))


def where(name: str, fn: Callable[[Row], bool], *, columns: Iterable[str] = ()) -> FilterPredicate:
    return FilterPredicate(name=name, fn=fn, columns=tuple(columns))


def filter_rows(table: Table, predicates: Iterable[FilterPredicate]) -> Table:
    preds = tuple(predicates)
    if not preds:
        return table
    for pred in preds:
        for col in pred.columns:
            if col not in table:
                raise DataFormatError(f"predicate {pred.name} references unknown column: {col}")
    keep = np.zeros(len(table), dtype=bool)
    for i, row in enumerate(table.rows()):
        keep[i] = all(pred(row) for pred in preds)
    return table.take(keep)
