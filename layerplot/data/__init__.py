from .filters import FilterPredicate, equals, filter_rows, not_null, where
from .loader import PENGUINS_SCHEMA, PENGUINS_URL, ColumnSpec, TableSchema, ValueRemap, apply_remap, load_table
from .table import Table

__all__ = [
    "ColumnSpec",
    "FilterPredicate",
    "PENGUINS_SCHEMA",
    "PENGUINS_URL",
    "Table",
    "TableSchema",
    "ValueRemap",
    "apply_remap",
    "equals",
    "filter_rows",
    "load_table",
    "not_null",
    "where",
]
