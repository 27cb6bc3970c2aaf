from __future__ import annotations

from pathlib import Path
import tempfile
import unittest
from unittest import mock
import urllib.error

import numpy as np
import pandas as pd

from layerplot.data import (
    PENGUINS_SCHEMA,
    ColumnSpec,
    Table,
    TableSchema,
    ValueRemap,
    equals,
    filter_rows,
    load_table,
    not_null,
    where,
)
from layerplot.errors import DataFormatError, DataLoadError


PENGUINS_CSV = """species,island,bill_length_mm,bill_depth_mm,flipper_length_mm,body_mass_g,sex,year
Adelie,Torgersen,39.1,18.7,181,3750,male,2007
Adelie,Torgersen,NA,NA,NA,NA,NA,2007
Chinstrap,Dream,46.5,17.9,192,3500,female,2007
Gentoo,Biscoe,46.1,13.2,211,4500,female,2007
Adelie,Torgersen,39.5,17.4,186,3800,female,2007
"""


def _write_csv(tmp: str, text: str, name: str = "penguins.csv") -> Path:
    path = Path(tmp) / name
    path.write_text(text, encoding="utf-8")
    return path


class TableTests(unittest.TestCase):
    def test_from_rows_keeps_order_and_types(self) -> None:
        table = Table.from_rows(
            [
                {"x": 39.1, "species": "Adelie"},
                {"x": None, "species": "Gentoo"},
            ]
        )
        self.assertEqual(table.column_names, ("x", "species"))
        self.assertEqual(len(table), 2)
        self.assertTrue(table.is_numeric("x"))
        self.assertFalse(table.is_numeric("species"))
        self.assertTrue(np.isnan(table.column("x")[1]))
        self.assertEqual(table.row(1), {"x": None, "species": "Gentoo"})

    def test_from_rows_rejects_mismatched_columns(self) -> None:
        with self.assertRaisesRegex(DataFormatError, "row 1"):
            Table.from_rows([{"x": 1.0}, {"y": 2.0}])

    def test_columns_are_read_only(self) -> None:
        table = Table.from_columns({"x": [1.0, 2.0]})
        with self.assertRaises(ValueError):
            table.column("x")[0] = 5.0

    def test_missing_column_raises(self) -> None:
        table = Table.from_columns({"x": [1.0]})
        with self.assertRaisesRegex(DataFormatError, "column not found"):
            table.column("y")

    def test_with_column_returns_new_table(self) -> None:
        table = Table.from_columns({"x": [1.0, 2.0]})
        extended = table.with_column("label", ["a", "b"])
        self.assertNotIn("label", table)
        self.assertEqual(extended.column_names, ("x", "label"))

    def test_from_dataframe_maps_missing_values(self) -> None:
        frame = pd.DataFrame({"m": [3750, None], "s": ["Adelie", None]})
        table = Table.from_dataframe(frame)
        self.assertTrue(table.is_numeric("m"))
        self.assertEqual(table.row(1), {"m": None, "s": None})

    def test_unique_is_sorted_without_missing(self) -> None:
        table = Table.from_columns({"s": ["Gentoo", None, "Adelie", "Gentoo"]})
        self.assertEqual(table.unique("s"), ("Adelie", "Gentoo"))


class FilterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.table = Table.from_rows(
            [
                {"a": 1.0, "b": "x"},
                {"a": None, "b": "y"},
                {"a": 3.0, "b": None},
                {"a": 4.0, "b": "x"},
            ]
        )

    def test_not_null_keeps_only_complete_rows_in_order(self) -> None:
        out = filter_rows(self.table, [not_null("a", "b")])
        self.assertEqual([r["a"] for r in out.rows()], [1.0, 4.0])

    def test_predicates_compose_with_and(self) -> None:
        out = filter_rows(self.table, [not_null("a"), equals("b", "x")])
        self.assertEqual([r["a"] for r in out.rows()], [1.0, 4.0])
        out = filter_rows(self.table, [not_null("a"), where("a > 2", lambda row: row["a"] > 2, columns=("a",))])
        self.assertEqual([r["a"] for r in out.rows()], [3.0, 4.0])

    def test_filter_is_subset_of_input(self) -> None:
        out = filter_rows(self.table, [not_null("b")])
        kept = list(out.rows())
        original = list(self.table.rows())
        self.assertTrue(all(row in original for row in kept))
        self.assertTrue(all(row["b"] is not None for row in kept))

    def test_unknown_predicate_column_raises(self) -> None:
        with self.assertRaisesRegex(DataFormatError, "unknown column: missing"):
            filter_rows(self.table, [not_null("missing")])

    def test_no_predicates_returns_same_table(self) -> None:
        self.assertIs(filter_rows(self.table, []), self.table)

    def test_not_null_requires_columns(self) -> None:
        with self.assertRaises(ValueError):
            not_null()


class LoaderTests(unittest.TestCase):
    def test_load_penguins_with_schema_remap_and_filter(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = _write_csv(tmp, PENGUINS_CSV)
            with self.assertLogs("layerplot.data.loader", level="INFO") as logs:
                table = load_table(
                    path,
                    schema=PENGUINS_SCHEMA,
                    remaps=(ValueRemap("species", {"Adelie": "Adélie"}),),
                    predicates=(not_null("bill_length_mm", "bill_depth_mm", "body_mass_g"),),
                )
        self.assertEqual(len(table), 4)
        self.assertEqual(table.column("species").tolist(), ["Adélie", "Chinstrap", "Gentoo", "Adélie"])
        self.assertTrue(table.is_numeric("body_mass_g"))
        self.assertFalse(table.is_numeric("island"))
        self.assertEqual(table.column("bill_length_mm").tolist(), [39.1, 46.5, 46.1, 39.5])
        self.assertTrue(any("5 rows (4 after filtering)" in line for line in logs.output))

    def test_missing_file_raises_data_load_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaisesRegex(DataLoadError, "could not read"):
                load_table(Path(tmp) / "absent.csv")

    def test_missing_required_column_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = _write_csv(tmp, "species,bill_length_mm\nAdelie,39.1\n")
            with self.assertRaisesRegex(DataFormatError, "bill_depth_mm"):
                load_table(path, schema=PENGUINS_SCHEMA)

    def test_non_numeric_value_in_numeric_column_raises(self) -> None:
        schema = TableSchema(columns=(ColumnSpec("m", "numeric"),))
        with tempfile.TemporaryDirectory() as tmp:
            path = _write_csv(tmp, "m\n3750\nheavy\n")
            with self.assertRaisesRegex(DataFormatError, "column m is not numeric"):
                load_table(path, schema=schema)

    def test_empty_file_raises_data_format_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = _write_csv(tmp, "")
            with self.assertRaises(DataFormatError):
                load_table(path)

    def test_remap_unknown_column_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = _write_csv(tmp, PENGUINS_CSV)
            with self.assertRaisesRegex(DataFormatError, "unknown column: genus"):
                load_table(path, remaps=(ValueRemap("genus", {"a": "b"}),))

    def test_without_schema_numeric_columns_are_inferred(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = _write_csv(tmp, "x,label\n1,a\n2,b\n")
            table = load_table(path)
        self.assertTrue(table.is_numeric("x"))
        self.assertFalse(table.is_numeric("label"))

    def test_url_failure_raises_data_load_error(self) -> None:
        error = urllib.error.URLError("offline")
        with mock.patch("layerplot.data.loader.urllib.request.urlopen", side_effect=error):
            with self.assertRaisesRegex(DataLoadError, "could not fetch"):
                load_table("https://example.invalid/penguins.csv")

    def test_url_download_is_cached(self) -> None:
        response = mock.MagicMock()
        response.__enter__.return_value.read.return_value = PENGUINS_CSV.encode("utf-8")
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("layerplot.data.loader.urllib.request.urlopen", return_value=response) as urlopen:
                first = load_table("https://example.invalid/penguins.csv", cache_dir=tmp)
                second = load_table("https://example.invalid/penguins.csv", cache_dir=tmp)
            self.assertEqual(urlopen.call_count, 1)
            self.assertEqual(len(list(Path(tmp).iterdir())), 1)
        self.assertEqual(len(first), len(second))


if __name__ == "__main__":
    unittest.main()
