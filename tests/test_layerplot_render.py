from __future__ import annotations

import unittest

import numpy as np

from layerplot.data import Table, equals
from layerplot.errors import MarkupParseError, RenderError
from layerplot.palettes import get_palette, interpolate
from layerplot.plot import PlotSpec, plot
from layerplot.render import render
from layerplot.theme import reset_default_theme, set_default_theme, theme_minimal


def _table() -> Table:
    return Table.from_columns(
        {
            "x": [39.1, 39.5, 40.3],
            "y": [18.7, 17.4, 18.0],
            "m": [3750.0, 3800.0, 3250.0],
            "species": ["Adelie", "Adelie", "Gentoo"],
        }
    )


def _render_px(spec: PlotSpec, **kwargs):
    options = {"width": 400, "height": 400, "units": "px", "dpi": 72}
    options.update(kwargs)
    return render(spec, **options)


class RenderTests(unittest.TestCase):
    def tearDown(self) -> None:
        reset_default_theme()

    def test_points_take_palette_colors_in_value_order(self) -> None:
        spec = (
            plot(_table(), x="x", y="y", color="m")
            .geom_point()
            .scale_color_palette("viridis", limits=(3250, 3800))
        )
        figure = _render_px(spec)

        self.assertEqual((figure.height, figure.width), (400, 400))
        marks = figure.marks[0]
        self.assertEqual(marks.px.shape[0], 3)
        self.assertEqual(marks.removed, 0)
        expected = interpolate(get_palette("viridis"), (np.asarray([3750.0, 3800.0, 3250.0]) - 3250.0) / 550.0)
        np.testing.assert_array_equal(marks.colors[:, :3], expected)
        self.assertEqual(len({tuple(c) for c in marks.colors.tolist()}), 3)
        for px, py, color in zip(marks.px.tolist(), marks.py.tolist(), marks.colors.tolist(), strict=True):
            self.assertEqual(figure.rgba[py, px, :3].tolist(), color[:3])

    def test_marks_land_inside_the_panel_with_y_up(self) -> None:
        figure = _render_px(plot(_table(), x="x", y="y").geom_point())
        left, top, panel_w, panel_h = figure.panel_rect
        marks = figure.marks[0]
        self.assertTrue(np.all((marks.px >= left) & (marks.px < left + panel_w)))
        self.assertTrue(np.all((marks.py >= top) & (marks.py < top + panel_h)))
        # Row 0 has the largest y and so the smallest pixel row.
        self.assertEqual(int(np.argmin(marks.py)), 0)
        self.assertEqual(int(np.argmin(marks.px)), 0)

    def test_render_is_deterministic(self) -> None:
        spec = (
            plot(_table(), x="x", y="y", color="species")
            .geom_point(size=2.2, alpha=0.6)
            .set_labels(title="**Bill** *dimensions*", caption="<i>Data</i>")
        )
        first = _render_px(spec)
        second = _render_px(spec)
        self.assertTrue(np.array_equal(first.rgba, second.rgba))

    def test_render_snapshots_the_default_theme(self) -> None:
        spec = plot(_table(), x="x", y="y").geom_point()
        gray = _render_px(spec)
        set_default_theme(theme_minimal())
        minimal = _render_px(spec)
        self.assertFalse(np.array_equal(gray.rgba, minimal.rgba))
        reset_default_theme()
        self.assertTrue(np.array_equal(gray.rgba, _render_px(spec).rgba))

    def test_missing_column_raises(self) -> None:
        spec = plot(_table(), x="x", y="bill_depth_mm").geom_point()
        with self.assertRaisesRegex(RenderError, "missing column 'bill_depth_mm'"):
            _render_px(spec)

    def test_non_numeric_position_raises(self) -> None:
        with self.assertRaisesRegex(RenderError, "non-numeric column 'species'"):
            _render_px(plot(_table(), x="species", y="y").geom_point())

    def test_spec_without_data_or_layers_raises(self) -> None:
        with self.assertRaisesRegex(RenderError, "no data"):
            _render_px(PlotSpec().add_layer("point", {"x": "x", "y": "y"}))
        with self.assertRaisesRegex(RenderError, "no layers"):
            _render_px(plot(_table(), x="x", y="y"))

    def test_data_argument_overrides_spec_data(self) -> None:
        spec = PlotSpec().add_layer("point", {"x": "x", "y": "y"})
        figure = _render_px(spec, data=_table())
        self.assertEqual(figure.marks[0].px.shape[0], 3)

    def test_out_of_limit_rows_are_dropped_with_warning(self) -> None:
        spec = plot(_table(), x="x", y="y").geom_point().scale_x_continuous(limits=(39.2, 41))
        with self.assertLogs("layerplot.render", "WARNING") as logs:
            figure = _render_px(spec)
        self.assertIn("Removed 1 rows", logs.output[0])
        self.assertEqual(figure.marks[0].removed, 1)
        self.assertEqual(figure.marks[0].px.shape[0], 2)

    def test_missing_values_are_dropped(self) -> None:
        table = Table.from_columns({"x": [1.0, None, 3.0], "y": [1.0, 2.0, float("nan")]})
        with self.assertLogs("layerplot.render", "WARNING"):
            figure = _render_px(plot(table, x="x", y="y").geom_point())
        self.assertEqual(figure.marks[0].removed, 2)

    def test_layer_filter_limits_its_rows(self) -> None:
        spec = (
            plot(_table(), x="x", y="y")
            .geom_point()
            .geom_point(color="#FF0000", data_filter=[equals("species", "Gentoo")])
        )
        figure = _render_px(spec)
        self.assertEqual([m.px.shape[0] for m in figure.marks], [3, 1])
        self.assertEqual(figure.marks[1].colors[0].tolist(), [255, 0, 0, 255])

    def test_line_layer_connects_points(self) -> None:
        spec = plot(_table(), x="x", y="y").geom_line(linewidth=1.0, color="#0000FF")
        figure = _render_px(spec)
        marks = figure.marks[0]
        self.assertEqual(marks.geometry, "line")
        mid_x = (marks.px[0] + marks.px[1]) // 2
        column = figure.rgba[:, mid_x, :3]
        self.assertTrue(np.any(np.all(column == [0, 0, 255], axis=1)))

    def test_mixed_color_kinds_across_layers_raise(self) -> None:
        spec = plot(_table(), x="x", y="y").geom_point({"color": "m"}).geom_point({"color": "species"})
        with self.assertRaisesRegex(RenderError, "numeric and categorical"):
            _render_px(spec)

    def test_malformed_label_markup_propagates(self) -> None:
        spec = plot(_table(), x="x", y="y").geom_point().set_labels(title="Bill *depth")
        with self.assertRaises(MarkupParseError) as ctx:
            _render_px(spec)
        self.assertEqual(ctx.exception.fragment, "*")

    def test_default_axis_labels_show_column_names_literally(self) -> None:
        values = {"y": [18.7, 17.4, 18.0]}
        marked = Table.from_columns({"rate*": [39.1, 39.5, 40.3], "a<b & c": [3750.0, 3800.0, 3250.0], **values})
        plain = Table.from_columns({"r": [39.1, 39.5, 40.3], "m": [3750.0, 3800.0, 3250.0], **values})
        from_columns = _render_px(plot(marked, x="rate*", y="y", color="a<b & c").geom_point())
        from_labels = _render_px(
            plot(plain, x="r", y="y", color="m").geom_point().set_labels(x=r"rate\*", color=r"a\<b &amp; c")
        )
        self.assertTrue(np.array_equal(from_columns.rgba, from_labels.rgba))

    def test_figure_too_small_raises(self) -> None:
        with self.assertRaisesRegex(RenderError, "too small"):
            _render_px(plot(_table(), x="x", y="y").geom_point(), width=20, height=20)

    def test_invalid_size_raises(self) -> None:
        with self.assertRaises(RenderError):
            _render_px(plot(_table(), x="x", y="y").geom_point(), width=-1)


if __name__ == "__main__":
    unittest.main()
