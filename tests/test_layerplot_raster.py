from __future__ import annotations

import unittest

import numpy as np

from layerplot.display import resolve_figure_size, to_pixels
from layerplot.markup import LineBreak, TextRun, TextStyle
from layerplot.raster import draw_markers, draw_polyline, new_canvas
from layerplot.raster.draw_text import text_width
from layerplot.raster.rich_text import layout_rich_text, points_to_px, rich_text_patch
from layerplot.theme import ResolvedText


BASE = ResolvedText(family="sans", size_pt=11.0, color="#1A1A1A", bold=False, italic=False)


class DisplayTests(unittest.TestCase):
    def test_units_convert_at_dpi(self) -> None:
        self.assertEqual(to_pixels(7, units="in", dpi=300), 2100)
        self.assertEqual(to_pixels(2.54, units="cm", dpi=100), 100)
        self.assertEqual(to_pixels(72, units="pt", dpi=150), 150)
        self.assertEqual(to_pixels(321.4, units="px", dpi=300), 321)

    def test_missing_side_follows_aspect_ratio(self) -> None:
        self.assertEqual(resolve_figure_size(7, None, dpi=100), (700, 500))
        self.assertEqual(resolve_figure_size(None, None, dpi=100), (700, 500))
        self.assertEqual(resolve_figure_size(None, 10, units="cm", dpi=254, aspect_ratio=2.0), (2000, 1000))

    def test_invalid_sizes_raise(self) -> None:
        with self.assertRaises(ValueError):
            resolve_figure_size(0, 5)
        with self.assertRaises(ValueError):
            resolve_figure_size(7, 5, dpi=0)
        with self.assertRaisesRegex(ValueError, "units must be one of"):
            resolve_figure_size(7, 5, units="ft")  # type: ignore[arg-type]


class PrimitiveTests(unittest.TestCase):
    def test_markers_fill_discs_and_skip_offscreen_pixels(self) -> None:
        canvas = new_canvas(11, 11, (255, 255, 255, 255))
        colors = np.asarray([[255, 0, 0, 255], [0, 0, 255, 255]], dtype=np.uint8)
        draw_markers(canvas, np.asarray([5, 0]), np.asarray([5, 0]), colors, np.asarray([2, 1]))
        self.assertEqual(canvas[5, 5].tolist(), [255, 0, 0, 255])
        self.assertEqual(canvas[7, 5].tolist(), [255, 0, 0, 255])
        self.assertEqual(canvas[0, 0].tolist(), [0, 0, 255, 255])
        self.assertEqual(canvas[10, 10].tolist(), [255, 255, 255, 255])

    def test_marker_alpha_blends_with_background(self) -> None:
        canvas = new_canvas(3, 3, (255, 255, 255, 255))
        draw_markers(canvas, np.asarray([1]), np.asarray([1]), np.asarray([[0, 0, 0, 128]], dtype=np.uint8))
        self.assertTrue(100 < int(canvas[1, 1, 0]) < 160)

    def test_polyline_covers_every_column(self) -> None:
        canvas = new_canvas(10, 10)
        draw_polyline(canvas, np.asarray([1, 8]), np.asarray([5, 5]), (0, 128, 0, 255))
        self.assertTrue(np.all(canvas[5, 1:9, 1] == 128))
        self.assertTrue(np.all(canvas[4, :, 3] == 0))


class RichTextLayoutTests(unittest.TestCase):
    def test_points_to_px(self) -> None:
        self.assertEqual(points_to_px(11, 72), 11.0)
        self.assertEqual(points_to_px(12, 300), 50.0)

    def test_line_break_stacks_lines(self) -> None:
        one = layout_rich_text((TextRun("Bill"),), BASE, dpi=72)
        two = layout_rich_text((TextRun("Bill"), LineBreak(), TextRun("Bill")), BASE, dpi=72)
        self.assertEqual(two.width, one.width)
        self.assertGreater(two.height, one.height)
        self.assertGreater(two.runs[1].top, two.runs[0].top)

    def test_runs_share_a_line_left_to_right(self) -> None:
        block = layout_rich_text((TextRun("Bill "), TextRun("length", TextStyle(bold=True))), BASE, dpi=72)
        first, second = block.runs
        self.assertEqual(first.x, 0)
        self.assertEqual(second.x, text_width("Bill ", first.face))
        self.assertEqual(block.width, second.x + text_width("length", second.face))

    def test_run_style_overrides_role_defaults(self) -> None:
        block = layout_rich_text((TextRun("Gentoo", TextStyle(color="#159090", font_size_pt=22.0)),), BASE, dpi=72)
        run = block.runs[0]
        self.assertEqual(run.color, (0x15, 0x90, 0x90, 255))
        self.assertEqual(run.face.size_px, 22)

    def test_right_alignment_offsets_short_lines(self) -> None:
        block = layout_rich_text(
            (TextRun("Body mass (g)"), LineBreak(), TextRun("g")), BASE, dpi=72, align="right"
        )
        last = block.runs[-1]
        self.assertEqual(last.x + text_width("g", last.face), block.width)

    def test_patch_rotation_swaps_axes(self) -> None:
        runs = (TextRun("Bill depth (mm)"),)
        flat = rich_text_patch(runs, BASE, dpi=72)
        turned = rich_text_patch(runs, BASE, dpi=72, rotate=1)
        self.assertEqual(turned.shape[:2], flat.shape[1::-1])
        self.assertGreater(int(flat[:, :, 3].max()), 0)


if __name__ == "__main__":
    unittest.main()
