from __future__ import annotations

import unittest

import numpy as np

from layerplot.errors import InvalidScaleError, UnknownPaletteError
from layerplot.palettes import discrete_colors, get_palette, interpolate, palette_names
from layerplot.scales import (
    ColorbarGuide,
    ColorPaletteScale,
    ContinuousScale,
    DataLimits,
    KeyGuide,
    ManualColorScale,
    build_transform,
    format_ticks,
    generate_nice_ticks,
    map_colors,
    map_to_pixels,
    resolve_breaks,
    resolve_range,
    validate_scale_channel,
    within_limits,
)


class PaletteTests(unittest.TestCase):
    def test_lookup_is_case_insensitive(self) -> None:
        self.assertEqual(get_palette("burgyl").name, "BurgYl")
        self.assertIn("viridis", palette_names())

    def test_unknown_palette_raises(self) -> None:
        with self.assertRaisesRegex(UnknownPaletteError, "unknown palette: 'nope'"):
            get_palette("nope")

    def test_interpolate_hits_end_stops_exactly(self) -> None:
        palette = get_palette("viridis")
        rgb = interpolate(palette, np.asarray([0.0, 1.0]))
        self.assertEqual(rgb.tolist(), [[0x44, 0x01, 0x54], [0xFD, 0xE7, 0x25]])

    def test_reverse_direction_flips_mapping(self) -> None:
        palette = get_palette("viridis")
        t = np.asarray([0.0, 0.25, 1.0])
        forward = interpolate(palette, t)
        reverse = interpolate(palette, 1.0 - t, direction="reverse")
        np.testing.assert_array_equal(forward, reverse)

    def test_interpolation_is_deterministic(self) -> None:
        palette = get_palette("BurgYl")
        t = np.linspace(0.0, 1.0, 257)
        np.testing.assert_array_equal(interpolate(palette, t), interpolate(palette, t))

    def test_qualitative_palette_cycles(self) -> None:
        colors = discrete_colors(get_palette("penguins"), 4)
        self.assertEqual(colors[0], colors[3])
        self.assertEqual(colors[1], (0xA0, 0x34, 0xF0, 255))


class ContinuousScaleTests(unittest.TestCase):
    def test_breaks_outside_limits_raise(self) -> None:
        with self.assertRaisesRegex(InvalidScaleError, "outside limits"):
            ContinuousScale(limits=(30.0, 60.0), breaks=(25.0, 35.0))

    def test_inverted_limits_raise(self) -> None:
        with self.assertRaisesRegex(InvalidScaleError, "min < max"):
            ContinuousScale(limits=(60.0, 30.0))

    def test_descending_breaks_raise(self) -> None:
        with self.assertRaisesRegex(InvalidScaleError, "ascending"):
            ContinuousScale(breaks=(40.0, 35.0))

    def test_resolve_range_expands_data_by_five_percent(self) -> None:
        lo, hi = resolve_range(np.asarray([10.0, 20.0, np.nan]), None)
        self.assertAlmostEqual(lo, 9.5)
        self.assertAlmostEqual(hi, 20.5)

    def test_resolve_range_prefers_explicit_limits(self) -> None:
        lo, hi = resolve_range(np.asarray([35.0, 40.0]), ContinuousScale(limits=(30.0, 60.0), expand=0.0))
        self.assertEqual((lo, hi), (30.0, 60.0))

    def test_explicit_limits_are_expanded_like_data(self) -> None:
        lo, hi = resolve_range(np.asarray([35.0, 40.0]), ContinuousScale(limits=(30.0, 60.0)))
        self.assertAlmostEqual(lo, 28.5)
        self.assertAlmostEqual(hi, 61.5)

    def test_within_limits_is_inclusive(self) -> None:
        mask = within_limits(np.asarray([29.9, 30.0, 60.0, 60.1]), ContinuousScale(limits=(30.0, 60.0)))
        self.assertEqual(mask.tolist(), [False, True, True, False])

    def test_explicit_breaks_are_kept(self) -> None:
        scale = ContinuousScale(limits=(30.0, 60.0), breaks=(35.0, 40.0, 45.0, 50.0, 55.0, 60.0))
        ticks = resolve_breaks(28.5, 61.5, scale)
        self.assertEqual(ticks.tolist(), [35.0, 40.0, 45.0, 50.0, 55.0, 60.0])

    def test_channel_binding_is_checked(self) -> None:
        with self.assertRaises(InvalidScaleError):
            validate_scale_channel("color", ContinuousScale())
        with self.assertRaises(InvalidScaleError):
            validate_scale_channel("x", ColorPaletteScale())


class TransformTests(unittest.TestCase):
    def test_pixel_mapping_is_monotonic_and_flips_y(self) -> None:
        limits = DataLimits(xmin=0.0, xmax=10.0, ymin=0.0, ymax=10.0)
        tr = build_transform(limits, 101, 101)
        values = np.linspace(0.0, 10.0, 21)
        px, py, inside = map_to_pixels(values, values, tr, 101, 101)
        self.assertTrue(np.all(inside))
        self.assertTrue(np.all(np.diff(px) > 0))
        self.assertTrue(np.all(np.diff(py) < 0))
        self.assertEqual((int(px[0]), int(py[0])), (0, 100))

    def test_points_outside_viewport_are_flagged_not_extrapolated(self) -> None:
        tr = build_transform(DataLimits(xmin=0.0, xmax=1.0, ymin=0.0, ymax=1.0), 50, 50)
        px, py, inside = map_to_pixels(np.asarray([0.5, 2.0]), np.asarray([0.5, 0.5]), tr, 50, 50)
        self.assertEqual(inside.tolist(), [True, False])
        self.assertTrue(0 <= int(px[1]) < 50)


class ColorMappingTests(unittest.TestCase):
    def test_continuous_colors_follow_limits(self) -> None:
        scale = ColorPaletteScale(palette="viridis", limits=(3250.0, 3800.0))
        colors, guide = map_colors(np.asarray([3250.0, 3800.0, 4000.0, np.nan]), scale)
        self.assertEqual(colors[0].tolist(), [0x44, 0x01, 0x54, 255])
        self.assertEqual(colors[1].tolist(), [0xFD, 0xE7, 0x25, 255])
        # Outside the declared domain and missing values both use na_color.
        self.assertEqual(colors[2].tolist(), [0x7F, 0x7F, 0x7F, 255])
        self.assertEqual(colors[3].tolist(), [0x7F, 0x7F, 0x7F, 255])
        self.assertIsInstance(guide, ColorbarGuide)
        self.assertEqual((guide.lo, guide.hi), (3250.0, 3800.0))

    def test_categorical_colors_use_sorted_levels(self) -> None:
        values = np.asarray(["Gentoo", "Adelie", None, "Gentoo"], dtype=object)
        colors, guide = map_colors(values, ColorPaletteScale(palette="penguins"))
        self.assertIsInstance(guide, KeyGuide)
        self.assertEqual([name for name, _ in guide.entries], ["Adelie", "Gentoo"])
        self.assertEqual(colors[0].tolist(), colors[3].tolist())
        self.assertEqual(colors[1].tolist(), [0xFF, 0x8C, 0x00, 255])

    def test_manual_scale_looks_up_levels(self) -> None:
        scale = ManualColorScale(values={"Adélie": "#FF8C00", "Gentoo": "#159090"})
        colors, guide = map_colors(np.asarray(["Gentoo", "Chinstrap"], dtype=object), scale, alpha=0.5)
        self.assertEqual(colors[0].tolist(), [0x15, 0x90, 0x90, 128])
        self.assertEqual(colors[1].tolist()[:3], [0x7F, 0x7F, 0x7F])
        self.assertEqual(guide.entries, (("Gentoo", (0x15, 0x90, 0x90, 255)),))

    def test_manual_scale_rejects_bad_color(self) -> None:
        with self.assertRaisesRegex(InvalidScaleError, "hex color"):
            ManualColorScale(values={"a": "orange"})

    def test_unknown_palette_fails_at_construction(self) -> None:
        with self.assertRaises(UnknownPaletteError):
            ColorPaletteScale(palette="not-a-palette")


class TickTests(unittest.TestCase):
    def test_nice_ticks_cover_range(self) -> None:
        ticks = generate_nice_ticks(31.0, 59.0, 5)
        self.assertLessEqual(ticks[0], 31.0)
        self.assertGreaterEqual(ticks[-1], 59.0)
        steps = np.diff(ticks)
        self.assertTrue(np.allclose(steps, steps[0]))

    def test_nice_ticks_pick_step_closest_to_target(self) -> None:
        inside = resolve_breaks(31.0, 59.0, None, target=5)
        self.assertEqual(inside.tolist(), [35.0, 40.0, 45.0, 50.0, 55.0])
        self.assertEqual(generate_nice_ticks(0.0, 1.0, 5).tolist()[:3], [0.0, 0.25, 0.5])
        self.assertEqual(generate_nice_ticks(2.0, 2.0, 5).tolist(), [2.0])
        with self.assertRaises(ValueError):
            generate_nice_ticks(0.0, 1.0, 0)

    def test_build_transform_rejects_empty_range(self) -> None:
        with self.assertRaisesRegex(ValueError, "min < max"):
            build_transform(DataLimits(xmin=1.0, xmax=1.0, ymin=0.0, ymax=1.0), 10, 10)

    def test_format_ticks_drops_float_noise(self) -> None:
        self.assertEqual(format_ticks([0.1 + 0.2, 0.4]), ["0.3", "0.4"])
        self.assertEqual(format_ticks([3250.0, 3500.0]), ["3250", "3500"])
        self.assertEqual(format_ticks([0.0, 0.25, 0.5]), ["0", "0.25", "0.5"])
        self.assertEqual(format_ticks([-0.0, 1e-7]), ["0", "0.0000001"])


if __name__ == "__main__":
    unittest.main()
