from __future__ import annotations

import unittest

import numpy as np

from gplink.chunker import chunk_curves, split_plot_arguments
from gplink.errors import (
    ArityMismatchError,
    ConflictingOptionsError,
    DataError,
    LegendCountMismatchError,
    NoDataError,
    StyleNotSupportedInModeError,
    ThreadMismatchError,
    TooManyOptionSetsError,
)
from gplink.styles import PLOT_STYLES


def _chunk(*args, three_d: bool = False, **plot_options):
    return chunk_curves(list(args), plot_options=plot_options, three_d=three_d).chunks


class ImplicitDomainTests(unittest.TestCase):
    def test_lone_y_gets_index_x(self) -> None:
        (chunk,) = _chunk(np.array([5.0, 6.0, 7.0]))
        self.assertEqual(chunk.tuplesize, 2)
        np.testing.assert_array_equal(chunk.columns[0], [0.0, 1.0, 2.0])
        np.testing.assert_array_equal(chunk.columns[1], [5.0, 6.0, 7.0])
        self.assertEqual(chunk.options["with"], ["lines"])
        self.assertEqual(chunk.options["using"], ["1:2"])
        self.assertIsNone(chunk.options["legend"])

    def test_three_d_curve_gets_zero_y(self) -> None:
        (chunk,) = _chunk(np.arange(4.0), three_d=True)
        self.assertEqual(chunk.tuplesize, 3)
        self.assertFalse(chunk.is_grid)
        np.testing.assert_array_equal(chunk.columns[1], np.zeros(4))

    def test_three_d_grid_gets_index_x_and_y(self) -> None:
        (chunk,) = _chunk(np.zeros((4, 3)), three_d=True)
        self.assertTrue(chunk.is_grid)
        self.assertEqual(chunk.shape, (4, 3))
        np.testing.assert_array_equal(chunk.columns[0][:, 0], np.arange(4.0))
        np.testing.assert_array_equal(chunk.columns[1][0, :], np.arange(3.0))

    def test_image_grid_domain(self) -> None:
        (chunk,) = _chunk(np.ones((4, 3)), globalwith=["image"])
        self.assertEqual(chunk.style.name, "image")
        self.assertEqual(chunk.tuplesize, 3)
        self.assertEqual(chunk.cdims, 2)
        np.testing.assert_array_equal(chunk.columns[0][:, 1], np.arange(4.0))
        np.testing.assert_array_equal(chunk.columns[1][2, :], np.arange(3.0))

    def test_palette_modifier_adds_a_column(self) -> None:
        (chunk,) = _chunk({"with": "points palette"}, np.arange(3.0), np.arange(3.0))
        self.assertEqual(chunk.tuplesize, 3)
        self.assertEqual(chunk.options["with"], ["points", "palette"])
        self.assertEqual(chunk.options["using"], ["1:2:3"])

    def test_explicit_columns_are_not_padded(self) -> None:
        (chunk,) = _chunk(np.arange(3.0), np.arange(3.0) ** 2)
        np.testing.assert_array_equal(chunk.columns[1], [0.0, 1.0, 4.0])


class ThreadingTests(unittest.TestCase):
    def test_extra_axis_makes_several_curves(self) -> None:
        x = np.arange(4.0)
        y = np.stack([x, 2 * x, 3 * x], axis=1)
        chunks = _chunk({"legend": ["a", "b", "c"]}, x, y)
        self.assertEqual(len(chunks), 3)
        self.assertEqual([c.options["legend"] for c in chunks], [["a"], ["b"], ["c"]])
        np.testing.assert_array_equal(chunks[2].columns[1], 3 * x)
        np.testing.assert_array_equal(chunks[2].columns[0], x)

    def test_legend_count_must_match_curves(self) -> None:
        y = np.zeros((4, 3))
        with self.assertRaises(LegendCountMismatchError) as ctx:
            _chunk({"legend": ["a", "b"]}, np.arange(4.0), y)
        self.assertIn("legend has 2 entries; but 3 curves supplied", str(ctx.exception))

    def test_option_sets_are_padded_from_the_last(self) -> None:
        y = np.zeros((4, 3))
        chunks = _chunk([{"legend": "first"}, {"axes": "x1y2"}], np.arange(4.0), y)
        self.assertEqual(chunks[0].options["legend"], ["first"])
        self.assertEqual(chunks[1].options["axes"], "x1y2")
        self.assertEqual(chunks[2].options["axes"], "x1y2")
        self.assertIsNone(chunks[2].options["legend"])

    def test_too_many_option_sets(self) -> None:
        with self.assertRaises(TooManyOptionSetsError):
            _chunk([{}, {}, {}], np.arange(4.0), np.zeros((4, 2)))

    def test_style_cannot_vary_inside_a_block(self) -> None:
        with self.assertRaises(ConflictingOptionsError):
            _chunk([{"with": "points"}, {}], np.arange(4.0), np.zeros((4, 2)))

    def test_mismatched_lengths(self) -> None:
        with self.assertRaises(ThreadMismatchError):
            _chunk(np.arange(4.0), np.arange(5.0))


class OptionFlowTests(unittest.TestCase):
    def test_style_sticks_but_legend_does_not(self) -> None:
        x = np.arange(3.0)
        first, second = _chunk({"with": "points", "legend": "a"}, x, x, {}, x, x)
        self.assertEqual(second.options["with"], ["points"])
        self.assertEqual(first.options["legend"], ["a"])
        self.assertIsNone(second.options["legend"])

    def test_bare_pairs_are_curve_options(self) -> None:
        (chunk,) = _chunk("with", "steps", np.arange(3.0))
        self.assertEqual(chunk.style.name, "steps")

    def test_globalwith_is_the_default_style(self) -> None:
        (chunk,) = _chunk(np.arange(3.0), globalwith=["points"])
        self.assertEqual(chunk.options["with"], ["points"])

    def test_ranges_after_the_first_curve_are_dropped(self) -> None:
        x = np.arange(3.0)
        with self.assertLogs("gplink.chunker", "WARNING"):
            first, second = _chunk({"xrange": [0, 1]}, x, x, {"xrange": [2, 3]}, x, x)
        self.assertEqual(first.options["xrange"], [0, 1])
        self.assertNotIn("xrange", second.options)

    def test_options_without_data(self) -> None:
        with self.assertRaises(NoDataError):
            _chunk({"with": "lines"})
        with self.assertRaises(NoDataError):
            _chunk(np.arange(3.0), "legend")
        with self.assertRaises(NoDataError):
            _chunk()


class ArityTests(unittest.TestCase):
    def test_style_not_available_in_three_d(self) -> None:
        with self.assertRaises(StyleNotSupportedInModeError):
            _chunk({"with": "boxes"}, np.arange(3.0), np.arange(3.0), np.arange(3.0), three_d=True)

    def test_wrong_column_count_names_the_permitted_counts(self) -> None:
        x = np.arange(3.0)
        with self.assertRaises(ArityMismatchError) as ctx:
            _chunk({"with": "vectors"}, x, x, x)
        self.assertEqual(ctx.exception.permitted, (4,))

    def test_tuplesize_must_match_columns(self) -> None:
        x = np.arange(3.0)
        with self.assertRaises(ArityMismatchError):
            _chunk({"tuplesize": 3}, x, x)

    def test_tuplesize_can_force_an_unusual_count(self) -> None:
        x = np.arange(3.0)
        with self.assertLogs("gplink.chunker", "WARNING"):
            (chunk,) = _chunk({"tuplesize": 3}, x, x, x)
        self.assertEqual(chunk.tuplesize, 3)

    def test_rgb_cube_is_unbundled(self) -> None:
        (chunk,) = _chunk({"with": "image"}, np.zeros((4, 3, 3)))
        self.assertEqual(chunk.style.name, "rgbimage")
        self.assertEqual(chunk.options["with"], ["rgbimage"])
        self.assertEqual(chunk.tuplesize, 5)
        self.assertEqual(chunk.shape, (4, 3))

    def test_rgba_cube_is_unbundled(self) -> None:
        (chunk,) = _chunk({"with": "image"}, np.zeros((4, 3, 4)))
        self.assertEqual(chunk.style.name, "rgbalpha")
        self.assertEqual(chunk.tuplesize, 6)

    def test_images_refuse_one_dimensional_columns(self) -> None:
        with self.assertRaises(ConflictingOptionsError):
            _chunk({"with": "image", "cdims": 1}, np.zeros((4, 3)))

    def test_every_style_accepts_exactly_its_column_counts(self) -> None:
        for three_d in (False, True):
            for name, style in PLOT_STYLES.items():
                arities = style.arities(three_d)
                if arities is None or style.hook is not None:
                    continue
                explicit = {a for a in arities if a > 0}
                implicit = {-a for a in arities if a < 0}
                column = np.zeros((3, 3)) if style.image else np.arange(3.0)
                for n in sorted(explicit | implicit):
                    with self.subTest(style=name, three_d=three_d, columns=n):
                        (chunk,) = _chunk({"with": name}, *([column] * n), three_d=three_d)
                        if n in explicit:
                            self.assertEqual(chunk.tuplesize, n)
                        else:
                            self.assertGreater(chunk.tuplesize, n)
                top = max(explicit | implicit)
                for n in [k for k in range(1, top + 2) if k not in explicit | implicit]:
                    with self.subTest(style=name, three_d=three_d, columns=n):
                        with self.assertRaises(ArityMismatchError):
                            _chunk({"with": name}, *([column] * n), three_d=three_d)

    def test_empty_column_is_a_data_error(self) -> None:
        with self.assertRaisesRegex(DataError, "column 1 is empty"):
            _chunk(np.array([]))
        with self.assertRaisesRegex(DataError, "column 2 is empty"):
            _chunk(np.arange(3.0), [])

    def test_grid_needs_two_dimensional_data(self) -> None:
        with self.assertRaises(DataError):
            _chunk({"cdims": 2}, np.arange(3.0))

    def test_grid_data_cannot_thread(self) -> None:
        with self.assertRaises(ThreadMismatchError):
            _chunk({"with": "image"}, np.zeros((4, 3, 2)))


class SplitArgumentTests(unittest.TestCase):
    def test_leading_plot_option_mapping(self) -> None:
        y = np.arange(3.0)
        plot_tokens, rest = split_plot_arguments([{"title": "t"}, y])
        self.assertEqual(plot_tokens, [{"title": "t"}])
        self.assertEqual(len(rest), 1)
        self.assertIs(rest[0], y)

    def test_leading_curve_options_stay(self) -> None:
        y = np.arange(3.0)
        plot_tokens, rest = split_plot_arguments([{"with": "points"}, y])
        self.assertEqual(plot_tokens, [])
        self.assertEqual(rest[0], {"with": "points"})

    def test_keywords_split_between_plot_and_curve(self) -> None:
        y = np.arange(3.0)
        plot_tokens, rest = split_plot_arguments([y], {"title": "t", "with_": "points"})
        self.assertEqual(plot_tokens, [{"title": "t"}])
        self.assertEqual(rest[0], {"with": "points"})
        self.assertIs(rest[1], y)

    def test_leading_plot_only_pairs(self) -> None:
        y = np.arange(3.0)
        plot_tokens, rest = split_plot_arguments(["title", "t", "with", "lines", y])
        self.assertEqual(plot_tokens, [{"title": "t"}])
        self.assertEqual(rest[:2], ["with", "lines"])

    def test_trailing_plot_option_mapping(self) -> None:
        y = np.arange(3.0)
        plot_tokens, rest = split_plot_arguments([y, {"xlabel": "x"}])
        self.assertEqual(plot_tokens, [{"xlabel": "x"}])
        self.assertEqual(len(rest), 1)


if __name__ == "__main__":
    unittest.main()
