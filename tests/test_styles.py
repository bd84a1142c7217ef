from __future__ import annotations

import unittest

import numpy as np

from gplink.errors import InvalidPlotStyleError
from gplink.styles import PLOT_STYLES, fits_prepare, resolve_style, style_catalogue


class PlotStyleTests(unittest.TestCase):
    def test_prefixes_and_aliases(self) -> None:
        self.assertEqual(resolve_style("lines").name, "lines")
        self.assertEqual(resolve_style("li").name, "lines")
        self.assertEqual(resolve_style("lp").name, "linespoints")
        self.assertEqual(resolve_style("yerrorb").name, "yerrorbars")
        self.assertEqual(resolve_style("IMAGE").name, "image")

    def test_plural_falls_back_to_singular(self) -> None:
        self.assertEqual(resolve_style("images").name, "image")
        self.assertEqual(resolve_style("histograms").name, "histogram")

    def test_invalid_style(self) -> None:
        with self.assertRaises(InvalidPlotStyleError):
            resolve_style("wiggles")

    def test_two_d_only_styles_have_no_three_d_arity(self) -> None:
        self.assertIsNone(resolve_style("boxes").arities(True))
        self.assertEqual(resolve_style("boxes").arities(False), (2, 3))
        self.assertIsNone(resolve_style("pm3d").arities(False))

    def test_image_styles_are_binary(self) -> None:
        for name in ("image", "rgbimage", "rgbalpha", "fits", "pm3d"):
            self.assertTrue(PLOT_STYLES[name].image, name)
            self.assertTrue(PLOT_STYLES[name].binary, name)
        self.assertFalse(PLOT_STYLES["labels"].binary)

    def test_catalogue_lists_every_style(self) -> None:
        listing = style_catalogue()
        for name in PLOT_STYLES:
            self.assertIn(name, listing)


class _Hdu:
    def __init__(self, data: np.ndarray, header: dict) -> None:
        self.data = data
        self.header = header


class FitsStyleTests(unittest.TestCase):
    def test_header_places_pixels(self) -> None:
        # FITS order is (y, x)
        hdu = _Hdu(np.zeros((2, 3)), {"CRPIX1": 1.0, "CRVAL1": 10.0, "CDELT1": 2.0, "CTYPE1": "RA", "CUNIT1": "deg"})
        prep = fits_prepare([hdu], ["fits"], {})
        x, y, image = prep.columns
        self.assertEqual(image.shape, (3, 2))
        np.testing.assert_allclose(x[:, 0], [10.0, 12.0, 14.0])
        np.testing.assert_allclose(y[0, :], [0.0, 1.0])
        self.assertEqual(prep.with_words, ["image"])
        self.assertEqual(prep.plot_options["xlabel"], ["RA (deg)"])

    def test_existing_labels_are_kept(self) -> None:
        hdu = _Hdu(np.zeros((2, 2)), {})
        prep = fits_prepare([hdu], ["fits"], {"xlabel": ["mine"]})
        self.assertNotIn("xlabel", prep.plot_options)

    def test_bare_rgb_array(self) -> None:
        with self.assertLogs("gplink.styles", "WARNING"):
            prep = fits_prepare([np.zeros((4, 3, 3))], ["fits"], {})
        self.assertEqual(prep.with_words, ["rgbimage"])
        self.assertEqual(len(prep.columns), 5)

    def test_resample_is_dropped_with_a_warning(self) -> None:
        hdu = _Hdu(np.zeros((2, 2)), {})
        with self.assertLogs("gplink.styles", "WARNING") as logs:
            prep = fits_prepare([hdu], ["fits", "resample", "200,200"], {})
        self.assertEqual(prep.with_words, ["image"])
        self.assertTrue(any("resampling" in line for line in logs.output))

    def test_needs_exactly_one_image(self) -> None:
        with self.assertRaises(InvalidPlotStyleError):
            fits_prepare([np.zeros((2, 2)), np.zeros((2, 2))], ["fits"], {})


if __name__ == "__main__":
    unittest.main()
