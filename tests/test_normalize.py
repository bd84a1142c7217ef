from __future__ import annotations

from decimal import Decimal
import importlib.util
import unittest

import numpy as np

from gplink.adapters.normalize import as_column, expand_columns, is_data_token, is_numeric
from gplink.broadcast import broadcast_columns, broadcast_shape
from gplink.errors import DataError, ThreadMismatchError

HAS_PANDAS = importlib.util.find_spec("pandas") is not None
HAS_TORCH = importlib.util.find_spec("torch") is not None


class DataTokenTests(unittest.TestCase):
    def test_data_tokens(self) -> None:
        self.assertTrue(is_data_token(np.arange(3)))
        self.assertTrue(is_data_token([1, 2, 3]))
        self.assertTrue(is_data_token(3.5))
        self.assertTrue(is_data_token(np.float32(1.0)))

    def test_option_tokens(self) -> None:
        self.assertFalse(is_data_token("with"))
        self.assertFalse(is_data_token({"with": "lines"}))
        self.assertFalse(is_data_token([{"legend": "a"}, {"legend": "b"}]))
        self.assertFalse(is_data_token(True))
        self.assertFalse(is_data_token(None))


class AsColumnTests(unittest.TestCase):
    def test_numbers_become_float64(self) -> None:
        column = as_column([1, 2, 3])
        self.assertEqual(column.dtype, np.float64)
        np.testing.assert_array_equal(column, [1.0, 2.0, 3.0])

    def test_scalar_is_zero_dimensional(self) -> None:
        self.assertEqual(as_column(4).shape, ())

    def test_decimals_and_none(self) -> None:
        column = as_column(np.array([Decimal("1.5"), None], dtype=object))
        self.assertEqual(column[0], 1.5)
        self.assertTrue(np.isnan(column[1]))

    def test_text_stays_text(self) -> None:
        column = as_column(["a", "b c"])
        self.assertFalse(is_numeric(column))
        self.assertEqual(column.tolist(), ["a", "b c"])

    def test_datetimes_become_epoch_seconds(self) -> None:
        column = as_column(np.array(["1970-01-01T00:00:10"], dtype="datetime64[s]"))
        self.assertEqual(column.tolist(), [10.0])

    def test_ragged_input_is_rejected(self) -> None:
        with self.assertRaises(DataError):
            as_column([[1, 2], [3]])

    def test_unsupported_type(self) -> None:
        with self.assertRaises(DataError):
            as_column(object())

    def test_grid_shape_is_kept(self) -> None:
        self.assertEqual(as_column(np.zeros((4, 3), dtype=np.int32)).shape, (4, 3))

    @unittest.skipUnless(HAS_PANDAS, "pandas not installed")
    def test_dataframe_contributes_one_column_per_series(self) -> None:
        import pandas as pd

        frame = pd.DataFrame({"x": [1, 2], "y": [3.0, 4.0]})
        columns = expand_columns(frame)
        self.assertEqual(len(columns), 2)
        np.testing.assert_array_equal(as_column(columns[1]), [3.0, 4.0])
        self.assertTrue(is_data_token(frame))

    @unittest.skipUnless(HAS_TORCH, "torch not installed")
    def test_tensor_becomes_float64(self) -> None:
        import torch

        column = as_column(torch.arange(3, dtype=torch.float32))
        self.assertEqual(column.dtype, np.float64)
        np.testing.assert_array_equal(column, [0.0, 1.0, 2.0])


class BroadcastTests(unittest.TestCase):
    def test_leading_axes_line_up(self) -> None:
        shape = broadcast_shape([np.zeros(5), np.zeros((5, 3))])
        self.assertEqual(shape, (5, 3))
        a, b = broadcast_columns([np.arange(5.0), np.zeros((5, 3))])
        self.assertEqual(a.shape, (5, 3))
        np.testing.assert_array_equal(a[:, 2], np.arange(5.0))

    def test_scalars_stretch(self) -> None:
        a, b = broadcast_columns([np.asarray(2.0), np.arange(4.0)])
        np.testing.assert_array_equal(a, [2.0, 2.0, 2.0, 2.0])

    def test_disagreeing_sizes(self) -> None:
        with self.assertRaises(ThreadMismatchError):
            broadcast_shape([np.zeros(5), np.zeros(4)])


if __name__ == "__main__":
    unittest.main()
