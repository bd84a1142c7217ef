from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

import numpy as np

from gplink.errors import DataError


try:
    import pandas as pd
except Exception:  # pragma: no cover - optional dependency
    pd = None  # type: ignore[assignment]

try:
    import torch
except Exception:  # pragma: no cover - optional dependency
    torch = None  # type: ignore[assignment]


def is_data_token(value: Any) -> bool:
    """True for anything the chunker should treat as a data column rather than an option."""

    if isinstance(value, (np.ndarray, np.generic)):
        return True
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return True
    if torch is not None and isinstance(value, torch.Tensor):
        return True
    if pd is not None and isinstance(value, (pd.Series, pd.DataFrame, pd.Index)):
        return True
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return not any(isinstance(v, dict) for v in value)
    return hasattr(value, "data") and hasattr(value, "header")


def expand_columns(value: Any) -> list[Any]:
    """A DataFrame contributes one column per frame column; everything else is one column."""

    if pd is not None and isinstance(value, pd.DataFrame):
        return [value[c] for c in value.columns]
    return [value]


def as_column(value: Any, *, label: str = "data") -> np.ndarray:
    """Coerce one data column to an ndarray: float64 for numbers, object for text.

    Leading axes are kept as-is (axis 0 is the point axis, a second axis makes
    a grid); datetimes become seconds since the epoch.
    """

    if torch is not None and isinstance(value, torch.Tensor):
        tensor = value.detach()
        if tensor.is_cuda:
            tensor = tensor.cpu()
        return tensor.to(torch.float64).numpy()

    if pd is not None and isinstance(value, (pd.Series, pd.Index)):
        return _coerce_ndarray(value.to_numpy(), label=label)

    if isinstance(value, np.ndarray):
        return _coerce_ndarray(value, label=label)

    if isinstance(value, (np.generic, int, float, Decimal)) and not isinstance(value, bool):
        return np.asarray(float(value), dtype=np.float64)

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        try:
            arr = np.asarray(value)
        except ValueError as exc:
            raise DataError(f"{label} is ragged and can't be made into an array") from exc
        return _coerce_ndarray(arr, label=label)

    raise DataError(f"unsupported {label} input type: {type(value)!r}")


def _coerce_ndarray(arr: np.ndarray, *, label: str) -> np.ndarray:
    if arr.dtype.kind in {"i", "u", "f", "b"}:
        return arr.astype(np.float64, copy=False)
    if arr.dtype.kind == "M":
        return arr.astype("datetime64[ns]").astype(np.int64) / 1e9
    if arr.dtype.kind == "m":
        return arr.astype("timedelta64[ns]").astype(np.int64) / 1e9
    if arr.dtype.kind in {"U", "S"}:
        return arr.astype(object)

    # object arrays: numbers become float64 unless some entry is text
    flat = arr.ravel().tolist()
    out = np.empty(len(flat), dtype=np.float64)
    for i, raw in enumerate(flat):
        if raw is None:
            out[i] = np.nan
            continue
        if isinstance(raw, (str, bytes)):
            return _as_text(arr)
        if isinstance(raw, Decimal):
            out[i] = float(raw)
            continue
        try:
            out[i] = float(raw)
        except (TypeError, ValueError) as exc:
            raise DataError(f"{label} contains non-numeric value at index {i}: {raw!r}") from exc
    return out.reshape(arr.shape)


def _as_text(arr: np.ndarray) -> np.ndarray:
    out = np.empty(arr.shape, dtype=object)
    for index, raw in np.ndenumerate(arr):
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", "replace")
        out[index] = raw
    return out


def is_numeric(arr: np.ndarray) -> bool:
    return arr.dtype.kind in {"i", "u", "f", "b"}
