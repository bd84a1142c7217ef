from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from gplink.errors import ThreadMismatchError


def broadcast_shape(columns: Sequence[np.ndarray]) -> tuple[int, ...]:
    """Common shape of columns aligned on their leading axes.

    Axis 0 of every column lines up with axis 0 of every other; a column with
    fewer axes is treated as size 1 along the missing trailing ones.
    """

    ndim = max((c.ndim for c in columns), default=0)
    shape: list[int] = []
    for axis in range(ndim):
        sizes = {c.shape[axis] for c in columns if c.ndim > axis and c.shape[axis] != 1}
        if len(sizes) > 1:
            raise ThreadMismatchError(
                f"data columns disagree in size along axis {axis}: {', '.join(str(s) for s in sorted(sizes))}"
            )
        shape.append(sizes.pop() if sizes else 1)
    return tuple(shape)


def broadcast_columns(columns: Sequence[np.ndarray]) -> list[np.ndarray]:
    shape = broadcast_shape(columns)
    out = []
    for column in columns:
        padded = column.reshape(column.shape + (1,) * (len(shape) - column.ndim))
        out.append(np.broadcast_to(padded, shape))
    return out
