from __future__ import annotations

import math

import numpy as np

from gplink.chunker import CurveChunk

DOUBLE = "%double"
PLACEHOLDER_RECORD = np.ones(1, dtype=np.float64)


def wire_descriptor(chunk: CurveChunk, binary: bool, *, test: bool = False) -> str:
    """Inline data specifier for one curve clause.

    Binary records are native-order doubles, one record per point (grids
    are `W,H` records with x varying fastest). The test form describes a
    single record so the syntax check reads only placeholder bytes.
    """

    if not binary:
        return "'-'"
    if chunk.is_grid:
        shape = "1,1" if test else ",".join(str(n) for n in chunk.shape[:2])
    else:
        shape = "1" if test else str(chunk.shape[0] if chunk.shape else 1)
    return f"'-' binary record=({shape}) format=\"{DOUBLE * chunk.tuplesize}\""


def encode_binary(chunk: CurveChunk) -> bytes:
    stacked = np.stack([np.asarray(c, dtype=np.float64) for c in chunk.columns], axis=-1)
    if chunk.is_grid:
        stacked = np.transpose(stacked, (1, 0, 2))
    return np.ascontiguousarray(stacked, dtype=np.float64).tobytes()


def _text_field(value: object) -> str:
    if isinstance(value, bytes):
        value = value.decode("utf-8", "replace")
    if isinstance(value, str):
        if value == "" or any(ch.isspace() or ch == '"' for ch in value):
            body = value.replace('"', '\\"').replace("\r", " ").replace("\n", " ")
            return f'"{body}"'
        return value
    if value is None:
        return "NaN"
    number = float(value)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "Inf" if number > 0 else "-Inf"
    return repr(number)


def encode_text(chunk: CurveChunk) -> bytes:
    """One whitespace-separated line per point, then the `e` terminator."""

    rows = zip(*(np.asarray(c).ravel().tolist() for c in chunk.columns))
    lines = [" ".join(_text_field(v) for v in row) for row in rows]
    lines.append("e")
    return ("\n".join(lines) + "\n").encode("utf-8")


def encode_chunk(chunk: CurveChunk, binary: bool) -> bytes:
    return encode_binary(chunk) if binary else encode_text(chunk)


def placeholder_payload(chunk: CurveChunk, binary: bool) -> bytes:
    if binary:
        return np.repeat(PLACEHOLDER_RECORD, chunk.tuplesize).tobytes()
    return (" 1" * chunk.tuplesize + "\ne\n").encode("ascii")
