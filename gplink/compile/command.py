from __future__ import annotations

from collections.abc import Mapping
import copy
from dataclasses import dataclass, field
import logging
import os
from typing import Any

import numpy as np

from gplink.chunker import ChunkedPlot, CurveChunk
from gplink.errors import DataError, ProtocolError
from gplink.options.curve_options import DATA_FENCE, render_curve_options
from gplink.options.plot_options import RANGE_AXES, render_plot_options
from gplink.transfer import encode_chunk, placeholder_payload, wire_descriptor

LOGGER = logging.getLogger(__name__)

CLEANUP_COMMANDS = "set size noratio\nset view noequal\nset view 60,30,1.0,1.0\n"
SYNTAX_TERMINAL = "dumb"

# Channel columns that feed the color range, counted from the end of the tuple.
_COLOR_COLUMNS = {"image": slice(-1, None), "rgbimage": slice(-3, None), "rgbalpha": slice(-4, -1)}


@dataclass
class CompiledPlot:
    """Everything the session writes for one draw.

    `preamble`/`command`/`payloads` go to the plotting process; the `test_*`
    counterparts, when present, go to the syntax-check process first.
    """

    preamble: str
    command: str
    payloads: list[bytes]
    cleanup: str
    binary: list[bool]
    test_preamble: str | None = None
    test_command: str | None = None
    test_payloads: list[bytes] = field(default_factory=list)

    @property
    def script(self) -> str:
        """The plotting command stream with data payloads summarized, for logs and errors."""

        notes = "".join(
            f" [ {len(p)} bytes of {'binary' if b else 'ASCII'} data ]\n" for p, b in zip(self.payloads, self.binary)
        )
        return self.preamble + self.command + notes + self.cleanup


def time_axes(options: Mapping[str, Any]) -> list[str]:
    return [
        axis
        for axis in RANGE_AXES
        if isinstance(options.get(f"{axis}data"), str) and options[f"{axis}data"].strip().lower().startswith("time")
    ]


def default_binary(options: Mapping[str, Any], *, early_gnuplot: bool = False) -> bool:
    """Plot-level transfer format: explicit `binary`, else binary unless a time axis or an old gnuplot."""

    if options.get("binary") is not None:
        return bool(options["binary"])
    if early_gnuplot:
        return False
    return not time_axes(options)


def chunk_binary(chunk: CurveChunk, plot_binary: bool) -> bool:
    if chunk.is_grid:
        if not chunk.numeric:
            raise DataError(f"'with {chunk.style.name}' grid data must be numeric")
        if chunk.binary is False or (chunk.binary is None and not plot_binary):
            LOGGER.warning("images are generally too large for ASCII; using binary instead")
        return True
    binary = plot_binary if chunk.binary is None else bool(chunk.binary)
    if binary and not chunk.numeric:
        return False
    return binary


def _fix_image_ranges(chunks: list[CurveChunk], options: dict[str, Any]) -> None:
    cbmin = cbmax = None
    for i, chunk in enumerate(chunks):
        if not chunk.is_grid or not chunk.numeric:
            continue
        for axis in ("xrange", "yrange"):
            if options.get(axis) is not None and chunk.options.get(axis) is None:
                chunk.options[axis] = copy.deepcopy(options[axis])
        if i == 0 and not chunk.options.get("xrange") and not chunk.options.get("yrange"):
            x, y = chunk.columns[0], chunk.columns[1]
            xmin, xmax = float(np.nanmin(x)), float(np.nanmax(x))
            ymin, ymax = float(np.nanmin(y)), float(np.nanmax(y))
            if chunk.style.image:
                dx = (xmax - xmin) / max(x.shape[0] - 1, 1) * 0.5
                dy = (ymax - ymin) / max(x.shape[1] - 1, 1) * 0.5
                if dx == 0:
                    dx = 0.5
                if dy == 0:
                    dy = 0.5
                chunk.options["xrange"] = [xmin - dx, xmax + dx]
                chunk.options["yrange"] = [ymin - dy, ymax + dy]
            else:
                chunk.options["xrange"] = [xmin, xmax]
                chunk.options["yrange"] = [ymin, ymax]

        if options.get("cbrange") is None and chunk.style.name in _COLOR_COLUMNS:
            channels = np.stack(chunk.columns[_COLOR_COLUMNS[chunk.style.name]])
            lo, hi = float(np.nanmin(channels)), float(np.nanmax(channels))
            cbmin = lo if cbmin is None else min(cbmin, lo)
            cbmax = hi if cbmax is None else max(cbmax, hi)

    if cbmin is not None:
        options["cbrange"] = [cbmin, cbmax]


def draw_options(
    options: Mapping[str, Any],
    chunked: ChunkedPlot,
) -> dict[str, Any]:
    """The plot options in effect for one draw: session options plus per-draw fix-ups.

    Mutates the chunks' curve options (image ranges); never the caller's mapping.
    """

    resolved = copy.deepcopy(dict(options))
    if not resolved.get("palette"):
        resolved["palette"] = []
    _fix_image_ranges(chunked.chunks, resolved)
    if resolved.get("timefmt") is None and time_axes(resolved):
        resolved["timefmt"] = "%s"
    resolved.update(copy.deepcopy(chunked.temp_plot_options))
    return resolved


def syntax_options(options: Mapping[str, Any]) -> dict[str, Any]:
    test = dict(options)
    test["terminal"] = SYNTAX_TERMINAL
    test["output"] = os.devnull
    test.pop("termoption", None)
    return test


def _assemble(head: str, clauses: list[str], chunks: list[CurveChunk], binary: list[bool], *, test: bool) -> str:
    pieces = []
    for clause, chunk, is_binary in zip(clauses, chunks, binary):
        before, fence, after = clause.partition(DATA_FENCE)
        if not fence:
            raise ProtocolError("curve clause lost its data placeholder")
        pieces.append(" ".join(p for p in (before.strip(), wire_descriptor(chunk, is_binary, test=test), after.strip()) if p))
    return head + ", ".join(pieces) + "\n"


def compile_plot(
    options: Mapping[str, Any],
    chunked: ChunkedPlot,
    *,
    early_gnuplot: bool = False,
    check_syntax: bool = True,
) -> CompiledPlot:
    """Turn chunked curves and plot options into the exact command/data stream."""

    resolved = draw_options(options, chunked)
    chunks = chunked.chunks
    plot_binary = default_binary(resolved, early_gnuplot=early_gnuplot)
    binary = [chunk_binary(chunk, plot_binary) for chunk in chunks]

    head = "splot " if resolved.get("3d") else "plot "
    clauses = [render_curve_options(chunk.options, resolved) for chunk in chunks]

    bottom = resolved.get("bottomcmds")
    cleanup = ""
    if bottom:
        cleanup = "".join(f"{cmd}\n" for cmd in bottom) if isinstance(bottom, list) else f"{bottom}\n"
    cleanup += CLEANUP_COMMANDS

    compiled = CompiledPlot(
        preamble=render_plot_options(resolved),
        command=_assemble(head, clauses, chunks, binary, test=False),
        payloads=[encode_chunk(chunk, b) for chunk, b in zip(chunks, binary)],
        cleanup=cleanup,
        binary=binary,
    )
    if check_syntax:
        compiled.test_preamble = render_plot_options(syntax_options(resolved))
        compiled.test_command = _assemble(head, clauses, chunks, binary, test=True)
        compiled.test_payloads = [placeholder_payload(chunk, b) for chunk, b in zip(chunks, binary)]
    LOGGER.debug("plot command: %s", compiled.command.rstrip())
    return compiled
