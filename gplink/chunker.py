from __future__ import annotations

from collections.abc import Mapping, Sequence
import copy
from dataclasses import dataclass, field
import logging
from typing import Any

import numpy as np

from gplink.adapters.normalize import as_column, expand_columns, is_data_token, is_numeric
from gplink.broadcast import broadcast_columns, broadcast_shape
from gplink.errors import (
    AmbiguousOptionError,
    ArityMismatchError,
    ConflictingOptionsError,
    DataError,
    LegendCountMismatchError,
    NoDataError,
    StyleNotSupportedInModeError,
    ThreadMismatchError,
    TooManyOptionSetsError,
    UnknownOptionError,
)
from gplink.options.curve_options import CURVE_OPTIONS, RANGE_OPTIONS, sticky_subset
from gplink.options.plot_options import PLOT_OPTIONS
from gplink.styles import PlotStyle, resolve_style

LOGGER = logging.getLogger(__name__)

MANY_CURVES_WARNING = 100
_PER_SET_FORBIDDEN = ("with", "tuplesize", "cdims")


@dataclass
class CurveChunk:
    """One curve clause: its data columns plus the curve options rendered for it.

    Columns are 1-D `(N,)` for ordinary curves and 2-D `(W, H)` for grids
    (`cdims == 2`), all the same shape.
    """

    columns: list[np.ndarray]
    options: dict[str, Any]
    style: PlotStyle
    cdims: int
    binary: bool | None = None

    @property
    def tuplesize(self) -> int:
        return len(self.columns)

    @property
    def shape(self) -> tuple[int, ...]:
        return self.columns[0].shape

    @property
    def is_grid(self) -> bool:
        return self.cdims == 2

    @property
    def numeric(self) -> bool:
        return all(is_numeric(c) for c in self.columns)


@dataclass
class ChunkedPlot:
    chunks: list[CurveChunk]
    temp_plot_options: dict[str, Any] = field(default_factory=dict)


def _resolves_in(schema: Any, key: Any) -> bool:
    if not isinstance(key, str):
        return False
    try:
        schema.resolve(key)
    except (UnknownOptionError, AmbiguousOptionError):
        return False
    return True


def _plot_only(key: Any) -> bool:
    return _resolves_in(PLOT_OPTIONS, key) and not _resolves_in(CURVE_OPTIONS, key)


def split_plot_arguments(
    args: Sequence[Any],
    kwargs: Mapping[str, Any] | None = None,
) -> tuple[list[Any], list[Any]]:
    """Separate plot-option tokens from curve tokens in a plot call.

    Keyword arguments are plot options, except curve-only names, which become
    leading curve options. A leading or trailing mapping whose keys all resolve
    as plot options is a plot option set; so are leading bare key/value pairs
    naming plot-only options.
    """

    rest = list(args)
    plot_tokens: list[Any] = []
    curve_prefix: dict[str, Any] = {}

    for key, value in (kwargs or {}).items():
        name = key[:-1] if key.endswith("_") else key
        if _resolves_in(PLOT_OPTIONS, name):
            plot_tokens.append({name: value})
        else:
            curve_prefix[name] = value

    if rest and isinstance(rest[0], Mapping) and rest[0] and all(_resolves_in(PLOT_OPTIONS, k) for k in rest[0]):
        plot_tokens.insert(0, rest.pop(0))
    while len(rest) >= 2 and _plot_only(rest[0]):
        plot_tokens.append({rest[0]: rest[1]})
        del rest[:2]
    if (
        len(rest) > 1
        and isinstance(rest[-1], Mapping)
        and rest[-1]
        and all(_resolves_in(PLOT_OPTIONS, k) for k in rest[-1])
    ):
        plot_tokens.append(rest.pop())

    if curve_prefix:
        rest.insert(0, curve_prefix)
    return plot_tokens, rest


def chunk_curves(
    args: Sequence[Any],
    *,
    plot_options: Mapping[str, Any],
    three_d: bool,
) -> ChunkedPlot:
    """Split curve tokens (options and data columns) into per-curve chunks."""

    tokens = list(args)
    sticky: dict[str, Any] = {}
    chunks: list[CurveChunk] = []
    temp_plot_options: dict[str, Any] = {}
    i = 0
    while i < len(tokens):
        option_tokens: list[Any] = []
        option_sets: list[Mapping[str, Any]] | None = None
        while i < len(tokens) and not is_data_token(tokens[i]):
            token = tokens[i]
            if isinstance(token, Mapping):
                option_tokens.append(token)
                i += 1
            elif isinstance(token, (list, tuple)):
                option_sets = list(token)
                i += 1
            elif token is None:
                i += 1
            elif isinstance(token, str):
                if i + 1 >= len(tokens):
                    raise NoDataError(f"curve option '{token}' has no value and no data follows it")
                option_tokens.extend([token, tokens[i + 1]])
                i += 2
            else:
                raise DataError(f"can't interpret plot argument {token!r}")

        data: list[Any] = []
        while i < len(tokens) and is_data_token(tokens[i]):
            data.extend(expand_columns(tokens[i]))
            i += 1
        if not data:
            if option_tokens or option_sets:
                raise NoDataError("curve options given with no data following them")
            break

        options = CURVE_OPTIONS.parse(sticky, *option_tokens)
        block, extra_plot_options = _chunk_block(data, options, option_sets, plot_options, three_d)
        for key, value in extra_plot_options.items():
            temp_plot_options.setdefault(key, value)
        chunks.extend(block)
        sticky = sticky_subset(options)

    if not chunks:
        raise NoDataError("plot needs at least one data column")

    for chunk in chunks[1:]:
        dropped = [name for name in RANGE_OPTIONS if chunk.options.get(name) is not None]
        if dropped:
            LOGGER.warning("curve range option(s) %s only apply to the first curve; ignored", ", ".join(dropped))
            for name in dropped:
                chunk.options.pop(name, None)
    return ChunkedPlot(chunks, temp_plot_options)


def _count_extra_columns(with_words: Sequence[str]) -> int:
    return sum(1 for word in with_words if "palette" in word.lower() or "variable" in word.lower())


def _chunk_block(
    data: list[Any],
    options: dict[str, Any],
    option_sets: list[Mapping[str, Any]] | None,
    plot_options: Mapping[str, Any],
    three_d: bool,
) -> tuple[list[CurveChunk], dict[str, Any]]:
    mode = "3D" if three_d else "2D"
    with_words = list(options.get("with") or plot_options.get("globalwith") or ["lines"])
    if len(with_words) == 1:
        with_words = str(with_words[0]).split()
    style = resolve_style(with_words[0])
    with_words[0] = style.name

    extra_plot_options: dict[str, Any] = {}
    if style.hook is not None:
        prep = style.hook(data, with_words, plot_options)
        data = list(prep.columns)
        with_words = list(prep.with_words)
        extra_plot_options.update(prep.plot_options)
        style = resolve_style(with_words[0])

    columns = [as_column(d, label=f"column {n + 1}") for n, d in enumerate(data)]
    for n, column in enumerate(columns):
        if column.size == 0:
            raise DataError(f"column {n + 1} is empty")

    # An RGB(A) cube handed to `image` is really three or four columns.
    if style.name == "image" and columns[-1].ndim == 3 and columns[-1].shape[2] in (3, 4):
        cube = columns.pop()
        columns.extend(cube[:, :, k] for k in range(cube.shape[2]))
        style = resolve_style("rgbimage" if cube.shape[2] == 3 else "rgbalpha")
        with_words[0] = style.name

    arities = style.arities(three_d)
    if arities is None:
        raise StyleNotSupportedInModeError(style.name, mode)

    extra = _count_extra_columns(with_words)
    explicit = sorted({a + extra for a in arities if a > 0})
    implicit = sorted({-a + extra for a in arities if a < 0})
    n = len(columns)
    tuplesize = options.get("tuplesize")
    synthesize = False
    if tuplesize is not None:
        if n != tuplesize:
            raise ArityMismatchError(f"tuplesize is {tuplesize} but {n} data column(s) were given", [tuplesize])
        if n not in explicit and n not in implicit:
            LOGGER.warning("forcing tuplesize %d, which 'with %s' does not normally accept", n, style.name)
    elif n in explicit:
        pass
    elif n in implicit:
        synthesize = True
    else:
        permitted = sorted({abs(a) + extra for a in arities})
        needs = str(permitted[0]) if len(permitted) == 1 else f"one of [{','.join(map(str, permitted))}]"
        note = f" (including {extra} extra from the 'with' modifiers)" if extra else ""
        raise ArityMismatchError(
            f"found {n} data column(s) for {mode} plot style 'with {style.name}', which needs {needs}{note}",
            permitted,
        )

    cdims = options.get("cdims") or 0
    if cdims == 1 and style.image:
        raise ConflictingOptionsError("column dimension 1 is not allowed for an image plot style")
    if not cdims:
        cdims = 2 if style.image or (three_d and columns[0].ndim >= 2) else 1

    if cdims == 2 and max(c.ndim for c in columns) < 2:
        raise DataError(f"'with {style.name}' needs 2-D (grid) data columns")

    shape = broadcast_shape(columns)
    if synthesize:
        columns = _implicit_domain(shape, cdims, three_d, n, explicit) + columns
    columns = broadcast_columns(columns)

    options = dict(options)
    options["with"] = with_words
    options["data"] = True
    if not options.get("using"):
        options["using"] = [":".join(str(k) for k in range(1, len(columns) + 1))]
    binary = False if style.binary is False else options.get("binary")

    if cdims == 2:
        if columns[0].ndim > 2:
            raise ThreadMismatchError(
                f"grid data can't be threaded: got {'x'.join(map(str, columns[0].shape))} columns"
            )
        if option_sets and len(option_sets) > 1:
            raise TooManyOptionSetsError(f"{len(option_sets)} option sets given for a single grid curve")
        chunk_options = _apply_option_set(options, option_sets[0] if option_sets else None)
        if "legend" not in chunk_options:
            chunk_options["legend"] = None
        _check_legends(chunk_options.get("legend"), 1)
        return [CurveChunk(columns, chunk_options, style, 2, binary)], extra_plot_options

    npoints = columns[0].shape[0] if columns[0].ndim else 1
    flat = [np.reshape(c, (npoints, -1)) for c in columns]
    ncurves = flat[0].shape[1]
    if ncurves >= MANY_CURVES_WARNING:
        LOGGER.warning(
            "plotting %d curves from one threaded data set; flatten the data or set 3d if you meant a surface",
            ncurves,
        )
    legends = options.get("legend")
    _check_legends(legends, ncurves)
    sets = _pad_option_sets(option_sets, ncurves)

    chunks = []
    for k in range(ncurves):
        chunk_options = _apply_option_set(options, sets[k] if sets else None)
        if legends and (not sets or "legend" not in sets[k]):
            chunk_options["legend"] = [legends[k]]
        chunk_options.setdefault("legend", None)
        chunks.append(CurveChunk([f[:, k] for f in flat], chunk_options, style, 1, binary))
    return chunks, extra_plot_options


def _check_legends(legends: Any, ncurves: int) -> None:
    if legends and len(legends) != ncurves:
        entries = "entry" if len(legends) == 1 else "entries"
        raise LegendCountMismatchError(
            f"legend has {len(legends)} {entries}; but {ncurves} curve{'s' if ncurves != 1 else ''} supplied"
        )


def _pad_option_sets(option_sets: list[Mapping[str, Any]] | None, ncurves: int) -> list[dict[str, Any]] | None:
    if not option_sets:
        return None
    if len(option_sets) > ncurves:
        raise TooManyOptionSetsError(f"{len(option_sets)} option sets given for {ncurves} curve(s)")
    sets = [{CURVE_OPTIONS.resolve(k)[0]: v for k, v in s.items()} for s in option_sets]
    while len(sets) < ncurves:
        padded = copy.deepcopy(sets[-1])
        padded.pop("legend", None)
        sets.append(padded)
    return sets


def _apply_option_set(options: Mapping[str, Any], option_set: Mapping[str, Any] | None) -> dict[str, Any]:
    if not option_set:
        return copy.deepcopy(dict(options))
    for key in option_set:
        canonical, _ = CURVE_OPTIONS.resolve(key)
        if canonical in _PER_SET_FORBIDDEN:
            raise ConflictingOptionsError(f"'{canonical}' can't vary between curves of one data block")
    return CURVE_OPTIONS.parse(options, option_set)


def _implicit_domain(
    shape: tuple[int, ...],
    cdims: int,
    three_d: bool,
    supplied: int,
    explicit: Sequence[int],
) -> list[np.ndarray]:
    """Index columns for the coordinates the caller left out.

    Grids get x along axis 0 and y along axis 1; 3-D curves from 1-D data get
    x = index and y = 0; 2-D curves get x = index. A 3-D image style also gets
    a z = 0 plane when that is what completes the tuple.
    """

    shape = shape or (1,)
    full = shape if len(shape) >= 2 or cdims == 1 else shape + (1,)
    x = np.arange(full[0], dtype=np.float64).reshape((full[0],) + (1,) * (len(full) - 1))
    if cdims == 2 or three_d:
        if len(full) >= 2 and cdims == 2:
            y = np.arange(full[1], dtype=np.float64).reshape((1, full[1]) + (1,) * (len(full) - 2))
        else:
            y = np.zeros((1,) * len(full), dtype=np.float64)
        domain = [x, y]
        if three_d and supplied + 2 not in explicit and supplied + 3 in explicit:
            domain.append(np.zeros((1,) * len(full), dtype=np.float64))
        return [np.broadcast_to(d, full) for d in domain]
    return [np.broadcast_to(x, full)]
