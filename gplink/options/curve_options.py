from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from gplink.errors import InvalidOptionValueError
from gplink.options.emitters import quote
from gplink.options.parsers import range_normalizer
from gplink.options.schema import InputKind, OptionDescriptor, OptionSchema, OutputKind

# Placeholder emitted where the data source goes; the compiler swaps in the
# real (or test) inline-data specifier.
DATA_FENCE = "\x00data\x00"

# Options that do not carry over from one curve to the next.
NON_STICKY = frozenset({"legend", "xrange", "yrange", "zrange", "x2range", "y2range"})
RANGE_OPTIONS = ("trange", "xrange", "yrange", "zrange")


def _normalize_cdims(old: Any, raw: Any, current: Mapping[str, Any]) -> int:
    value = 0 if raw is None else raw
    try:
        dims = int(value)
    except (TypeError, ValueError):
        dims = -1
    if dims not in (0, 1, 2) or (isinstance(value, float) and value != dims):
        raise InvalidOptionValueError("curve option 'cdims' must be one of 0, 1, or 2")
    return dims


def _normalize_data(old: Any, raw: Any, current: Mapping[str, Any]) -> Any:
    raise InvalidOptionValueError("mustn't specify data as a curve option")


def _normalize_with(old: Any, raw: Any, current: Mapping[str, Any]) -> list[Any] | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        words = raw.split()
        if not words:
            raise InvalidOptionValueError("curve option 'with' needs a plot style")
        return words
    if isinstance(raw, (list, tuple)):
        words = [str(w) for w in raw]
        if len(words) == 1:
            words = words[0].split()
        if not words:
            raise InvalidOptionValueError("curve option 'with' needs a plot style")
        return words
    raise InvalidOptionValueError(f"curve option 'with' takes a string or a list, got {raw!r}")


def _normalize_legend(old: Any, raw: Any, current: Mapping[str, Any]) -> list[Any] | None:
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return [raw]


def _normalize_tuplesize(old: Any, raw: Any, current: Mapping[str, Any]) -> int | None:
    if raw is None:
        return None
    try:
        size = int(raw)
    except (TypeError, ValueError):
        raise InvalidOptionValueError(f"tuplesize must be a positive integer, got {raw!r}") from None
    if size < 1:
        raise InvalidOptionValueError(f"tuplesize must be a positive integer, got {raw!r}")
    return size


def _render_data(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    return DATA_FENCE


def _render_legend(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value and value[0] is not None and value[0] != "":
        return f"title {quote(value[0])}"
    return "notitle"


_CURVE_DESCRIPTORS = [
    OptionDescriptor("trange", InputKind.CUSTOM, OutputKind.CURVE_RANGE, order=1, normalizer=range_normalizer("trange"),
                     doc="parametric range modifier"),
    OptionDescriptor("xrange", InputKind.CUSTOM, OutputKind.CURVE_RANGE, order=2, normalizer=range_normalizer("xrange"),
                     doc="x range modifier"),
    OptionDescriptor("yrange", InputKind.CUSTOM, OutputKind.CURVE_RANGE, order=3, normalizer=range_normalizer("yrange"),
                     doc="y range modifier"),
    OptionDescriptor("zrange", InputKind.CUSTOM, OutputKind.CURVE_RANGE, order=4, normalizer=range_normalizer("zrange"),
                     doc="z range modifier"),
    OptionDescriptor("cdims", InputKind.CUSTOM, OutputKind.NONE, normalizer=_normalize_cdims,
                     doc="dimensions of each data column: 0, 1 or 2"),
    OptionDescriptor("data", InputKind.CUSTOM, _render_data, order=5, normalizer=_normalize_data),
    OptionDescriptor("using", InputKind.LIST, OutputKind.CURVE_LIST, order=6, doc="using clause, passed through"),
    OptionDescriptor("legend", InputKind.CUSTOM, _render_legend, order=7, normalizer=_normalize_legend,
                     doc="curve title in the key"),
    OptionDescriptor("axes", InputKind.ENUM, OutputKind.CURVE_SCALAR, order=8, pattern=r"(x[12])(y[12])",
                     doc="axes to plot against: x1y1, x1y2, x2y1 or x2y2"),
    OptionDescriptor("smooth", InputKind.STRING, OutputKind.CURVE_SCALAR, order=8.1, doc="smoothing/interpolation"),
    OptionDescriptor("with", InputKind.CUSTOM, OutputKind.CURVE_LIST, order=9, normalizer=_normalize_with,
                     doc="plot style and style modifiers"),
    OptionDescriptor("tuplesize", InputKind.CUSTOM, OutputKind.NONE, normalizer=_normalize_tuplesize,
                     doc="explicit number of data columns"),
    OptionDescriptor("binary", InputKind.BOOLEAN, OutputKind.NONE, doc="send this curve's data in binary"),
]

CURVE_OPTIONS = OptionSchema("curve option", _CURVE_DESCRIPTORS, inline=True)


def sticky_subset(options: Mapping[str, Any]) -> dict[str, Any]:
    """The part of a curve's options that carries into the next curve."""

    return {k: v for k, v in options.items() if k not in NON_STICKY and k != "data"}


def render_curve_options(options: Mapping[str, Any], plot_options: Mapping[str, Any] | None = None) -> str:
    return CURVE_OPTIONS.render(options, plot_options or {})
