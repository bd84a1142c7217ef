from __future__ import annotations

from collections.abc import Mapping
import logging
from pathlib import PurePath
import re
from typing import Any

from gplink.errors import ConflictingOptionsError, InvalidOptionValueError
from gplink.options.emitters import format_word
from gplink.options.parsers import is_false_word, range_normalizer
from gplink.options.schema import InputKind, OptionDescriptor, OptionPatch, OptionSchema, OutputKind

LOGGER = logging.getLogger(__name__)

In = InputKind
Out = OutputKind

HARDCOPY_SUFFIXES: dict[str, str] = {
    "gif": "gif",
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "pdf": "pdfcairo",
    "png": "png",
    "ps": "postscript",
    "eps": "postscript eps",
    "svg": "svg",
}


# name -> (color model or None, palette spec or None, description)
PALETTES: dict[str, tuple[str | None, str | None, str]] = {
    "default": (None, None, "default palette assigned by gnuplot"),
    "grey": (None, "gray", "gray"),
    "gray": (None, "gray", "gray"),
    "sepia": ("RGB", "color rgbformulae 7,3,4", "a simple sepiatone"),
    "grepia": ("RGB", "color rgbformulae 3,7,4", "a simple sepiatone, in green"),
    "blepia": ("RGB", "color rgbformulae 4,3,7", "a simple sepiatone, in cyan/blue"),
    "vepia": ("RGB", "color rgbformulae 3,4,7", "a simple sepiatone, in violet"),
    "pm3d": ("RGB", "color rgbformulae 7,5,15", "black-blue-red-yellow"),
    "grv": ("RGB", "color rgbformulae 3,11,6", "green-red-violet"),
    "ocean": ("RGB", "color rgbformulae 23,28,3", "green-blue-white"),
    "gback": ("RGB", "color rgbformulae 31,31,32", "printable on a gray background"),
    "rainbow": ("RGB", "color rgbformulae -33,-13,-10", "rainbow red-yellow-green-blue"),
    "heat1": ("RGB", "color rgbformulae 21,22,23", "heat-map: black-red-yellow-white"),
    "heat2": ("RGB", "color rgbformulae 34,35,36", "heat-map (AFM): black-red-yellow-white"),
    "wheel": ("HSV", "color rgbformulae 3,2,2", "hue map: color wheel"),
}

RANGE_AXES = ("x", "x2", "y", "y2", "z", "cb")
_NUMERIC = re.compile(r"\s*-?(\d+\.?\d*|\d*\.\d+)([eE][+-]?\d+)?\s*")


# custom normalizers


def _reject(message: str):
    def normalizer(old: Any, raw: Any, current: Mapping[str, Any]) -> Any:
        raise ConflictingOptionsError(message)

    return normalizer


def _unsupported(name: str):
    def normalizer(old: Any, raw: Any, current: Mapping[str, Any]) -> Any:
        raise InvalidOptionValueError(f"'set {name}' is not supported")

    return normalizer


def _no_multiplot(current: Mapping[str, Any], what: str) -> None:
    if current.get("multiplot"):
        raise ConflictingOptionsError(f"can't set {what} while in multiplot mode")


def _normalize_device(old: Any, raw: Any, current: Mapping[str, Any]) -> OptionPatch:
    _no_multiplot(current, "device")
    text = str(raw or "")
    path, sep, terminal = text.rpartition("/")
    if not sep or not terminal.strip():
        raise InvalidOptionValueError("device option format: [<filename>]/<terminal-type>")
    return OptionPatch(None, {"terminal": terminal.strip(), "output": path or None})


def _normalize_hardcopy(old: Any, raw: Any, current: Mapping[str, Any]) -> OptionPatch:
    _no_multiplot(current, "hardcopy")
    name = str(raw or "")
    suffix = PurePath(name).suffix.lower().lstrip(".")
    if not suffix:
        raise InvalidOptionValueError("hardcopy: need a file suffix to infer file type")
    terminal = HARDCOPY_SUFFIXES.get(suffix)
    if terminal is None:
        raise InvalidOptionValueError(f"hardcopy: couldn't identify file type from '{name}'")
    return OptionPatch(None, {"terminal": terminal, "output": name})


def _normalize_trid(old: Any, raw: Any, current: Mapping[str, Any]) -> OptionPatch:
    value = None if raw is None else (not is_false_word(raw) if isinstance(raw, str) else bool(raw))
    return OptionPatch(None, {"3d": value}, removes=("trid",))


def _normalize_dump(old: Any, raw: Any, current: Mapping[str, Any]) -> bool | None:
    value = None if raw is None else (not is_false_word(raw) if isinstance(raw, str) else bool(raw))
    if value and not old:
        LOGGER.warning("dumping ON - gnuplot commands go to stdout only")
    elif old and not value:
        LOGGER.warning("dumping OFF - gnuplot commands will be used for plotting")
    return value


def _normalize_clut(old: Any, raw: Any, current: Mapping[str, Any]) -> str:
    name = str(raw).strip().lower() if raw else "default"
    if name not in PALETTES:
        listing = "\n".join(f"   {k:>10} ({PALETTES[k][2]})" for k in sorted(PALETTES))
        raise InvalidOptionValueError(f"unknown lookup table name '{raw}' for 'clut'; acceptable values are:\n{listing}")
    return name


def _normalize_justify(old: Any, raw: Any, current: Mapping[str, Any]) -> OptionPatch:
    try:
        ratio = float(raw)
    except (TypeError, ValueError):
        raise InvalidOptionValueError(f"justify: positive number needed, got {raw!r}") from None
    if ratio <= 0:
        raise InvalidOptionValueError("justify: positive value needed")
    return OptionPatch(None, {"size": [f"ratio {format_word(-ratio)}"]})


def _normalize_square(old: Any, raw: Any, current: Mapping[str, Any]) -> OptionPatch:
    if raw and not is_false_word(raw):
        scale = 1 if raw is True or isinstance(raw, str) else raw
        view = list(current.get("view") or []) if isinstance(current.get("view"), list) else []
        view.extend([None] * (6 - len(view)))
        view[2:6] = [scale, scale, "equal", "xyz"]
        return OptionPatch(None, {"size": ["ratio -1"], "view": view})
    return OptionPatch(None, removes=("size", "view"))


def _normalize_timefmt(old: Any, raw: Any, current: Mapping[str, Any]) -> str | None:
    if raw is None:
        return None
    if str(raw) != "%s":
        LOGGER.warning("timefmt doesn't work well in formats other than '%%s'; proceed with caution")
    return str(raw)


def _range_end_patch(range_name: str, slot: int):
    def normalizer(old: Any, raw: Any, current: Mapping[str, Any]) -> OptionPatch:
        existing = current.get(range_name)
        bounds = list(existing[:2]) if isinstance(existing, list) and existing and not isinstance(existing[0], str) else []
        bounds.extend([None] * (2 - len(bounds)))
        bounds[slot] = raw
        return OptionPatch(None, {range_name: bounds})

    return normalizer


# custom renderers


def _render_commands(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if not value:
        return ""
    if isinstance(value, list):
        return "".join(f"{cmd}\n" for cmd in value)
    return f"{value}\n"


def _render_clut(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    model, spec, _ = PALETTES[value]
    out = ""
    if model is not None:
        out += f"set palette model {model}\n"
    return out + (f"set palette {spec}\n" if spec else "set palette\n")


def _render_view(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if not isinstance(value, list):
        return "set view 60,30,1.0,1.0\nset view noequal\n" if value else ""
    items = list(value)
    numbers: list[str] = []
    while items and (items[0] is None or isinstance(items[0], (int, float)) or (isinstance(items[0], str) and _NUMERIC.fullmatch(items[0]))):
        numbers.append(format_word(items.pop(0)))
    out = ""
    if numbers:
        out += f"set view {','.join(numbers)}\n"
    while items:
        word = items.pop(0)
        if word == "equal" and items and isinstance(items[0], str) and re.fullmatch(r"xyz?", items[0]):
            out += f"set view equal {items.pop(0)}\n"
        else:
            out += f"set view {format_word(word)}\n"
    return out


def _axis_descriptors() -> list[OptionDescriptor]:
    out: list[OptionDescriptor] = []
    for axis in RANGE_AXES:
        follows = ("colorbox",) if axis == "cb" else ()
        label = axis.upper() if axis != "cb" else "color box"
        out.extend(
            [
                OptionDescriptor(f"{axis}data", In.STRING, Out.BOOL_OR_TIME, follows,
                                 doc=f'{axis}data="time" to use time stamps on the {label} axis (see timefmt)'),
                OptionDescriptor(f"{axis}dtics", In.BOOLEAN, Out.BOOLEAN, follows,
                                 doc=f"days-of-week tick labels on the {label} axis"),
                OptionDescriptor(f"{axis}label", In.LIST, Out.QUOTED_LIST, follows, doc=f"label for the {label} axis"),
                OptionDescriptor(f"{axis}mtics", In.BOOLEAN, Out.BOOLEAN, follows,
                                 doc=f"months-of-year tick labels on the {label} axis"),
                OptionDescriptor(f"{axis}range", In.CUSTOM, Out.RANGE, follows,
                                 normalizer=range_normalizer(f"{axis}range"),
                                 doc=f"range of the {label} axis: [<min>,<max>]"),
                OptionDescriptor(f"{axis}tics", In.TICS, Out.LIST, follows,
                                 doc=f"tick mark formatting on the {label} axis"),
                OptionDescriptor(f"m{axis}tics", In.LIST, Out.LIST, follows,
                                 doc=f"minor ticks on the {label} axis: m{axis}tics=<freq>"),
                OptionDescriptor(f"{axis}min", In.CUSTOM, Out.NONE, normalizer=_range_end_patch(f"{axis}range", 0),
                                 doc=f"sets minimum end of {axis}range"),
                OptionDescriptor(f"{axis}max", In.CUSTOM, Out.NONE, normalizer=_range_end_patch(f"{axis}range", 1),
                                 doc=f"sets maximum end of {axis}range"),
            ]
        )
        if axis != "cb":
            out.append(OptionDescriptor(f"{axis}zeroaxis", In.LIST, Out.LIST, doc=f"draw a line at {label}=0"))
    return out


def _plot_descriptors() -> list[OptionDescriptor]:
    pseudo = [
        OptionDescriptor("3d", In.BOOLEAN, Out.NONE, doc="[pseudo] make the current plot 3d (splot)"),
        OptionDescriptor("trid", In.CUSTOM, Out.NONE, normalizer=_normalize_trid, doc="[pseudo] synonym for 3d"),
        OptionDescriptor("binary", In.BOOLEAN, Out.NONE, doc="[pseudo] communicate with gnuplot in binary mode"),
        OptionDescriptor("device", In.CUSTOM, Out.NONE, normalizer=_normalize_device,
                         doc='[pseudo] shorthand for device spec: "<output>/<terminal>"'),
        OptionDescriptor("hardcopy", In.CUSTOM, Out.NONE, normalizer=_normalize_hardcopy,
                         doc="[pseudo] shorthand for device spec, terminal inferred from file suffix"),
        OptionDescriptor("dump", In.CUSTOM, Out.NONE, normalizer=_normalize_dump,
                         doc="[pseudo] redirect gnuplot commands to stdout for inspection"),
        OptionDescriptor("tee", In.BOOLEAN, Out.NONE, doc="[pseudo] log gnuplot commands as they are sent"),
        OptionDescriptor("silent", In.BOOLEAN, Out.NONE, doc="[pseudo] don't log gnuplot warnings"),
        OptionDescriptor("topcmds", In.LIST, _render_commands, order=10,
                         doc="[pseudo] extra gnuplot commands at the top of the command block"),
        OptionDescriptor("extracmds", In.LIST, _render_commands, order=1001,
                         doc="[pseudo] extra gnuplot commands between plot options and the plot"),
        OptionDescriptor("bottomcmds", In.LIST, Out.NONE, doc="[pseudo] extra gnuplot commands after the plot"),
        OptionDescriptor("globalwith", In.LIST, Out.NONE,
                         doc='[pseudo] default plot style (overridden by "with" in curve options)'),
        OptionDescriptor("clut", In.CUSTOM, _render_clut, ("palette",), normalizer=_normalize_clut,
                         doc='[pseudo] named color look-up table for the palette: clut="heat2"'),
        OptionDescriptor("justify", In.CUSTOM, Out.NONE, normalizer=_normalize_justify,
                         doc='[pseudo] aspect ratio (same as size=["ratio -<r>"])'),
        OptionDescriptor("square", In.CUSTOM, Out.NONE, normalizer=_normalize_square,
                         doc="[pseudo] square aspect ratio"),
        OptionDescriptor("multiplot", In.CUSTOM, Out.NONE,
                         normalizer=_reject("multiplot: use Session.multiplot(), don't set this directly"),
                         doc="[pseudo] multiplot state (managed by the session)"),
        OptionDescriptor("terminal", In.CUSTOM, Out.NO_MULTI, order=1,
                         normalizer=_reject("don't set terminal as a plot option; use Session.output()"),
                         doc="output device type and device-dependent options"),
        OptionDescriptor("termoption", In.KEYED, Out.KEYED_NO_MULTI, order=2,
                         doc="terminal driver options by keyword"),
        OptionDescriptor("output", In.CUSTOM, Out.QUOTED_NO_MULTI, order=3,
                         normalizer=_reject("don't set output as a plot option; use Session.output()"),
                         doc="output file for the plot"),
    ]
    gnuplot = [
        OptionDescriptor("angles", In.STRING, Out.SCALAR, doc="(radians|degrees): unit for angles"),
        OptionDescriptor("arrow", In.INDEXED, Out.INDEXED, doc="arrows to be drawn (numeric index)"),
        OptionDescriptor("autoscale", In.LIST, Out.PER_LINE, doc='autoscaling style: "(x|y|z|cb|x2|y2|xy) (fix)?(min|max)?"'),
        OptionDescriptor("bars", In.LIST, Out.LIST, doc="errorbar tic size"),
        OptionDescriptor("bmargin", In.STRING, Out.SCALAR, doc="bottom margin (chars)"),
        OptionDescriptor("border", In.LIST, Out.LIST, doc="border around the plot"),
        OptionDescriptor("boxwidth", In.LIST, Out.LIST, doc="default width of boxes"),
        OptionDescriptor("clabel", In.STRING, Out.QUOTED, doc='contour level legend format (default "%8.3g")'),
        OptionDescriptor("clip", In.KEYED, Out.KEYED, doc="filtering near the boundary: clip={points: 1, one: 0, two: 1}"),
        OptionDescriptor("cntrparam", In.LIST, Out.PER_LINE, doc="contour plotting parameters"),
        OptionDescriptor("colorbox", In.LIST, Out.LIST, doc="color box options for pm3d and image"),
        OptionDescriptor("contour", In.STRING, Out.SCALAR, doc='3d contour plots: "base", "surface" or "both"'),
        OptionDescriptor("datafile", In.KEYED, Out.KEYED, doc="how gnuplot interprets data files"),
        OptionDescriptor("decimalsign", In.STRING, Out.QUOTED, doc="decimal point character in labels"),
        OptionDescriptor("dgrid3d", In.LIST, Out.LIST, doc="interpolation of scattered points onto a grid"),
        OptionDescriptor("dummy", In.LIST, Out.COMMA_LIST, doc="dummy variable names for parametric plots"),
        OptionDescriptor("encoding", In.STRING, Out.SCALAR, doc="character encoding"),
        OptionDescriptor("fit", In.CUSTOM, Out.NONE, normalizer=_unsupported("fit")),
        OptionDescriptor("fontpath", In.LIST, Out.LIST, doc="directories to search for fonts"),
        OptionDescriptor("format", In.KEYED, Out.KEYED, doc="axis label formats by axis"),
        OptionDescriptor("function", In.CUSTOM, Out.NONE, normalizer=_unsupported("function")),
        OptionDescriptor("grid", In.LIST, Out.LIST, doc="grid lines"),
        OptionDescriptor("hidden3d", In.LIST, Out.LIST, doc="hidden line removal in 3d"),
        OptionDescriptor("isosamples", In.LIST, Out.LIST, doc="isoline density"),
        OptionDescriptor("key", In.LIST, Out.LIST, doc="legend position and appearance"),
        OptionDescriptor("label", In.INDEXED, Out.INDEXED_LABEL, doc="text labels (numeric index)"),
        OptionDescriptor("lmargin", In.STRING, Out.SCALAR, doc="left margin (chars)"),
        OptionDescriptor("loadpath", In.CUSTOM, Out.NONE, normalizer=_unsupported("loadpath")),
        OptionDescriptor("locale", In.STRING, Out.QUOTED, doc="locale for date/month formatting"),
        OptionDescriptor("logscale", In.LIST, Out.LIST, doc='log scaling and base, e.g. ["xy", 10]'),
        OptionDescriptor("macros", In.CUSTOM, Out.NONE, normalizer=_unsupported("macros")),
        OptionDescriptor("mapping", In.STRING, Out.SCALAR, doc="3d coordinates: cartesian, spherical or cylindrical"),
        OptionDescriptor("object", In.INDEXED, Out.INDEXED_OBJECT, doc="objects overlain on the plot (numeric index)"),
        OptionDescriptor("offsets", In.LIST, Out.LIST, doc="inside-axis margins: [<l>,<r>,<t>,<b>]"),
        OptionDescriptor("origin", In.LIST, Out.COMMA_LIST, doc="origin of the plotting surface (screen coords)"),
        OptionDescriptor("parametric", In.BOOLEAN, Out.BOOLEAN, doc="parametric mode"),
        OptionDescriptor("pm3d", In.LIST, Out.LIST, doc="palette-mapped 3d surfaces"),
        OptionDescriptor("palette", In.LIST, Out.LIST, doc='color palette for color-mapped plots (see "clut")'),
        OptionDescriptor("pointsize", In.STRING, Out.SCALAR, doc="point symbol size multiplier"),
        OptionDescriptor("polar", In.BOOLEAN, Out.BOOLEAN, ("angles",), doc="polar coordinates for 2-D plots"),
        OptionDescriptor("rmargin", In.STRING, Out.SCALAR, doc="right margin (chars)"),
        OptionDescriptor("rrange", In.CUSTOM, Out.RANGE, normalizer=range_normalizer("rrange"),
                         doc="radial range in polar mode: [<lo>,<hi>]"),
        OptionDescriptor("size", In.LIST, Out.LIST, ("view",), doc="size of the plot pane (see also justify)"),
        OptionDescriptor("style", In.KEYED, Out.KEYED, doc="aspects of plot style by keyword"),
        OptionDescriptor("surface", In.BOOLEAN, Out.BOOLEAN, doc="surface drawing in 3-d plots"),
        OptionDescriptor("table", In.CUSTOM, Out.NONE, normalizer=_unsupported("table")),
        OptionDescriptor("tics", In.LIST, Out.LIST, doc="tick mark formatting for all axes"),
        OptionDescriptor("timestamp", In.LIST, Out.LIST, doc="timestamp in the left margin"),
        OptionDescriptor("timefmt", In.CUSTOM, Out.QUOTED, normalizer=_normalize_timefmt,
                         doc='format for interpreting time data (leave as "%s")'),
        OptionDescriptor("title", In.LIST, Out.QUOTED_LIST, doc="plot title"),
        OptionDescriptor("tmargin", In.STRING, Out.SCALAR, doc="top margin (chars)"),
        OptionDescriptor("trange", In.CUSTOM, Out.RANGE, normalizer=range_normalizer("trange"),
                         doc="parametric variable range: [<min>,<max>]"),
        OptionDescriptor("urange", In.CUSTOM, Out.RANGE, normalizer=range_normalizer("urange"),
                         doc='3-d parametric variable "u" range'),
        OptionDescriptor("view", In.LIST, _render_view,
                         doc='3-d view: [r_x, r_z, scale, sc_z, "map", "noequal", "equal", "xy|xyz"]'),
        OptionDescriptor("vrange", In.CUSTOM, Out.RANGE, normalizer=range_normalizer("vrange"),
                         doc='3-d parametric variable "v" range'),
        OptionDescriptor("xyplane", In.LIST, Out.LIST, doc="location of the XY plane in 3-d plots"),
        OptionDescriptor("zero", In.STRING, Out.SCALAR, doc="threshold for treating values as zero"),
    ]
    return pseudo + gnuplot + _axis_descriptors()


PLOT_OPTIONS = OptionSchema("plot option", _plot_descriptors())


def render_plot_options(options: Mapping[str, Any]) -> str:
    return PLOT_OPTIONS.render(options)


def _normalize_layout(old: Any, raw: Any, current: Mapping[str, Any]) -> str:
    directions = ["", ""]
    if isinstance(raw, (list, tuple)):
        items = list(raw) or [1]
        ncols = items.pop(0)
        nrows = items.pop(0) if items and not isinstance(items[0], str) else ncols
        for word in items:
            text = str(word).lower()
            if text.startswith("r"):
                directions[0] = "rowsfirst"
            elif text.startswith("c"):
                directions[0] = "columnsfirst"
            elif text.startswith("d"):
                directions[1] = "downwards"
            elif text.startswith("u"):
                directions[1] = "upwards"
    elif isinstance(raw, (int, str)) and not isinstance(raw, bool):
        ncols = nrows = raw
    else:
        raise InvalidOptionValueError("multiplot: layout option needs a scalar or a list value")
    return " ".join(part for part in (f"{nrows},{ncols}", *directions) if part)


def _keyword_pair(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None or value is False:
        return ""
    if isinstance(value, list):
        return f"{name} {','.join(format_word(v) for v in value)}"
    return f"{name} {format_word(value)}"


MULTIPLOT_OPTIONS = OptionSchema(
    "multiplot option",
    [
        OptionDescriptor("layout", In.CUSTOM, Out.CURVE_LIST, order=1, normalizer=_normalize_layout,
                         doc="[<ncols>, <nrows>, rowsfirst|columnsfirst, downwards|upwards]"),
        OptionDescriptor("title", In.STRING, Out.CURVE_QUOTED, order=2, doc="title over the whole page"),
        OptionDescriptor("scale", In.LIST, _keyword_pair, order=3, doc="scale factor(s) for each panel"),
        OptionDescriptor("offset", In.LIST, _keyword_pair, order=4, doc="offset of each panel"),
    ],
    inline=True,
)
