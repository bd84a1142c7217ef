from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import logging
import re
from typing import Any

import numpy as np

from gplink.errors import AmbiguousOptionError, InvalidPlotStyleError, UnknownOptionError
from gplink.options.abbrev import AbbreviationResolver

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StylePrep:
    """What a style hook hands back: replacement columns, style words and temporary plot options."""

    columns: list[np.ndarray]
    with_words: list[str]
    plot_options: dict[str, Any] = field(default_factory=dict)


StyleHook = Callable[[list[Any], list[str], Mapping[str, Any]], StylePrep]


@dataclass(frozen=True)
class PlotStyle:
    """Column arities a gnuplot `with` style accepts.

    A negative arity means the absolute value is the minimum count of columns
    the caller must supply; the missing leading coordinate columns are
    synthesized.
    """

    name: str
    arities_2d: tuple[int, ...] | None
    arities_3d: tuple[int, ...] | None
    image: bool = False
    binary: bool | None = None
    description: str = ""
    columns: str = ""
    hook: StyleHook | None = None

    def arities(self, three_d: bool) -> tuple[int, ...] | None:
        return self.arities_3d if three_d else self.arities_2d


def _fits_header_value(header: Mapping[str, Any], key: str, default: Any) -> Any:
    try:
        value = header.get(key, default)
    except AttributeError:
        return default
    return default if value is None else value


def fits_prepare(data: list[Any], with_words: list[str], plot_options: Mapping[str, Any]) -> StylePrep:
    """Turn one FITS-like image into pixel-center coordinate grids plus the image.

    Accepts an object with `.data` and `.header` (an astropy HDU, say) or a
    bare array; the header's linear CRPIX/CRVAL/CDELT keywords place the
    pixels in scientific coordinates.
    """

    if len(data) != 1:
        raise InvalidPlotStyleError("fits (needs exactly one image per curve)")
    words = list(with_words)
    kept = [words[0]]
    rest = words[1:]
    i = 0
    while i < len(rest):
        if re.match(r"re(s(a(m(p(le?)?)?)?)?)?$", rest[i], re.I):
            LOGGER.warning("'with fits' resampling is not supported; plotting pixel centers")
            if i + 1 < len(rest) and re.fullmatch(r"\d+(,\d+)?", rest[i + 1]):
                i += 1
        else:
            kept.append(rest[i])
        i += 1

    source = data[0]
    header = getattr(source, "header", None)
    image = np.asarray(source.data if header is not None else source, dtype=np.float64)
    if header is not None:
        # FITS arrays arrive slowest-axis first; flip to (x, y[, channel]).
        if image.ndim == 2:
            image = image.T
        elif image.ndim == 3:
            image = np.transpose(image, (2, 1, 0))
    else:
        if not (image.ndim == 2 or (image.ndim == 3 and image.shape[2] in (1, 3, 4))):
            raise InvalidPlotStyleError(f"fits (got a {'x'.join(map(str, image.shape))} array with no FITS header)")
        LOGGER.warning("'with fits' expected a FITS header; using pixel coordinates")
        header = {}

    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]

    nx, ny = image.shape[0], image.shape[1]
    x = _fits_header_value(header, "CRVAL1", 0.0) + (
        np.arange(nx, dtype=np.float64) + 1.0 - _fits_header_value(header, "CRPIX1", 1.0)
    ) * _fits_header_value(header, "CDELT1", 1.0)
    y = _fits_header_value(header, "CRVAL2", 0.0) + (
        np.arange(ny, dtype=np.float64) + 1.0 - _fits_header_value(header, "CRPIX2", 1.0)
    ) * _fits_header_value(header, "CDELT2", 1.0)
    xg, yg = np.meshgrid(x, y, indexing="ij")

    extra: dict[str, Any] = {}
    if plot_options.get("xlabel") is None:
        unit = _fits_header_value(header, "CUNIT1", "")
        extra["xlabel"] = [f"{_fits_header_value(header, 'CTYPE1', 'X')} ({unit or 'pixels'})"]
    if plot_options.get("ylabel") is None:
        unit = _fits_header_value(header, "CUNIT2", "")
        extra["ylabel"] = [f"{_fits_header_value(header, 'CTYPE2', 'Y')} ({unit or 'pixels'})"]
    if plot_options.get("cblabel") is None:
        unit = _fits_header_value(header, "BUNIT", "")
        extra["cblabel"] = [f"{_fits_header_value(header, 'BTYPE', 'Value')}{f' ({unit})' if unit else ''}"]

    if image.ndim == 2:
        kept[0] = "image"
        return StylePrep([xg, yg, image], kept, extra)
    if image.shape[2] == 3:
        kept[0] = "rgbimage"
    elif image.shape[2] == 4:
        kept[0] = "rgbalpha"
    else:
        raise InvalidPlotStyleError("fits (needs an image, RGB triplet or RGBA quad)")
    channels = [image[:, :, i] for i in range(image.shape[2])]
    return StylePrep([xg, yg, *channels], kept, extra)


def _style(
    name: str,
    arities_2d: tuple[int, ...] | None,
    arities_3d: tuple[int, ...] | None,
    image: bool,
    binary: bool | None,
    description: str,
    columns: str,
    hook: StyleHook | None = None,
) -> PlotStyle:
    return PlotStyle(name, arities_2d, arities_3d, image, binary, description, columns, hook)


_HISTOGRAM = tuple(range(1, 100))

PLOT_STYLES: dict[str, PlotStyle] = {
    s.name: s
    for s in (
        _style("boxerrorbars", (3, 4, 5), None, False, None, "boxes on X axis", "x, y, dy, [dx]; x, y, ylo, yhi, dx"),
        _style("boxes", (2, 3), None, False, None, "boxes sitting on X axis", "x, y, [dx]"),
        _style("boxxyerrorbars", (4, 6), None, False, None, "XY errorbars as rectangles",
               "x, y, dx, dy; x, y, xlo, xhi, ylo, yhi"),
        _style("candlesticks", (5, 6), None, False, None, "box-and-errorbar plots", "x, blo, wlo, whi, bhi"),
        _style("circles", (2, 3), None, False, None, "circles", "x, y, [r]"),
        _style("dots", (-1, 2), (3,), False, None, "tiny dots (scatterplot)", "[x], y; {x, y, z}"),
        _style("ellipses", (2, 3, 4, 5), None, False, None, "ellipses", "x, y, [dmaj, [dmin, [ang]]]"),
        _style("filledcurves", (2, 3), None, False, None, "fill polygon, to axis, or to point", "x, y; x, y1, y2"),
        _style("financebars", (5,), None, False, None, "financial stem plot", "x, open, lo, hi, close"),
        _style("fsteps", (-1, 2), None, False, None, "steps (Y first; cf histeps, steps)", "[x], y"),
        _style("histeps", (-1, 2), None, False, None, "steps (centered; cf fsteps, steps)", "[x], y"),
        _style("histogram", _HISTOGRAM, None, False, None, "histogram (set tuplesize if >99 cols)",
               "y, [y1, [y2, [...]]]"),
        _style("newhistogram", _HISTOGRAM, None, False, None, "histogram (set tuplesize if >99 cols)",
               "y, [y1, [y2, [...]]]"),
        _style("fits", (-1,), (-1,), True, True, "FITS image with WCS info in header", "[x, y], i; {[x, y, z], i}",
               fits_prepare),
        _style("image", (-1, 3), (-1, 4), True, True, "I (WxH), RGB (WxHx3) or RGBA (WxHx4)",
               "[x, y], i; {[x, y, z], i}"),
        _style("impulses", (-1, 2, 3), (-1, -2, 3, 4), False, None, "vertical lines from y=0 or z=0 to point",
               "[x], y; {[x, y], z}"),
        _style("labels", (3,), (4,), False, False, "text at given location", "x, y, str; {x, y, z, str}"),
        _style("lines", (-1, 2), (-1, 3), False, None, "simple line plot", "[x], y; {[x, y], z}"),
        _style("linespoints", (-1, 2), (-1, 3), False, None, "lines with symbols at points", "[x], y; {[x, y], z}"),
        _style("points", (-1, 2), (-1, 3), False, None, "small symbol at each point", "[x], y; {[x, y], z}"),
        _style("rgbalpha", (-4, 6), (-4, 7), True, True, "RGBA image: 2D with R,G,B,A",
               "[x, y], r,g,b,a; {[x, y, z], r,g,b,a}"),
        _style("rgbimage", (-3, 5), (-3, 6), True, True, "RGB image: 2D with R,G,B", "[x, y], r,g,b; {[x, y, z], r,g,b}"),
        _style("steps", (-1, 2), None, False, None, "steps (Y last; cf fsteps, histeps)", "[x], y"),
        _style("vectors", (4,), (6,), False, None, "vector field", "x, y, dx, dy; {x, y, z, dx, dy, dz}"),
        _style("xerrorbars", (-2, 3, 4), None, False, None, "whisker errorbars in X", "x, y, dx; x, y, xlo, xhi"),
        _style("xyerrorbars", (-3, 4, 6), None, False, None, "whisker errorbars in X & Y",
               "x, y, dx, dy; x, y, xlo, xhi, ylo, yhi"),
        _style("yerrorbars", (-2, 3, 4), None, False, None, "whisker errorbars in Y", "x, y, dy; x, y, ylo, yhi"),
        _style("xerrorlines", (-3, 4), None, False, None, "whisker errorbars in X, connected",
               "x, y, dx; x, y, xlo, xhi"),
        _style("xyerrorlines", (-4, 6), None, False, None, "whisker errorbars in X & Y, connected",
               "x, y, dx, dy; x, y, xlo, xhi, ylo, yhi"),
        _style("yerrorlines", (-3, 4), None, False, None, "whisker errorbars in Y, connected",
               "x, y, dy; x, y, ylo, yhi"),
        _style("pm3d", None, (-1, 3, 4), True, True, "colored 3-D surface plot", "{[x, y, z], [i]}"),
    )
}

_STYLE_ALIASES = {
    "li": "lines",
    "lin": "lines",
    "line": "lines",
    "box": "boxes",
    "lp": "linespoints",
    "hs": "histeps",
    "hi": "histeps",
    "his": "histeps",
    "hist": "histeps",
    "histograms": "histogram",
}

_STYLE_RESOLVER = AbbreviationResolver(PLOT_STYLES, aliases=_STYLE_ALIASES, kind="plot style")


def resolve_style(name: str) -> PlotStyle:
    """Canonical style for a (possibly abbreviated, capitalized or plural) style word."""

    text = str(name).strip().lower()
    try:
        return PLOT_STYLES[_STYLE_RESOLVER.lookup(text, original=name)]
    except (UnknownOptionError, AmbiguousOptionError):
        pass
    if text.endswith("s") and len(text) > 1:
        try:
            return PLOT_STYLES[_STYLE_RESOLVER.lookup(text[:-1], original=name)]
        except (UnknownOptionError, AmbiguousOptionError):
            pass
    raise InvalidPlotStyleError(str(name))


def style_catalogue() -> str:
    """One line per style: name, description, accepted columns."""

    width = max(len(n) for n in PLOT_STYLES)
    lines = []
    for name in sorted(PLOT_STYLES):
        style = PLOT_STYLES[name]
        lines.append(f"  {name:<{width}}  {style.description:<40}  {style.columns}")
    return "\n".join(lines) + "\n"
