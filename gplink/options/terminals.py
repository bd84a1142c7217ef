from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import functools
from typing import Any

from gplink.errors import UnknownOptionError
from gplink.options.abbrev import AbbreviationResolver
from gplink.options.schema import InputKind, OptionDescriptor, OptionSchema, OutputKind, Renderer


@dataclass(frozen=True)
class TerminalSpec:
    name: str
    description: str
    unit: str
    option_names: tuple[str, ...]
    interactive: bool = False
    file_output: bool = True


OptionRow = tuple[InputKind, "OutputKind | Renderer", str]


def _mono(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    return "mono" if value else ""


def _fsize(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    return "" if value is None else f"fsize {value}"


def _fontfile_add(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    return "" if value is None else f'fontfile add "{value}"'


# Options shared by several terminals.
_SHARED: dict[str, OptionRow] = {
    "output": (InputKind.STRING, OutputKind.NONE, "file name for output"),
    "output_": (InputKind.STRING, OutputKind.CURVE_VALUE, "window number for persistent windows"),
    "title": (InputKind.STRING, OutputKind.CURVE_QUOTED, "window title"),
    "size": (InputKind.LIST, OutputKind.CURVE_SIZE, "window size (default unit is %u)"),
    "font": (InputKind.STRING, OutputKind.CURVE_QUOTED, "font to use ('<fontname>,<size>')"),
    "fontsize": (InputKind.STRING, OutputKind.CURVE_SCALAR, "font size (points)"),
    "enhanced": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "enable or disable enhanced text escapes"),
    "color": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "generate a color plot (see 'monochrome')"),
    "monochrome": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "generate a B/W plot (see 'color')"),
    "solid": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "plot only solid lines (see 'dashed')"),
    "dashed": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "plot dashed lines (see 'solid')"),
    "rotate": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "enable or disable rotated text"),
    "linewidth": (InputKind.STRING, OutputKind.CURVE_SCALAR, "multiplier on line width"),
    "dashlength": (InputKind.STRING, OutputKind.CURVE_SCALAR, "multiplier on dash length"),
    "standalone": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "generate output that renders alone"),
    "input": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "generate output to be combined with LaTeX"),
    "level1": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "generate level 1 PostScript"),
    "leveldefault": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "generate full-featured PostScript"),
    "rounded": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "rounded line ends (see 'butt')"),
    "butt": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "butt line ends (see 'rounded')"),
    "clip": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "clip output to bounding box (or not)"),
    "landscape": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "landscape orientation"),
    "portrait": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "portrait orientation"),
    "tiny": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "tiny preset plot size"),
    "small": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "small preset plot size"),
    "medium": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "medium preset plot size"),
    "large": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "large preset plot size"),
    "giant": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "giant preset plot size"),
    "transparent": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "transparent background"),
    "background": (InputKind.STRING, OutputKind.CURVE_VALUE, "background color in xRRGGBB format"),
    "interlace": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "interlaced image encoding"),
    "crop": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "autocrop to the drawn area"),
    "oldstyle": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "old-style text spacing"),
    "newstyle": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "new-style text spacing"),
    "persist": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "keep the window after gnuplot exits"),
    "raise": (InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "raise the window on each plot"),
}

_TERMINALS_SOURCE: dict[str, dict[str, Any]] = {
    "aqua": {
        "unit": "pt", "interactive": True,
        "desc": "Aqua terminal program on macOS",
        "opt": ["output_", "title", "size", "font", "enhanced"],
    },
    "canvas": {
        "unit": "pt",
        "desc": "javascript canvas rendering code",
        "opt": [
            "size",
            ("fontsize", InputKind.STRING, _fsize, "font size (points)"),
            "enhanced",
            "linewidth",
            ("standalone", InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "generate a standalone html page"),
            ("mousing", InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "mouse-tracking box under the plot"),
            ("name", InputKind.STRING, OutputKind.CURVE_QUOTED, "generate a javascript function with this name"),
            ("jsdir", InputKind.STRING, OutputKind.CURVE_QUOTED, "URL of the javascript directory"),
            "title",
            "output",
        ],
    },
    "dumb": {
        "unit": "char",
        "desc": "dumb terminal (ASCII output)",
        "opt": [
            ("feed", InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "issue (or not) a formfeed after each plot"),
            "size",
            "enhanced",
            "output",
        ],
    },
    "epslatex": {
        "unit": "in",
        "desc": "encapsulated PostScript with LaTeX text",
        "opt": [
            "standalone", "input", "oldstyle", "newstyle", "level1", "leveldefault", "color", "monochrome",
            "solid", "dashed", "dashlength", "linewidth", "rounded", "butt", "clip", "size", "font", "output",
        ],
    },
    "gif": {
        "unit": "px",
        "desc": "graphics interchange format",
        "opt": [
            "transparent", "rounded", "butt", "linewidth", "dashlength", "font", "enhanced", "size", "crop",
            ("animate", InputKind.LIST, OutputKind.CURVE_LIST, "animate=[delay, <d>, loop, <n>, (no)optimize]"),
            "background", "output",
        ],
    },
    "jpeg": {
        "unit": "px",
        "desc": "JPEG image file output",
        "opt": [
            "interlace", "linewidth", "dashlength", "rounded", "butt", "font", "enhanced", "size", "crop",
            "background", "output",
        ],
    },
    "pdf": {
        "unit": "in",
        "desc": "portable document format output",
        "opt": [
            "monochrome", "color", "enhanced", "font", "linewidth", "rounded", "butt", "solid", "dashed",
            "dashlength", "size", "output",
        ],
    },
    "pdfcairo": {
        "unit": "in",
        "desc": "PDF output via the cairo library",
        "opt": [
            "enhanced",
            ("monochrome", InputKind.BOOLEAN, _mono, "generate a B/W plot (see 'color')"),
            "color", "solid", "dashed", "font", "linewidth", "rounded", "butt", "dashlength", "size", "output",
        ],
    },
    "png": {
        "unit": "px",
        "desc": "PNG image output",
        "opt": [
            "transparent", "interlace",
            ("truecolor", InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "true color (RGB) output"),
            "rounded", "butt", "linewidth", "dashlength", "tiny", "small", "medium", "large", "giant",
            "font", "enhanced", "size", "crop", "background", "output",
        ],
    },
    "pngcairo": {
        "unit": "px",
        "desc": "PNG image output via the cairo library",
        "opt": [
            "enhanced",
            ("monochrome", InputKind.BOOLEAN, _mono, "generate a B/W plot (see 'color')"),
            "color", "solid", "dashed", "transparent", "crop", "font", "linewidth", "rounded", "butt",
            "dashlength", "size", "output",
        ],
    },
    "postscript": {
        "unit": "in",
        "desc": "PostScript file output",
        "opt": [
            "landscape", "portrait",
            ("eps", InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "encapsulated output"),
            "enhanced",
            ("simplex", InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "single sided printing"),
            ("duplex", InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "double sided printing"),
            ("defaultplex", InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "printer default sidedness"),
            ("fontfile", InputKind.STRING, _fontfile_add, "add a font file to the prologue"),
            ("adobeglyphnames", InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "Adobe style glyph names"),
            "level1", "leveldefault", "color", "monochrome", "solid", "dashed", "dashlength", "linewidth",
            "rounded", "butt", "clip", "size",
            ("blacktext", InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "force B/W text"),
            ("colortext", InputKind.BOOLEAN, OutputKind.CURVE_FLAG_TRUE, "force color text"),
            "font", "output",
        ],
    },
    "svg": {
        "unit": "in",
        "desc": "scalable vector graphics output",
        "opt": [
            "size", "enhanced", "font",
            ("fontfile", InputKind.STRING, OutputKind.CURVE_QUOTED, "font file to copy into <defs>"),
            "rounded", "butt", "solid", "dashed", "linewidth", "output",
        ],
    },
    "wxt": {
        "unit": "px", "interactive": True,
        "desc": "wxWidgets display",
        "opt": [
            "size", "enhanced", "font", "title", "dashed", "solid", "dashlength", "persist", "raise",
            ("ctrl", InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "control-Q quits the window"),
            ("close", InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "close the window on completion"),
        ],
    },
    "qt": {
        "unit": "px", "interactive": True,
        "desc": "Qt display",
        "opt": [
            "output_", "size", "enhanced", "font", "title", "dashed", "solid", "dashlength", "persist", "raise",
            ("ctrl", InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "control-Q quits the window"),
        ],
    },
    "x11": {
        "unit": "px", "interactive": True,
        "desc": "X Windows display",
        "opt": [
            "output_",
            ("title", InputKind.STRING, OutputKind.CURVE_QUOTED, "window title (in the title bar)"),
            "enhanced", "font", "linewidth", "solid", "dashed", "persist", "raise",
            ("ctrlq", InputKind.BOOLEAN, OutputKind.CURVE_FLAG, "control-Q quits the window"),
            "size",
        ],
    },
}


def _build_terminal(name: str, source: Mapping[str, Any]) -> tuple[TerminalSpec, OptionSchema]:
    descriptors: list[OptionDescriptor] = []
    for order, entry in enumerate(source["opt"], start=1):
        if isinstance(entry, str):
            kind, output, doc = _SHARED[entry]
            option_name = entry.rstrip("_")
        else:
            option_name, kind, output, doc = entry
        descriptors.append(
            OptionDescriptor(option_name, kind, output, order=order, doc=doc.replace("%u", source["unit"]))
        )
    descriptors.append(
        OptionDescriptor("wait", InputKind.NUMBER, OutputKind.NONE, order=len(descriptors) + 1,
                         doc="seconds to wait for gnuplot before giving up")
    )
    spec = TerminalSpec(
        name=name,
        description=source["desc"],
        unit=source["unit"],
        option_names=tuple(d.name for d in descriptors),
        interactive=bool(source.get("interactive", False)),
        file_output="output" in source["opt"],
    )
    return spec, OptionSchema(f"{name} terminal option", descriptors, inline=True)


_BUILT = {name: _build_terminal(name, source) for name, source in _TERMINALS_SOURCE.items()}
TERMINALS: dict[str, TerminalSpec] = {name: built[0] for name, built in _BUILT.items()}
_TERMINAL_RESOLVER = AbbreviationResolver(TERMINALS, kind="terminal")


def resolve_terminal(name: str) -> TerminalSpec:
    """Look up a terminal by (possibly abbreviated) name."""

    words = str(name).split()
    canonical = _TERMINAL_RESOLVER.lookup(words[0] if words else "", original=str(name))
    return TERMINALS[canonical]


@functools.lru_cache(maxsize=None)
def terminal_schema(name: str) -> OptionSchema:
    return _BUILT[resolve_terminal(name).name][1]


def split_terminal_options(
    name: str, *tokens: Any
) -> tuple[TerminalSpec, str, dict[str, Any]]:
    """Parse terminal options; returns (spec, `set terminal` argument, leftovers for the session).

    Leftovers are `output` (for file terminals) and `wait`, which are not
    part of the terminal line itself.
    """

    spec = resolve_terminal(name)
    schema = terminal_schema(spec.name)
    options = schema.parse({}, *tokens)
    leftovers: dict[str, Any] = {}
    if spec.file_output and "output" in options:
        leftovers["output"] = options.pop("output")
    if "wait" in options:
        leftovers["wait"] = options.pop("wait")
    rendered = schema.render(options, {"unit": spec.unit})
    line = f"{spec.name} {rendered}".strip()
    return spec, line, leftovers


def terminfo(name: str | None = None) -> str:
    """Human-readable catalogue of supported terminals, or the options of one terminal."""

    if not name:
        width = max(len(n) for n in TERMINALS)
        lines = ["gnuplot terminals supported by gplink:"]
        for term in sorted(TERMINALS):
            spec = TERMINALS[term]
            flags = " [interactive]" if spec.interactive else ""
            lines.append(f"  {term:<{width}}  {spec.description}{flags}")
        return "\n".join(lines) + "\n"

    try:
        spec = resolve_terminal(name)
    except UnknownOptionError:
        raise UnknownOptionError(name, "terminal") from None
    schema = terminal_schema(spec.name)
    lines = [f"{spec.name}: {spec.description} (default size unit: {spec.unit})", "options:"]
    for descriptor in sorted(schema.descriptors(), key=lambda d: d.sort_key):
        lines.append(f"  {descriptor.name:<16} {descriptor.doc}")
    return "\n".join(lines) + "\n"
