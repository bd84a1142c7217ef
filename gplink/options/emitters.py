from __future__ import annotations

from collections.abc import Callable, Mapping
import re
from typing import TYPE_CHECKING, Any

import numpy as np

from gplink.errors import InvalidOptionValueError, UnknownOptionError
from gplink.options.schema import OutputKind

if TYPE_CHECKING:
    from gplink.options.schema import OptionSchema


# Units per inch, for the `size` terminal option.
UNIT_PER_INCH: dict[str, float] = {
    "inch": 1.0,
    "inc": 1.0,
    "in": 1.0,
    "i": 1.0,
    "char": 16.0,
    "cha": 16.0,
    "ch": 16.0,
    "c": 16.0,
    "pt": 72.0,
    "points": 72.0,
    "point": 72.0,
    "poin": 72.0,
    "poi": 72.0,
    "po": 72.0,
    "px": 100.0,
    "pixels": 100.0,
    "pixel": 100.0,
    "pixe": 100.0,
    "pix": 100.0,
    "pi": 100.0,
    "p": 100.0,
    "mm": 25.4,
    "cm": 2.54,
}

_OBJECT_POLYGON = re.compile(r"\s*(polygon\s+from\s+.*?\bto\s+[^ ]+(?:\s+to\s+[^ ]+)*)(\s+.*)?", re.S)


def format_word(value: Any) -> str:
    """One token of gnuplot syntax: floats round-trip, everything else is str()."""

    if value is None:
        return ""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float):
        return repr(value)
    return str(value)


def quote(text: Any) -> str:
    body = format_word(text).replace('"', '\\"')
    return f'"{body}"'


def is_quoted(text: Any) -> bool:
    return isinstance(text, str) and len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'"


def render_options(
    schema: "OptionSchema",
    options: Mapping[str, Any],
    context: Mapping[str, Any] | None = None,
) -> str:
    """Render a normalized option set, ordered by `order` then name with `follows` splices."""

    pieces = [piece for _, piece in render_pieces(schema, options, context)]
    if schema.inline:
        return " ".join(p.strip() for p in pieces if p and p.strip())
    return "".join(pieces)


def render_pieces(
    schema: "OptionSchema",
    options: Mapping[str, Any],
    context: Mapping[str, Any] | None = None,
) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for name in emission_order(schema, options):
        descriptor = schema[name]
        renderer = descriptor.output
        if isinstance(renderer, OutputKind):
            renderer = _RENDERERS[renderer]
        out.append((name, renderer(name, options[name], options, context)))
    return out


def emission_order(schema: "OptionSchema", options: Mapping[str, Any]) -> list[str]:
    for name in options:
        if name not in schema:
            raise UnknownOptionError(name, schema.label)
    queue = sorted(options, key=lambda n: (schema[n].sort_key, n))
    ordered: list[str] = []
    while queue:
        name = queue.pop(0)
        follows = schema[name].follows
        if follows:
            spot = next((i for i in range(len(queue) - 1, -1, -1) if queue[i] in follows), None)
            if spot is not None:
                queue.insert(spot + 1, name)
                continue
        ordered.append(name)
    return ordered


def _join(values: Any, sep: str = " ") -> str:
    if isinstance(values, Mapping):
        return sep.join(f"{k} {format_word(v)}".rstrip() for k, v in values.items())
    if isinstance(values, (list, tuple)):
        return sep.join(_join(v, ",") if isinstance(v, (list, tuple)) else format_word(v) for v in values)
    return format_word(values)


def _multiplot_on(options: Mapping[str, Any]) -> bool:
    return bool(options.get("multiplot"))


# whole-line renderers


def _emit_default(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if value is False:
        return f"unset {name}\n"
    if value is True:
        return f"set {name}\n"
    return f"set {name} {_join(value)}\n"


def _emit_no_multi(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if _multiplot_on(options):
        return ""
    return _emit_default(name, value, options, context)


def _emit_none(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    return ""


def _emit_quoted(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if value == "" or value is False:
        return f"unset {name}\n"
    return f"set {name} {quote(value)}\n"


def _emit_quoted_no_multi(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if _multiplot_on(options):
        return ""
    return _emit_quoted(name, value, options, context)


def _emit_scalar(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if value == "" or value is False:
        return f"unset {name}\n"
    if value is True or (isinstance(value, str) and not value.strip()):
        return f"set {name}\n"
    return f"set {name} {format_word(value)}\n"


def _emit_boolean(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    return f"set {name}\n" if value else f"unset {name}\n"


def _emit_bool_or_time(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if isinstance(value, str) and value.strip().lower().startswith("t"):
        return f"set {name} time\n"
    return f"set {name}\n"


def _emit_list(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if isinstance(value, Mapping):
        raise InvalidOptionValueError(f"{name} cannot be rendered from a mapping")
    if isinstance(value, list):
        return f"set {name} {_join(value)}\n".replace(f"set {name} \n", f"set {name}\n")
    return f"set {name}\n" if value else f"unset {name}\n"


def _emit_quoted_list(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        if not value:
            return f"set {name}\n"
        first, *rest = value
        head = first if is_quoted(first) else quote(first)
        return " ".join(["set", name, head, *(format_word(v) for v in rest)]) + "\n"
    return f"set {name}\n" if value else f"unset {name}\n"


def _emit_comma_list(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return f"set {name} {','.join(format_word(v) for v in value)}\n"
    return f"set {name}\n" if value else f"unset {name}\n"


def _emit_per_line(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "".join(f"set {name} {_join(v)}\n" for v in value)
    return f"set {name}\n" if value else f"unset {name}\n"


def _emit_keyed(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if not isinstance(value, Mapping):
        return _emit_default(name, value, options, context)
    if not value:
        return f"set {name}\n"
    lines = []
    for key in sorted(value):
        entry = value[key]
        if entry is None:
            continue
        if entry == "" or entry == 0:
            lines.append(f"unset {name} {key}\n")
        elif isinstance(entry, str) and not entry.strip():
            lines.append(f"set {name} {key}\n")
        else:
            lines.append(f"set {name} {key} {_join(entry)}\n")
    return "".join(lines)


def _emit_keyed_no_multi(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if _multiplot_on(options):
        return ""
    return _emit_keyed(name, value, options, context)


def _indexed_lines(name: str, value: Any, formatter: Callable[[list[Any]], str]) -> str:
    if value is None:
        return ""
    if not isinstance(value, Mapping):
        return f"set {name}\n" if value else f"unset {name}\n"
    lines = []
    for index in sorted(value):
        entry = value[index]
        if entry is None:
            lines.append(f"unset {name} {index}\n")
        else:
            lines.append(f"set {name} {index} {formatter(entry)}\n".replace(" \n", "\n"))
    return "".join(lines)


def _emit_indexed(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    return _indexed_lines(name, value, _join)


def _emit_indexed_object(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    text = _indexed_lines(name, value, _join)
    lines = []
    # gnuplot wants polygon vertices and polygon properties as separate commands
    for line in text.splitlines():
        prefix, _, rest = line.partition(" ")
        parts = rest.split(None, 2)
        if prefix == "set" and len(parts) == 3:
            match = _OBJECT_POLYGON.fullmatch(parts[2])
            if match is not None and match.group(2):
                head = f"set {parts[0]} {parts[1]}"
                lines.append(f"{head} {match.group(1)}")
                lines.append(f"{head} {match.group(2).strip()}")
                continue
        lines.append(line)
    return "".join(f"{line}\n" for line in lines)


def _label_entry(entry: list[Any]) -> str:
    if not entry:
        return ""
    first, *rest = entry
    head = first if is_quoted(first) else quote(first)
    return " ".join([head, *(_join(v, ",") if isinstance(v, (list, tuple)) else format_word(v) for v in rest)])


def _emit_indexed_label(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    return _indexed_lines(name, value, _label_entry)


def _is_time_axis(range_name: str, options: Mapping[str, Any]) -> bool:
    axis = range_name[: -len("range")] if range_name.endswith("range") else range_name
    data = options.get(f"{axis}data")
    return isinstance(data, str) and data.strip().lower().startswith("t")


def _range_end(value: Any, time_axis: bool, wildcard: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return wildcard
    if time_axis and not is_quoted(value):
        return quote(value)
    return format_word(value)


def format_range(name: str, value: Any, options: Mapping[str, Any], *, wildcard: str = "*") -> str:
    """`[lo:hi] extra...` for a normalized range; string ranges are tidied, not rebuilt."""

    time_axis = _is_time_axis(name, options)
    if not isinstance(value, list):
        return format_word(value)
    if not value:
        return ""
    first = value[0]
    if isinstance(first, str) and (first.strip().lower().startswith("r") or re.fullmatch(r"\s*\[\s*\]\s*", first)):
        return _join(value)
    if isinstance(first, str) and ":" in first and not is_quoted(first):
        text = first.strip()
        if not text.startswith("["):
            text = f"[{text}]"
        text = re.sub(r"\[\s*:", f"[{wildcard}:", text)
        text = re.sub(r":\s*\]", f":{wildcard}]", text)
        return " ".join([text, *(format_word(v) for v in value[1:])])
    lo = _range_end(first, time_axis, wildcard)
    hi = _range_end(value[1] if len(value) > 1 else None, time_axis, wildcard)
    return " ".join([f"[{lo}:{hi}]", *(format_word(v) for v in value[2:])])


def _emit_range(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    if value is False or value == "":
        return f"set {name} [*:*]\n"
    if value is True:
        return ""
    return f"set {name} {format_range(name, value, options)}\n"


# inline renderers


def _emit_curve_quoted(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    return f"{name} {quote(value)}"


def _emit_curve_value(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None or value is False:
        return ""
    return _join(value)


def _emit_curve_scalar(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    return f"{name} {_join(value)}"


def _emit_curve_flag(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None:
        return ""
    return name if value else f"no{name}"


def _emit_curve_flag_true(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    return name if value else ""


def _emit_curve_list(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None or value is False:
        return ""
    if value is True:
        return name
    if isinstance(value, list):
        return " ".join([name, *(format_word(v) for v in value)])
    return f"{name} {format_word(value)}"


def _emit_curve_comma(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None or value is False:
        return ""
    if isinstance(value, list):
        return ",".join(format_word(v) for v in value)
    return format_word(value)


def size_in_units(value: list[Any], target_unit: str) -> tuple[float, float]:
    """Convert `[w, h, unit]` (unit optional, default inches) to the terminal's own unit."""

    numbers = list(value)
    unit = "in"
    if numbers and isinstance(numbers[-1], str) and not _looks_numeric(numbers[-1]):
        unit = numbers.pop().strip().lower()
    if unit not in UNIT_PER_INCH:
        raise InvalidOptionValueError(f"size: unknown unit '{unit}' (known: {', '.join(sorted(UNIT_PER_INCH))})")
    if target_unit not in UNIT_PER_INCH:
        raise InvalidOptionValueError(f"size: terminal unit '{target_unit}' is not convertible")
    if not numbers or len(numbers) > 2:
        raise InvalidOptionValueError("size takes a width and an optional height")
    width = float(numbers[0])
    height = float(numbers[1]) if len(numbers) > 1 else width
    factor = UNIT_PER_INCH[target_unit] / UNIT_PER_INCH[unit]
    return width * factor, height * factor


def _looks_numeric(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


def _emit_curve_size(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None or value is False:
        return ""
    if not isinstance(value, list):
        return f"{name} {format_word(value)}"
    target = (context or {}).get("unit")
    if not target:
        return f"{name} {','.join(format_word(v) for v in value)}"
    width, height = size_in_units(value, target)
    if target in ("px", "char"):
        return f"{name} {int(round(width))},{int(round(height))}"
    if target == "pt":
        return f"{name} {width:g},{height:g}"
    return f"{name} {width:g}{target},{height:g}{target}"


def _emit_curve_range(name: str, value: Any, options: Mapping[str, Any], context: Mapping[str, Any] | None) -> str:
    if value is None or value is False:
        return ""
    return format_range(name, value, context or {}, wildcard="")


_RENDERERS: dict[OutputKind, Callable[[str, Any, Mapping[str, Any], Mapping[str, Any] | None], str]] = {
    OutputKind.DEFAULT: _emit_default,
    OutputKind.NO_MULTI: _emit_no_multi,
    OutputKind.NONE: _emit_none,
    OutputKind.QUOTED: _emit_quoted,
    OutputKind.QUOTED_NO_MULTI: _emit_quoted_no_multi,
    OutputKind.SCALAR: _emit_scalar,
    OutputKind.BOOLEAN: _emit_boolean,
    OutputKind.BOOL_OR_TIME: _emit_bool_or_time,
    OutputKind.LIST: _emit_list,
    OutputKind.QUOTED_LIST: _emit_quoted_list,
    OutputKind.COMMA_LIST: _emit_comma_list,
    OutputKind.PER_LINE: _emit_per_line,
    OutputKind.KEYED: _emit_keyed,
    OutputKind.KEYED_NO_MULTI: _emit_keyed_no_multi,
    OutputKind.INDEXED: _emit_indexed,
    OutputKind.INDEXED_OBJECT: _emit_indexed_object,
    OutputKind.INDEXED_LABEL: _emit_indexed_label,
    OutputKind.RANGE: _emit_range,
    OutputKind.CURVE_QUOTED: _emit_curve_quoted,
    OutputKind.CURVE_VALUE: _emit_curve_value,
    OutputKind.CURVE_SCALAR: _emit_curve_scalar,
    OutputKind.CURVE_FLAG: _emit_curve_flag,
    OutputKind.CURVE_FLAG_TRUE: _emit_curve_flag_true,
    OutputKind.CURVE_LIST: _emit_curve_list,
    OutputKind.CURVE_COMMA: _emit_curve_comma,
    OutputKind.CURVE_SIZE: _emit_curve_size,
    OutputKind.CURVE_RANGE: _emit_curve_range,
}
assert set(_RENDERERS) == set(OutputKind)
