from __future__ import annotations

from collections.abc import Callable, Mapping
import re
from typing import Any

import numpy as np

from gplink.errors import InvalidOptionValueError
from gplink.options.schema import InputKind, OptionDescriptor


_INTEGER = re.compile(r"\s*-?\d+\s*")
_FALSE_WORDS = {"", "0", "false", "no", "off"}
_LEADING_INDEX = re.compile(r"\s*(\d+)(?:\s+(.*))?", re.S)
_RANGE_BOUND = r"""("[^"]*"|'[^']*'|[^:\]]*?)"""
_RANGE_TEXT = re.compile(rf"\s*\[\s*{_RANGE_BOUND}\s*:\s*{_RANGE_BOUND}\s*\]\s*(.*)", re.S)
_TICS_KEYS = (
    "axis",
    "border",
    "mirror",
    "in",
    "out",
    "scale",
    "rotate",
    "offset",
    "autofreq",
    "locations",
    "labels",
    "format",
    "font",
    "rangelimited",
    "textcolor",
)


def normalize_value(
    descriptor: OptionDescriptor,
    old: Any,
    raw: Any,
    current: Mapping[str, Any],
    index: int | None = None,
) -> Any:
    if index is not None and descriptor.kind is not InputKind.INDEXED:
        raise InvalidOptionValueError(f"{descriptor.name} does not take an index suffix")
    parser = _PARSERS[descriptor.kind]
    return parser(descriptor, old, _plain(raw), current, index)


def _plain(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


def is_false_word(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower() in _FALSE_WORDS


def _parse_boolean(descriptor: OptionDescriptor, old: Any, raw: Any, current: Mapping[str, Any], index: int | None) -> Any:
    if raw is None:
        return None
    if isinstance(raw, str):
        return not is_false_word(raw)
    return bool(raw)


def _parse_number(descriptor: OptionDescriptor, old: Any, raw: Any, current: Mapping[str, Any], index: int | None) -> Any:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float)):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        try:
            return int(text) if _INTEGER.fullmatch(text) else float(text)
        except ValueError:
            pass
    raise InvalidOptionValueError(f"{descriptor.name} must be a number, got {raw!r}")


def _parse_string(descriptor: OptionDescriptor, old: Any, raw: Any, current: Mapping[str, Any], index: int | None) -> Any:
    if raw is None:
        return None
    return str(raw)


def _parse_enum(descriptor: OptionDescriptor, old: Any, raw: Any, current: Mapping[str, Any], index: int | None) -> Any:
    if raw is None:
        return None
    text = str(raw).strip().lower()
    assert descriptor.pattern is not None
    if not re.fullmatch(descriptor.pattern, text):
        raise InvalidOptionValueError(
            f"{descriptor.name}: unknown value {raw!r} (must match {descriptor.pattern})"
        )
    return text


def _parse_list(descriptor: OptionDescriptor, old: Any, raw: Any, current: Mapping[str, Any], index: int | None) -> Any:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw != 0
    if isinstance(raw, str):
        if not raw.strip():
            return False
        if _INTEGER.fullmatch(raw):
            return int(raw) != 0
        return [raw]
    if isinstance(raw, Mapping):
        raise InvalidOptionValueError(f"{descriptor.name} takes a scalar or a list, not a mapping")
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return [raw]


def _range_bound(text: str) -> Any:
    if text in ("", "*"):
        return None
    try:
        return int(text) if _INTEGER.fullmatch(text) else float(text)
    except ValueError:
        return text


def range_normalizer(name: str) -> Callable[[Any, Any, Mapping[str, Any]], Any]:
    """Ranges take lists like any list option, but `"[lo:hi] extra"` text is split into its bounds.

    A rendered range therefore parses back to the value it was rendered from;
    `*` or a blank end is None.
    """

    descriptor = OptionDescriptor(name, InputKind.LIST)

    def normalizer(old: Any, raw: Any, current: Mapping[str, Any]) -> Any:
        if isinstance(raw, str):
            match = _RANGE_TEXT.fullmatch(raw)
            if match:
                lo, hi, rest = match.groups()
                return [_range_bound(lo), _range_bound(hi), *rest.split()]
        return _parse_list(descriptor, old, raw, current, None)

    return normalizer


def _parse_cumulative(descriptor: OptionDescriptor, old: Any, raw: Any, current: Mapping[str, Any], index: int | None) -> Any:
    if raw is None:
        return None
    if isinstance(raw, int):
        return bool(raw)
    if isinstance(raw, str) and not raw.strip():
        return False
    out = [list(entry) for entry in old] if isinstance(old, list) else []
    if isinstance(raw, (list, tuple)):
        out.append(list(raw))
    elif isinstance(raw, str):
        out.append(raw.split())
    else:
        raise InvalidOptionValueError(f"{descriptor.name} takes a list or a string, got {raw!r}")
    return out


def _parse_keyed(descriptor: OptionDescriptor, old: Any, raw: Any, current: Mapping[str, Any], index: int | None) -> Any:
    if raw is None:
        return None
    out = dict(old) if isinstance(old, dict) else {}
    if isinstance(raw, Mapping):
        pairs = list(raw.items())
    elif isinstance(raw, (list, tuple)):
        if len(raw) % 2:
            raise InvalidOptionValueError(f"{descriptor.name}: key/value list has odd length")
        pairs = list(zip(raw[0::2], raw[1::2]))
    elif isinstance(raw, str):
        words = raw.strip().split(None, 1)
        if not words:
            return None
        pairs = [(words[0], words[1] if len(words) > 1 else " ")]
    else:
        raise InvalidOptionValueError(f"{descriptor.name} takes a mapping, a list or a string, got {raw!r}")

    for key, value in pairs:
        if value is None or value is False:
            out.pop(str(key), None)
            continue
        out[str(key)] = _plain(value)
    return out


def _parse_indexed(descriptor: OptionDescriptor, old: Any, raw: Any, current: Mapping[str, Any], index: int | None) -> Any:
    out: dict[int, Any] = dict(old) if isinstance(old, dict) else {}
    if index is not None:
        if raw is None or raw is False:
            out[index] = None
        else:
            out[index] = _indexed_entry(descriptor, raw)
        return out
    if raw is None:
        return None

    if isinstance(raw, (list, tuple)) and raw and all(isinstance(e, (list, tuple)) for e in raw):
        return {i + 1: _indexed_entry(descriptor, list(entry)) for i, entry in enumerate(raw)}

    slot: int | None = None
    entry: Any
    if isinstance(raw, (list, tuple)):
        items = list(raw)
        if items and (isinstance(items[0], int) and not isinstance(items[0], bool)):
            slot = items.pop(0)
        elif items and isinstance(items[0], str) and _INTEGER.fullmatch(items[0]):
            slot = int(items.pop(0))
        entry = items
    elif isinstance(raw, str):
        match = _LEADING_INDEX.fullmatch(raw)
        if match is not None:
            slot = int(match.group(1))
            entry = [match.group(2)] if match.group(2) else []
        else:
            entry = [raw]
    else:
        entry = [raw]

    if slot is None:
        slot = max(out) + 1 if out else 1
    out[slot] = _indexed_entry(descriptor, entry) if entry else None
    return out


def _indexed_entry(descriptor: OptionDescriptor, raw: Any) -> list[Any]:
    if isinstance(raw, (list, tuple)):
        return [_plain(e) for e in raw]
    if isinstance(raw, str):
        return [raw]
    raise InvalidOptionValueError(f"{descriptor.name} entries must be lists or strings, got {raw!r}")


def _parse_tics(descriptor: OptionDescriptor, old: Any, raw: Any, current: Mapping[str, Any], index: int | None) -> Any:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return [raw] if raw else False
    if isinstance(raw, str):
        return [raw] if raw.strip() else False
    if isinstance(raw, (list, tuple)):
        return list(raw)
    if not isinstance(raw, Mapping):
        raise InvalidOptionValueError(f"{descriptor.name} takes a mapping, a list or a string, got {raw!r}")

    params = dict(raw)
    unknown = sorted(set(params) - set(_TICS_KEYS))
    if unknown:
        raise InvalidOptionValueError(f"{descriptor.name}: unknown tics field(s) {', '.join(unknown)}")
    words: list[Any] = []
    for flag in ("axis", "border"):
        if params.get(flag):
            words.append(flag)
    if "mirror" in params:
        words.append("mirror" if params["mirror"] else "nomirror")
    if params.get("in"):
        words.append("in")
    if params.get("out"):
        words.append("out")
    if params.get("scale") is not None:
        words.append("scale " + _comma_join(params["scale"]))
    if "rotate" in params:
        rotate = params["rotate"]
        if rotate is False or rotate == 0:
            words.append("norotate")
        elif rotate is True:
            words.append("rotate")
        else:
            words.append(f"rotate by {rotate}")
    if params.get("offset") is not None:
        words.append("offset " + _comma_join(params["offset"]))
    if params.get("autofreq"):
        words.append("autofreq")
    if params.get("locations") is not None:
        words.append(_comma_join(params["locations"]))
    if params.get("labels") is not None:
        labels = params["labels"]
        if not isinstance(labels, (list, tuple)):
            raise InvalidOptionValueError(f"{descriptor.name}: labels must be a list of (label, position) pairs")
        words.append("(" + ", ".join(_tic_label(item) for item in labels) + ")")
    if params.get("format") is not None:
        words.append(f'format "{params["format"]}"')
    if params.get("font") is not None:
        words.append(f'font "{params["font"]}"')
    if "rangelimited" in params:
        words.append("rangelimited" if params["rangelimited"] else "norangelimited")
    if params.get("textcolor") is not None:
        words.append(f"textcolor {params['textcolor']}")
    return words if words else True


def _tic_label(item: Any) -> str:
    if isinstance(item, (list, tuple)):
        if not item:
            raise InvalidOptionValueError("empty tic label")
        if len(item) == 1:
            return str(item[0])
        label, *rest = item
        return " ".join([f'"{label}"', *(str(v) for v in rest)])
    return str(item)


def _comma_join(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def _parse_custom(descriptor: OptionDescriptor, old: Any, raw: Any, current: Mapping[str, Any], index: int | None) -> Any:
    assert descriptor.normalizer is not None
    return descriptor.normalizer(old, raw, current)


_PARSERS: dict[InputKind, Callable[..., Any]] = {
    InputKind.BOOLEAN: _parse_boolean,
    InputKind.NUMBER: _parse_number,
    InputKind.STRING: _parse_string,
    InputKind.ENUM: _parse_enum,
    InputKind.LIST: _parse_list,
    InputKind.CUMULATIVE: _parse_cumulative,
    InputKind.KEYED: _parse_keyed,
    InputKind.INDEXED: _parse_indexed,
    InputKind.TICS: _parse_tics,
    InputKind.CUSTOM: _parse_custom,
}
assert set(_PARSERS) == set(InputKind)
