from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from gplink.errors import InvalidOptionValueError, UnknownOptionError
from gplink.options.abbrev import AbbreviationResolver


OptionSet = dict[str, Any]
Renderer = Callable[[str, Any, Mapping[str, Any], "Mapping[str, Any] | None"], str]
Normalizer = Callable[[Any, Any, Mapping[str, Any]], Any]


class InputKind(Enum):
    BOOLEAN = "b"
    NUMBER = "n"
    STRING = "s"
    ENUM = "e"
    LIST = "l"
    CUMULATIVE = "C"
    KEYED = "H"
    INDEXED = "N"
    TICS = "lt"
    CUSTOM = "code"


class OutputKind(Enum):
    # whole-line plot option forms
    DEFAULT = " "
    NO_MULTI = "nomulti"
    NONE = "-"
    QUOTED = "q"
    QUOTED_NO_MULTI = "qnm"
    SCALAR = "s"
    BOOLEAN = "b"
    BOOL_OR_TIME = "bt"
    LIST = "l"
    QUOTED_LIST = "ql"
    COMMA_LIST = ","
    PER_LINE = "1"
    KEYED = "H"
    KEYED_NO_MULTI = "HNM"
    INDEXED = "N"
    INDEXED_OBJECT = "NO"
    INDEXED_LABEL = "NL"
    RANGE = "range"
    # inline (curve/terminal/multiplot) forms
    CURVE_QUOTED = "cq"
    CURVE_VALUE = "cv"
    CURVE_SCALAR = "cs"
    CURVE_FLAG = "cf"
    CURVE_FLAG_TRUE = "cff"
    CURVE_LIST = "cl"
    CURVE_COMMA = "c,"
    CURVE_SIZE = "csize"
    CURVE_RANGE = "crange"


@dataclass(frozen=True)
class OptionPatch:
    """Result of a custom normalizer that also touches sibling keys of the same set."""

    value: Any = None
    updates: Mapping[str, Any] = field(default_factory=dict)
    removes: tuple[str, ...] = ()


@dataclass(frozen=True)
class OptionDescriptor:
    name: str
    kind: InputKind
    output: OutputKind | Renderer = OutputKind.DEFAULT
    follows: tuple[str, ...] = ()
    order: float | None = None
    doc: str = ""
    normalizer: Normalizer | None = None
    pattern: str | None = None

    def __post_init__(self) -> None:
        if self.kind is InputKind.CUSTOM and self.normalizer is None:
            raise ValueError(f"custom option '{self.name}' needs a normalizer")
        if self.kind is InputKind.ENUM and not self.pattern:
            raise ValueError(f"enumerated option '{self.name}' needs a pattern")

    @property
    def sort_key(self) -> float:
        return 999.0 if self.order is None else float(self.order)


class OptionSchema:
    """Registry of option descriptors plus the abbreviation resolver built from it."""

    def __init__(
        self,
        label: str,
        descriptors: Iterable[OptionDescriptor],
        *,
        aliases: Mapping[str, str] | None = None,
        inline: bool = False,
    ) -> None:
        self.label = label
        self.inline = inline
        self._descriptors: dict[str, OptionDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in self._descriptors:
                raise ValueError(f"duplicate {label} '{descriptor.name}'")
            self._descriptors[descriptor.name] = descriptor
        for alias, target in (aliases or {}).items():
            if target not in self._descriptors:
                raise ValueError(f"alias '{alias}' targets unknown {label} '{target}'")
        self._resolver = AbbreviationResolver(
            self._descriptors,
            aliases=aliases,
            indexed=[d.name for d in self._descriptors.values() if d.kind is InputKind.INDEXED],
            kind=label,
        )

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __getitem__(self, name: str) -> OptionDescriptor:
        try:
            return self._descriptors[name]
        except KeyError:
            raise UnknownOptionError(name, self.label) from None

    def names(self) -> list[str]:
        return sorted(self._descriptors)

    def descriptors(self) -> list[OptionDescriptor]:
        return [self._descriptors[name] for name in self.names()]

    def resolve(self, name: str) -> tuple[str, int | None]:
        return self._resolver.resolve(name)

    def accepts(self, name: str) -> bool:
        try:
            self.resolve(name)
        except UnknownOptionError:
            return False
        return True

    def normalize(self, canonical: str, raw: Any, current: Mapping[str, Any], index: int | None = None) -> Any:
        from gplink.options.parsers import normalize_value

        descriptor = self[canonical]
        return normalize_value(descriptor, current.get(canonical), raw, current, index)

    def parse(self, current: Mapping[str, Any] | None, *tokens: Any) -> OptionSet:
        """Apply option tokens on top of a copy of `current`; `current` itself is never touched."""

        result: OptionSet = copy.deepcopy(dict(current or {}))
        for key, raw in iter_option_pairs(tokens):
            canonical, index = self.resolve(key)
            outcome = self.normalize(canonical, raw, result, index)
            apply_outcome(result, canonical, outcome)
        return result

    def render(self, options: Mapping[str, Any], context: Mapping[str, Any] | None = None) -> str:
        from gplink.options.emitters import render_options

        return render_options(self, options, context)


def apply_outcome(target: OptionSet, canonical: str, outcome: Any) -> None:
    if isinstance(outcome, OptionPatch):
        target[canonical] = outcome.value
        for key, value in outcome.updates.items():
            target[key] = value
        for key in outcome.removes:
            target.pop(key, None)
        return
    target[canonical] = outcome


def iter_option_pairs(tokens: Iterable[Any]) -> Iterator[tuple[str, Any]]:
    """Flatten mappings, flat key/value lists and bare key/value tokens into pairs."""

    pending = list(tokens)
    i = 0
    while i < len(pending):
        token = pending[i]
        if isinstance(token, Mapping):
            yield from token.items()
            i += 1
            continue
        if isinstance(token, (list, tuple)):
            yield from iter_option_pairs(token)
            i += 1
            continue
        if token is None:
            i += 1
            continue
        if i + 1 >= len(pending):
            raise InvalidOptionValueError(f"option '{token}' is missing its value")
        yield token, pending[i + 1]
        i += 2
