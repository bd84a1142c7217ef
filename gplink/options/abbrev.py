from __future__ import annotations

from collections.abc import Iterable, Mapping
import re

from gplink.errors import AmbiguousOptionError, UnknownOptionError


_INDEX_SUFFIX = re.compile(r"(.*?[^\d\s])\s*(\d+)\s*")


class AbbreviationResolver:
    """Prefix -> canonical-name lookup, built once per option table.

    Every proper prefix of a name maps to all names sharing it; an exact name
    always maps only to itself, so canonical names resolve idempotently.
    """

    def __init__(
        self,
        names: Iterable[str],
        *,
        aliases: Mapping[str, str] | None = None,
        indexed: Iterable[str] = (),
        kind: str = "option",
    ) -> None:
        self._kind = kind
        self._indexed = frozenset(indexed)
        table: dict[str, list[str]] = {}
        for name in names:
            for end in range(1, len(name)):
                prefix = name[:end].lower()
                entry = table.setdefault(prefix, [])
                if entry and entry[0] == prefix:
                    continue
                entry.append(name)
            table[name.lower()] = [name]
        for alias, target in (aliases or {}).items():
            table[alias.lower()] = [target]
        self._table = table

    @property
    def kind(self) -> str:
        return self._kind

    def resolve(self, name: str) -> tuple[str, int | None]:
        if not isinstance(name, str):
            raise UnknownOptionError(repr(name), self._kind)
        text = name.strip().lower()
        match = _INDEX_SUFFIX.fullmatch(text)
        if match is not None and self._indexed:
            base = self._lookup_quiet(match.group(1))
            if base is not None and base in self._indexed:
                return base, int(match.group(2))
        return self.lookup(text, original=name), None

    def lookup(self, text: str, *, original: str | None = None) -> str:
        candidates = self._table.get(text.lower())
        if not candidates:
            raise UnknownOptionError(original if original is not None else text, self._kind)
        if len(candidates) > 1:
            raise AmbiguousOptionError(original if original is not None else text, candidates, self._kind)
        return candidates[0]

    def _lookup_quiet(self, text: str) -> str | None:
        candidates = self._table.get(text)
        if candidates and len(candidates) == 1:
            return candidates[0]
        return None
