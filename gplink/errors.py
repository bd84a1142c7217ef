from __future__ import annotations

from collections.abc import Iterable


class GplinkError(Exception):
    """Base class for every error raised by gplink."""


class SpecificationError(GplinkError, ValueError):
    """Raised for problems detectable from the call arguments alone, before any I/O."""


class UnknownOptionError(SpecificationError):
    def __init__(self, name: str, kind: str = "option") -> None:
        super().__init__(f"no {kind} found that matches '{name}'")
        self.name = name
        self.kind = kind


class AmbiguousOptionError(SpecificationError):
    def __init__(self, name: str, candidates: Iterable[str], kind: str = "option") -> None:
        self.name = name
        self.kind = kind
        self.candidates = tuple(sorted(candidates))
        super().__init__(f"ambiguous {kind} '{name}' could be one of {{ {', '.join(self.candidates)} }}")


class InvalidOptionValueError(SpecificationError):
    pass


class ConflictingOptionsError(SpecificationError):
    pass


class InvalidPlotStyleError(SpecificationError):
    def __init__(self, style: str) -> None:
        super().__init__(f"invalid plot style 'with {style}'")
        self.style = style


class StyleNotSupportedInModeError(SpecificationError):
    def __init__(self, style: str, mode: str) -> None:
        super().__init__(f"plot style 'with {style}' isn't valid in {mode} plots")
        self.style = style
        self.mode = mode


class ArityMismatchError(SpecificationError):
    def __init__(self, message: str, permitted: Iterable[int] = ()) -> None:
        super().__init__(message)
        self.permitted = tuple(permitted)


class ThreadMismatchError(SpecificationError):
    pass


class LegendCountMismatchError(SpecificationError):
    pass


class TooManyOptionSetsError(SpecificationError):
    pass


class NoDataError(SpecificationError):
    pass


class ProtocolError(GplinkError, RuntimeError):
    """Raised while talking to the gnuplot process."""


class StuckError(ProtocolError):
    pass


class SessionClosedError(ProtocolError):
    pass


class ExternalProcessError(ProtocolError):
    def __init__(self, message: str, *, diagnostics: str = "", command: str = "") -> None:
        text = message
        if diagnostics:
            text += f"\n{diagnostics}"
        if command:
            text += f"\n(while sending: {command.strip()[:400]!r})"
        super().__init__(text)
        self.diagnostics = diagnostics
        self.command = command


class DataError(SpecificationError):
    """Raised when a data column can't be turned into something gnuplot can read."""
