from __future__ import annotations

from dataclasses import dataclass, field
import re

_NONPRINTABLE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x80-\xff]")
_WARNING_LINE = re.compile(r"^(?:[^\n]*?\bwarning:\s*(.*?)\s*)$\n?", re.M | re.I)

# Complaints gnuplot makes about the one-record placeholder data of a syntax
# check; they say nothing about the real data.
BENIGN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^.*empty [xyz]2? ?range.*$\n?", re.M | re.I),
    re.compile(r"^.*empty cb ?range.*$\n?", re.M | re.I),
    re.compile(r"^.*all points .*undefined.*$\n?", re.M | re.I),
    re.compile(r"^.*skipping data file with no valid points.*$\n?", re.M | re.I),
    re.compile(r"^.*no valid points.*$\n?", re.M | re.I),
    re.compile(r"^.*image grid must be at least \d+ ?x ?\d+.*$\n?", re.M | re.I),
    re.compile(r"^.*not enough .*points.*$\n?", re.M | re.I),
)


@dataclass
class Diagnostics:
    """What gnuplot printed between two checkpoints, split into warnings and everything else."""

    warnings: list[str] = field(default_factory=list)
    text: str = ""

    @property
    def ok(self) -> bool:
        return not self.text


def printable(text: str) -> str:
    """Replace control and high bytes (other than tab, newline and return) with '?'."""

    return _NONPRINTABLE.sub("?", text)


def filter_benign(text: str) -> str:
    """Drop the placeholder-data complaints a syntax check is expected to produce.

    A bare caret line left behind by a dropped complaint goes with it.
    """

    for pattern in BENIGN_PATTERNS:
        text = pattern.sub("", text)
    lines = [line for line in text.splitlines() if line.strip() and not re.fullmatch(r"\s*\^\s*", line)]
    if lines and all(re.match(r"\s*(\"-\"|'-'|plot|splot)(?:\s|$)", line) for line in lines):
        return ""
    return "\n".join(lines)


def parse_diagnostics(raw: str, *, benign: bool = False) -> Diagnostics:
    text = printable(raw.replace("\r\n", "\n"))
    warnings = _WARNING_LINE.findall(text)
    text = _WARNING_LINE.sub("", text)
    if benign:
        warnings = [w for w in warnings if filter_benign(w)]
        text = filter_benign(text)
    return Diagnostics(warnings=warnings, text=text.strip())
