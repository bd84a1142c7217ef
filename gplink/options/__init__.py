from gplink.options.abbrev import AbbreviationResolver
from gplink.options.curve_options import CURVE_OPTIONS, DATA_FENCE
from gplink.options.plot_options import MULTIPLOT_OPTIONS, PLOT_OPTIONS
from gplink.options.schema import InputKind, OptionDescriptor, OptionPatch, OptionSchema, OutputKind
from gplink.options.terminals import TERMINALS, TerminalSpec, resolve_terminal, terminfo

__all__ = [
    "AbbreviationResolver",
    "CURVE_OPTIONS",
    "DATA_FENCE",
    "InputKind",
    "MULTIPLOT_OPTIONS",
    "OptionDescriptor",
    "OptionPatch",
    "OptionSchema",
    "OutputKind",
    "PLOT_OPTIONS",
    "TERMINALS",
    "TerminalSpec",
    "resolve_terminal",
    "terminfo",
]
