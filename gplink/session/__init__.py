from gplink.session.diagnostics import Diagnostics, filter_benign, parse_diagnostics
from gplink.session.pipes import DiagnosticReader, GnuplotProcess
from gplink.session.session import PlotResult, Session, SessionState

__all__ = [
    "DiagnosticReader",
    "Diagnostics",
    "GnuplotProcess",
    "PlotResult",
    "Session",
    "SessionState",
    "filter_benign",
    "parse_diagnostics",
]
