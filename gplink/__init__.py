from gplink.api import (
    close,
    default_session,
    end_multi,
    fits,
    gpwin,
    image,
    lines,
    markup,
    multiplot,
    options,
    output,
    plot,
    plot3d,
    points,
    replot,
    reset,
    restart,
    splot,
    styles,
    terminfo,
)
from gplink.config import GnuplotConfig, load_config
from gplink.errors import (
    ExternalProcessError,
    GplinkError,
    ProtocolError,
    SessionClosedError,
    SpecificationError,
    StuckError,
)
from gplink.session import PlotResult, Session, SessionState

__all__ = [
    "ExternalProcessError",
    "GnuplotConfig",
    "GplinkError",
    "PlotResult",
    "ProtocolError",
    "Session",
    "SessionClosedError",
    "SessionState",
    "SpecificationError",
    "StuckError",
    "close",
    "default_session",
    "end_multi",
    "fits",
    "gpwin",
    "image",
    "lines",
    "load_config",
    "markup",
    "multiplot",
    "options",
    "output",
    "plot",
    "plot3d",
    "points",
    "replot",
    "reset",
    "restart",
    "splot",
    "styles",
    "terminfo",
]
