from __future__ import annotations

from typing import Any

from gplink.options.terminals import terminfo as _terminfo
from gplink.session.session import PlotResult, Session, SessionState
from gplink.styles import style_catalogue

_default: Session | None = None


def gpwin(terminal: str | None = None, *terminal_options: Any, **options: Any) -> Session:
    """A new, independent gnuplot session."""

    return Session(terminal, *terminal_options, **options)


def default_session() -> Session:
    """The module-level session the plain functions draw on, started on first use."""

    global _default
    if _default is None or _default.state is SessionState.TERMINATED:
        _default = Session()
    return _default


def plot(*args: Any, **kwargs: Any) -> PlotResult:
    return default_session().plot(*args, **kwargs)


def plot3d(*args: Any, **kwargs: Any) -> PlotResult:
    return default_session().plot3d(*args, **kwargs)


splot = plot3d


def lines(*args: Any, **kwargs: Any) -> PlotResult:
    return default_session().lines(*args, **kwargs)


def points(*args: Any, **kwargs: Any) -> PlotResult:
    return default_session().points(*args, **kwargs)


def image(*args: Any, **kwargs: Any) -> PlotResult:
    return default_session().image(*args, **kwargs)


def fits(*args: Any, **kwargs: Any) -> PlotResult:
    return default_session().fits(*args, **kwargs)


def replot(*args: Any, **kwargs: Any) -> PlotResult:
    return default_session().replot(*args, **kwargs)


def markup(*args: Any, **kwargs: Any) -> PlotResult:
    return default_session().markup(*args, **kwargs)


def options(*args: Any, **kwargs: Any) -> dict[str, Any]:
    return default_session().options(*args, **kwargs)


def output(terminal: str, *args: Any, **kwargs: Any) -> Session:
    return default_session().output(terminal, *args, **kwargs)


def reset() -> Session:
    return default_session().reset()


def restart() -> Session:
    return default_session().restart()


def multiplot(*args: Any, **kwargs: Any) -> Session:
    return default_session().multiplot(*args, **kwargs)


def end_multi() -> Session:
    return default_session().end_multi()


def close() -> None:
    """Close the default session; the next call starts a fresh one."""

    global _default
    if _default is not None:
        _default.close()
        _default = None


def styles() -> str:
    return style_catalogue()


def terminfo(name: str | None = None) -> str:
    return _terminfo(name)
