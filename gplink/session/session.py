from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
import copy
from dataclasses import dataclass, field
import enum
import logging
import re
import sys
from typing import Any, TextIO
import uuid

from gplink.adapters.normalize import is_data_token
from gplink.chunker import chunk_curves, split_plot_arguments
from gplink.compile.command import CompiledPlot, compile_plot, syntax_options
from gplink.config import GnuplotConfig, gnuplot_features, load_config
from gplink.errors import (
    ConflictingOptionsError,
    ExternalProcessError,
    NoDataError,
    SessionClosedError,
    StuckError,
)
from gplink.options.plot_options import MULTIPLOT_OPTIONS, PLOT_OPTIONS, render_plot_options
from gplink.options.terminals import split_terminal_options, terminal_schema
from gplink.session.diagnostics import parse_diagnostics, printable
from gplink.session.pipes import GnuplotProcess
from gplink.styles import style_catalogue

LOGGER = logging.getLogger(__name__)

MAIN = "main"
SYNTAX = "syntax"
MIN_BINARY_VERSION = 4.4
_VERSION = re.compile(rb"Version\s+(\S+)\s+patchlevel", re.I)
# Survive reset() along with the device.
_DEVICE_OPTIONS = ("terminal", "output", "termoption", "multiplot")

Launcher = Callable[[Sequence[str]], GnuplotProcess]


class SessionState(enum.Enum):
    UNSTARTED = "unstarted"
    RUNNING = "running"
    STUCK = "stuck"
    TERMINATED = "terminated"


@dataclass
class PlotResult:
    """Outcome of one draw: gnuplot's warnings and the plot command that was sent."""

    warnings: list[str] = field(default_factory=list)
    command: str = ""


@dataclass
class _LastPlot:
    args: list[Any]
    options: dict[str, Any]


def _strip_keywords(kwargs: Mapping[str, Any]) -> dict[str, Any]:
    return {(k[:-1] if k.endswith("_") else k): v for k, v in kwargs.items()}


def _terminal_name(options: Mapping[str, Any]) -> str | None:
    words = str(options.get("terminal") or "").split()
    return words[0] if words else None


class Session:
    """One gnuplot process (plus a syntax-check twin) and the plot options that persist across draws.

    Every public call blocks until gnuplot acknowledges it at a checkpoint or
    the read times out; a timeout leaves the session STUCK until `restart()`.
    """

    def __init__(
        self,
        terminal: str | None = None,
        *terminal_options: Any,
        config: GnuplotConfig | None = None,
        launcher: Launcher | None = None,
        stdout: TextIO | None = None,
        **options: Any,
    ) -> None:
        self.config = config if config is not None else load_config()
        self._launcher: Launcher = launcher if launcher is not None else GnuplotProcess
        self._stdout = stdout
        self._processes: dict[str, GnuplotProcess] = {}
        self._options: dict[str, Any] = {}
        self._token = uuid.uuid4().hex[:8]
        self._serial = 0
        self._wait: float | None = None
        self._dumping = False
        self._last_plot: _LastPlot | None = None
        self.state = SessionState.UNSTARTED
        self.gnuplot_version: str | None = None
        self.early_gnuplot = False
        self.last_command = ""

        terminal_kwargs: dict[str, Any] = {}
        plot_kwargs: dict[str, Any] = {}
        schema = terminal_schema(terminal) if terminal else None
        for key, value in _strip_keywords(options).items():
            if schema is not None and schema.accepts(key):
                terminal_kwargs[key] = value
            else:
                plot_kwargs[key] = value
        if plot_kwargs:
            self._options = PLOT_OPTIONS.parse(self._options, plot_kwargs)
        if terminal:
            self.output(terminal, *terminal_options, **terminal_kwargs)
        self._start()

    # lifecycle

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def checking_syntax(self) -> bool:
        return SYNTAX in self._processes

    def _command_line(self) -> list[str]:
        argv = [self.config.executable]
        if self.config.persist and "persist" in gnuplot_features(self.config.executable):
            argv.append("--persist")
        return argv

    def _start(self) -> None:
        self._options["multiplot"] = False
        self._dumping = bool(self._options.get("dump"))
        if self._dumping:
            LOGGER.warning("gnuplot commands are being dumped to stdout")
            self.state = SessionState.RUNNING
            return
        roles = (MAIN, SYNTAX) if self.config.check_syntax else (MAIN,)
        for role in roles:
            self._processes[role] = self._launcher(self._command_line())
            self._probe_version(role)
            self._checkpoint(role, strict=False)
        self.state = SessionState.RUNNING

    def _probe_version(self, role: str) -> None:
        process = self._processes[role]
        process.write(b"show version\n")
        try:
            match = process.read_match(_VERSION, self.config.startup_timeout)
        except StuckError:
            LOGGER.warning(
                "gnuplot didn't report its version within %gs; carrying on anyway", self.config.startup_timeout
            )
            return
        if role != MAIN:
            return
        self.gnuplot_version = match.group(1).decode("ascii", "replace")
        try:
            early = float(self.gnuplot_version) < MIN_BINARY_VERSION
        except ValueError:
            early = False
        if early:
            LOGGER.warning(
                "gnuplot %s is older than %s; data transfer defaults to ASCII", self.gnuplot_version, MIN_BINARY_VERSION
            )
        self.early_gnuplot = early

    def _stop_all(self, *, graceful: bool = True) -> None:
        processes, self._processes = self._processes, {}
        for role, process in processes.items():
            status = process.stop(graceful=graceful)
            LOGGER.debug("%s gnuplot exited with status %s", role, status)

    def _require_running(self) -> None:
        if self.state is SessionState.TERMINATED:
            raise SessionClosedError("this gnuplot session has been closed")
        if self.state is SessionState.STUCK:
            raise StuckError("the gnuplot session is stuck; call restart() before using it again")
        if self.state is SessionState.UNSTARTED:
            self._start()

    def restart(self) -> "Session":
        """Kill gnuplot (politely first) and start a fresh process; plot state and replot history survive."""

        if self.state is SessionState.TERMINATED:
            raise SessionClosedError("can't restart a closed gnuplot session")
        self._stop_all(graceful=self.state is SessionState.RUNNING)
        self._start()
        return self

    def close(self) -> None:
        if self.state is SessionState.TERMINATED:
            return
        self._stop_all(graceful=self.state is SessionState.RUNNING)
        self.state = SessionState.TERMINATED

    # wire

    def _send(self, role: str, data: str | bytes, *, payload: bool = False) -> None:
        raw = data.encode("utf-8") if isinstance(data, str) else data
        if not raw:
            return
        if self._options.get("tee"):
            if payload:
                LOGGER.info("sent %d bytes of data to gnuplot (%s)", len(raw), role)
            else:
                LOGGER.info("sent to gnuplot (%s):\n%s", role, printable(raw.decode("latin-1")))
        if self._dumping:
            if role == MAIN:
                (self._stdout or sys.stdout).write(printable(raw.decode("latin-1")))
            return
        try:
            self._processes[role].write(raw)
        except ExternalProcessError:
            self._stop_all(graceful=False)
            self.state = SessionState.STUCK
            raise

    def _checkpoint(self, role: str, *, strict: bool = True, benign: bool = False, command: str = "") -> list[str]:
        if self._dumping:
            return []
        self._serial += 1
        marker = f"xxxxxxx Synchronizing gnuplot i/o {self._token} {self._serial} xxxxxxx"
        self._send(role, f'\n\nprint "{marker}"\n')
        timeout = self._wait or self.config.timeout
        try:
            raw = self._processes[role].read_until(marker.encode("ascii"), timeout)
        except StuckError as exc:
            self.state = SessionState.STUCK
            raise StuckError(
                f"the {role} gnuplot process didn't respond for {timeout:g} seconds; "
                "call restart(), or raise the 'wait' terminal option for slow terminals"
            ) from exc
        except ExternalProcessError:
            self._stop_all(graceful=False)
            self.state = SessionState.STUCK
            raise
        diagnostics = parse_diagnostics(raw.decode("utf-8", "replace"), benign=benign)
        LOGGER.debug("checkpoint %d (%s): %r", self._serial, role, raw)
        if not strict:
            return diagnostics.warnings
        if not diagnostics.ok:
            raise ExternalProcessError(
                f"gnuplot ({role}) reported an error", diagnostics=diagnostics.text, command=command
            )
        if role == MAIN and not self._options.get("silent"):
            for warning in diagnostics.warnings:
                LOGGER.warning("gnuplot: %s", warning)
        return diagnostics.warnings

    def _execute(self, compiled: CompiledPlot) -> list[str]:
        if compiled.test_command is not None and self.checking_syntax:
            self._send(SYNTAX, (compiled.test_preamble or "") + compiled.test_command)
            for payload in compiled.test_payloads:
                self._send(SYNTAX, payload, payload=True)
            self._checkpoint(SYNTAX, benign=True, command=compiled.test_command)

        warnings = []
        self._send(MAIN, compiled.preamble)
        warnings += self._checkpoint(MAIN, command=compiled.preamble)
        self._send(MAIN, compiled.command)
        for payload in compiled.payloads:
            self._send(MAIN, payload, payload=True)
        warnings += self._checkpoint(MAIN, command=compiled.command)

        if self.checking_syntax:
            self._send(SYNTAX, compiled.cleanup)
            self._checkpoint(SYNTAX, command=compiled.cleanup)
        self._send(MAIN, compiled.cleanup)
        warnings += self._checkpoint(MAIN, command=compiled.cleanup)
        return warnings

    def _command(self, text: str) -> list[str]:
        """Send one command to both processes; only the plotting process's warnings are returned."""

        if self.checking_syntax:
            self._send(SYNTAX, text)
            self._checkpoint(SYNTAX, command=text)
        self._send(MAIN, text)
        return self._checkpoint(MAIN, command=text)

    # options and devices

    def options(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        """Merge plot options into the session (and into the replot history); returns a copy of the result."""

        tokens = [*args, _strip_keywords(kwargs)]
        updated = PLOT_OPTIONS.parse(self._options, *tokens)
        if self._last_plot is not None:
            self._last_plot.options = PLOT_OPTIONS.parse(self._last_plot.options, *tokens)
        old_terminal = _terminal_name(self._options)
        self._options = updated
        if self.state is SessionState.RUNNING and (
            bool(updated.get("dump")) != self._dumping or _terminal_name(updated) != old_terminal
        ):
            self.restart()
        return copy.deepcopy(self._options)

    def output(self, terminal: str, *args: Any, **kwargs: Any) -> "Session":
        """Select the output device: a terminal name plus that terminal's options."""

        if self._options.get("multiplot"):
            raise ConflictingOptionsError("can't change the output device while in multiplot mode")
        spec, line, leftovers = split_terminal_options(terminal, *args, _strip_keywords(kwargs))
        old_terminal = _terminal_name(self._options)
        self._options["terminal"] = line
        if leftovers.get("output") is not None:
            self._options["output"] = leftovers["output"]
        else:
            self._options.pop("output", None)
        self._wait = leftovers.get("wait")
        if self.state is SessionState.RUNNING and spec.name != old_terminal:
            self.restart()
        return self

    def reset(self) -> "Session":
        """Forget every plot option except the device, and reset gnuplot itself."""

        self._require_running()
        self._options = {k: v for k, v in self._options.items() if k in _DEVICE_OPTIONS}
        self._command("reset\n")
        self._last_plot = None
        return self

    # drawing

    def _draw(
        self,
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
        *,
        overrides: Mapping[str, Any] | None = None,
        replotting: bool = False,
        ephemeral: bool = False,
    ) -> PlotResult:
        self._require_running()
        plot_tokens, curve_args = split_plot_arguments(args, _strip_keywords(kwargs))

        if replotting:
            if self._last_plot is None:
                raise NoDataError("nothing to replot; plot something first")
            base = copy.deepcopy(self._last_plot.options)
            for key in _DEVICE_OPTIONS:
                if key in self._options:
                    base[key] = copy.deepcopy(self._options[key])
                else:
                    base.pop(key, None)
            separator = [{}] if curve_args and is_data_token(curve_args[0]) else []
            curve_args = [*self._last_plot.args, *separator, *curve_args]
        else:
            base = copy.deepcopy(self._options)
        if overrides:
            base.update(copy.deepcopy(dict(overrides)))

        options = PLOT_OPTIONS.parse(base, *plot_tokens)
        chunked = chunk_curves(curve_args, plot_options=options, three_d=bool(options.get("3d")))
        compiled = compile_plot(
            options, chunked, early_gnuplot=self.early_gnuplot, check_syntax=self.checking_syntax
        )
        if not ephemeral:
            self._last_plot = _LastPlot(list(curve_args), copy.deepcopy(options))

        self.last_command = compiled.script
        warnings = self._execute(compiled)
        return PlotResult(warnings=warnings, command=compiled.command)

    def plot(self, *args: Any, **kwargs: Any) -> PlotResult:
        """Draw a new plot from curve options and data columns.

        Arguments are read left to right: option mappings (or bare name/value
        pairs) apply to the data columns that follow them; each run of data
        columns is one curve clause, threaded into several curves when the
        columns carry extra axes. Keyword arguments are plot options for this
        draw only.
        """

        return self._draw(args, kwargs)

    def plot3d(self, *args: Any, **kwargs: Any) -> PlotResult:
        return self._draw(args, kwargs, overrides={"3d": True})

    splot = plot3d

    def lines(self, *args: Any, **kwargs: Any) -> PlotResult:
        return self._draw(args, kwargs, overrides={"globalwith": ["lines"]})

    def points(self, *args: Any, **kwargs: Any) -> PlotResult:
        return self._draw(args, kwargs, overrides={"globalwith": ["points"]})

    def image(self, *args: Any, **kwargs: Any) -> PlotResult:
        return self._draw(args, kwargs, overrides={"globalwith": ["image"]})

    def fits(self, *args: Any, **kwargs: Any) -> PlotResult:
        return self._draw(args, kwargs, overrides={"globalwith": ["fits"]})

    def replot(self, *args: Any, **kwargs: Any) -> PlotResult:
        """Redraw the last plot with extra curves or options appended; they stick for later replots."""

        return self._draw(args, kwargs, replotting=True)

    def markup(self, *args: Any, **kwargs: Any) -> PlotResult:
        """Like `replot`, but the additions are drawn once and not remembered."""

        return self._draw(args, kwargs, replotting=True, ephemeral=True)

    # multiplot

    def multiplot(self, *args: Any, **kwargs: Any) -> "Session":
        self._require_running()
        if self._options.get("multiplot"):
            LOGGER.warning("already in multiplot mode; ending it first")
            self.end_multi()
        settings = MULTIPLOT_OPTIONS.parse({}, *args, _strip_keywords(kwargs))
        command = f"set multiplot {MULTIPLOT_OPTIONS.render(settings)}".rstrip() + "\n"
        device = {k: self._options[k] for k in ("terminal", "output", "termoption") if k in self._options}
        preamble = render_plot_options(device)

        if self.checking_syntax:
            self._send(SYNTAX, render_plot_options(syntax_options({})) + command)
            self._checkpoint(SYNTAX, command=command)
        self._send(MAIN, preamble + command)
        self._checkpoint(MAIN, command=command)
        self.last_command = preamble + command
        self._options["multiplot"] = True
        return self

    def end_multi(self) -> "Session":
        if not self._options.get("multiplot"):
            raise ConflictingOptionsError("end_multi: not in multiplot mode")
        self._require_running()
        self._command("unset multiplot\n")
        self._options["multiplot"] = False
        return self

    # queries

    def styles(self) -> str:
        return style_catalogue()

    @property
    def replottable(self) -> bool:
        return self._last_plot is not None
