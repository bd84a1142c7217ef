from __future__ import annotations

import io
import os
import re
import unittest

import numpy as np

from gplink.config import GnuplotConfig
from gplink.errors import (
    ConflictingOptionsError,
    ExternalProcessError,
    NoDataError,
    SessionClosedError,
    StuckError,
)
from gplink.session import Session, SessionState

BANNER = b"\n\tG N U P L O T\n\tVersion 5.4 patchlevel 2    last modified 2021-06-01\n"


class FakeGnuplot:
    """Scripted stand-in for a gnuplot child: records what it is sent, replays queued replies."""

    def __init__(self, argv, banner: bytes = BANNER) -> None:
        self.argv = list(argv)
        self.banner = banner
        self.sent: list[bytes] = []
        self.replies: list[bytes | Exception] = []
        self.stopped: bool | None = None
        self.broken: Exception | None = None

    def write(self, data: bytes) -> None:
        if self.broken is not None:
            raise self.broken
        self.sent.append(data)

    def read_match(self, pattern: re.Pattern[bytes], timeout: float) -> re.Match[bytes]:
        match = pattern.search(self.banner)
        if match is None:
            raise StuckError("no banner")
        return match

    def read_until(self, marker: bytes, timeout: float) -> bytes:
        if marker not in self.sent[-1]:
            raise AssertionError("checkpoint read before its marker was sent")
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return b""

    def stop(self, *, graceful: bool = True) -> int:
        self.stopped = graceful
        return 0

    @property
    def text(self) -> str:
        return b"".join(self.sent).decode("latin-1")


class FakeLauncher:
    def __init__(self, banner: bytes = BANNER) -> None:
        self.banner = banner
        self.processes: list[FakeGnuplot] = []

    def __call__(self, argv) -> FakeGnuplot:
        process = FakeGnuplot(argv, self.banner)
        self.processes.append(process)
        return process


def _session(launcher: FakeLauncher | None = None, **kwargs) -> tuple[Session, FakeLauncher]:
    launcher = launcher or FakeLauncher()
    session = Session(config=GnuplotConfig(persist=False), launcher=launcher, **kwargs)
    return session, launcher


class SessionStartupTests(unittest.TestCase):
    def test_starts_a_plotting_and_a_syntax_process(self) -> None:
        session, launcher = _session()
        self.assertIs(session.state, SessionState.RUNNING)
        self.assertEqual(len(launcher.processes), 2)
        self.assertTrue(session.checking_syntax)
        self.assertEqual(session.gnuplot_version, "5.4")
        self.assertFalse(session.early_gnuplot)
        main = launcher.processes[0]
        self.assertEqual(main.argv, ["gnuplot"])
        self.assertTrue(main.sent[0].startswith(b"show version"))
        self.assertIn("Synchronizing gnuplot i/o", main.text)

    def test_syntax_check_can_be_disabled(self) -> None:
        launcher = FakeLauncher()
        session = Session(config=GnuplotConfig(persist=False, check_syntax=False), launcher=launcher)
        self.assertEqual(len(launcher.processes), 1)
        self.assertFalse(session.checking_syntax)

    def test_old_gnuplot_falls_back_to_text(self) -> None:
        launcher = FakeLauncher(banner=b"Version 4.2 patchlevel 6\n")
        with self.assertLogs("gplink.session.session", "WARNING"):
            session, _ = _session(launcher)
        self.assertTrue(session.early_gnuplot)
        result = session.plot(np.arange(3.0))
        self.assertNotIn("binary", result.command)

    def test_missing_banner_only_warns(self) -> None:
        launcher = FakeLauncher(banner=b"")
        with self.assertLogs("gplink.session.session", "WARNING"):
            session, _ = _session(launcher)
        self.assertIs(session.state, SessionState.RUNNING)
        self.assertIsNone(session.gnuplot_version)

    def test_terminal_keywords_go_to_the_device(self) -> None:
        session, launcher = _session(terminal="png", output="a.png", title="t")
        session.plot(np.arange(3.0))
        main = launcher.processes[0].text
        self.assertIn("set terminal png\n", main)
        self.assertIn('set output "a.png"\n', main)
        self.assertIn('set title "t"\n', main)


class SessionPlotTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session, launcher = _session()
        self.main, self.syntax = launcher.processes
        self.launcher = launcher

    def test_plot_goes_to_both_processes(self) -> None:
        result = self.session.plot(np.array([0.0, 1.0, 2.0]), np.array([5.0, 6.0, 7.0]))
        self.assertEqual(result.warnings, [])
        self.assertTrue(result.command.startswith("plot '-' binary record=(3)"))
        payload = np.array([[0.0, 5.0], [1.0, 6.0], [2.0, 7.0]]).tobytes()
        self.assertIn(payload, self.main.sent)
        self.assertNotIn(payload, self.syntax.sent)
        self.assertIn("record=(1)", self.syntax.text)
        self.assertIn("set terminal dumb\n", self.syntax.text)
        self.assertIn(f'set output "{os.devnull}"', self.syntax.text)
        self.assertIn("set view 60,30,1.0,1.0\n", self.main.text)

    def test_failed_syntax_check_never_reaches_the_plotting_process(self) -> None:
        self.syntax.replies.append(b"plot '-' with wiggles\n     ^\n         line 0: unrecognized plot type\n")
        with self.assertRaises(ExternalProcessError) as ctx:
            self.session.plot(np.arange(3.0), {"xlabel": "x"})
        self.assertIn("unrecognized plot type", ctx.exception.diagnostics)
        self.assertNotIn("plot '-'", self.main.text)
        self.assertIs(self.session.state, SessionState.RUNNING)

    def test_plotting_process_warnings_are_returned(self) -> None:
        self.main.replies.extend([b"", b"         warning: Skipping data file with no valid points\n"])
        with self.assertLogs("gplink.session.session", "WARNING") as logs:
            result = self.session.plot(np.arange(3.0))
        self.assertEqual(result.warnings, ["Skipping data file with no valid points"])
        self.assertEqual(len(logs.output), 1)

    def test_syntax_check_warnings_are_not_logged(self) -> None:
        self.syntax.replies.append(b"         warning: odd\n")
        with self.assertNoLogs("gplink.session.session", "WARNING"):
            result = self.session.plot(np.arange(3.0))
        self.assertEqual(result.warnings, [])

    def test_silent_keeps_warnings_out_of_the_log(self) -> None:
        self.session.options(silent=1)
        self.main.replies.extend([b"", b"         warning: odd\n"])
        result = self.session.plot(np.arange(3.0))
        self.assertEqual(result.warnings, ["odd"])

    def test_plot_keywords_are_per_draw(self) -> None:
        self.session.plot(np.arange(3.0), title="once")
        self.assertIn('set title "once"\n', self.main.text)
        self.assertNotIn("title", self.session.options())

    def test_style_shortcuts(self) -> None:
        self.assertIn("with points", self.session.points(np.arange(3.0)).command)
        self.assertIn("with image", self.session.image(np.zeros((2, 2))).command)
        self.assertTrue(self.session.plot3d(np.arange(3.0)).command.startswith("splot "))
        self.assertIn("with lines", self.session.lines(np.arange(3.0)).command)

    def test_tee_logs_the_command_stream(self) -> None:
        self.session.options(tee=1)
        with self.assertLogs("gplink.session.session", "INFO") as logs:
            self.session.plot(np.arange(3.0))
        self.assertTrue(any("bytes of data" in line for line in logs.output))
        self.assertEqual(self.session.last_command.count("[ 48 bytes of binary data ]"), 1)


class ReplotTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session, launcher = _session()
        self.main = launcher.processes[0]

    def test_nothing_to_replot(self) -> None:
        self.assertFalse(self.session.replottable)
        with self.assertRaises(NoDataError):
            self.session.replot()

    def test_replot_appends_curves_that_stick(self) -> None:
        self.session.plot({"legend": "a"}, np.arange(3.0))
        result = self.session.replot({"legend": "b"}, np.arange(4.0))
        self.assertEqual(result.command.count("'-' binary"), 2)
        self.assertIn('title "a"', result.command)
        self.assertIn('title "b"', result.command)
        self.assertEqual(self.session.replot().command.count("'-' binary"), 2)

    def test_bare_data_is_a_new_curve(self) -> None:
        self.session.plot(np.arange(3.0))
        result = self.session.replot(np.arange(5.0))
        self.assertIn("record=(3)", result.command)
        self.assertIn("record=(5)", result.command)

    def test_markup_is_drawn_once(self) -> None:
        self.session.plot(np.arange(3.0))
        self.assertEqual(self.session.markup(np.arange(4.0)).command.count("'-' binary"), 2)
        self.assertEqual(self.session.replot().command.count("'-' binary"), 1)

    def test_replot_options_persist(self) -> None:
        self.session.plot(np.arange(3.0))
        self.session.replot(title="later")
        self.main.sent.clear()
        self.session.replot()
        self.assertIn('set title "later"\n', self.main.text)

    def test_session_options_reach_the_replot_history(self) -> None:
        self.session.plot(np.arange(3.0))
        self.session.options(xlabel="x")
        self.main.sent.clear()
        self.session.replot()
        self.assertIn('set xlabel "x"\n', self.main.text)

    def test_reset_forgets_options_and_history(self) -> None:
        self.session.options(title="t")
        self.session.plot(np.arange(3.0))
        self.session.reset()
        self.assertIn("reset\n", self.main.text)
        self.assertFalse(self.session.replottable)
        self.assertNotIn("title", self.session.options())


class DeviceTests(unittest.TestCase):
    def test_output_change_restarts_gnuplot(self) -> None:
        session, launcher = _session()
        session.output("png", size=[4, 3, "in"], output="a.png")
        self.assertEqual(len(launcher.processes), 4)
        self.assertTrue(launcher.processes[0].stopped)
        session.plot(np.arange(3.0))
        main = launcher.processes[2].text
        self.assertIn("set terminal png size 400,300\n", main)
        self.assertIn('set output "a.png"\n', main)

    def test_same_terminal_does_not_restart(self) -> None:
        session, launcher = _session(terminal="png")
        session.output("png", output="b.png")
        self.assertEqual(len(launcher.processes), 2)

    def test_hardcopy_option_restarts_too(self) -> None:
        session, launcher = _session()
        options = session.options(hardcopy="out.pdf")
        self.assertEqual(options["terminal"], "pdfcairo")
        self.assertEqual(len(launcher.processes), 4)

    def test_options_returns_a_copy(self) -> None:
        session, _ = _session()
        options = session.options(xrange=[0, 1])
        options["xrange"][0] = 99
        self.assertEqual(session.options()["xrange"], [0, 1])


class MultiplotTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session, launcher = _session()
        self.main, self.syntax = launcher.processes

    def test_multiplot_round_trip(self) -> None:
        self.session.multiplot(layout=[2, 1])
        self.assertIn("set multiplot layout 1,2\n", self.main.text)
        self.assertIn("set terminal dumb\n", self.syntax.text)
        with self.assertRaises(ConflictingOptionsError):
            self.session.output("png")
        self.session.plot(np.arange(3.0))
        self.session.end_multi()
        self.assertIn("unset multiplot\n", self.main.text)
        with self.assertRaises(ConflictingOptionsError):
            self.session.end_multi()

    def test_terminal_is_not_resent_inside_multiplot(self) -> None:
        session, launcher = _session(terminal="png")
        main = launcher.processes[0]
        session.multiplot()
        self.assertIn("set terminal png\n", main.text)
        main.sent.clear()
        session.plot(np.arange(3.0))
        self.assertNotIn("set terminal", main.text)

    def test_nested_multiplot_ends_the_first(self) -> None:
        self.session.multiplot()
        with self.assertLogs("gplink.session.session", "WARNING"):
            self.session.multiplot()
        self.assertEqual(self.main.text.count("unset multiplot\n"), 1)


class LifecycleTests(unittest.TestCase):
    def test_timeout_leaves_the_session_stuck_until_restart(self) -> None:
        session, launcher = _session()
        launcher.processes[0].replies.append(StuckError("no reply"))
        with self.assertRaises(StuckError) as ctx:
            session.plot(np.arange(3.0))
        self.assertIn("restart()", str(ctx.exception))
        self.assertIs(session.state, SessionState.STUCK)
        with self.assertRaises(StuckError):
            session.plot(np.arange(3.0))
        session.restart()
        self.assertIs(session.state, SessionState.RUNNING)
        self.assertFalse(launcher.processes[0].stopped)
        self.assertEqual(len(launcher.processes), 4)
        session.plot(np.arange(3.0))

    def test_broken_pipe_on_write_is_cleaned_up(self) -> None:
        session, launcher = _session()
        main, syntax = launcher.processes
        main.broken = ExternalProcessError("the gnuplot process seems to have died")
        with self.assertRaises(ExternalProcessError):
            session.plot(np.arange(3.0))
        self.assertIs(session.state, SessionState.STUCK)
        self.assertFalse(session.checking_syntax)
        self.assertEqual(main.stopped, False)
        self.assertEqual(syntax.stopped, False)
        session.restart()
        self.assertIs(session.state, SessionState.RUNNING)
        self.assertEqual(len(launcher.processes), 4)

    def test_dead_process_is_cleaned_up(self) -> None:
        session, launcher = _session()
        launcher.processes[0].replies.append(ExternalProcessError("the gnuplot process seems to have died"))
        with self.assertRaises(ExternalProcessError):
            session.plot(np.arange(3.0))
        self.assertIs(session.state, SessionState.STUCK)
        self.assertFalse(session.checking_syntax)
        self.assertEqual(launcher.processes[1].stopped, False)

    def test_restart_keeps_options_and_history(self) -> None:
        session, _ = _session()
        session.options(title="kept")
        session.plot(np.arange(3.0))
        session.restart()
        self.assertTrue(session.replottable)
        self.assertEqual(session.options()["title"], ["kept"])

    def test_close_is_final(self) -> None:
        session, launcher = _session()
        session.close()
        self.assertIs(session.state, SessionState.TERMINATED)
        self.assertTrue(all(p.stopped for p in launcher.processes))
        with self.assertRaises(SessionClosedError):
            session.plot(np.arange(3.0))
        with self.assertRaises(SessionClosedError):
            session.restart()
        session.close()

    def test_context_manager_closes(self) -> None:
        launcher = FakeLauncher()
        with Session(config=GnuplotConfig(persist=False), launcher=launcher) as session:
            session.plot(np.arange(3.0))
        self.assertIs(session.state, SessionState.TERMINATED)


class DumpModeTests(unittest.TestCase):
    def test_dump_writes_commands_instead_of_plotting(self) -> None:
        out = io.StringIO()
        launcher = FakeLauncher()
        with self.assertLogs("gplink", "WARNING"):
            session = Session(config=GnuplotConfig(persist=False), launcher=launcher, stdout=out, dump=1)
        session.plot(np.arange(3.0), {"xlabel": "x"})
        self.assertEqual(launcher.processes, [])
        text = out.getvalue()
        self.assertIn('set xlabel "x"\n', text)
        self.assertIn("plot '-' binary record=(3)", text)
        self.assertNotIn("Synchronizing", text)

    def test_turning_dump_off_starts_gnuplot(self) -> None:
        out = io.StringIO()
        launcher = FakeLauncher()
        with self.assertLogs("gplink", "WARNING"):
            session = Session(config=GnuplotConfig(persist=False), launcher=launcher, stdout=out, dump=1)
            session.options(dump=0)
        self.assertEqual(len(launcher.processes), 2)
        self.assertTrue(session.checking_syntax)


if __name__ == "__main__":
    unittest.main()
