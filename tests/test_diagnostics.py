from __future__ import annotations

import unittest

from gplink.session.diagnostics import filter_benign, parse_diagnostics, printable


class DiagnosticsTests(unittest.TestCase):
    def test_silence_is_ok(self) -> None:
        diagnostics = parse_diagnostics("\n\n")
        self.assertTrue(diagnostics.ok)
        self.assertEqual(diagnostics.warnings, [])

    def test_warnings_are_split_from_errors(self) -> None:
        diagnostics = parse_diagnostics("         warning: iconv failed to convert degree sign\n")
        self.assertTrue(diagnostics.ok)
        self.assertEqual(diagnostics.warnings, ["iconv failed to convert degree sign"])

    def test_error_text_is_kept(self) -> None:
        raw = "plot '-' using 1:2 with lnes\n                        ^\n         line 0: unrecognized plot type\n"
        diagnostics = parse_diagnostics(raw)
        self.assertFalse(diagnostics.ok)
        self.assertIn("unrecognized plot type", diagnostics.text)

    def test_placeholder_complaints_are_benign_in_a_syntax_check(self) -> None:
        raw = (
            "plot '-' binary record=(1) format=\"%double%double\"\n"
            "     ^\n"
            "         warning: Skipping data file with no valid points\n"
        )
        diagnostics = parse_diagnostics(raw, benign=True)
        self.assertTrue(diagnostics.ok)
        self.assertEqual(diagnostics.warnings, [])

    def test_real_errors_survive_the_benign_filter(self) -> None:
        raw = "plot '-' with wiggles\n              ^\n         line 0: expecting 'lines', 'points'\n"
        diagnostics = parse_diagnostics(raw, benign=True)
        self.assertFalse(diagnostics.ok)
        self.assertIn("expecting", diagnostics.text)

    def test_filter_benign(self) -> None:
        self.assertEqual(filter_benign("all points y value undefined!\n"), "")
        self.assertEqual(filter_benign("Warning: empty x range [1:1], adjusting to [0.99:1.01]\n"), "")
        self.assertEqual(filter_benign("undefined variable: foo\n"), "undefined variable: foo")

    def test_crlf_and_control_bytes(self) -> None:
        diagnostics = parse_diagnostics("bad\x01thing\r\n")
        self.assertEqual(diagnostics.text, "bad?thing")
        self.assertEqual(printable("a\tb\x7fc"), "a\tb\x7fc")
        self.assertEqual(printable("a\x1bb"), "a?b")


if __name__ == "__main__":
    unittest.main()
