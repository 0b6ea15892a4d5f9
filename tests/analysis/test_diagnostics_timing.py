"""
Unit Tests for DiagnosticsCollector and TimingLog.
"""

import json

from dexopt_analyzer.analysis.diagnostics import DiagnosticsCollector
from dexopt_analyzer.analysis.timing import TimingLog, timed_phase
from dexopt_analyzer.core.errors import StatusDumpLineMalformed
from dexopt_analyzer.core.models import ResolvedLabel


class TestDiagnosticsCollector:
    """Tests for DiagnosticsCollector and DiagnosticsReport."""

    def test_add_label_when_decoded_then_not_recorded(self):
        collector = DiagnosticsCollector()
        collector.add_label(ResolvedLabel.decoded("com.a", "A"))
        assert collector.issue_count == 0

    def test_add_label_when_fallbacks_then_typed_issues(self):
        collector = DiagnosticsCollector()
        collector.add_label(ResolvedLabel.fallback("com.a", "EntryMissing: x"))
        collector.add_label(ResolvedLabel.partial("com.b", "com.b.Main", "label looks like a class name"))
        report = collector.generate_report()
        assert report.summary_by_type == {"label_fallback": 1, "label_partial": 1}
        assert report.issues[0].message == "EntryMissing: x"

    def test_add_dump_warning_when_called_then_keeps_line_number(self):
        collector = DiagnosticsCollector()
        collector.add_dump_warning(StatusDumpLineMalformed(7, "  arm64: [status=x", "unbalanced brackets", "com.a"))
        issue = collector.generate_report().issues[0]
        assert issue.to_dict() == {
            "issue_type": "malformed_dump_line",
            "package": "com.a",
            "message": "unbalanced brackets: arm64: [status=x",
            "line_number": 7,
        }

    def test_save_when_report_then_json_file_written(self, tmp_path):
        collector = DiagnosticsCollector()
        collector.add_resolution_crash("com.a", "resolution task failed: OSError: x")
        path = tmp_path / "out" / "diag.json"
        collector.generate_report().save(path)
        payload = json.loads(path.read_text())
        assert payload["total_issues"] == 1
        assert payload["issues"][0]["issue_type"] == "resolution_crash"
        assert "generated_at" in payload


class TestTimingLog:
    """Tests for TimingLog and timed_phase()."""

    def test_timed_phase_when_log_given_then_phase_recorded(self):
        log = TimingLog()
        with timed_phase(log, "parse_dump"):
            pass
        with timed_phase(log, "resolve", package="com.a"):
            pass
        assert list(log.phase_timings) == ["parse_dump"]
        assert list(log.package_timings) == ["com.a"]

    def test_timed_phase_when_no_log_then_noop(self):
        with timed_phase(None, "anything"):
            value = 1
        assert value == 1

    def test_get_slowest_packages_when_logged_then_sorted_descending(self):
        log = TimingLog()
        for name, seconds in [("a", 0.1), ("b", 0.5), ("c", 0.3)]:
            log.log_package(name, seconds)
        assert log.get_slowest_packages(2) == [("b", 0.5), ("c", 0.3)]
        assert abs(log.get_package_average() - 0.3) < 1e-9

    def test_summary_when_populated_then_lists_phases_and_packages(self):
        log = TimingLog()
        log.log_phase("parse_dump", 0.25)
        log.log_package("com.a", 0.5)
        text = log.summary()
        assert "=== Analysis Timing Summary ===" in text
        assert "parse_dump" in text and "0.250s" in text
        assert "com.a: 0.500s" in text

    def test_save_when_called_then_json_written(self, tmp_path):
        log = TimingLog()
        log.log_phase("correlate", 0.01)
        path = tmp_path / "timing.json"
        log.save(path)
        assert json.loads(path.read_text())["phase_timings"] == {"correlate": 0.01}
