"""
Integration Tests for the dexopt-analyzer command line.

Runs main() against a saved package list and status dump so that no device
or root access is needed.
"""

import json
import logging

import pytest

from dexopt_analyzer.cli import main as main_module
from dexopt_analyzer.cli.main import main


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() replaces the root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def saved_inputs(tmp_path, sample_dump, literal_app, localized_app):
    """Packages file and dump file for alpha (literal), beta (localized) and gamma (missing)."""
    packages = tmp_path / "packages.txt"
    packages.write_text(
        f"package:{localized_app}=com.example.beta\n"
        f"package:{literal_app}=com.example.alpha\n"
        f"package:{tmp_path / 'gamma' / 'base.apk'}=com.example.gamma\n",
        encoding="utf-8",
    )
    dump = tmp_path / "dexopt.txt"
    dump.write_text(sample_dump, encoding="utf-8")
    return ["--packages-file", str(packages), "--dump-file", str(dump), "--no-color", "--executor", "thread"]


class TestMainOutput:
    """Tests for the rendered output of main()."""

    def test_main_when_default_then_compact_table_and_summary(self, saved_inputs, capsys):
        assert main(saved_inputs) == 0
        out = capsys.readouterr().out
        assert "[-] Found 3 packages." in out
        assert "DexOpt Status" in out
        assert "com.example.alpha" in out
        assert "arm64: [status=run-from-apk] [reason=unknown]" in out
        assert "DEXOPT ANALYSIS SUMMARY" in out
        # The compact table carries no labels
        assert "Alpha Notes" not in out

    def test_main_when_verbose_then_labels_in_blocks(self, saved_inputs, capsys):
        assert main(saved_inputs + ["-v", "--locale", "fr-FR"]) == 0
        out = capsys.readouterr().out
        assert "Alpha Notes (com.example.alpha)" in out
        assert "Bêta FR (com.example.beta)" in out
        assert "DexOpt Status" not in out

    def test_main_when_json_then_only_json_on_stdout(self, saved_inputs, capsys):
        assert main(saved_inputs + ["--json", "--locale", "de-DE"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert [p["package"] for p in payload] == ["com.example.alpha", "com.example.beta", "com.example.gamma"]
        assert payload[0]["label"] == "Alpha Notes"
        assert payload[1]["label"] == "Beta DE"
        assert payload[2]["label"] == "com.example.gamma"
        assert payload[2]["label_provenance"] == "fallback-to-package-name"

    def test_main_when_no_labels_then_package_names(self, saved_inputs, capsys):
        assert main(saved_inputs + ["--json", "--no-labels"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert all(p["label"] == p["package"] for p in payload)

    def test_main_when_filters_then_subset(self, saved_inputs, capsys):
        assert main(saved_inputs + ["--json", "--no-labels", "-s", "error"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert [p["package"] for p in payload] == ["com.example.gamma"]

    def test_main_when_compiler_filter_then_subset(self, saved_inputs, capsys):
        assert main(saved_inputs + ["--json", "--no-labels", "-c", "verify"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert [p["package"] for p in payload] == ["com.example.alpha"]

    def test_main_when_system_scope_then_no_user_packages(self, saved_inputs, capsys):
        assert main(saved_inputs + ["--json", "--no-labels", "-t", "system", "-f", "beta"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert [(p["package"], p["scope"]) for p in payload] == [("com.example.beta", "system")]


class TestMainSideOutputs:

    def test_main_when_diag_json_then_report_written(self, saved_inputs, tmp_path, capsys):
        report = tmp_path / "diag.json"
        assert main(saved_inputs + ["-v", "--diag-json", str(report)]) == 0
        payload = json.loads(report.read_text(encoding="utf-8"))
        packages = {issue["package"] for issue in payload["issues"]}
        assert "com.example.gamma" in packages
        assert "com.example.alpha" not in packages

    def test_main_when_compact_run_with_diag_json_then_no_label_issues(self, saved_inputs, tmp_path, capsys):
        report = tmp_path / "diag.json"
        assert main(saved_inputs + ["--diag-json", str(report)]) == 0
        payload = json.loads(report.read_text(encoding="utf-8"))
        assert payload["total_issues"] == 0

    def test_main_when_timings_then_summary_on_stderr(self, saved_inputs, capsys):
        assert main(saved_inputs + ["--timings"]) == 0
        captured = capsys.readouterr()
        assert "=== Analysis Timing Summary ===" in captured.err
        assert "Timing Summary" not in captured.out


class TestMainExitCodes:
    """Tests for main() exit codes."""

    def test_main_when_live_and_not_root_then_exit_1(self, monkeypatch, capsys):
        monkeypatch.setattr(main_module, "is_root", lambda: False)
        assert main(["--no-color"]) == 1
        assert "requires root access" in capsys.readouterr().err

    def test_main_when_only_dump_file_then_still_needs_root(self, monkeypatch, tmp_path, sample_dump, capsys):
        monkeypatch.setattr(main_module, "is_root", lambda: False)
        dump = tmp_path / "dexopt.txt"
        dump.write_text(sample_dump)
        assert main(["--dump-file", str(dump), "--no-color"]) == 1

    def test_main_when_live_and_root_then_collectors_used(self, monkeypatch, sample_dump, capsys):
        from dexopt_analyzer.apk.configuration import ResourceConfiguration
        from dexopt_analyzer.core.models import PackageIdentity

        monkeypatch.setattr(main_module, "is_root", lambda: True)
        monkeypatch.setattr(
            main_module, "fetch_packages",
            lambda scope: [PackageIdentity("com.example.beta", "/nonexistent/base.apk")],
        )
        monkeypatch.setattr(main_module, "fetch_dexopt_dump", lambda: sample_dump)
        monkeypatch.setattr(main_module, "detect_host_configuration", lambda: ResourceConfiguration())
        assert main(["--json", "--no-color", "--executor", "thread"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload[0]["dexopt_info"][0]["status"] == "run-from-apk"

    def test_main_when_dump_file_missing_then_exit_1(self, saved_inputs, tmp_path, capsys):
        args = list(saved_inputs)
        args[args.index("--dump-file") + 1] = str(tmp_path / "absent.txt")
        assert main(args) == 1
        assert "status dump unavailable" in capsys.readouterr().err

    def test_main_when_packages_file_missing_then_exit_1(self, saved_inputs, tmp_path, capsys):
        args = list(saved_inputs)
        args[args.index("--packages-file") + 1] = str(tmp_path / "absent.txt")
        assert main(args) == 1

    def test_main_when_config_invalid_then_exit_2(self, saved_inputs, tmp_path, capsys):
        config = tmp_path / "config.json"
        config.write_text('{"max_workers": 4, "colour": true}')
        assert main(saved_inputs + ["--config", str(config)]) == 2
        assert "unknown config keys: colour" in capsys.readouterr().err

    def test_main_when_config_value_wrongly_typed_then_exit_2(self, saved_inputs, tmp_path, capsys):
        config = tmp_path / "config.json"
        config.write_text('{"max_workers": "4"}')
        assert main(saved_inputs + ["--config", str(config)]) == 2
        assert "max_workers must be int or null" in capsys.readouterr().err

    def test_main_when_config_missing_then_exit_2(self, saved_inputs, tmp_path, capsys):
        assert main(saved_inputs + ["--config", str(tmp_path / "nope.json")]) == 2
        assert "cannot read config" in capsys.readouterr().err

    def test_main_when_workers_invalid_then_exit_2(self, saved_inputs, capsys):
        assert main(saved_inputs + ["--workers", "0"]) == 2
