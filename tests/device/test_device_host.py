"""
Unit Tests for host configuration detection, command execution and dump
reading.
"""

import io
import subprocess
import sys

import pytest

from dexopt_analyzer.apk.configuration import ResourceConfiguration
from dexopt_analyzer.core.errors import BoundaryInputUnavailable, CommandFailed
from dexopt_analyzer.device import host as host_module
from dexopt_analyzer.device.commands import run_command
from dexopt_analyzer.device.dumpsys import read_dump_file
from dexopt_analyzer.device.host import detect_host_configuration, process_locale


def _props(values):
    return lambda name: values.get(name)


class TestDetectHostConfiguration:
    """Tests for detect_host_configuration()."""

    def test_detect_when_override_then_used(self):
        config = detect_host_configuration("pt-BR", 320, read_property=_props({"persist.sys.locale": "de-DE"}))
        assert config == ResourceConfiguration(language="pt", region="BR", density=320)

    def test_detect_when_device_properties_then_used(self):
        props = {"persist.sys.locale": "fr-FR", "ro.sf.lcd_density": "480"}
        config = detect_host_configuration(read_property=_props(props))
        assert config == ResourceConfiguration(language="fr", region="FR", density=480)

    def test_detect_when_persist_unset_then_product_locale(self):
        config = detect_host_configuration(read_property=_props({"ro.product.locale": "ja-JP"}))
        assert (config.language, config.region) == ("ja", "JP")

    def test_detect_when_no_properties_then_process_locale(self, monkeypatch):
        monkeypatch.setenv("LC_ALL", "it_IT.UTF-8")
        config = detect_host_configuration(read_property=_props({}))
        assert (config.language, config.region) == ("it", "IT")
        assert config.density == 0

    def test_detect_when_nothing_known_then_default(self, monkeypatch):
        for var in ("LC_ALL", "LC_MESSAGES", "LANG"):
            monkeypatch.delenv(var, raising=False)
        monkeypatch.setattr(host_module.locale, "getlocale", lambda: (None, None))
        config = detect_host_configuration(read_property=_props({"ro.sf.lcd_density": "abc"}))
        assert config == ResourceConfiguration()

    def test_process_locale_when_c_locale_then_skipped(self, monkeypatch):
        monkeypatch.setenv("LC_ALL", "C")
        monkeypatch.setenv("LC_MESSAGES", "")
        monkeypatch.setenv("LANG", "en_GB.UTF-8")
        assert process_locale() == "en_GB.UTF-8"


class TestRunCommand:
    """Tests for run_command() against real executables."""

    def test_run_command_when_success_then_stdout(self):
        assert run_command([sys.executable, "-c", "print('hello')"]).strip() == "hello"

    def test_run_command_when_nonzero_exit_then_raises(self):
        with pytest.raises(CommandFailed, match="exit code 3"):
            run_command([sys.executable, "-c", "import sys; sys.exit(3)"])

    def test_run_command_when_missing_executable_then_raises(self):
        with pytest.raises(CommandFailed, match="not found"):
            run_command(["definitely-not-a-real-binary-xyz"])

    def test_run_command_when_timeout_then_raises(self, monkeypatch):
        def fake_run(*args, **kwargs):
            raise subprocess.TimeoutExpired(cmd=args[0], timeout=1)

        monkeypatch.setattr(subprocess, "run", fake_run)
        with pytest.raises(CommandFailed, match="timed out"):
            run_command(["dumpsys", "package", "dexopt"], timeout=1)


class TestReadDumpFile:

    def test_read_dump_file_when_exists_then_text(self, tmp_path, sample_dump):
        path = tmp_path / "dexopt.txt"
        path.write_text(sample_dump, encoding="utf-8")
        assert read_dump_file(path) == sample_dump

    def test_read_dump_file_when_dash_then_stdin(self, monkeypatch, sample_dump):
        monkeypatch.setattr(sys, "stdin", io.StringIO(sample_dump))
        assert read_dump_file("-") == sample_dump

    def test_read_dump_file_when_missing_then_boundary_error(self, tmp_path):
        with pytest.raises(BoundaryInputUnavailable, match="status dump unavailable"):
            read_dump_file(tmp_path / "absent.txt")
