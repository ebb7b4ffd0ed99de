"""Tests for the cpumap-top command line."""

import logging
import signal
from pathlib import Path

import pytest

from cpumap_top import cli
from cpumap_top.cli import DEFAULT_MAP_DIR, MonitorConfig, main, parse_args, setup_logging
from cpumap_top.errors import ClockError, ConfigError


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo setup_logging() changes to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParseArgs:
    """Tests for argument parsing."""

    def test_defaults(self):
        """Test the default configuration."""
        config = parse_args([])

        assert config == MonitorConfig()
        assert config.map_dir == Path(DEFAULT_MAP_DIR)
        assert config.interval == 2
        assert config.targets == 12
        assert config.read_timeout is None
        assert not config.tui
        assert not config.debug

    def test_options(self, tmp_path):
        """Test every option is carried into the config."""
        config = parse_args([
            "--map-dir", str(tmp_path),
            "-s", "5",
            "--targets", "4",
            "--bpftool", "/opt/bpftool",
            "--read-timeout", "0.5",
            "--tui",
            "-D",
        ])

        assert config.map_dir == tmp_path
        assert config.interval == 5
        assert config.targets == 4
        assert config.bpftool == "/opt/bpftool"
        assert config.read_timeout == 0.5
        assert config.tui
        assert config.debug

    @pytest.mark.parametrize(
        "argv",
        [["--sec", "0"], ["-s", "-3"], ["--targets", "0"], ["--read-timeout", "0"]],
    )
    def test_invalid_values(self, argv):
        """Test out of range values raise ConfigError."""
        with pytest.raises(ConfigError):
            parse_args(argv)

    def test_config_is_frozen(self):
        """Test MonitorConfig is immutable."""
        with pytest.raises(AttributeError):
            MonitorConfig().interval = 3


class TestSetupLogging:
    """Tests for logging setup."""

    def test_default_level(self):
        """Test warnings and above go to stderr by default."""
        setup_logging()
        root = logging.getLogger()

        assert root.level == logging.WARNING
        assert len(root.handlers) == 1

    def test_debug_level(self):
        """Test --debug enables debug records."""
        setup_logging(debug=True)

        assert logging.getLogger().level == logging.DEBUG


class TestMain:
    """Tests for main() exit statuses."""

    def test_bad_option_exit_code(self, capsys):
        """Test invalid values exit with the option failure status."""
        assert main(["--sec", "0"]) == 2
        assert "ERR:" in capsys.readouterr().err

    def test_missing_map_dir_exit_code(self, tmp_path):
        """Test a missing map directory exits with the BPF failure status."""
        assert main(["--map-dir", str(tmp_path / "absent")]) == 4

    def test_fatal_error_exit_code(self, monkeypatch):
        """Test a fatal error maps to its exit status."""

        def broken_run(config):
            raise ClockError("no clock")

        monkeypatch.setattr(cli, "run", broken_run)

        assert main([]) == 1

    def test_interrupt_stops_loop(self, monkeypatch, store, subsystem, capsys):
        """Test SIGINT cancels the loop and exits cleanly."""
        original_lookup = subsystem.lookup

        def lookup(map_name, key):
            if not subsystem.lookups:
                signal.raise_signal(signal.SIGINT)
            return original_lookup(map_name, key)

        subsystem.lookup = lookup
        monkeypatch.setattr(cli, "build_store", lambda config: store)
        before = signal.getsignal(signal.SIGINT)

        assert main([]) == 0

        assert signal.getsignal(signal.SIGINT) is before
        assert capsys.readouterr().out == ""
        # Only the priming collection ran
        assert len(subsystem.lookups) == 6

    def test_reports_until_interrupted(self, monkeypatch, store, subsystem, capsys):
        """Test reports are printed to stdout until SIGINT arrives."""
        original_lookup = subsystem.lookup

        def lookup(map_name, key):
            # Interrupt during the second cycle, after one full report
            if len(subsystem.lookups) == 12:
                signal.raise_signal(signal.SIGINT)
            return original_lookup(map_name, key)

        subsystem.lookup = lookup
        monkeypatch.setattr(cli, "build_store", lambda config: store)

        assert main(["-s", "1"]) == 0

        out = capsys.readouterr().out
        assert out.count("XDP-cpumap") == 1
        assert out.endswith("\n\n")

    def test_tui_exit_status(self, monkeypatch, store):
        """Test the live view's return code becomes the exit status."""
        from cpumap_top import app

        class FailedApp:
            return_code = 1

            def __init__(self, store, interval):
                self.interval = interval

            def run(self):
                pass

        monkeypatch.setattr(cli, "build_store", lambda config: store)
        monkeypatch.setattr(app, "CpumapApp", FailedApp)

        assert main(["--tui"]) == 1
