"""
Unit tests for the command-line interface.
"""

import socket

import pytest

from unresponsive import __main__ as cli
from unresponsive.server import UnresponsiveServer


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("PORT", "DELAY", "HOST", "SINGLE_CLIENT", "LOG_LEVEL"):
        monkeypatch.delenv(f"UNRESPONSIVE_{name}", raising=False)


@pytest.fixture
def captured_runs(monkeypatch):
    """Replace UnresponsiveServer.run so main() returns instead of serving."""
    runs = []

    def fake_run(self, configure_logging=True):
        runs.append(self.config)

    monkeypatch.setattr(UnresponsiveServer, "run", fake_run)
    return runs


class TestArguments:
    """Tests for argument parsing."""

    def test_port_and_delay(self, captured_runs):
        with pytest.raises(SystemExit) as exc:
            cli.main(["9000", "30"])

        assert exc.value.code == 0
        [config] = captured_runs
        assert config.port == 9000
        assert config.delay == 30
        assert config.single_client is False

    def test_single_client_flag(self, captured_runs):
        with pytest.raises(SystemExit):
            cli.main(["-1", "9000", "30"])

        assert captured_runs[0].single_client is True

    def test_options(self, captured_runs):
        with pytest.raises(SystemExit):
            cli.main(["--host", "127.0.0.1", "--no-resolve", "--buffer-size", "512",
                      "--log-level", "WARNING", "9000", "5"])

        config = captured_runs[0]
        assert config.host == "127.0.0.1"
        assert config.resolve_names is False
        assert config.buffer_size == 512
        assert config.log_level == "WARNING"

    @pytest.mark.parametrize("argv", [
        [],
        ["9000"],
        ["9000", "30", "extra"],
        ["-x", "9000", "30"],
        ["9000", "-5"],
        ["port", "30"],
    ])
    def test_usage_errors_print_usage_to_stdout(self, argv, captured_runs, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(argv)

        out, err = capsys.readouterr()
        assert exc.value.code == 1
        assert out.startswith("usage:")
        assert "error:" in err
        assert captured_runs == []

    @pytest.mark.parametrize("argv", [
        ["0", "30"],
        ["9000", "0"],
        ["70000", "30"],
    ])
    def test_out_of_range_prints_usage(self, argv, captured_runs, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(argv)

        assert exc.value.code == 1
        assert "usage:" in capsys.readouterr().out
        assert captured_runs == []


class TestEnvironmentDefaults:
    """UNRESPONSIVE_* variables seed the option defaults."""

    def test_environment_sets_defaults(self, monkeypatch, captured_runs):
        monkeypatch.setenv("UNRESPONSIVE_SINGLE_CLIENT", "1")
        monkeypatch.setenv("UNRESPONSIVE_HOST", "127.0.0.1")
        monkeypatch.setenv("UNRESPONSIVE_LOG_LEVEL", "warning")

        with pytest.raises(SystemExit) as exc:
            cli.main(["9000", "5"])

        assert exc.value.code == 0
        config = captured_runs[0]
        assert config.single_client is True
        assert config.host == "127.0.0.1"
        assert config.log_level == "WARNING"

    def test_command_line_wins(self, monkeypatch, captured_runs):
        monkeypatch.setenv("UNRESPONSIVE_HOST", "127.0.0.1")
        monkeypatch.setenv("UNRESPONSIVE_LOG_LEVEL", "DEBUG")

        with pytest.raises(SystemExit):
            cli.main(["--host", "0.0.0.0", "-l", "ERROR", "9000", "5"])

        config = captured_runs[0]
        assert config.host == "0.0.0.0"
        assert config.log_level == "ERROR"

    def test_malformed_environment_exits_1(self, monkeypatch, captured_runs, capsys):
        monkeypatch.setenv("UNRESPONSIVE_PORT", "not-a-port")

        with pytest.raises(SystemExit) as exc:
            cli.main(["9000", "5"])

        assert exc.value.code == 1
        assert "bad environment" in capsys.readouterr().err
        assert captured_runs == []


class TestStartupFailure:
    """The listening socket failing is fatal."""

    def test_port_in_use_exits_1(self, monkeypatch, capsys):
        monkeypatch.setattr("unresponsive.server.setup_logging", lambda level: None)

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as taken:
            taken.bind(("127.0.0.1", 0))
            taken.listen(1)
            port = taken.getsockname()[1]

            with pytest.raises(SystemExit) as exc:
                cli.main(["--host", "127.0.0.1", "--no-resolve", str(port), "1"])

        assert exc.value.code == 1
        assert "Error:" in capsys.readouterr().err
