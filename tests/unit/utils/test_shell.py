"""Unit tests for shell execution utilities."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest
from fsguard.utils.shell import CommandResult, CommandRunner, ProcessFailedError, run_command


class TestCommandResult:
    """Tests for CommandResult."""

    def test_success(self) -> None:
        """Only exit code 0 is success."""
        assert CommandResult("", "", 0).success
        assert not CommandResult("", "", 1).success

    def test_lines_skip_empty(self) -> None:
        """lines drops empty stdout lines."""
        assert CommandResult("a\n\nb\n", "", 0).lines == ["a", "b"]


class TestRunCommand:
    """Tests for run_command function."""

    @patch("fsguard.utils.shell.subprocess.run")
    def test_captures_output(self, mock_run: MagicMock) -> None:
        """run_command captures stdout, stderr and the exit code."""
        mock_run.return_value = MagicMock(stdout="out", stderr="err", returncode=2)

        result = run_command(["ls"], cwd="/tmp")

        assert result == CommandResult("out", "err", 2)
        assert mock_run.call_args.kwargs["capture_output"] is True
        assert mock_run.call_args.kwargs["cwd"] == "/tmp"


class TestCommandRunner:
    """Tests for CommandRunner."""

    @patch("fsguard.utils.shell.subprocess.run")
    def test_returns_lines(self, mock_run: MagicMock) -> None:
        """run returns the non-empty stdout lines."""
        mock_run.return_value = MagicMock(stdout="one\ntwo\n", stderr="", returncode=0)

        assert CommandRunner().run("echo", ["one"]) == ["one", "two"]
        assert mock_run.call_args.args[0] == ["echo", "one"]

    @patch("fsguard.utils.shell.subprocess.run")
    def test_sudo_prefix(self, mock_run: MagicMock) -> None:
        """sudo=True prefixes the command with sudo."""
        mock_run.return_value = MagicMock(stdout="", stderr="", returncode=0)

        CommandRunner().run("chown", ["root:root", "/srv"], sudo=True)

        assert mock_run.call_args.args[0] == ["sudo", "chown", "root:root", "/srv"]

    @patch("fsguard.utils.shell.subprocess.run")
    def test_default_and_explicit_timeout(self, mock_run: MagicMock) -> None:
        """The runner default applies unless a call passes its own timeout."""
        mock_run.return_value = MagicMock(stdout="", stderr="", returncode=0)
        runner = CommandRunner(default_timeout=4.0)

        runner.run("true")
        assert mock_run.call_args.kwargs["timeout"] == 4.0

        runner.run("true", timeout=60.0)
        assert mock_run.call_args.kwargs["timeout"] == 60.0

    @patch("fsguard.utils.shell.subprocess.run")
    def test_failed_exit_code(self, mock_run: MagicMock) -> None:
        """An exit code that is not accepted raises ProcessFailedError."""
        mock_run.return_value = MagicMock(stdout="", stderr="denied\n", returncode=1)

        with pytest.raises(ProcessFailedError, match="exit code 1: denied") as exc:
            CommandRunner().run("rm", ["-rf", "/srv/x"])

        assert exc.value.command == ["rm", "-rf", "/srv/x"]
        assert exc.value.result is not None
        assert exc.value.result.returncode == 1

    @patch("fsguard.utils.shell.subprocess.run")
    def test_accepted_exit_codes(self, mock_run: MagicMock) -> None:
        """Extra accepted exit codes count as success."""
        mock_run.return_value = MagicMock(stdout="x\n", stderr="", returncode=1)

        assert CommandRunner().run("grep", ["x"], accepted_exit_codes=(0, 1)) == ["x"]

    @patch("fsguard.utils.shell.subprocess.run")
    def test_timeout(self, mock_run: MagicMock) -> None:
        """A timeout raises ProcessFailedError."""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=["shred"], timeout=60.0)

        with pytest.raises(ProcessFailedError, match="timed out after 60.0 seconds"):
            CommandRunner().run("shred", ["/srv/x"])

    @patch("fsguard.utils.shell.subprocess.run")
    def test_missing_executable(self, mock_run: MagicMock) -> None:
        """A missing executable raises ProcessFailedError."""
        mock_run.side_effect = FileNotFoundError("no such file")

        with pytest.raises(ProcessFailedError, match="could not be executed"):
            CommandRunner().run("nonexistent-command")
