"""
Tests for external command execution and the exit-code contract.
"""

from pathlib import Path

import pytest

from cinbox.execution import (
    CommandNotFoundError,
    CommandRunner,
    EmptyCommandError,
    check_executable,
    command_program,
)
from cinbox.tasks import TaskStatus, status_for_exit_code


# -----------------------------------------------------------------------------
# Command runner
# -----------------------------------------------------------------------------

class TestCommandRunner:
    """Tests for CommandRunner.execute()."""

    def test_captures_combined_output(self, tmp_path: Path):
        """stdout and stderr end up in one list of lines."""
        result = CommandRunner().execute("echo out; echo err 1>&2")

        assert result.ok
        assert result.output == ["out", "err"]
        assert result.first_line() == "out"
        assert result.completed_at is not None

    def test_reports_exit_code(self):
        """A non-zero exit is reported, not raised."""
        result = CommandRunner().execute("exit 7")

        assert result.exit_code == 7
        assert not result.ok
        assert "exit code 7" in result.summary()

    def test_runs_in_working_directory(self, tmp_path: Path):
        """cwd is the folder the command runs in."""
        runner = CommandRunner(cwd=tmp_path)

        result = runner.execute("pwd")

        assert Path(result.first_line()).resolve() == tmp_path.resolve()
        assert runner.last_result is result

    def test_empty_command_is_error(self):
        """An empty command line fails before anything runs."""
        with pytest.raises(EmptyCommandError):
            CommandRunner().execute("  ")


class TestCheckExecutable:
    """Tests for the program check done before running a command."""

    def test_program_on_path(self):
        """Bare names are looked up on PATH."""
        assert check_executable('cp "a" "b"').endswith("cp")

    def test_quoted_program_path(self, write_script):
        """The first token may be a quoted path."""
        script = write_script("bucket.sh", "echo bucket")

        assert check_executable(f'"{script}" ITEM001') == str(script)
        assert command_program(f'"{script}" ITEM001') == str(script)

    def test_missing_program(self, tmp_path: Path):
        """A missing script is reported with the command line."""
        with pytest.raises(CommandNotFoundError) as exc_info:
            check_executable(f"{tmp_path}/missing.sh arg")

        assert exc_info.value.program == f"{tmp_path}/missing.sh"

    def test_not_executable(self, tmp_path: Path):
        """A file without the executable bit cannot be run."""
        script = tmp_path / "plain.sh"
        script.write_text("#!/bin/sh\n")
        script.chmod(0o644)

        with pytest.raises(CommandNotFoundError):
            check_executable(str(script))

    def test_unknown_program(self):
        """A bare name that is not on PATH fails."""
        with pytest.raises(CommandNotFoundError):
            check_executable("no-such-program-cinbox --help")


# -----------------------------------------------------------------------------
# Exit-code contract
# -----------------------------------------------------------------------------

class TestExitCodeContract:
    """Tests for status_for_exit_code()."""

    def test_documented_codes(self):
        """Every documented exit code maps to its status."""
        assert status_for_exit_code(0) == TaskStatus.DONE
        assert status_for_exit_code(5) == TaskStatus.WAIT
        assert status_for_exit_code(6) == TaskStatus.PBCT
        assert status_for_exit_code(7) == TaskStatus.PBC
        assert status_for_exit_code(10) == TaskStatus.ERROR
        assert status_for_exit_code(11) == TaskStatus.CONFIG_ERROR
        assert status_for_exit_code(15) == TaskStatus.SKIPPED

    def test_other_codes_are_fatal(self):
        """Codes outside the contract are errors."""
        for code in (1, 2, 127, 255):
            assert status_for_exit_code(code) == TaskStatus.ERROR
