from __future__ import annotations

import subprocess

import pytest

from gwdemo.proc import AzCommandError, run_command, run_json


def _runner(*, returncode: int = 0, stdout: str = "", stderr: str = ""):
    def runner(cmd: list[str]) -> subprocess.CompletedProcess[str]:
        return subprocess.CompletedProcess(args=cmd, returncode=returncode, stdout=stdout, stderr=stderr)

    return runner


def test_run_json_parses_stdout() -> None:
    assert run_json(["az", "x"], runner=_runner(stdout='{"a": 1}'), error_message="boom") == {"a": 1}


def test_run_json_empty_stdout_is_none() -> None:
    assert run_json(["az", "x"], runner=_runner(stdout="  \n"), error_message="boom") is None


def test_run_json_invalid_json_raises_value_error() -> None:
    with pytest.raises(ValueError):
        run_json(["az", "x"], runner=_runner(stdout="WARNING: not json"), error_message="boom")


def test_command_error_truncates_long_detail() -> None:
    with pytest.raises(AzCommandError) as exc_info:
        run_command(["az", "x"], runner=_runner(returncode=1, stderr="e" * 1000), error_message="boom")

    message = str(exc_info.value)
    assert message.startswith("boom (category=fatal, returncode=1")
    assert "e" * 397 + "..." in message
    assert "e" * 398 not in message


def test_negative_returncode_is_retryable() -> None:
    with pytest.raises(AzCommandError) as exc_info:
        run_command(["az", "x"], runner=_runner(returncode=-9), error_message="killed")
    assert exc_info.value.retryable is True


def test_redaction_covers_command_and_detail() -> None:
    with pytest.raises(AzCommandError) as exc_info:
        run_command(
            ["az", "login", "--password", "hunter2"],
            runner=_runner(returncode=1, stderr="bad password hunter2"),
            error_message="login failed",
            redact=("hunter2", ""),
        )
    assert "hunter2" not in str(exc_info.value)
    assert "hunter2" not in exc_info.value.detail
