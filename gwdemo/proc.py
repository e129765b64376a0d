from __future__ import annotations

from dataclasses import dataclass
import json
import os
import subprocess
from typing import Any, Callable, Iterable, Literal

ErrorCategory = Literal["retryable", "fatal"]
CommandRunner = Callable[[list[str]], subprocess.CompletedProcess[str]]

_REDACTED = "***"
_RETRYABLE_PATTERNS = (
    "timed out",
    "timeout",
    "temporarily unavailable",
    "connection refused",
    "connection reset",
    "connection aborted",
    "too many requests",
    "toomanyrequests",
    "rate limit",
    "throttl",
    "serviceunavailable",
    "service unavailable",
    "internalservererror",
    "anotheroperationinprogress",
    "retryableerror",
)


def az_binary() -> str:
    return os.getenv("GWDEMO_AZ_BINARY", "az")


@dataclass(frozen=True)
class CommandResult:
    command: list[str]
    returncode: int
    stdout: str
    stderr: str


class AzCommandError(RuntimeError):
    def __init__(
        self,
        *,
        message: str,
        result: CommandResult,
        category: ErrorCategory,
        redact: Iterable[str] = (),
    ) -> None:
        self.result = result
        self.category = category
        self._redact = tuple(secret for secret in redact if secret)
        super().__init__(self._build_message(message))

    @property
    def retryable(self) -> bool:
        return self.category == "retryable"

    @property
    def detail(self) -> str:
        return self._scrub(f"{self.result.stderr}\n{self.result.stdout}".strip())

    def _scrub(self, text: str) -> str:
        for secret in self._redact:
            text = text.replace(secret, _REDACTED)
        return text

    def _build_message(self, message: str) -> str:
        detail = self._scrub((self.result.stderr or self.result.stdout).strip())
        if len(detail) > 400:
            detail = f"{detail[:397]}..."
        cmd = self._scrub(" ".join(self.result.command))
        return (
            f"{message} (category={self.category}, returncode={self.result.returncode}, "
            f"command={cmd!r}, detail={detail!r})"
        )


def default_runner(command: list[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(command, capture_output=True, text=True, check=False)


def classify_error(*, returncode: int, stderr: str, stdout: str) -> ErrorCategory:
    if returncode < 0:
        return "retryable"
    text = f"{stderr}\n{stdout}".lower()
    if any(pattern in text for pattern in _RETRYABLE_PATTERNS):
        return "retryable"
    return "fatal"


def run_command(
    command: list[str],
    *,
    runner: CommandRunner | None = None,
    error_message: str,
    redact: Iterable[str] = (),
) -> CommandResult:
    active_runner = runner or default_runner
    try:
        completed = active_runner(command)
    except FileNotFoundError as exc:
        # az itself is missing; surface it like any other failed command
        completed = subprocess.CompletedProcess(args=command, returncode=127, stdout="", stderr=str(exc))
    result = CommandResult(
        command=command,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    if result.returncode != 0:
        raise AzCommandError(
            message=error_message,
            result=result,
            category=classify_error(
                returncode=result.returncode,
                stderr=result.stderr,
                stdout=result.stdout,
            ),
            redact=redact,
        )
    return result


def run_json(
    command: list[str],
    *,
    runner: CommandRunner | None = None,
    error_message: str,
    redact: Iterable[str] = (),
) -> Any:
    result = run_command(command, runner=runner, error_message=error_message, redact=redact)
    if not result.stdout.strip():
        return None
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON from command {command[:3]!r}: {exc.msg}") from exc
