from __future__ import annotations

import io
import logging

import pytest

from gwdemo.logging_config import ProgressAwareHandler, configure_logging, parse_level


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    saved_level = root.level
    saved_handlers = list(root.handlers)
    root.handlers = [handler for handler in saved_handlers if not isinstance(handler, ProgressAwareHandler)]
    yield root
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def _progress_handlers(root: logging.Logger) -> list[logging.Handler]:
    return [handler for handler in root.handlers if isinstance(handler, ProgressAwareHandler)]


def test_parse_level_accepts_any_case() -> None:
    assert parse_level("debug") == logging.DEBUG
    assert parse_level(" Warning ") == logging.WARNING


def test_parse_level_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="Unknown log level 'chatty'"):
        parse_level("chatty")


def test_configure_logging_installs_one_handler_and_updates_its_level(root_logger) -> None:
    configure_logging("INFO")
    configure_logging("DEBUG")

    handlers = _progress_handlers(root_logger)
    assert len(handlers) == 1
    assert handlers[0].level == logging.DEBUG
    assert root_logger.level == logging.DEBUG


def test_configure_logging_reads_env_and_ignores_bad_values(root_logger, monkeypatch) -> None:
    monkeypatch.setenv("GWDEMO_LOG_LEVEL", "warning")
    assert configure_logging() == logging.WARNING

    monkeypatch.setenv("GWDEMO_LOG_LEVEL", "chatty")
    assert configure_logging() == logging.INFO


def test_handler_flushes_progress_before_writing_record(monkeypatch) -> None:
    events: list[str] = []

    class _Stdout(io.StringIO):
        def flush(self) -> None:
            events.append("stdout-flush")

    class _Stderr(io.StringIO):
        def write(self, text: str) -> int:
            events.append("stderr-write")
            return super().write(text)

    stderr = _Stderr()
    monkeypatch.setattr("sys.stdout", _Stdout())
    monkeypatch.setattr("sys.stderr", stderr)
    handler = ProgressAwareHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))

    handler.emit(logging.makeLogRecord({"msg": "Deployment finished", "levelno": logging.INFO}))

    assert events[0] == "stdout-flush"
    assert "stderr-write" in events
    assert stderr.getvalue() == "Deployment finished\n"
