# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from znak_dispenser.logging_setup import setup_logging


@pytest.fixture()
def restore_root_logging():
    """setup_logging() reconfigures the root logger; put pytest's setup back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    raise_exceptions = logging.raiseExceptions
    yield root
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
    logging.raiseExceptions = raise_exceptions
    logging.captureWarnings(False)


def test_unopenable_log_file_falls_back_to_console(tmp_path: Path, restore_root_logging) -> None:
    (tmp_path / "debug.log").mkdir()

    assert setup_logging(log_dir=tmp_path) is None

    handlers = restore_root_logging.handlers
    assert len(handlers) == 1
    assert not isinstance(handlers[0], logging.FileHandler)
    # Logging keeps working after the failed file sink.
    logging.getLogger("znak_dispenser.test").info("still alive")


def test_log_dir_that_is_a_file_falls_back_to_console(tmp_path: Path, restore_root_logging) -> None:
    blocker = tmp_path / "data"
    blocker.write_text("not a directory", encoding="utf-8")

    assert setup_logging(log_dir=blocker) is None
    assert not any(isinstance(h, logging.FileHandler) for h in restore_root_logging.handlers)


def test_file_sink_appends_and_hides_bearer_tokens(tmp_path: Path, restore_root_logging) -> None:
    log_file = tmp_path / "debug.log"
    log_file.write_text("earlier run\n", encoding="utf-8")

    assert setup_logging(log_dir=tmp_path) == log_file

    logging.getLogger("znak_dispenser.test").debug("headers: Authorization: Bearer %s", "abc.def-123")
    for h in restore_root_logging.handlers:
        h.flush()

    text = log_file.read_text(encoding="utf-8")
    assert text.startswith("earlier run\n")
    assert "Bearer ***" in text
    assert "abc.def-123" not in text
