# src/znak_dispenser/logging_setup.py

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

APP_LOGGER = "znak_dispenser"

# Loggers that run on a timer in the background thread; console only shows their problems.
_BACKGROUND_LOGGERS = (
    f"{APP_LOGGER}.dispenser.task_poller",
    f"{APP_LOGGER}.net.retry",
)

_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._\-+/=]+")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable while the operator types:
    - app logs pass, except background loggers below WARNING
    - everything else (httpx, httpcore, py.warnings) only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == APP_LOGGER or name.startswith(APP_LOGGER + "."):
            if name.startswith(_BACKGROUND_LOGGERS):
                return record.levelno >= logging.WARNING
            return True
        return record.levelno >= logging.ERROR


class _RedactBearerFilter(logging.Filter):
    """Never write bearer tokens to the log file."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if "Bearer" in message:
            record.msg = _BEARER_RE.sub(r"\1***", message)
            record.args = None
        return True


def setup_logging(
    *,
    log_dir: str | Path,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    file_name: str = "debug.log",
) -> Path | None:
    """
    Install the two sinks used by the app and return the log file path.

    The file is append-only and gets every record (each retry attempt, each
    request); the console gets the filtered subset with a shorter layout.
    If the file cannot be opened the app keeps running with console logging
    only and None is returned.
    Call once, before the first log line.
    """
    log_file = Path(log_dir) / file_name

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt="%(levelname)s %(name)s: %(message)s"))
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    # A failing sink must not break the operation that logged.
    logging.raiseExceptions = False
    logging.captureWarnings(True)

    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), mode="a", encoding="utf-8")
    except OSError as e:
        logging.getLogger(APP_LOGGER).warning("File logging is off, cannot open %s: %s", log_file, e)
        return None

    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d [%(threadName)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    file_handler.addFilter(_RedactBearerFilter())
    root.addHandler(file_handler)
    return log_file
