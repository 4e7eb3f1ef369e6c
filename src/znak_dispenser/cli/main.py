# src/znak_dispenser/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the background event loop (login, submission rounds, task poller),
- the console REPL in the main thread.
"""

from __future__ import annotations

import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.background import start_background
from ..connectors.console_connector import run_console_loop
from ..core.errors import StorageError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except StorageError as e:
        logger.error("Cannot prepare data directory: %s", e)
        return 1

    runner = start_background(state)
    if runner is None:
        return 1
    state.runner = runner

    def _handle_sigterm(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        raise KeyboardInterrupt

    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_sigterm)

    try:
        run_console_loop(state)
    finally:
        runner.stop()
        runner.join(timeout=10.0)
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
