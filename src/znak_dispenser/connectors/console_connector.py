# src/znak_dispenser/connectors/console_connector.py

from __future__ import annotations

import logging
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

PROMPT = ">>> "
EXIT_COMMANDS = frozenset({"/exit", "/quit"})


class _ConsoleOutput:
    """
    Serializes writes from the REPL thread and the background loop.

    Background results arrive while input() is waiting, so they start on a
    fresh line and redraw the prompt afterwards.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.waiting_for_input = False

    @staticmethod
    def _stamp(text: str) -> str:
        ts = datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")
        return f"[{ts}] {text}"

    def reply(self, text: str) -> None:
        with self._lock:
            print(self._stamp(text), flush=True)

    def background(self, text: str) -> None:
        with self._lock:
            if self.waiting_for_input:
                print("\n" + self._stamp(text), flush=True)
                print(PROMPT, end="", flush=True)
            else:
                print(self._stamp(text), flush=True)


def _read_line(out: _ConsoleOutput) -> str:
    out.waiting_for_input = True
    try:
        return input(PROMPT).strip()
    finally:
        out.waiting_for_input = False


def run_console_loop(state: AppState) -> None:
    out = _ConsoleOutput()
    state.notify = out.background

    logger.info("Console connector started.")
    out.reply("Use /certs to list certificates, /login <n> to sign in, /help for more, /exit to quit.")

    while True:
        try:
            line = _read_line(out)
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console interrupted, exiting.")
            print()
            break

        if not line:
            continue
        if line.lower() in EXIT_COMMANDS:
            break

        try:
            response = command_registry.handle(state, line, emit=out.background)
        except Exception:
            logger.exception("Command %r crashed.", line.split()[0])
            response = "Internal error while handling a command."

        out.reply(response if response is not None else "Commands start with '/'. Use /help to list them.")

    logger.info("Console connector finished.")
