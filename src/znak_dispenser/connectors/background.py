# src/znak_dispenser/connectors/background.py

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import logging
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.state import AppState

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BackgroundRunner:
    """
    Event loop running in its own thread.

    The console REPL is blocking (input()); network exchanges, signing and the
    poller all run here so the console never waits on them.
    """

    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def submit(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future[T]:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Background loop already closed.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


async def _serve(state: AppState, stop_event: asyncio.Event) -> None:
    # /status reads the cached flag; the file itself is only read here, off the REPL thread.
    present = await asyncio.to_thread(state.token_store.has_token)
    logger.info("Saved token: %s", "present" if present else "missing")

    await stop_event.wait()

    logger.info("Background loop stopping...")
    try:
        await state.poller.stop()
    except Exception:
        logger.exception("Failed to stop the task poller.")
    try:
        await state.session.wait_background()
    except Exception:
        logger.exception("Post-login work failed during shutdown.")
    try:
        await state.api.aclose()
    except Exception:
        logger.debug("HTTP client close failed.", exc_info=True)


def start_background(state: AppState) -> BackgroundRunner | None:
    """Start the background event loop thread and wait until it is ready."""
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_serve(state, stop_event))
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="znak-background", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Background thread did not initialize properly.")
        return None

    logger.info("Background thread started.")
    return BackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
