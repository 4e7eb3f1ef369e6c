# src/znak_dispenser/dispenser/task_poller.py

"""
Task poller.

A small periodic loop that:
- snapshots the task registry,
- asks the platform for every task's current status (through the retry helper),
- updates registry statuses,
- replaces the UI-facing status list as a unit once all tasks were queried.

A failing task only degrades its own status view; it stays in the registry
and is polled again next cycle.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading

from ..core.errors import ZnakError
from ..core.ports import DispenserApi, TokenRepo
from ..net.retry import RetryPolicy, Sleep, run_with_retry
from .task_models import COMPLETED_STATUS, ERROR_STATUS, TaskRecord, TaskStatusView, format_wire_date
from .task_registry import TaskRegistry

logger = logging.getLogger(__name__)


class TaskPoller:
    def __init__(
            self,
            api: DispenserApi,
            token_store: TokenRepo,
            registry: TaskRegistry,
            *,
            retry_policy: RetryPolicy | None = None,
            interval_seconds: float = 30.0,
            initial_delay_seconds: float = 2.0,
            sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._api = api
        self._token_store = token_store
        self._registry = registry
        self._retry_policy = retry_policy or RetryPolicy()
        self._interval = max(0.01, float(interval_seconds))
        self._initial_delay = max(0.0, float(initial_delay_seconds))
        self._sleep = sleep

        self._views_lock = threading.Lock()
        self._views: tuple[TaskStatusView, ...] = ()

        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self.cycles = 0

    # ---- UI-facing ----

    def statuses(self) -> list[TaskStatusView]:
        with self._views_lock:
            return list(self._views)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ---- one cycle ----

    async def poll_once(self) -> list[TaskStatusView]:
        records = self._registry.snapshot()
        if not records:
            self._publish([])
            return []

        try:
            token = await asyncio.to_thread(self._token_store.load)
        except ZnakError as e:
            views = [self._error_view(r, e) for r in records]
        else:
            views = list(await asyncio.gather(*(self._poll_task(token, r) for r in records)))

        self._publish(views)
        done = sum(1 for v in views if v.is_completed)
        failed = sum(1 for v in views if v.error is not None)
        logger.debug("Poll cycle: tasks=%d completed=%d failed=%d", len(views), done, failed)
        return views

    async def _poll_task(self, token: str, record: TaskRecord) -> TaskStatusView:
        try:
            status = await run_with_retry(
                lambda: self._api.get_task(token, record.id, record.product_group_code),
                policy=self._retry_policy,
                sleep=self._sleep,
                label=f"GET /dispenser/tasks/{record.id}",
            )
        except ZnakError as e:
            logger.warning("Status check failed for task %s (pg=%s): %s", record.id, record.product_group_code, e)
            return self._error_view(record, e)

        self._registry.update_status(record.id, status.current_status)
        return TaskStatusView(
            id=status.id,
            product_group_code=status.product_group_code,
            status=status.current_status,
            create_date=status.create_date or format_wire_date(record.created_at),
            is_completed=status.current_status == COMPLETED_STATUS,
            error=None,
            download_url=status.download_url,
        )

    @staticmethod
    def _error_view(record: TaskRecord, err: ZnakError) -> TaskStatusView:
        return TaskStatusView(
            id=record.id,
            product_group_code=record.product_group_code,
            status=ERROR_STATUS,
            create_date="-",
            is_completed=False,
            error=str(err),
        )

    def _publish(self, views: list[TaskStatusView]) -> None:
        with self._views_lock:
            self._views = tuple(views)

    # ---- ticker ----

    async def _wait(self, stop_event: asyncio.Event, seconds: float) -> bool:
        """Sleep up to `seconds`; True if the stop signal arrived meanwhile."""
        if stop_event.is_set():
            return True
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        return stop_event.is_set()

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Poll every interval_seconds after initial_delay_seconds until stop_event is set.
        A failing cycle is logged and never ends the loop.
        """
        logger.info("Task poller started (interval=%.1fs).", self._interval)
        if await self._wait(stop_event, self._initial_delay):
            return

        while True:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Poll cycle crashed")
            self.cycles += 1

            if await self._wait(stop_event, self._interval):
                break

        logger.info("Task poller stopped.")

    def start(self) -> bool:
        """Start the loop on the running event loop. Returns False if it is already running."""
        if self.running:
            return False
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop_event))
        return True

    async def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
