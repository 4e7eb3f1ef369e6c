# src/znak_dispenser/dispenser/task_registry.py

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import replace
from datetime import date

from .task_models import TaskRecord

logger = logging.getLogger(__name__)


class TaskRegistry:
    """
    In-memory list of submitted tasks, owned by AppState and shared by handle.

    Writers:
    - TaskDispatcher: replace_round() (evict old + append new, one critical section)
    - TaskPoller: update_status()
    Readers get copies, so nobody can observe or cause a half-applied update.
    """

    def __init__(self, records: Iterable[TaskRecord] = ()) -> None:
        self._lock = threading.Lock()
        self._records: list[TaskRecord] = list(records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def snapshot(self) -> list[TaskRecord]:
        with self._lock:
            return [replace(r) for r in self._records]

    def replace_round(self, new_records: Iterable[TaskRecord], *, today: date, max_age_days: int = 7) -> int:
        """
        Drop records created `max_age_days` or more days before `today`, then append
        the new batch. Returns the number of evicted records.
        """
        fresh = list(new_records)
        with self._lock:
            kept = [r for r in self._records if (today - r.created_at).days < max_age_days]
            evicted = len(self._records) - len(kept)
            kept.extend(fresh)
            self._records = kept

        logger.info("Registry round: evicted=%d added=%d total=%d", evicted, len(fresh), len(kept))
        return evicted

    def update_status(self, task_id: str, status: str) -> bool:
        with self._lock:
            for i, r in enumerate(self._records):
                if r.id == task_id:
                    if r.status != status:
                        self._records[i] = replace(r, status=status)
                    return True
        return False
