# src/znak_dispenser/dispenser/task_dispatcher.py

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ..core.errors import ZnakError, friendly_error_message
from ..core.ports import DispenserApi, TokenRepo
from ..net.retry import RetryPolicy, Sleep, run_with_retry
from .task_models import SubmissionOutcome, TaskRecord, TaskRequest, format_wire_date, product_group_name
from .task_registry import TaskRegistry

logger = logging.getLogger(__name__)


def local_today() -> date:
    """Today in the operator's local time zone."""
    return datetime.now().astimezone().date()


def previous_week(today: date) -> tuple[date, date]:
    """Monday..Sunday of the last full ISO week before `today`."""
    current_monday = today - timedelta(days=today.weekday())
    start = current_monday - timedelta(days=7)
    return start, start + timedelta(days=6)


@dataclass(frozen=True, slots=True)
class ReportTemplate:
    """Fixed per-deployment part of every report request."""

    name: str = "VIOLATIONS"
    format: str = "CSV"
    periodicity: str = "SINGLE"
    violation_categories: Sequence[int] = field(default_factory=tuple)
    violation_kinds: Sequence[int] = field(default_factory=tuple)

    def params_json(self) -> str:
        return json.dumps(
            {
                "violationCategory": list(self.violation_categories),
                "violationKind": list(self.violation_kinds),
            },
            separators=(",", ":"),
        )

    def build_request(self, product_group_code: int, start: date, end: date) -> TaskRequest:
        return TaskRequest(
            name=self.name,
            data_start_date=start,
            data_end_date=end,
            format=self.format,
            periodicity=self.periodicity,
            params=self.params_json(),
            product_group_code=product_group_code,
        )

    @classmethod
    def from_settings(cls, settings) -> "ReportTemplate":
        return cls(
            name=settings.report_name,
            format=settings.report_format,
            periodicity=settings.report_periodicity,
            violation_categories=tuple(settings.violation_categories),
            violation_kinds=tuple(settings.violation_kinds),
        )


class TaskDispatcher:
    """
    One submission round = one report request per configured product group.

    Requests for different groups are independent: they run concurrently, a
    failure is recorded for that group only, and the outcome list always follows
    the configured group order.
    """

    def __init__(
            self,
            api: DispenserApi,
            token_store: TokenRepo,
            registry: TaskRegistry,
            *,
            product_group_codes: Sequence[int],
            template: ReportTemplate,
            retry_policy: RetryPolicy | None = None,
            max_age_days: int = 7,
            today: Callable[[], date] = local_today,
            sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._api = api
        self._token_store = token_store
        self._registry = registry
        self._codes = list(product_group_codes)
        self._template = template
        self._retry_policy = retry_policy or RetryPolicy()
        self._max_age_days = max_age_days
        self._today = today
        self._sleep = sleep

    async def submit_all(self) -> list[SubmissionOutcome]:
        """
        Run one round. Raises NotAuthenticated (or StorageError) if there is no
        usable token; per-group failures are reported in the outcomes instead.
        """
        token = await asyncio.to_thread(self._token_store.load)

        today = self._today()
        start, end = previous_week(today)
        logger.info(
            "Submission round: period %s..%s, groups %s",
            format_wire_date(start),
            format_wire_date(end),
            self._codes,
        )

        outcomes = await asyncio.gather(
            *(self._submit_one(token, code, start, end, today) for code in self._codes)
        )

        new_records = [o.record for o in outcomes if o.record is not None]
        self._registry.replace_round(new_records, today=today, max_age_days=self._max_age_days)
        return list(outcomes)

    async def _submit_one(self, token: str, code: int, start: date, end: date, today: date) -> SubmissionOutcome:
        request = self._template.build_request(code, start, end)

        try:
            descriptor = await run_with_retry(
                lambda: self._api.create_task(token, request),
                policy=self._retry_policy,
                sleep=self._sleep,
                label=f"POST /dispenser/tasks pg={code}",
            )
        except ZnakError as e:
            logger.error("Task creation failed for pg=%s: %s", code, e)
            return SubmissionOutcome(
                product_group_code=code,
                ok=False,
                message=f"Failed to create task for pg={code} ({product_group_name(code)}): "
                        f"{friendly_error_message(e)}",
            )

        record = TaskRecord(
            id=descriptor.id,
            product_group_code=code,
            period_start=start,
            period_end=end,
            status=descriptor.current_status,
            created_at=today,
        )
        logger.info("Task created: id=%s pg=%s status=%s", record.id, code, record.status)
        return SubmissionOutcome(
            product_group_code=code,
            ok=True,
            message=f"Request #{code}, {product_group_name(code)} (id: {record.id})",
            record=record,
        )
