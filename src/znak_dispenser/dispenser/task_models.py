# src/znak_dispenser/dispenser/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from ..core.errors import ParseError

COMPLETED_STATUS = "COMPLETED"
ERROR_STATUS = "ERROR"

PRODUCT_GROUP_NAMES: dict[int, str] = {
    1: "Clothing and linen",
    2: "Footwear",
    3: "Tobacco products",
    4: "Perfume and eau de toilette",
    5: "Tyres",
    6: "Cameras and flashes",
    8: "Dairy products",
    9: "Bicycles",
    10: "Medical devices",
    11: "Alcohol",
    12: "Alternative tobacco products",
    13: "Packaged water",
    14: "Fur goods",
    15: "Beer and low-alcohol drinks",
    16: "Nicotine-containing products",
    17: "Dietary supplements",
    19: "Antiseptics",
    20: "Pet food",
    21: "Seafood",
    22: "Non-alcoholic beer",
    23: "Juices and soft drinks",
    25: "Meat products",
    26: "Veterinary drugs",
    27: "Toys",
    28: "Radio electronics",
    31: "Titanium products",
    32: "Canned food",
    33: "Vegetable oils",
    34: "Optical fibre",
    35: "Cosmetics and household chemicals",
    36: "Printed products",
    37: "Groceries",
    38: "Pharmaceutical raw materials and drugs",
    39: "Building materials",
    40: "Pyrotechnics and fire extinguishers",
    41: "Heating appliances",
    42: "Cable products",
    43: "Motor oils",
    44: "Polymer pipes",
    45: "Confectionery",
    48: "Auto parts",
    50: "Electronic nicotine delivery systems",
    51: "Smartphones and laptops",
}


def product_group_name(code: int) -> str:
    return PRODUCT_GROUP_NAMES.get(code, "Unknown")


def format_wire_date(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def parse_wire_date(raw: Any, *, default: date) -> date:
    """Parse "YYYY-MM-DD" (a datetime suffix is ignored); fall back to `default`."""
    if not isinstance(raw, str) or len(raw) < 10:
        return default
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return default


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        raise ParseError(f"missing field '{key}'")
    return str(value)


def _require_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ParseError(f"field '{key}' is not an integer: {value!r}") from None


def _require_object(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ParseError(f"expected JSON object, got {type(data).__name__}")
    return data


@dataclass(frozen=True, slots=True)
class TaskRequest:
    """Body of POST /dispenser/tasks."""

    name: str
    data_start_date: date
    data_end_date: date
    format: str
    periodicity: str
    params: str
    product_group_code: int

    def to_json(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "dataStartDate": format_wire_date(self.data_start_date),
            "dataEndDate": format_wire_date(self.data_end_date),
            "format": self.format,
            "periodicity": self.periodicity,
            "params": self.params,
            "productGroupCode": self.product_group_code,
        }


@dataclass(frozen=True, slots=True)
class TaskDescriptor:
    """Answer to POST /dispenser/tasks. Unknown fields are ignored."""

    id: str
    create_date: str
    current_status: str
    product_group_code: int
    data_start_date: str = ""
    data_end_date: str = ""

    @classmethod
    def from_json(cls, data: Any) -> "TaskDescriptor":
        obj = _require_object(data)
        return cls(
            id=_require_str(obj, "id"),
            create_date=str(obj.get("createDate") or ""),
            current_status=_require_str(obj, "currentStatus"),
            product_group_code=_require_int(obj, "productGroupCode"),
            data_start_date=str(obj.get("dataStartDate") or ""),
            data_end_date=str(obj.get("dataEndDate") or ""),
        )


@dataclass(frozen=True, slots=True)
class TaskStatusDescriptor:
    """Answer to GET /dispenser/tasks/{id}?pg={code}."""

    id: str
    current_status: str
    product_group_code: int
    create_date: str = ""
    download_url: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> "TaskStatusDescriptor":
        obj = _require_object(data)
        download_url = obj.get("downloadUrl")
        return cls(
            id=_require_str(obj, "id"),
            current_status=_require_str(obj, "currentStatus"),
            product_group_code=_require_int(obj, "productGroupCode"),
            create_date=str(obj.get("createDate") or ""),
            download_url=str(download_url) if download_url else None,
        )


@dataclass(slots=True)
class TaskRecord:
    """
    A submitted task, kept for the process lifetime.

    Only `status` changes after creation (updated by the poller).
    """

    id: str
    product_group_code: int
    period_start: date
    period_end: date
    status: str
    created_at: date

    @property
    def display_name(self) -> str:
        return product_group_name(self.product_group_code)


@dataclass(frozen=True, slots=True)
class TaskStatusView:
    """Read-only projection of a task after the latest poll."""

    id: str
    product_group_code: int
    status: str
    create_date: str
    is_completed: bool
    error: str | None = None
    download_url: str | None = None

    @property
    def display_name(self) -> str:
        return product_group_name(self.product_group_code)


@dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    """Per-category result of one submission round."""

    product_group_code: int
    ok: bool
    message: str
    record: TaskRecord | None = None
