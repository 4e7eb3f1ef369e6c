# src/znak_dispenser/core/models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


def extract_attr(dn: str, key: str) -> str | None:
    """
    Extract an attribute value from a distinguished name like "CN=..., O=...".

    `key` includes the separator, e.g. "CN=". Matching is case-sensitive.
    """
    for part in (dn or "").split(","):
        part = part.strip()
        if part.startswith(key):
            return part[len(key):].strip()
    return None


@dataclass(frozen=True, slots=True)
class Identity:
    """A certificate the operator can sign with. Never mutated once listed."""

    subject_name: str
    issuer_name: str
    serial_number: str
    thumbprint: str
    not_before: datetime
    not_after: datetime

    @property
    def common_name(self) -> str:
        return extract_attr(self.subject_name, "CN=") or ""

    @property
    def short_name(self) -> str:
        """Surname, then CN, then the first DN component."""
        return (
            extract_attr(self.subject_name, "SN=")
            or extract_attr(self.subject_name, "CN=")
            or self.subject_name.split(",")[0].strip()
        )

    def validity_text(self) -> str:
        return f"{self.not_before:%d.%m.%Y} - {self.not_after:%d.%m.%Y}"


@dataclass(frozen=True, slots=True)
class Challenge:
    """Server-issued payload to sign. Single use: one login attempt per challenge."""

    uuid: str
    payload: str
