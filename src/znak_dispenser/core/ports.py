# src/znak_dispenser/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the signing tool, the certificate source and the platform client
swappable and makes testing easier (see tests/fakes.py).
"""

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from .models import Challenge, Identity

if TYPE_CHECKING:
    from ..auth.signer import KeySelector
    from ..dispenser.task_models import TaskDescriptor, TaskRequest, TaskStatusDescriptor


class Signer(Protocol):
    """
    Local signing capability.

    Signs the file at challenge_path and returns the raw signature bytes.
    Raises ToolNotFound / InvocationFailed / EmptyOutput.
    """

    def sign(self, challenge_path: Path, selector: KeySelector) -> bytes: ...


class CertificateDirectory(Protocol):
    """Source of selectable identities, already filtered to non-expired ones."""

    @property
    def cert_dir(self) -> Path: ...

    def list_identities(self) -> list[Identity]: ...


class TokenRepo(Protocol):
    def save(self, token: str) -> None: ...
    def load(self) -> str: ...
    def clear(self) -> None: ...
    def has_token(self) -> bool: ...


class AuthApi(Protocol):
    async def get_auth_key(self) -> Challenge: ...
    async def sign_in(self, uuid: str, signature: str) -> str: ...


class DispenserApi(Protocol):
    async def create_task(self, token: str, request: TaskRequest) -> TaskDescriptor: ...

    async def get_task(
            self,
            token: str,
            task_id: str,
            product_group_code: int,
    ) -> TaskStatusDescriptor: ...
