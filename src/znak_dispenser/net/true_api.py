# src/znak_dispenser/net/true_api.py

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from ..core.errors import NetworkError, ParseError, ServerRejected
from ..core.models import Challenge
from ..dispenser.task_models import TaskDescriptor, TaskRequest, TaskStatusDescriptor

logger = logging.getLogger(__name__)


class TrueApiClient:
    """
    Thin async client for the marking platform.

    Every method performs exactly one request/response exchange and maps
    failures onto the error taxonomy:
    - transport failure / timeout -> NetworkError
    - non-2xx                     -> ServerRejected(status, body)
    - unreadable 2xx body         -> ParseError
    Retrying is the caller's business (net/retry.py).
    """

    def __init__(
            self,
            base_url: str,
            *,
            user_agent: str = "znak-dispenser/0.1",
            connect_timeout: float = 10.0,
            read_timeout: float = 30.0,
            transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            timeout=httpx.Timeout(
                connect=connect_timeout,
                read=read_timeout,
                write=read_timeout,
                pool=connect_timeout,
            ),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings) -> "TrueApiClient":
        return cls(
            settings.api_base_url,
            user_agent=settings.user_agent,
            connect_timeout=settings.http_connect_timeout,
            read_timeout=settings.http_read_timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ---- low-level helpers ----

    @staticmethod
    def _bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {url}: {e.__class__.__name__}: {e}") from e

        logger.debug("%s %s -> %s", method, url, response.status_code)

        if not response.is_success:
            raise ServerRejected(response.status_code, response.text)

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"{method} {url}: invalid JSON: {e}") from e

    # ---- auth ----

    async def get_auth_key(self) -> Challenge:
        data = await self._request("GET", "/auth/key")
        if not isinstance(data, dict):
            raise ParseError("GET /auth/key: expected JSON object")
        uuid = data.get("uuid")
        payload = data.get("data")
        if not uuid or payload is None:
            raise ParseError("GET /auth/key: missing 'uuid' or 'data'")
        return Challenge(uuid=str(uuid), payload=str(payload))

    async def sign_in(self, uuid: str, signature: str) -> str:
        data = await self._request(
            "POST",
            "/auth/simpleSignIn",
            json={"uuid": uuid, "data": signature},
        )
        token = data.get("token") if isinstance(data, dict) else None
        if not token or not str(token).strip():
            raise ParseError("POST /auth/simpleSignIn: missing 'token'")
        return str(token).strip()

    # ---- dispenser ----

    async def create_task(self, token: str, request: TaskRequest) -> TaskDescriptor:
        body = request.to_json()
        logger.debug("POST /dispenser/tasks pg=%s body=%s", request.product_group_code, body)
        data = await self._request(
            "POST",
            "/dispenser/tasks",
            json=body,
            headers=self._bearer(token),
        )
        return TaskDescriptor.from_json(data)

    async def get_task(self, token: str, task_id: str, product_group_code: int) -> TaskStatusDescriptor:
        data = await self._request(
            "GET",
            f"/dispenser/tasks/{task_id}",
            params={"pg": product_group_code},
            headers=self._bearer(token),
        )
        return TaskStatusDescriptor.from_json(data)
