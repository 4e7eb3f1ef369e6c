# src/znak_dispenser/auth/session.py

from __future__ import annotations

"""
Challenge/response login.

IDLE -> CHALLENGE_REQUESTED -> SIGNING -> CONFIRM_PENDING -> AUTHENTICATED
Any non-terminal state can end in FAILED. A new login always starts from a fresh
challenge (challenges are single-use).

Only the challenge request goes through the retry helper. Signing and the
confirmation POST run once per challenge.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..core.errors import StorageError, ZnakError, friendly_error_message
from ..core.models import Identity
from ..core.ports import AuthApi, Signer, TokenRepo
from ..net.retry import RetryPolicy, Sleep, run_with_retry
from ..storage.paths import AppPaths
from .signer import clean_signature, selector_for

logger = logging.getLogger(__name__)

AfterLogin = Callable[[], Awaitable[Any]]


class SessionState(str, Enum):
    IDLE = "idle"
    CHALLENGE_REQUESTED = "challenge_requested"
    SIGNING = "signing"
    CONFIRM_PENDING = "confirm_pending"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class LoginResult:
    ok: bool
    message: str
    state: SessionState
    error: ZnakError | None = None


class AuthSession:
    def __init__(
            self,
            api: AuthApi,
            signer: Signer,
            token_store: TokenRepo,
            paths: AppPaths,
            *,
            retry_policy: RetryPolicy | None = None,
            on_authenticated: AfterLogin | None = None,
            sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._api = api
        self._signer = signer
        self._token_store = token_store
        self._paths = paths
        self._retry_policy = retry_policy or RetryPolicy()
        self._on_authenticated = on_authenticated
        self._sleep = sleep

        self._state = SessionState.IDLE
        self._failure: ZnakError | None = None
        self._identity: Identity | None = None
        self._busy = False
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def failure(self) -> ZnakError | None:
        return self._failure

    @property
    def identity(self) -> Identity | None:
        return self._identity

    def set_on_authenticated(self, hook: AfterLogin | None) -> None:
        self._on_authenticated = hook

    def _move(self, state: SessionState) -> None:
        logger.debug("Session %s -> %s", self._state.value, state.value)
        self._state = state

    def _fail(self, err: ZnakError) -> LoginResult:
        failed_in = self._state
        self._failure = err
        self._move(SessionState.FAILED)
        logger.warning("Login failed in state %s: %s", failed_in.value, err)
        return LoginResult(ok=False, message=friendly_error_message(err), state=self._state, error=err)

    async def login(self, identity: Identity) -> LoginResult:
        if self._busy:
            return LoginResult(ok=False, message="Login is already in progress.", state=self._state)

        self._busy = True
        try:
            return await self._login(identity)
        finally:
            self._busy = False

    async def _login(self, identity: Identity) -> LoginResult:
        self._failure = None
        self._identity = identity
        self._move(SessionState.IDLE)
        logger.info("Login started for %s", identity.subject_name)

        self._move(SessionState.CHALLENGE_REQUESTED)
        try:
            challenge = await run_with_retry(
                self._api.get_auth_key,
                policy=self._retry_policy,
                sleep=self._sleep,
                label="GET /auth/key",
            )
        except ZnakError as e:
            return self._fail(e)

        key_path = self._paths.key_path
        try:
            self._move(SessionState.SIGNING)
            try:
                await asyncio.to_thread(self._write_challenge, challenge.payload)
                raw = await asyncio.to_thread(self._signer.sign, key_path, selector_for(identity))
                signature = clean_signature(raw)
            except ZnakError as e:
                return self._fail(e)

            self._move(SessionState.CONFIRM_PENDING)
            try:
                token = await self._api.sign_in(challenge.uuid, signature)
                await asyncio.to_thread(self._token_store.save, token)
            except ZnakError as e:
                return self._fail(e)
        finally:
            await asyncio.to_thread(self._paths.cleanup_temp_files)

        self._move(SessionState.AUTHENTICATED)
        logger.info("Login successful for %s", identity.subject_name)
        self._schedule_after_login()
        return LoginResult(ok=True, message="Login successful. Token saved.", state=self._state)

    def _write_challenge(self, payload: str) -> None:
        self._paths.ensure()
        try:
            self._paths.key_path.write_bytes(payload.encode("utf-8"))
        except OSError as e:
            raise StorageError(f"cannot write {self._paths.key_path}: {e}") from e

    def _schedule_after_login(self) -> None:
        """Start the post-login work detached: its outcome never changes the login result."""
        hook = self._on_authenticated
        if hook is None:
            return

        task = asyncio.create_task(hook())
        self._background.add(task)
        task.add_done_callback(self._after_login_done)

    def _after_login_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Post-login action failed: %s", exc, exc_info=exc)

    async def wait_background(self) -> None:
        """Wait for detached post-login work (used on shutdown and in tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def logout(self) -> bool:
        """
        Forget the saved token and return to IDLE.

        Refused (False) while a login is running: that login would save a new
        token right after this one was removed.
        """
        if self._busy:
            logger.info("Logout refused: login in progress.")
            return False

        self._busy = True
        try:
            await asyncio.to_thread(self._token_store.clear)
        finally:
            self._busy = False

        self._identity = None
        self._failure = None
        self._move(SessionState.IDLE)
        logger.info("Logged out.")
        return True
