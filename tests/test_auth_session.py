# tests/test_auth_session.py

from __future__ import annotations

import asyncio

import pytest

from znak_dispenser.auth.session import AuthSession, SessionState
from znak_dispenser.auth.signer import SelectorKind
from znak_dispenser.core.errors import InvocationFailed, NetworkError, ServerRejected
from znak_dispenser.net.retry import RetryPolicy

from .fakes import FakeSigner, MemoryTokenStore, make_identity


def _session(fake_api, signer, paths, sleep, *, token_store=None, hook=None) -> AuthSession:
    return AuthSession(
        fake_api,
        signer,
        token_store if token_store is not None else MemoryTokenStore(),
        paths,
        retry_policy=RetryPolicy(),
        on_authenticated=hook,
        sleep=sleep,
    )


@pytest.mark.asyncio
async def test_login_success_saves_token_and_cleans_up(fake_api, fake_signer, paths, sleep) -> None:
    tokens = MemoryTokenStore()
    session = _session(fake_api, fake_signer, paths, sleep, token_store=tokens)

    result = await session.login(make_identity())

    assert result.ok is True
    assert session.state == SessionState.AUTHENTICATED
    assert tokens.load() == "tok-123"

    # Challenge payload reached the signer; cleaned signature reached the platform.
    challenge_path, selector, payload = fake_signer.calls[0]
    assert challenge_path == paths.key_path
    assert payload == b"challenge-payload"
    assert selector.kind == SelectorKind.THUMBPRINT
    assert selector.value == "ABCDEF01"
    assert ("sign_in", "uuid-1", "MIIBsigPART2") in fake_api.calls

    assert not paths.key_path.exists()
    assert not paths.sig_path.exists()


@pytest.mark.asyncio
async def test_empty_thumbprint_falls_back_to_common_name(fake_api, fake_signer, paths, sleep) -> None:
    session = _session(fake_api, fake_signer, paths, sleep)

    result = await session.login(make_identity(thumbprint=""))

    assert result.ok is True
    _, selector, _ = fake_signer.calls[0]
    assert selector.kind == SelectorKind.DISTINGUISHED_NAME
    assert selector.value == "Ivanov Ivan"


@pytest.mark.asyncio
async def test_signing_failure_is_not_retried_and_cleans_up(fake_api, paths, sleep) -> None:
    signer = FakeSigner(error=InvocationFailed(2, "key not found"))
    tokens = MemoryTokenStore()
    session = _session(fake_api, signer, paths, sleep, token_store=tokens)

    result = await session.login(make_identity())

    assert result.ok is False
    assert session.state == SessionState.FAILED
    assert isinstance(result.error, InvocationFailed)
    assert "key not found" in result.message
    assert len(signer.calls) == 1
    assert not any(c[0] == "sign_in" for c in fake_api.calls)
    assert tokens.has_token() is False
    assert not paths.key_path.exists()
    assert not paths.sig_path.exists()


@pytest.mark.asyncio
async def test_rejected_confirmation_fails_once_and_cleans_up(fake_api, fake_signer, paths, sleep) -> None:
    fake_api.sign_in_error = ServerRejected(400, '{"error_message":"bad signature"}')
    session = _session(fake_api, fake_signer, paths, sleep)

    result = await session.login(make_identity())

    assert result.ok is False
    assert session.state == SessionState.FAILED
    assert isinstance(session.failure, ServerRejected)
    assert sum(1 for c in fake_api.calls if c[0] == "sign_in") == 1
    assert sleep.delays == []
    assert not paths.key_path.exists()
    assert not paths.sig_path.exists()


@pytest.mark.asyncio
async def test_challenge_request_is_retried_then_fails(fake_api, fake_signer, paths, sleep) -> None:
    fake_api.auth_key_errors = [NetworkError(f"down {i}") for i in range(4)]
    session = _session(fake_api, fake_signer, paths, sleep)

    result = await session.login(make_identity())

    assert result.ok is False
    assert isinstance(result.error, NetworkError)
    assert str(result.error) == "down 3"
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert fake_signer.calls == []


@pytest.mark.asyncio
async def test_transient_challenge_failure_recovers(fake_api, fake_signer, paths, sleep) -> None:
    fake_api.auth_key_errors = [NetworkError("blip")]
    session = _session(fake_api, fake_signer, paths, sleep)

    result = await session.login(make_identity())

    assert result.ok is True
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_post_login_hook_runs_detached_and_cannot_fail_login(fake_api, fake_signer, paths, sleep) -> None:
    ran: list[str] = []

    async def hook() -> None:
        ran.append("round")
        raise RuntimeError("round exploded")

    session = _session(fake_api, fake_signer, paths, sleep, hook=hook)

    result = await session.login(make_identity())
    await session.wait_background()

    assert result.ok is True
    assert ran == ["round"]
    assert session.state == SessionState.AUTHENTICATED


@pytest.mark.asyncio
async def test_new_login_after_failure_uses_new_challenge(fake_api, fake_signer, paths, sleep) -> None:
    fake_api.sign_in_error = ServerRejected(401, "expired")
    session = _session(fake_api, fake_signer, paths, sleep)
    assert (await session.login(make_identity())).ok is False

    fake_api.sign_in_error = None
    assert (await session.login(make_identity())).ok is True
    assert sum(1 for c in fake_api.calls if c[0] == "get_auth_key") == 2


@pytest.mark.asyncio
async def test_logout_clears_token(fake_api, fake_signer, paths, sleep) -> None:
    tokens = MemoryTokenStore()
    session = _session(fake_api, fake_signer, paths, sleep, token_store=tokens)
    await session.login(make_identity())

    assert await session.logout() is True

    assert tokens.has_token() is False
    assert session.state == SessionState.IDLE
    assert session.identity is None


@pytest.mark.asyncio
async def test_logout_is_refused_while_login_runs(fake_api, fake_signer, paths, sleep) -> None:
    tokens = MemoryTokenStore()
    session = _session(fake_api, fake_signer, paths, sleep, token_store=tokens)
    fake_api.sign_in_gate = asyncio.Event()

    login = asyncio.create_task(session.login(make_identity()))
    for _ in range(200):
        if session.state == SessionState.CONFIRM_PENDING:
            break
        await asyncio.sleep(0.01)
    assert session.state == SessionState.CONFIRM_PENDING

    assert await session.logout() is False
    assert session.state == SessionState.CONFIRM_PENDING

    fake_api.sign_in_gate.set()
    result = await login

    # The operator was told logout did not happen, and the login finished normally.
    assert result.ok is True
    assert session.state == SessionState.AUTHENTICATED
    assert tokens.load() == "tok-123"

    assert await session.logout() is True
    assert tokens.has_token() is False


@pytest.mark.asyncio
async def test_login_is_refused_while_another_runs(fake_api, fake_signer, paths, sleep) -> None:
    session = _session(fake_api, fake_signer, paths, sleep)
    fake_api.sign_in_gate = asyncio.Event()

    first = asyncio.create_task(session.login(make_identity()))
    for _ in range(200):
        if session.state == SessionState.CONFIRM_PENDING:
            break
        await asyncio.sleep(0.01)

    second = await session.login(make_identity())
    assert second.ok is False
    assert second.message == "Login is already in progress."

    fake_api.sign_in_gate.set()
    assert (await first).ok is True
