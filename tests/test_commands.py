# tests/test_commands.py

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from znak_dispenser.auth.session import SessionState
from znak_dispenser.cli.bootstrap import create_initial_state
from znak_dispenser.cli.commands import registry
from znak_dispenser.connectors.background import start_background
from znak_dispenser.core.models import Identity

from .fakes import make_identity


@pytest.fixture()
def state(settings, fake_api, fake_signer):
    return create_initial_state(settings=settings, api=fake_api, signer=fake_signer)


def test_non_command_and_unknown_command(state) -> None:
    assert registry.handle(state, "hello") is None
    assert registry.handle(state, "/") == "Empty command. Use /help to list available commands."
    assert "Unknown command: /frobnicate" in registry.handle(state, "/frobnicate")


def test_help_lists_commands_and_aliases_work(state) -> None:
    text = registry.handle(state, "/help")
    for name in ("/certs", "/login", "/submit", "/tasks", "/status", "/logout"):
        assert name in text
    assert registry.handle(state, "/?") == text


def test_certs_on_empty_directory(state, settings) -> None:
    reply = registry.handle(state, "/certs")
    assert reply == f"No certificates found in {settings.cert_dir}."
    assert state.listed_identities == []


class StaticCertificates:
    """In-memory certificate source."""

    def __init__(self, identities: list[Identity]) -> None:
        self._identities = identities

    @property
    def cert_dir(self) -> Path:
        return Path("memory")

    def list_identities(self) -> list[Identity]:
        return list(self._identities)


def test_certs_lists_any_certificate_source(state) -> None:
    state.certificates = StaticCertificates(
        [make_identity(subject_name=f"CN=User {i}, SN=Surname{i}, O=Shop LLC") for i in range(1, 8)]
    )

    reply = registry.handle(state, "/certs")
    assert reply.startswith("Found: 7 certificates (showing 6)")
    assert "1. CN=Test CA\n   Surname1" in reply
    assert len(state.listed_identities) == 6

    reply = registry.handle(state, "/certs surname7")
    assert reply.startswith("Found: 1 certificates")
    assert [i.short_name for i in state.listed_identities] == ["Surname7"]


def test_login_argument_validation(state) -> None:
    assert registry.handle(state, "/login").startswith("Usage:")
    assert "number" in registry.handle(state, "/login abc")
    assert registry.handle(state, "/login 1").startswith("No such certificate")

    state.listed_identities = [make_identity()]
    assert registry.handle(state, "/login 1") == "Background loop is not running."
    assert registry.handle(state, "/logout") == "Background loop is not running."
    assert registry.handle(state, "/submit") == "Background loop is not running."


def test_tasks_and_status_before_login(state) -> None:
    assert registry.handle(state, "/tasks") == "No tasks yet. Log in or use /submit."

    status = registry.handle(state, "/status")
    assert "Session: idle (-)" in status
    # The token file is only read on the background loop; nothing has read it yet.
    assert "Token: not checked yet" in status
    assert "Tasks in registry: 0" in status
    assert "Poller: stopped" in status


@pytest.mark.asyncio
async def test_login_triggers_round_and_poller(state, fake_api) -> None:
    notes: list[str] = []
    state.notify = notes.append
    identity: Identity = make_identity()

    result = await state.session.login(identity)
    assert result.ok, result.message
    await state.session.wait_background()

    try:
        assert state.session.state is SessionState.AUTHENTICATED
        assert state.token_store.load() == "tok-123"
        assert sorted(r.id for r in state.registry.snapshot()) == ["task-12", "task-16", "task-20"]
        assert [n[:4] for n in notes] == ["OK  ", "OK  ", "OK  "]
        assert state.poller.running

        tasks = registry.handle(state, "/tasks")
        assert "task-16" in tasks
        status = registry.handle(state, "/status")
        assert "Token: present" in status
        assert "Session: authenticated (Ivanov)" in status
    finally:
        await state.poller.stop()

    assert await state.session.logout() is True
    assert "Token: missing" in registry.handle(state, "/status")
    assert not state.token_store.has_token()


async def _make_gate() -> asyncio.Event:
    return asyncio.Event()


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture()
def running_state(state) -> Iterator:
    """State with a live background loop, as cli/main.py wires it."""
    runner = start_background(state)
    assert runner is not None
    state.runner = runner
    try:
        # Startup reads the token file once; let that finish before the test touches it.
        assert _wait_until(lambda: state.token_store.known_presence is not None)
        yield state
    finally:
        runner.stop()
        runner.join(timeout=5.0)


def test_submit_without_token_reports_not_logged_in(running_state) -> None:
    notes: list[str] = []
    running_state.notify = notes.append
    emitted: list[str] = []

    assert registry.handle(running_state, "/submit", emit=emitted.append) == "Submission round started."

    assert _wait_until(lambda: bool(notes))
    assert notes == ["Not logged in. Use /login <n> to sign in with a certificate."]
    assert emitted == []
    assert len(running_state.registry) == 0
    assert not running_state.poller.running


def test_status_shows_token_presence_read_in_background(running_state) -> None:
    assert _wait_until(lambda: running_state.token_store.known_presence is not None)
    assert "Token: missing" in registry.handle(running_state, "/status")


def test_logout_runs_on_background_loop(running_state) -> None:
    running_state.token_store.save("tok-old")
    emitted: list[str] = []

    assert registry.handle(running_state, "/logout", emit=emitted.append) == "Logging out..."

    assert _wait_until(lambda: bool(emitted))
    assert emitted == ["Logged out. Token removed."]
    assert not running_state.token_store.has_token()
    assert "Token: missing" in registry.handle(running_state, "/status")


def test_logout_during_login_is_refused(running_state, fake_api) -> None:
    gate = running_state.runner.submit(_make_gate())
    fake_api.sign_in_gate = gate.result(timeout=5.0)
    running_state.listed_identities = [make_identity()]
    emitted: list[str] = []

    registry.handle(running_state, "/login 1", emit=emitted.append)
    assert _wait_until(lambda: running_state.session.state is SessionState.CONFIRM_PENDING)

    registry.handle(running_state, "/logout", emit=emitted.append)
    assert _wait_until(lambda: bool(emitted))
    assert emitted == ["Login is in progress. Use /logout after it finishes."]

    running_state.runner.loop.call_soon_threadsafe(fake_api.sign_in_gate.set)
    assert _wait_until(lambda: len(emitted) == 2)
    assert emitted[1] == "Login successful. Token saved."
    assert running_state.token_store.known_presence is True
