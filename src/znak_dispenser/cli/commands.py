# src/znak_dispenser/cli/commands.py

from __future__ import annotations

import concurrent.futures
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from ..auth.session import LoginResult
from ..certs.directory import search_identities
from ..core.errors import ZnakError, friendly_error_message
from ..core.state import AppState
from ..dispenser.task_api import run_submission_round
from ..dispenser.task_models import TaskStatusView

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /certs, /login, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."
        return handler(state, args, emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _emit_safely(emit: CommandEmitter | None, text: str) -> None:
    if emit is None:
        return
    with contextlib.suppress(Exception):
        emit(text)


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_certs(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /certs          -> list certificates
    /certs <query>  -> only those whose subject contains <query>
    """
    query = " ".join(args)
    found = search_identities(state.certificates.list_identities(), query)
    limit = int(getattr(state.settings, "cert_list_limit", 6))
    state.listed_identities = found[:limit]

    if not found:
        return f"No certificates found in {state.certificates.cert_dir}."

    lines = [f"Found: {len(found)} certificates" + (f" (showing {limit})" if len(found) > limit else "")]
    for i, ident in enumerate(state.listed_identities, start=1):
        lines.append(f"{i}. {ident.issuer_name}")
        lines.append(f"   {ident.short_name}")
        lines.append(f"   Valid: {ident.validity_text()}")
    lines.append("Use /login <n> to sign in.")
    return "\n".join(lines)


def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /login <n> (run /certs first)."
    try:
        index = int(args[0])
    except ValueError:
        return "Usage: /login <n> where <n> is a number from /certs."
    if not 1 <= index <= len(state.listed_identities):
        return "No such certificate. Run /certs and pick a number from the list."
    if state.runner is None:
        return "Background loop is not running."

    identity = state.listed_identities[index - 1]
    future = state.runner.submit(state.session.login(identity))

    def done(f: concurrent.futures.Future[LoginResult]) -> None:
        try:
            result = f.result()
        except Exception as e:
            logger.exception("Login crashed.")
            _emit_safely(emit, f"Login failed: {e}")
            return
        _emit_safely(emit, result.message)

    future.add_done_callback(done)
    return f"Preparing and signing with: {identity.short_name} ..."


def cmd_submit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.runner is None:
        return "Background loop is not running."

    future = state.runner.submit(run_submission_round(state))

    def done(f: concurrent.futures.Future[Any]) -> None:
        try:
            f.result()
        except ZnakError:
            # Already reported through state.notify.
            return
        except Exception as e:
            logger.exception("Submission round crashed.")
            _emit_safely(emit, f"Submission round failed: {friendly_error_message(e)}")

    future.add_done_callback(done)
    return "Submission round started."


def _render_view(view: TaskStatusView) -> str:
    mark = "DONE" if view.is_completed else ("ERR " if view.error else "... ")
    line = f"[{mark}] #{view.product_group_code} {view.display_name} (id: {view.id}) {view.status}"
    if view.error:
        line += f" - {view.error}"
    if view.download_url:
        line += f" - {view.download_url}"
    return line


def cmd_tasks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    views = state.poller.statuses()
    if views:
        return "Tasks:\n" + "\n".join(_render_view(v) for v in views)

    records = state.registry.snapshot()
    if not records:
        return "No tasks yet. Log in or use /submit."
    lines = ["Tasks (waiting for first status check):"]
    for r in records:
        lines.append(f"[... ] #{r.product_group_code} {r.display_name} (id: {r.id}) {r.status}")
    return "\n".join(lines)


_TOKEN_PRESENCE = {True: "present", False: "missing", None: "not checked yet"}


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.session
    who = session.identity.short_name if session.identity is not None else "-"
    lines = [
        "Status:",
        f"  Session: {session.state.value} ({who})",
        f"  Token: {_TOKEN_PRESENCE[state.token_store.known_presence]}",
        f"  Tasks in registry: {len(state.registry)}",
        f"  Poller: {'running' if state.poller.running else 'stopped'}",
    ]
    if session.failure is not None:
        lines.append(f"  Last failure: {friendly_error_message(session.failure)}")
    if state.last_outcomes:
        lines.append("  Last round:")
        lines.extend(f"    {o.message}" for o in state.last_outcomes)
    return "\n".join(lines)


def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.runner is None:
        return "Background loop is not running."

    future = state.runner.submit(state.session.logout())

    def done(f: concurrent.futures.Future[bool]) -> None:
        try:
            logged_out = f.result()
        except ZnakError as e:
            _emit_safely(emit, f"Logout failed: {friendly_error_message(e)}")
            return
        except Exception as e:
            logger.exception("Logout crashed.")
            _emit_safely(emit, f"Logout failed: {e}")
            return
        if logged_out:
            _emit_safely(emit, "Logged out. Token removed.")
        else:
            _emit_safely(emit, "Login is in progress. Use /logout after it finishes.")

    future.add_done_callback(done)
    return "Logging out..."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("certs", cmd_certs, help_text="List certificates: /certs [search text].")
registry.register("login", cmd_login, help_text="Sign in with a listed certificate: /login <n>.")
registry.register("submit", cmd_submit, help_text="Request last week's reports for all product groups.")
registry.register("tasks", cmd_tasks, help_text="Show report task statuses.")
registry.register("status", cmd_status, help_text="Show session, token and poller state.")
registry.register("logout", cmd_logout, help_text="Forget the saved token.")
