# src/znak_dispenser/core/state.py

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..core.models import Identity
from ..core.ports import CertificateDirectory
from ..storage.paths import AppPaths

if TYPE_CHECKING:
    from ..auth.session import AuthSession
    from ..connectors.background import BackgroundRunner
    from ..dispenser.task_dispatcher import TaskDispatcher
    from ..dispenser.task_models import SubmissionOutcome
    from ..dispenser.task_poller import TaskPoller
    from ..dispenser.task_registry import TaskRegistry
    from ..net.true_api import TrueApiClient
    from ..storage.token_store import TokenStore

Notifier = Callable[[str], None]


def _silent(_text: str) -> None:
    return None


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    paths: AppPaths
    token_store: TokenStore
    api: TrueApiClient
    session: AuthSession
    registry: TaskRegistry
    dispatcher: TaskDispatcher
    poller: TaskPoller
    certificates: CertificateDirectory

    # Console-side state: last listed identities (for /login <n>) and last round outcomes.
    listed_identities: list[Identity] = field(default_factory=list)
    last_outcomes: list[SubmissionOutcome] = field(default_factory=list)

    # Background event loop (set by cli/main.py once started).
    runner: BackgroundRunner | None = None

    # Where background work reports user-visible text (console sets this).
    notify: Notifier = _silent
