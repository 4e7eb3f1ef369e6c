# src/znak_dispenser/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the per-user data directory exists,
- wires concrete implementations into AppState (API client, signer, session,
  registry, dispatcher, poller, certificate directory).
"""

from __future__ import annotations

import logging

from ..auth.session import AuthSession
from ..auth.signer import CryptcpSigner
from ..certs.directory import FileCertificateDirectory
from ..config import get_settings
from ..core.ports import Signer
from ..core.state import AppState
from ..dispenser.task_api import run_submission_round
from ..dispenser.task_dispatcher import ReportTemplate, TaskDispatcher
from ..dispenser.task_poller import TaskPoller
from ..dispenser.task_registry import TaskRegistry
from ..net.retry import RetryPolicy
from ..net.true_api import TrueApiClient
from ..storage.paths import AppPaths
from ..storage.token_store import TokenStore

logger = logging.getLogger(__name__)


def create_initial_state(*, settings=None, api: TrueApiClient | None = None, signer: Signer | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the API client / signer) injectable makes the app easier
    to test and avoids hidden global config reads. If settings is None, falls back
    to get_settings().
    """
    if settings is None:
        settings = get_settings()

    paths = AppPaths(base_dir=settings.data_dir, token_file=settings.token_path)
    paths.ensure()

    retry_policy = RetryPolicy.from_settings(settings)
    token_store = TokenStore(paths.token_path)
    registry = TaskRegistry()

    if api is None:
        api = TrueApiClient.from_settings(settings)
    if signer is None:
        signer = CryptcpSigner(settings.cryptcp_path, timeout=settings.signing_timeout_seconds)

    session = AuthSession(api, signer, token_store, paths, retry_policy=retry_policy)
    dispatcher = TaskDispatcher(
        api,
        token_store,
        registry,
        product_group_codes=settings.product_group_codes,
        template=ReportTemplate.from_settings(settings),
        retry_policy=retry_policy,
        max_age_days=settings.task_max_age_days,
    )
    poller = TaskPoller(
        api,
        token_store,
        registry,
        retry_policy=retry_policy,
        interval_seconds=settings.poll_interval_seconds,
        initial_delay_seconds=settings.poll_initial_delay_seconds,
    )

    state = AppState(
        settings=settings,
        paths=paths,
        token_store=token_store,
        api=api,
        session=session,
        registry=registry,
        dispatcher=dispatcher,
        poller=poller,
        certificates=FileCertificateDirectory(settings.cert_dir),
    )

    # Login success kicks off a submission round in the background.
    session.set_on_authenticated(lambda: run_submission_round(state))

    logger.info("State ready: data_dir=%s api=%s", paths.base_dir, settings.api_base_url)
    return state
