# src/znak_dispenser/dispenser/task_api.py

from __future__ import annotations

import logging

from ..core.errors import ZnakError, friendly_error_message
from ..core.state import AppState
from .task_models import SubmissionOutcome

logger = logging.getLogger(__name__)


async def run_submission_round(state: AppState) -> list[SubmissionOutcome]:
    """
    Submit one report round, report every outcome through state.notify and make
    sure the poller is running afterwards.

    Used as the post-login hook and by the /submit command.
    """
    try:
        outcomes = await state.dispatcher.submit_all()
    except ZnakError as e:
        state.notify(friendly_error_message(e))
        raise

    state.last_outcomes = outcomes
    for outcome in outcomes:
        state.notify(("OK  " if outcome.ok else "ERR ") + outcome.message)

    if state.poller.start():
        logger.info("Task poller scheduled after submission round.")
    return outcomes
