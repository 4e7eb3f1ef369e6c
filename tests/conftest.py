# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from znak_dispenser.storage.paths import AppPaths

from .fakes import FakeSigner, FakeTrueApi, RecordingSleep


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    data_dir = tmp_path / "data"
    return SimpleNamespace(
        app_name="znak-test",
        log_level="DEBUG",
        data_dir=data_dir,
        token_path=data_dir / "token.dat",
        cert_dir=tmp_path / "certs",
        api_base_url="https://api.test/api/v3/true-api",
        user_agent="znak-test",
        http_connect_timeout=1.0,
        http_read_timeout=1.0,
        cryptcp_path=None,
        signing_timeout_seconds=5.0,
        # No real waiting between retries in tests.
        retry_max_attempts=4,
        retry_base_delay_seconds=0.0,
        retry_multiplier=2.0,
        product_group_codes=[12, 16, 20],
        report_name="VIOLATIONS",
        report_format="CSV",
        report_periodicity="SINGLE",
        violation_categories=[1, 2],
        violation_kinds=[5, 6],
        task_max_age_days=7,
        poll_interval_seconds=0.01,
        poll_initial_delay_seconds=0.0,
        cert_list_limit=6,
    )


@pytest.fixture()
def paths(tmp_path: Path) -> AppPaths:
    p = AppPaths(base_dir=tmp_path / "app")
    p.ensure()
    return p


@pytest.fixture()
def fake_api() -> FakeTrueApi:
    return FakeTrueApi()


@pytest.fixture()
def fake_signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()
