# src/znak_dispenser/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Components get settings injected by the composition root (cli/bootstrap.py).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "ZNAK"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int_list(name: str, default: List[int]) -> List[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    try:
        return [int(p) for p in raw.replace(",", " ").split() if p.strip()]
    except ValueError:
        return list(default)


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def default_data_dir() -> Path:
    """
    Per-user application directory:
    - Windows: %APPDATA%\\znak-dispenser
    - Linux/macOS: ~/.znak
    """
    if sys.platform.startswith("win"):
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata) / "znak-dispenser"
    return Path.home() / ".znak"


DEFAULT_PRODUCT_GROUP_CODES = [12, 16, 20]
DEFAULT_VIOLATION_CATEGORIES = [1, 2, 4, 5, 6, 7, 8, 9, 10]
DEFAULT_VIOLATION_KINDS = [
    1, 2, 5, 12, 13, 3, 24, 25, 6, 7, 10, 11, 14, 15, 16, 17, 18, 19, 20, 21, 22, 23, 26,
]


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths ----
    data_dir: Path
    token_path: Path
    cert_dir: Path

    # ---- True API ----
    api_base_url: str
    user_agent: str
    http_connect_timeout: float
    http_read_timeout: float

    # ---- Signing tool ----
    cryptcp_path: Optional[str]
    signing_timeout_seconds: float

    # ---- Retry policy ----
    retry_max_attempts: int
    retry_base_delay_seconds: float
    retry_multiplier: float

    # ---- Report round ----
    product_group_codes: List[int]
    report_name: str
    report_format: str
    report_periodicity: str
    violation_categories: List[int]
    violation_kinds: List[int]
    task_max_age_days: int

    # ---- Poller ----
    poll_interval_seconds: float
    poll_initial_delay_seconds: float

    # ---- Console ----
    cert_list_limit: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "znak-dispenser")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), default_data_dir())
        token_path = _env_path(_k("TOKEN_PATH"), data_dir / "token.dat")
        cert_dir = _env_path(_k("CERT_DIR"), data_dir / "certs")

        api_base_url = _env(_k("API_BASE_URL"), "https://markirovka.crpt.ru/api/v3/true-api").rstrip("/")
        user_agent = _env(_k("USER_AGENT"), "znak-dispenser/0.1")
        http_connect_timeout = _env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 10.0)
        http_read_timeout = _env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 30.0)

        cryptcp_path = _env(_k("CRYPTCP_PATH"), "").strip() or None
        signing_timeout_seconds = _env_float(_k("SIGNING_TIMEOUT_SECONDS"), 120.0)

        retry_max_attempts = max(1, _env_int(_k("RETRY_MAX_ATTEMPTS"), 4))
        retry_base_delay_seconds = max(0.0, _env_float(_k("RETRY_BASE_DELAY_SECONDS"), 1.0))
        retry_multiplier = max(1.0, _env_float(_k("RETRY_MULTIPLIER"), 2.0))

        product_group_codes = _env_int_list(_k("PRODUCT_GROUP_CODES"), DEFAULT_PRODUCT_GROUP_CODES)
        report_name = _env(_k("REPORT_NAME"), "VIOLATIONS")
        report_format = _env(_k("REPORT_FORMAT"), "CSV")
        report_periodicity = _env(_k("REPORT_PERIODICITY"), "SINGLE")
        violation_categories = _env_int_list(_k("VIOLATION_CATEGORIES"), DEFAULT_VIOLATION_CATEGORIES)
        violation_kinds = _env_int_list(_k("VIOLATION_KINDS"), DEFAULT_VIOLATION_KINDS)
        task_max_age_days = max(1, _env_int(_k("TASK_MAX_AGE_DAYS"), 7))

        poll_interval_seconds = max(1.0, _env_float(_k("POLL_INTERVAL_SECONDS"), 30.0))
        poll_initial_delay_seconds = max(0.0, _env_float(_k("POLL_INITIAL_DELAY_SECONDS"), 2.0))

        cert_list_limit = max(1, _env_int(_k("CERT_LIST_LIMIT"), 6))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            token_path=token_path,
            cert_dir=cert_dir,
            api_base_url=api_base_url,
            user_agent=user_agent,
            http_connect_timeout=http_connect_timeout,
            http_read_timeout=http_read_timeout,
            cryptcp_path=cryptcp_path,
            signing_timeout_seconds=signing_timeout_seconds,
            retry_max_attempts=retry_max_attempts,
            retry_base_delay_seconds=retry_base_delay_seconds,
            retry_multiplier=retry_multiplier,
            product_group_codes=product_group_codes,
            report_name=report_name,
            report_format=report_format,
            report_periodicity=report_periodicity,
            violation_categories=violation_categories,
            violation_kinds=violation_kinds,
            task_max_age_days=task_max_age_days,
            poll_interval_seconds=poll_interval_seconds,
            poll_initial_delay_seconds=poll_initial_delay_seconds,
            cert_list_limit=cert_list_limit,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
