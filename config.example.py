# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Never commit the token file or a .env that points at a production store.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "ZNAK_APP_NAME": "App display name (default: znak-dispenser).",
    "ZNAK_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths
    "ZNAK_DATA_DIR": "Per-user data directory (default: %APPDATA%/znak-dispenser on Windows, ~/.znak elsewhere).",
    "ZNAK_TOKEN_PATH": "Bearer token file (default: <data_dir>/token.dat).",
    "ZNAK_CERT_DIR": "Directory of exported certificates shown by /certs (default: <data_dir>/certs).",
    # Platform
    "ZNAK_API_BASE_URL": "True API base URL (default: https://markirovka.crpt.ru/api/v3/true-api).",
    "ZNAK_USER_AGENT": "User-Agent header sent with every request.",
    "ZNAK_HTTP_CONNECT_TIMEOUT_SECONDS": "Connect timeout per request (default: 10).",
    "ZNAK_HTTP_READ_TIMEOUT_SECONDS": "Read timeout per request (default: 30).",
    # Signing
    "ZNAK_CRYPTCP_PATH": "Explicit path to CryptoPro cryptcp (default: known install dirs, then PATH).",
    "ZNAK_SIGNING_TIMEOUT_SECONDS": "How long cryptcp may run (default: 120).",
    # Retry
    "ZNAK_RETRY_MAX_ATTEMPTS": "Attempts per request (default: 4).",
    "ZNAK_RETRY_BASE_DELAY_SECONDS": "Delay before the first retry (default: 1).",
    "ZNAK_RETRY_MULTIPLIER": "Delay growth factor between retries (default: 2).",
    # Reports
    "ZNAK_PRODUCT_GROUP_CODES": "Comma/space separated product group codes (default: 12,16,20).",
    "ZNAK_REPORT_NAME": "Report type requested from the dispenser (default: VIOLATIONS).",
    "ZNAK_REPORT_FORMAT": "Report file format (default: CSV).",
    "ZNAK_REPORT_PERIODICITY": "Report periodicity (default: SINGLE).",
    "ZNAK_VIOLATION_CATEGORIES": "Comma/space separated violation category codes.",
    "ZNAK_VIOLATION_KINDS": "Comma/space separated violation kind codes.",
    "ZNAK_TASK_MAX_AGE_DAYS": "Tasks older than this are dropped at the next round (default: 7).",
    # Poller
    "ZNAK_POLL_INTERVAL_SECONDS": "Seconds between status checks (default: 30).",
    "ZNAK_POLL_INITIAL_DELAY_SECONDS": "Delay before the first status check (default: 2).",
    # Console
    "ZNAK_CERT_LIST_LIMIT": "How many certificates /certs shows (default: 6).",
}
