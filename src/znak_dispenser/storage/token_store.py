# src/znak_dispenser/storage/token_store.py

from __future__ import annotations

import contextlib
import logging
import os
import threading
from pathlib import Path

from ..core.errors import NotAuthenticated, StorageError

logger = logging.getLogger(__name__)


class TokenStore:
    """
    Single-slot bearer token storage backed by one cleartext file.

    Concurrency:
    - writers are serialized by a lock; the last writer wins
    - readers never take the lock: writes go through a temp file + os.replace,
      so a reader sees either the previous token or the new one, never a mix
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._write_lock = threading.Lock()
        self._present: bool | None = None

    @property
    def path(self) -> Path:
        return self._path

    def save(self, token: str) -> None:
        value = (token or "").strip()
        if not value:
            raise StorageError("refusing to save an empty token")

        with self._write_lock:
            tmp = self._path.with_name(self._path.name + ".tmp")
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(value, "utf-8")
                os.replace(tmp, self._path)
            except OSError as e:
                raise StorageError(f"cannot write token to {self._path}: {e}") from e
            with contextlib.suppress(OSError):
                # Token is a credential: keep it private on disk (no-op on Windows).
                os.chmod(self._path, 0o600)
            self._present = True

        logger.info("Token saved to %s", self._path)

    def load(self) -> str:
        try:
            raw = self._path.read_text("utf-8")
        except FileNotFoundError:
            self._present = False
            raise NotAuthenticated("token not found") from None
        except OSError as e:
            raise StorageError(f"cannot read token from {self._path}: {e}") from e

        token = raw.strip()
        self._present = bool(token)
        if not token:
            raise NotAuthenticated("token is empty")
        return token

    def clear(self) -> None:
        with self._write_lock:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"cannot remove token {self._path}: {e}") from e
            self._present = False
        logger.info("Token removed from %s", self._path)

    @property
    def known_presence(self) -> bool | None:
        """Result of the last save/load/clear without touching the disk; None before any of them."""
        return self._present

    def has_token(self) -> bool:
        try:
            self.load()
        except (NotAuthenticated, StorageError):
            return False
        return True
