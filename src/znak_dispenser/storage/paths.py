# src/znak_dispenser/storage/paths.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from ..core.errors import StorageError

logger = logging.getLogger(__name__)


def signature_path_for(challenge_path: Path) -> Path:
    """The signing tool writes `<challenge>.sig` next to the challenge file."""
    return challenge_path.with_name(challenge_path.name + ".sig")


@dataclass(frozen=True, slots=True)
class AppPaths:
    """
    Layout of the per-user application directory.

    key      - challenge payload, removed after every login attempt
    key.sig  - raw signature, removed after every login attempt
    token.dat - bearer token (cleartext), survives restarts
    debug.log - append-only log
    """

    base_dir: Path
    token_file: Path | None = None

    @property
    def key_path(self) -> Path:
        return self.base_dir / "key"

    @property
    def sig_path(self) -> Path:
        return signature_path_for(self.key_path)

    @property
    def token_path(self) -> Path:
        return self.token_file if self.token_file is not None else self.base_dir / "token.dat"

    @property
    def log_path(self) -> Path:
        return self.base_dir / "debug.log"

    def ensure(self) -> Path:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create directory {self.base_dir}: {e}") from e
        return self.base_dir

    def cleanup_temp_files(self) -> None:
        """Remove challenge artifacts. Missing files are fine; other failures are only logged."""
        for path in (self.key_path, self.sig_path):
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Failed to remove temporary file %s", path, exc_info=True)
