# src/znak_dispenser/auth/signer.py

from __future__ import annotations

"""
Signature transport: runs CryptoPro `cryptcp` to sign the challenge file.

Only the success/failure contract matters to the rest of the app:
- ToolNotFound       -> cryptcp is not installed / not configured
- InvocationFailed   -> cryptcp exited with a non-zero code
- EmptyOutput        -> no signature file, or nothing usable in it
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..core.errors import EmptyOutput, InvocationFailed, ToolNotFound
from ..core.models import Identity
from ..storage.paths import signature_path_for

logger = logging.getLogger(__name__)

KNOWN_CRYPTCP_PATHS = (
    r"C:\Program Files\Crypto Pro\CSP\cryptcp.exe",
    r"C:\Program Files (x86)\Crypto Pro\CSP\cryptcp.exe",
    "/opt/cprocsp/bin/amd64/cryptcp",
    "/opt/cprocsp/bin/ia32/cryptcp",
    "/opt/cprocsp/bin/aarch64/cryptcp",
)


class SelectorKind(str, Enum):
    THUMBPRINT = "thumb"
    DISTINGUISHED_NAME = "dn"


@dataclass(frozen=True, slots=True)
class KeySelector:
    """How cryptcp should find the signing key in the personal store."""

    kind: SelectorKind
    value: str

    def to_args(self) -> list[str]:
        return [f"-{self.kind.value}", self.value]


def normalize_thumbprint(raw: str) -> str:
    return (raw or "").replace(":", "").replace(" ", "").strip().upper()


def selector_for(identity: Identity) -> KeySelector:
    """Prefer the thumbprint; fall back to the subject's common name."""
    thumb = normalize_thumbprint(identity.thumbprint)
    if thumb:
        return KeySelector(SelectorKind.THUMBPRINT, thumb)
    return KeySelector(SelectorKind.DISTINGUISHED_NAME, identity.common_name)


def clean_signature(raw: bytes) -> str:
    """
    Turn the raw signature file into the value posted to the platform.

    Control characters (line breaks included) are removed, then whitespace trimmed.
    """
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError:
        raise EmptyOutput("signature output is not ASCII text") from None

    cleaned = "".join(ch for ch in text if ch.isprintable()).strip()
    if not cleaned:
        raise EmptyOutput("signature is empty after cleanup")
    return cleaned


def find_cryptcp(explicit: str | None = None) -> str:
    """Locate cryptcp: explicit path, ZNAK_CRYPTCP_PATH, known install dirs, then PATH."""
    candidates = [explicit, os.getenv("ZNAK_CRYPTCP_PATH"), *KNOWN_CRYPTCP_PATHS]
    for candidate in candidates:
        if candidate and Path(candidate).is_file():
            return candidate

    for name in ("cryptcp", "cryptcp.exe"):
        found = shutil.which(name)
        if found:
            return found

    raise ToolNotFound("cryptcp was not found (set ZNAK_CRYPTCP_PATH)")


class CryptcpSigner:
    """Signer backed by the cryptcp command-line tool. Blocking: call it off the event loop."""

    def __init__(self, tool_path: str | None = None, *, timeout: float = 120.0) -> None:
        self._tool_path = tool_path
        self._timeout = timeout

    def build_command(self, tool: str, challenge_path: Path, selector: KeySelector) -> list[str]:
        return [
            tool,
            "-sign",
            "-uMy",
            "-yes",
            *selector.to_args(),
            str(challenge_path),
            str(signature_path_for(challenge_path)),
        ]

    def sign(self, challenge_path: Path, selector: KeySelector) -> bytes:
        tool = find_cryptcp(self._tool_path)
        if not selector.value:
            raise InvocationFailed(-1, "no thumbprint or common name to select the key")

        cmd = self.build_command(tool, challenge_path, selector)
        logger.info("Signing challenge with cryptcp (%s=%s)", selector.kind.value, selector.value)

        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise ToolNotFound(f"cannot start {tool}: {e}") from e
        except subprocess.TimeoutExpired:
            raise InvocationFailed(-1, f"cryptcp did not finish within {self._timeout:.0f}s") from None
        except OSError as e:
            raise InvocationFailed(-1, f"cannot run {tool}: {e}") from e

        stderr = proc.stderr.decode("utf-8", errors="replace").strip()
        stdout = proc.stdout.decode("utf-8", errors="replace").strip()

        if proc.returncode != 0:
            raise InvocationFailed(proc.returncode, stderr or stdout)

        sig_path = signature_path_for(challenge_path)
        try:
            raw = sig_path.read_bytes()
        except FileNotFoundError:
            raise EmptyOutput(f"cryptcp produced no signature file {sig_path}") from None
        except OSError as e:
            raise EmptyOutput(f"cannot read signature {sig_path}: {e}") from e

        if not raw.strip():
            raise EmptyOutput("signature file is empty")
        return raw
