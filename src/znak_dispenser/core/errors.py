# src/znak_dispenser/core/errors.py

"""
Error taxonomy shared by every component.

ApiError subclasses describe one failed wire exchange and are what the retry
helper absorbs. Everything else (signing, storage, missing token) is reported
to the operator immediately.
"""

from __future__ import annotations


class ZnakError(Exception):
    """Base class for all application errors."""


class ApiError(ZnakError):
    """A single request/response exchange with the platform failed."""


class NetworkError(ApiError):
    """Transport-level failure: DNS, connect, TLS, timeout."""


class ServerRejected(ApiError):
    """The platform answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        body = (body or "").strip()
        super().__init__(f"HTTP {status_code}: {body}" if body else f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code in (401, 403)


class ParseError(ApiError):
    """The platform answered 2xx with a body we cannot interpret."""


class SigningError(ZnakError):
    """The external signing tool could not produce a signature."""


class ToolNotFound(SigningError):
    def __init__(self, detail: str = "cryptcp was not found") -> None:
        super().__init__(detail)


class InvocationFailed(SigningError):
    def __init__(self, exit_code: int, stderr: str = "") -> None:
        stderr = (stderr or "").strip()
        detail = stderr or "unknown error while running the signing tool"
        super().__init__(f"signing tool exited with code {exit_code}: {detail}")
        self.exit_code = exit_code
        self.stderr = stderr


class EmptyOutput(SigningError):
    def __init__(self, detail: str = "signature is empty") -> None:
        super().__init__(detail)


class StorageError(ZnakError):
    """Filesystem failure for the token or the transient challenge artifacts."""


class NotAuthenticated(ZnakError):
    """No bearer token is available."""

    def __init__(self, detail: str = "token not found") -> None:
        super().__init__(detail)


def friendly_error_message(err: BaseException) -> str:
    """Operator-facing text for any error raised by the core."""
    if isinstance(err, NotAuthenticated):
        return "Not logged in. Use /login <n> to sign in with a certificate."
    if isinstance(err, ServerRejected):
        if err.is_auth_failure:
            return f"Not logged in (token rejected, {err}). Use /login <n> to sign in again."
        return f"Server error: {err}"
    if isinstance(err, NetworkError):
        return f"Network error: {err}"
    if isinstance(err, ParseError):
        return f"Unexpected server response: {err}"
    if isinstance(err, SigningError):
        return f"Signing failed: {err}"
    if isinstance(err, StorageError):
        return f"Storage error: {err}"
    msg = str(err).strip()
    return msg or err.__class__.__name__
