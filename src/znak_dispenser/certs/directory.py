# src/znak_dispenser/certs/directory.py

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID

from ..core.models import Identity

logger = logging.getLogger(__name__)

CERT_SUFFIXES = (".cer", ".crt", ".pem", ".der")

# Qualified certificates carry person names in attributes RFC 4514 has no short label for.
_DN_LABELS = {
    NameOID.SURNAME: "SN",
    NameOID.GIVEN_NAME: "G",
    NameOID.TITLE: "T",
    NameOID.EMAIL_ADDRESS: "E",
}


def _colon_hex(data: bytes) -> str:
    return ":".join(f"{b:02X}" for b in data)


def _serial_hex(serial: int) -> str:
    length = max(1, (serial.bit_length() + 7) // 8)
    return _colon_hex(serial.to_bytes(length, "big"))


def _load_certificate(raw: bytes) -> x509.Certificate:
    if b"-----BEGIN CERTIFICATE-----" in raw:
        return x509.load_pem_x509_certificate(raw)
    return x509.load_der_x509_certificate(raw)


def identity_from_certificate(cert: x509.Certificate) -> Identity:
    """Extract the fields the operator chooses by. No chain or trust checks happen here."""
    return Identity(
        subject_name=cert.subject.rfc4514_string(_DN_LABELS),
        issuer_name=cert.issuer.rfc4514_string(_DN_LABELS),
        serial_number=_serial_hex(cert.serial_number),
        thumbprint=_colon_hex(cert.fingerprint(hashes.SHA1())),
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
    )


class FileCertificateDirectory:
    """
    Certificate source backed by a directory of exported certificates
    (*.cer, *.crt, *.pem, *.der). Expired certificates are filtered out;
    unreadable files are skipped with a warning.
    """

    def __init__(self, cert_dir: str | Path, *, now: Callable[[], datetime] | None = None) -> None:
        self._cert_dir = Path(cert_dir)
        self._now = now or (lambda: datetime.now(timezone.utc))

    @property
    def cert_dir(self) -> Path:
        return self._cert_dir

    def _files(self) -> list[Path]:
        if not self._cert_dir.is_dir():
            logger.info("Certificate directory %s does not exist", self._cert_dir)
            return []
        return sorted(p for p in self._cert_dir.iterdir() if p.is_file() and p.suffix.lower() in CERT_SUFFIXES)

    def list_identities(self) -> list[Identity]:
        now = self._now()
        out: list[Identity] = []
        for path in self._files():
            try:
                identity = identity_from_certificate(_load_certificate(path.read_bytes()))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable certificate %s: %s", path, e)
                continue

            if identity.not_after < now:
                logger.debug("Skipping expired certificate %s", path)
                continue
            out.append(identity)

        logger.info("Certificates found: %d in %s", len(out), self._cert_dir)
        return out


def search_identities(identities: Iterable[Identity], query: str) -> list[Identity]:
    """Case-insensitive subject filter; an empty query keeps everything."""
    q = (query or "").strip().lower()
    if not q:
        return list(identities)
    return [i for i in identities if q in i.subject_name.lower()]
