# tests/test_certs.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from znak_dispenser.certs.directory import FileCertificateDirectory, search_identities

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def _make_cert(common_name: str, surname: str, *, not_before: datetime, not_after: datetime, serial: int = 0x0102):
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.SURNAME, surname),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Shop LLC"),
        ]
    )
    issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Test CA")])
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(serial)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )


@pytest.fixture()
def cert_dir(tmp_path: Path) -> Path:
    d = tmp_path / "certs"
    d.mkdir()

    valid = _make_cert("Ivanov Ivan", "Ivanov", not_before=NOW - timedelta(days=30), not_after=NOW + timedelta(days=300))
    (d / "ivanov.pem").write_bytes(valid.public_bytes(serialization.Encoding.PEM))

    der = _make_cert("Petrov Petr", "Petrov", not_before=NOW - timedelta(days=30), not_after=NOW + timedelta(days=30))
    (d / "petrov.cer").write_bytes(der.public_bytes(serialization.Encoding.DER))

    expired = _make_cert("Old Key", "Old", not_before=NOW - timedelta(days=400), not_after=NOW - timedelta(days=1))
    (d / "old.crt").write_bytes(expired.public_bytes(serialization.Encoding.PEM))

    (d / "broken.cer").write_bytes(b"not a certificate")
    (d / "notes.txt").write_text("ignored", encoding="utf-8")
    return d


def test_lists_only_valid_readable_certificates(cert_dir: Path) -> None:
    identities = FileCertificateDirectory(cert_dir, now=lambda: NOW).list_identities()

    assert sorted(i.short_name for i in identities) == ["Ivanov", "Petrov"]

    ivanov = next(i for i in identities if i.short_name == "Ivanov")
    assert ivanov.common_name == "Ivanov Ivan"
    assert "SN=Ivanov" in ivanov.subject_name
    assert ivanov.issuer_name == "CN=Test CA"
    assert ivanov.serial_number == "01:02"
    # SHA-1 thumbprint: 20 bytes, colon separated.
    assert len(ivanov.thumbprint.split(":")) == 20
    assert ivanov.not_after > NOW


def test_missing_directory_lists_nothing(tmp_path: Path) -> None:
    assert FileCertificateDirectory(tmp_path / "absent").list_identities() == []


def test_search_is_case_insensitive_on_subject(cert_dir: Path) -> None:
    identities = FileCertificateDirectory(cert_dir, now=lambda: NOW).list_identities()

    assert [i.short_name for i in search_identities(identities, "petrov")] == ["Petrov"]
    assert len(search_identities(identities, "  ")) == 2
    assert search_identities(identities, "nobody") == []
