"""鍵や証明書周りの共通関数"""
from __future__ import annotations

import ipaddress
from datetime import datetime, timedelta, timezone
from typing import Iterable

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from features.certs.domain.exceptions import CertificateIssuerError
from features.certs.domain.models import IssuedMaterial

PrivateKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey


def generate_private_key(is_ecc: bool) -> PrivateKey:
    """鍵ペア生成"""

    if is_ecc:
        return ec.generate_private_key(ec.SECP256R1())
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def serialize_private_key(key: PrivateKey) -> str:
    return (
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        .decode("utf-8")
    )


def serialize_certificate(certificate: x509.Certificate) -> str:
    return certificate.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def load_certificate(pem: str | None) -> x509.Certificate:
    """PEM文字列から証明書を読み込む"""

    if pem is not None and not isinstance(pem, str):
        raise CertificateIssuerError("Certificate is not a valid PEM document")
    if not pem or not pem.strip():
        raise CertificateIssuerError("Certificate is missing")
    try:
        return x509.load_pem_x509_certificate(pem.encode("utf-8"))
    except ValueError as exc:  # noqa: B904
        raise CertificateIssuerError("Certificate is not a valid PEM document") from exc


def load_private_key(pem: str) -> PrivateKey:
    if not isinstance(pem, str):
        raise CertificateIssuerError("Certificate key is not a valid PEM private key")
    try:
        key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except (TypeError, ValueError) as exc:  # noqa: B904
        raise CertificateIssuerError("Certificate key is not a valid PEM private key") from exc
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise CertificateIssuerError("Certificate key type is not supported")
    return key


def private_key_matches(certificate: x509.Certificate, key: PrivateKey) -> bool:
    """証明書の公開鍵と秘密鍵が対応しているか"""

    def _spki(public_key) -> bytes:
        return public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    return _spki(certificate.public_key()) == _spki(key.public_key())


def not_valid_after(certificate: x509.Certificate) -> datetime:
    """有効期限をnaiveなUTCで返す（DBカラムに合わせる）"""

    if hasattr(certificate, "not_valid_after_utc"):
        return certificate.not_valid_after_utc.replace(tzinfo=None)
    return certificate.not_valid_after  # pragma: no cover - 古いcryptographyへのフォールバック


def _subject_alternative_names(domain_names: Iterable[str]) -> list[x509.GeneralName]:
    names: list[x509.GeneralName] = []
    for domain in domain_names:
        try:
            names.append(x509.IPAddress(ipaddress.ip_address(domain)))
        except ValueError:
            names.append(x509.DNSName(domain))
    return names


def issue_local_certificate(
    domain_names: list[str],
    *,
    is_ecc: bool,
    valid_days: int,
) -> IssuedMaterial:
    """ローカル用の自己署名証明書を発行する"""

    if not domain_names:
        raise CertificateIssuerError("At least one domain name is required")

    private_key = generate_private_key(is_ecc)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domain_names[0])])
    now = datetime.now(timezone.utc)
    not_before = now - timedelta(minutes=5)
    not_after = now + timedelta(days=valid_days)

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.SubjectAlternativeName(_subject_alternative_names(domain_names)),
            critical=False,
        )
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]),
            critical=False,
        )
    )

    try:
        certificate = builder.sign(private_key=private_key, algorithm=hashes.SHA256())
    except Exception as exc:  # noqa: BLE001 - cryptographyからの例外のラップ
        raise CertificateIssuerError(str(exc)) from exc

    return IssuedMaterial(
        certificate_pem=serialize_certificate(certificate),
        private_key_pem=serialize_private_key(private_key),
        expires_on=not_valid_after(certificate),
    )


__all__ = [
    "generate_private_key",
    "issue_local_certificate",
    "load_certificate",
    "load_private_key",
    "not_valid_after",
    "private_key_matches",
    "serialize_certificate",
    "serialize_private_key",
]
