"""証明書プロビジョニングジョブのテスト"""
from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from features.certs.application.provisioning import (
    ConfiguredProvisioningDispatcher,
    NullProvisioningDispatcher,
    ProvisioningJob,
    RequestCertificateUseCase,
)
from features.certs.domain.exceptions import CertificateIssuerError, CertificateNotFoundError
from features.certs.domain.models import Certificate, IssuedMaterial
from features.certs.domain.types import CertificateStatus, CertificateType
from features.certs.infrastructure.key_utils import issue_local_certificate


@pytest.fixture(scope="module")
def local_material() -> IssuedMaterial:
    return issue_local_certificate(["svc.example.com"], is_ecc=True, valid_days=30)


def _services(certificate: Certificate | None, issuer=None):
    services = MagicMock()
    services.issuer = issuer
    if certificate is None:
        services.certificate_store.get_by_id.side_effect = CertificateNotFoundError("gone")
    else:
        services.certificate_store.get_by_id.return_value = certificate
    services.certificate_store.save.side_effect = lambda cert: cert
    return services


def _certificate(certificate_type: CertificateType, **attrs) -> Certificate:
    attrs.setdefault("domain_names", ["svc.example.com"])
    return Certificate(id=11, type=certificate_type, name="svc", user_id=1, **attrs)


def test_custom_certificate_becomes_provided(local_material):
    certificate = _certificate(
        CertificateType.CUSTOM,
        meta={
            "certificate": local_material.certificate_pem,
            "certificate_key": local_material.private_key_pem,
        },
    )
    services = _services(certificate)

    summary = RequestCertificateUseCase(services).execute(11)

    assert summary["status"] == "provided"
    assert summary["errorMessage"] is None
    assert certificate.status is CertificateStatus.PROVIDED
    assert certificate.expires_on == local_material.expires_on
    services.certificate_store.save.assert_called_once_with(certificate)


def test_custom_certificate_with_foreign_key_fails(local_material):
    other = issue_local_certificate(["other.example.com"], is_ecc=True, valid_days=30)
    certificate = _certificate(
        CertificateType.CUSTOM,
        meta={
            "certificate": local_material.certificate_pem,
            "certificate_key": other.private_key_pem,
        },
    )
    services = _services(certificate)

    summary = RequestCertificateUseCase(services).execute(11)

    assert summary["status"] == "failed"
    assert summary["errorMessage"] == "Certificate key does not match the certificate"
    services.logger.error.assert_called_once()


def test_custom_certificate_without_pem_fails():
    certificate = _certificate(CertificateType.CUSTOM)
    services = _services(certificate)

    summary = RequestCertificateUseCase(services).execute(11)

    assert summary["status"] == "failed"
    assert summary["errorMessage"] == "Certificate is missing"


def test_custom_certificate_with_non_text_material_fails():
    certificate = _certificate(
        CertificateType.CUSTOM,
        meta={"certificate": 123},
    )
    services = _services(certificate)

    summary = RequestCertificateUseCase(services).execute(11)

    assert summary["status"] == "failed"
    assert summary["errorMessage"] == "Certificate is not a valid PEM document"
    services.certificate_store.save.assert_called_once_with(certificate)


def test_custom_certificate_with_non_text_key_fails(local_material):
    certificate = _certificate(
        CertificateType.CUSTOM,
        meta={"certificate": local_material.certificate_pem, "certificate_key": ["KEY"]},
    )
    services = _services(certificate)

    summary = RequestCertificateUseCase(services).execute(11)

    assert summary["status"] == "failed"
    assert summary["errorMessage"] == "Certificate key is not a valid PEM private key"
    assert certificate.status is CertificateStatus.FAILED


def test_mkcert_issues_local_certificate():
    certificate = _certificate(CertificateType.MKCERT, is_ecc=False)
    services = _services(certificate)
    before = datetime.utcnow()

    summary = RequestCertificateUseCase(services, valid_days=10).execute(11)

    assert summary["status"] == "provided"
    assert "BEGIN CERTIFICATE" in certificate.meta["certificate"]
    assert "PRIVATE KEY" in certificate.meta["certificate_key"]
    assert before + timedelta(days=9) < certificate.expires_on <= before + timedelta(days=11)


def test_http_without_issuer_fails():
    certificate = _certificate(CertificateType.HTTP)
    services = _services(certificate)

    summary = RequestCertificateUseCase(services).execute(11)

    assert summary["status"] == "failed"
    assert summary["errorMessage"] == "No certificate issuer is configured"
    # requesting で一度保存してから失敗を保存する
    assert services.certificate_store.save.call_count == 2


def test_dns_issuer_material_is_stored(local_material):
    issuer = MagicMock()
    issuer.issue.return_value = local_material
    certificate = _certificate(CertificateType.DNS, dns_provider_id=4)
    services = _services(certificate, issuer=issuer)

    summary = RequestCertificateUseCase(services).execute(11)

    assert summary["status"] == "provided"
    assert certificate.meta["certificate"] == local_material.certificate_pem
    issuer.issue.assert_called_once_with(certificate)


def test_issuer_exception_is_recorded_as_failure():
    issuer = MagicMock()
    issuer.issue.side_effect = TimeoutError("acme timeout")
    certificate = _certificate(CertificateType.HTTP)
    services = _services(certificate, issuer=issuer)

    summary = RequestCertificateUseCase(services).execute(11)

    assert summary == {
        "certificateId": 11,
        "status": "failed",
        "expiresOn": None,
        "errorMessage": "acme timeout",
    }


def test_vanished_certificate_is_skipped():
    services = _services(None)

    assert RequestCertificateUseCase(services).execute(11) is None
    services.certificate_store.save.assert_not_called()


def test_local_issue_requires_domain_names():
    with pytest.raises(CertificateIssuerError):
        issue_local_certificate([], is_ecc=True, valid_days=1)


def test_configured_dispatcher_uses_null_when_disabled(app_context):
    enabled = MagicMock()
    disabled = MagicMock()
    disabled.enqueue.return_value = None
    dispatcher = ConfiguredProvisioningDispatcher(enabled=enabled, disabled=disabled)

    assert dispatcher.enqueue(ProvisioningJob(certificate_id=1)) is None
    enabled.enqueue.assert_not_called()

    app_context.config["CERTIFICATE_PROVISIONING_ENABLED"] = True
    enabled.enqueue.return_value = "task-9"
    assert dispatcher.enqueue(ProvisioningJob(certificate_id=1)) == "task-9"


def test_null_dispatcher_returns_no_task_id():
    logger = MagicMock()

    assert NullProvisioningDispatcher(logger).enqueue(ProvisioningJob(certificate_id=3)) is None
    logger.debug.assert_called_once()
