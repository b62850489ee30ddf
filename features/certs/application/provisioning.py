"""証明書のプロビジョニング（非同期ジョブの投入と実行）"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

from core.logging_config import log_task_error, log_task_info
from core.settings import settings

from features.certs.domain.exceptions import (
    CertificateIssuerError,
    CertificateNotFoundError,
)
from features.certs.domain.models import Certificate, IssuedMaterial
from features.certs.domain.types import CertificateStatus, CertificateType
from features.certs.infrastructure.key_utils import (
    issue_local_certificate,
    load_certificate,
    load_private_key,
    not_valid_after,
    private_key_matches,
)

REQUEST_CERTIFICATE_JOB = "RequestCertificate"
REQUEST_CERTIFICATE_TASK = "certificates.request"


@dataclass(frozen=True, slots=True)
class ProvisioningJob:
    """証明書IDに紐づく非同期ジョブ"""

    certificate_id: int
    name: str = REQUEST_CERTIFICATE_JOB


class ProvisioningDispatcher(Protocol):
    def enqueue(self, job: ProvisioningJob) -> str | None:
        """ジョブを投入しタスクIDを返す。完了は待たない"""


class CertificateIssuer(Protocol):
    def issue(self, certificate: Certificate) -> IssuedMaterial:
        """認証局へ証明書を要求する。失敗時は CertificateIssuerError"""


@lru_cache(maxsize=1)
def producer_client():
    """API プロセス用の送信専用 Celery クライアント

    ワーカー側のアプリ (``cli.src.celery.celery_app``) は読み込まず、タスク名で送る。
    """

    from celery import Celery

    client = Celery(
        "features.certs.provisioning",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
    )
    client.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
    )
    return client


class CeleryProvisioningDispatcher:
    """Celery へジョブを投入するディスパッチャ"""

    def __init__(self, client=None) -> None:
        self._client = client

    def enqueue(self, job: ProvisioningJob) -> str | None:
        client = self._client if self._client is not None else producer_client()
        async_result = client.send_task(
            REQUEST_CERTIFICATE_TASK,
            kwargs={"certificate_id": job.certificate_id},
        )
        return getattr(async_result, "id", None)


class NullProvisioningDispatcher:
    """ジョブを投入しないディスパッチャ（プロビジョニング無効時）"""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    def enqueue(self, job: ProvisioningJob) -> str | None:
        self._logger.debug(
            "certificate provisioning disabled; job dropped",
            extra={
                "event": "certificates.provision.disabled",
                "job": job.name,
                "certificate_id": job.certificate_id,
            },
        )
        return None


class ConfiguredProvisioningDispatcher:
    """設定 ``CERTIFICATE_PROVISIONING_ENABLED`` に応じて投入先を切り替える"""

    def __init__(
        self,
        enabled: ProvisioningDispatcher | None = None,
        disabled: ProvisioningDispatcher | None = None,
    ) -> None:
        self._enabled = enabled or CeleryProvisioningDispatcher()
        self._disabled = disabled or NullProvisioningDispatcher()

    def enqueue(self, job: ProvisioningJob) -> str | None:
        if settings.certificate_provisioning_enabled:
            return self._enabled.enqueue(job)
        return self._disabled.enqueue(job)


class RequestCertificateUseCase:
    """``RequestCertificate`` ジョブの本体

    種別ごとに証明書素材を確定させ、状態を ``provided`` か ``failed`` にする。
    ``http``/``dns`` は外部の発行者に委譲する。
    """

    def __init__(
        self,
        services=None,
        *,
        valid_days: int | None = None,
    ) -> None:
        if services is None:
            from features.certs.application.services import default_certificate_services

            services = default_certificate_services
        self._services = services
        self._valid_days = valid_days

    @property
    def _logger(self) -> logging.Logger:
        return self._services.logger

    def execute(self, certificate_id: int) -> dict[str, Any] | None:
        store = self._services.certificate_store
        try:
            certificate = store.get_by_id(certificate_id)
        except CertificateNotFoundError:
            log_task_info(
                self._logger,
                "certificate vanished before provisioning",
                event="certificates.request.skipped",
                certificate_id=certificate_id,
            )
            return None

        try:
            if certificate.type == CertificateType.CUSTOM:
                self._provide_custom(certificate)
            elif certificate.type == CertificateType.MKCERT:
                self._provide_local(certificate)
            else:
                certificate = self._request_from_issuer(certificate)
        except CertificateIssuerError as exc:
            certificate.status = CertificateStatus.FAILED
            certificate.error_message = str(exc)
            log_task_error(
                self._logger,
                "certificate provisioning failed",
                event="certificates.request.failed",
                exc_info=False,
                certificate_id=certificate.id,
                status=certificate.status.value,
                error=str(exc),
            )
        except CertificateNotFoundError:
            return None

        try:
            saved = store.save(certificate)
        except CertificateNotFoundError:
            return None

        summary = {
            "certificateId": saved.id,
            "status": saved.status.value,
            "expiresOn": saved.expires_on.isoformat() if saved.expires_on else None,
            "errorMessage": saved.error_message or None,
        }
        log_task_info(
            self._logger,
            "certificate provisioning finished",
            event="certificates.request",
            certificate_id=saved.id,
            status=saved.status.value,
        )
        return summary

    def _provide_custom(self, certificate: Certificate) -> None:
        meta = certificate.meta or {}
        parsed = load_certificate(meta.get("certificate"))

        key_pem = meta.get("certificate_key")
        if key_pem:
            if not private_key_matches(parsed, load_private_key(key_pem)):
                raise CertificateIssuerError("Certificate key does not match the certificate")

        intermediate = meta.get("intermediate_certificate")
        if intermediate:
            load_certificate(intermediate)

        certificate.expires_on = not_valid_after(parsed)
        certificate.status = CertificateStatus.PROVIDED
        certificate.error_message = ""

    def _provide_local(self, certificate: Certificate) -> None:
        valid_days = self._valid_days or settings.mkcert_valid_days
        material = issue_local_certificate(
            list(certificate.domain_names),
            is_ecc=certificate.is_ecc,
            valid_days=valid_days,
        )
        self._apply_material(certificate, material)

    def _request_from_issuer(self, certificate: Certificate) -> Certificate:
        certificate.status = CertificateStatus.REQUESTING
        certificate.error_message = ""
        certificate = self._services.certificate_store.save(certificate)

        issuer: CertificateIssuer | None = self._services.issuer
        if issuer is None:
            raise CertificateIssuerError("No certificate issuer is configured")

        try:
            material = issuer.issue(certificate)
        except CertificateIssuerError:
            raise
        except Exception as exc:  # noqa: BLE001 - 発行者の例外は失敗状態として記録
            raise CertificateIssuerError(str(exc)) from exc

        self._apply_material(certificate, material)
        return certificate

    @staticmethod
    def _apply_material(certificate: Certificate, material: IssuedMaterial) -> None:
        meta = dict(certificate.meta or {})
        meta["certificate"] = material.certificate_pem
        if material.private_key_pem:
            meta["certificate_key"] = material.private_key_pem
        if material.intermediate_pem:
            meta["intermediate_certificate"] = material.intermediate_pem
        certificate.meta = meta
        certificate.expires_on = material.expires_on
        certificate.status = CertificateStatus.PROVIDED
        certificate.error_message = ""


__all__ = [
    "CeleryProvisioningDispatcher",
    "CertificateIssuer",
    "ConfiguredProvisioningDispatcher",
    "NullProvisioningDispatcher",
    "ProvisioningDispatcher",
    "ProvisioningJob",
    "REQUEST_CERTIFICATE_JOB",
    "REQUEST_CERTIFICATE_TASK",
    "RequestCertificateUseCase",
    "producer_client",
]
