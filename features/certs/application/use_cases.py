"""証明書機能のユースケース"""
from __future__ import annotations

from collections.abc import Iterable

from features.certs.application.provisioning import ProvisioningJob
from features.certs.application.schemas import (
    load_create_payload,
    validate_update_payload,
)
from features.certs.application.services import (
    CertificateServices,
    default_certificate_services,
)
from features.certs.domain.exceptions import (
    CertificateInUseError,
    CertificatePersistenceError,
    CertificateStoreError,
    CertificateValidationError,
)
from features.certs.domain.models import Certificate
from features.certs.domain.types import CertificateType

from .dto import CertificateListResult, ListCertificatesInput

EXPAND_USER = "user"

_MERGEABLE_FIELDS = (
    "name",
    "domain_names",
    "certificate_authority_id",
    "dns_provider_id",
    "is_ecc",
)


class _CertificateUseCase:
    def __init__(self, services: CertificateServices | None = None) -> None:
        self._services = services or default_certificate_services

    def _load(self, certificate_id: int) -> Certificate:
        try:
            return self._services.certificate_store.get_by_id(certificate_id)
        except CertificateStoreError as exc:
            raise CertificatePersistenceError(str(exc)) from exc

    def _save(self, certificate: Certificate) -> Certificate:
        try:
            return self._services.certificate_store.save(certificate)
        except CertificateStoreError as exc:
            raise CertificateValidationError(f"Unable to save Certificate: {exc}") from exc

    def _dispatch_provisioning(self, certificate: Certificate) -> None:
        """プロビジョニングジョブを投入する。失敗はログのみ"""

        job = ProvisioningJob(certificate_id=certificate.id)
        try:
            task_id = self._services.dispatcher.enqueue(job)
        except Exception as exc:  # noqa: BLE001 - 投入失敗は保存結果に影響させない
            self._services.logger.warning(
                "Failed to enqueue certificate provisioning",
                exc_info=True,
                extra={
                    "event": "certificates.provision.enqueue_failed",
                    "job": job.name,
                    "certificate_id": certificate.id,
                    "error": str(exc),
                },
            )
            return
        self._services.logger.info(
            "certificate provisioning enqueued",
            extra={
                "event": "certificates.provision.enqueued",
                "job": job.name,
                "certificate_id": certificate.id,
                "task_uuid": task_id,
            },
        )

    def _expand(self, certificates: Iterable[Certificate], expand: Iterable[str]) -> None:
        """expand 指定に応じて付帯情報を付与する。失敗しても本体は返す"""

        if EXPAND_USER not in expand:
            return
        certificates = list(certificates)
        try:
            owners = self._services.certificate_store.load_owners(
                certificate.user_id for certificate in certificates
            )
        except CertificateStoreError as exc:
            self._services.logger.warning(
                "Failed to expand certificate owners",
                extra={"event": "certificates.expand_failed", "expand": EXPAND_USER, "error": str(exc)},
            )
            return
        for certificate in certificates:
            certificate.user = owners.get(certificate.user_id)


class ListCertificatesUseCase(_CertificateUseCase):
    """証明書一覧取得ユースケース"""

    def execute(self, payload: ListCertificatesInput | None = None) -> CertificateListResult:
        payload = payload or ListCertificatesInput()
        try:
            page = self._services.certificate_store.list(payload.page, payload.filters)
        except CertificateStoreError as exc:
            raise CertificatePersistenceError(str(exc)) from exc

        items = page.items[: payload.page.limit]
        self._expand(items, payload.expand)
        return CertificateListResult(
            total=page.total,
            offset=payload.page.offset,
            limit=payload.page.limit,
            sort=payload.page.sort_string(),
            items=items,
        )


class GetCertificateUseCase(_CertificateUseCase):
    """証明書詳細取得ユースケース"""

    def execute(self, certificate_id: int, *, expand: Iterable[str] = ()) -> Certificate:
        certificate = self._load(certificate_id)
        self._expand([certificate], frozenset(expand))
        return certificate


class CreateCertificateUseCase(_CertificateUseCase):
    """証明書登録ユースケース

    所有者は常に呼び出し元に置き換える。保存後にプロビジョニングを投入する。
    """

    def execute(self, raw_body: bytes | str | None, *, user_id: int) -> Certificate:
        data = load_create_payload(raw_body)

        certificate = Certificate(
            type=CertificateType(data["type"]),
            name=data["name"],
            user_id=user_id,
            domain_names=list(data["domain_names"]),
            certificate_authority_id=data["certificate_authority_id"],
            dns_provider_id=data["dns_provider_id"],
            is_ecc=data["is_ecc"],
            meta=dict(data["meta"]),
        )
        created = self._save(certificate)
        self._dispatch_provisioning(created)
        return created


class UpdateCertificateUseCase(_CertificateUseCase):
    """証明書更新ユースケース

    保存済みの ``type`` に対応するスキーマで検証してから反映する。
    """

    def execute(self, certificate_id: int, raw_body: bytes | str | None) -> Certificate:
        existing = self._load(certificate_id)
        changes = validate_update_payload(raw_body, existing.type)

        for name in _MERGEABLE_FIELDS:
            if name in changes:
                setattr(existing, name, changes[name])
        if "meta" in changes:
            existing.meta = {**existing.meta, **changes["meta"]}

        updated = self._save(existing)
        self._dispatch_provisioning(updated)
        return updated


class DeleteCertificateUseCase(_CertificateUseCase):
    """証明書削除ユースケース"""

    IN_USE_MESSAGE = "Cannot delete certificate that is in use by at least 1 host"

    def execute(self, certificate_id: int) -> bool:
        self._load(certificate_id)

        try:
            use_count = self._services.host_store.get_certificate_use_count(certificate_id)
        except CertificateStoreError as exc:
            raise CertificatePersistenceError(str(exc)) from exc
        if use_count > 0:
            raise CertificateInUseError(self.IN_USE_MESSAGE)

        try:
            deleted = self._services.certificate_store.delete_if_unreferenced(certificate_id)
        except CertificateStoreError as exc:
            raise CertificatePersistenceError(str(exc)) from exc
        if not deleted:
            # 確認後にホストが参照した、または別リクエストで削除済み
            self._load(certificate_id)
            raise CertificateInUseError(self.IN_USE_MESSAGE)

        self._services.logger.info(
            "certificate deleted",
            extra={"event": "certificates.deleted", "certificate_id": certificate_id},
        )
        return True


__all__ = [
    "CreateCertificateUseCase",
    "DeleteCertificateUseCase",
    "GetCertificateUseCase",
    "ListCertificatesUseCase",
    "UpdateCertificateUseCase",
]
