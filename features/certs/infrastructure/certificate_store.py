"""証明書を永続化するストア"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import String, and_, cast, delete, exists, func, not_, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.db import db
from core.models.user import User
from shared.application.query import FilterCondition, PageInfo

from features.certs.domain.exceptions import (
    CertificateNotFoundError,
    CertificateStoreError,
)
from features.certs.domain.models import Certificate, CertificateOwner
from features.certs.domain.types import CertificateStatus, CertificateType

from .models import CertificateEntity, HostEntity


SORTABLE_FIELDS: tuple[str, ...] = (
    "id",
    "name",
    "type",
    "status",
    "expires_on",
    "created_on",
    "modified_on",
)

FILTERABLE_FIELDS: tuple[str, ...] = (
    "id",
    "name",
    "type",
    "status",
    "user_id",
    "domain_names",
    "is_ecc",
)

# 文字列以外の列。クエリ解析時の値チェックにも使う
FILTER_VALUE_KINDS: dict[str, str] = {"id": "integer", "user_id": "integer", "is_ecc": "boolean"}

_INTEGER_FIELDS = {name for name, kind in FILTER_VALUE_KINDS.items() if kind == "integer"}
_BOOLEAN_FIELDS = {name for name, kind in FILTER_VALUE_KINDS.items() if kind == "boolean"}


@dataclass(slots=True)
class CertificatePage:
    total: int
    items: list[Certificate]


class CertificateStore:
    """証明書のCRUDおよび検索"""

    def list(self, page: PageInfo, filters: Iterable[FilterCondition] = ()) -> CertificatePage:
        try:
            query = select(CertificateEntity)
            criteria = [self._build_criterion(condition) for condition in filters]
            if criteria:
                query = query.where(and_(*criteria))

            total = db.session.scalar(
                select(func.count()).select_from(query.order_by(None).subquery())
            ) or 0

            for sort_field in page.sort:
                column = getattr(CertificateEntity, sort_field.field)
                query = query.order_by(column.desc() if sort_field.direction == "desc" else column.asc())
            query = query.order_by(CertificateEntity.id.asc())
            query = query.offset(page.offset).limit(page.limit)

            entities = db.session.scalars(query).all()
        except SQLAlchemyError as exc:
            raise CertificateStoreError(str(exc)) from exc
        return CertificatePage(total=total, items=[self._entity_to_domain(entity) for entity in entities])

    def get_by_id(self, certificate_id: int) -> Certificate:
        try:
            entity = db.session.get(CertificateEntity, certificate_id)
        except SQLAlchemyError as exc:
            raise CertificateStoreError(str(exc)) from exc
        if entity is None:
            raise CertificateNotFoundError(f"証明書が見つかりません: {certificate_id}")
        return self._entity_to_domain(entity)

    def save(self, certificate: Certificate) -> Certificate:
        """``id`` が0なら新規作成、それ以外はIDで更新する"""

        self._validate(certificate)
        entity = self._upsert_entity(certificate)
        try:
            db.session.add(entity)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise CertificateStoreError(self._describe_integrity_error(exc)) from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CertificateStoreError(str(exc)) from exc
        db.session.refresh(entity)
        return self._entity_to_domain(entity)

    def delete_if_unreferenced(self, certificate_id: int) -> bool:
        """参照ホストが無い場合のみ1文で削除する

        参照数の確認と削除を同一のDELETE文で行うため、確認後に作成された
        ホストによる参照切れが発生しない。削除できなかった場合はFalse。
        """

        referenced = exists().where(HostEntity.certificate_id == certificate_id)
        stmt = delete(CertificateEntity).where(
            CertificateEntity.id == certificate_id,
            not_(referenced),
        )
        try:
            result = db.session.execute(stmt, execution_options={"synchronize_session": False})
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise CertificateStoreError(str(exc)) from exc

        deleted = bool(result.rowcount)
        if deleted:
            # expire_on_commit=False のためセッションに残った行を外す
            stale = db.session.identity_map.get(db.session.identity_key(CertificateEntity, certificate_id))
            if stale is not None:
                db.session.expunge(stale)
        return deleted

    def load_owners(self, user_ids: Iterable[int]) -> dict[int, CertificateOwner]:
        ids = {user_id for user_id in user_ids if user_id}
        if not ids:
            return {}
        try:
            users = db.session.scalars(select(User).where(User.id.in_(ids))).all()
        except SQLAlchemyError as exc:
            raise CertificateStoreError(str(exc)) from exc
        return {
            user.id: CertificateOwner(
                id=user.id,
                name=user.name,
                nickname=user.nickname,
                email=user.email,
            )
            for user in users
        }

    @staticmethod
    def _validate(certificate: Certificate) -> None:
        if not certificate.user_id:
            raise CertificateStoreError("user_id is required")
        if not (certificate.name or "").strip():
            raise CertificateStoreError("name is required")

    @staticmethod
    def _describe_integrity_error(exc: IntegrityError) -> str:
        message = str(getattr(exc, "orig", exc))
        if "name" in message.lower() and "unique" in message.lower():
            return "a certificate with this name already exists"
        return message

    def _build_criterion(self, condition: FilterCondition):
        if condition.field == "domain_names":
            return self._domain_names_criterion(condition)

        column = getattr(CertificateEntity, condition.field)
        values = [self._coerce_value(condition.field, value) for value in condition.values]
        value = values[0]
        modifier = condition.modifier

        if modifier == "equals":
            return column == value
        if modifier == "not":
            return column != value
        if modifier == "in":
            return column.in_(values)
        if modifier == "notin":
            return column.not_in(values)
        if modifier == "min":
            return column >= value
        if modifier == "max":
            return column <= value
        if modifier == "contains":
            return column.ilike(f"%{value}%")
        if modifier == "starts":
            return column.ilike(f"{value}%")
        if modifier == "ends":
            return column.ilike(f"%{value}")
        raise CertificateStoreError(f"unsupported filter modifier: {modifier}")

    @staticmethod
    def _domain_names_criterion(condition: FilterCondition):
        # JSON配列は文字列化して部分一致で比較する
        as_text = cast(CertificateEntity.domain_names, String)
        if condition.modifier in ("equals", "in"):
            return or_(*[as_text.like(f'%"{value}"%') for value in condition.values])
        if condition.modifier in ("not", "notin"):
            return and_(*[not_(as_text.like(f'%"{value}"%')) for value in condition.values])
        return as_text.ilike(f"%{condition.value}%")

    @staticmethod
    def _coerce_value(field_name: str, raw: str):
        if field_name in _INTEGER_FIELDS:
            try:
                return int(raw)
            except (TypeError, ValueError):
                raise CertificateStoreError(f"{field_name} must be an integer") from None
        if field_name in _BOOLEAN_FIELDS:
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        return raw

    def _upsert_entity(self, certificate: Certificate) -> CertificateEntity:
        entity: CertificateEntity | None = None
        if certificate.id:
            entity = db.session.get(CertificateEntity, certificate.id)
            if entity is None:
                raise CertificateNotFoundError(f"証明書が見つかりません: {certificate.id}")
        if entity is None:
            entity = CertificateEntity()

        entity.user_id = certificate.user_id
        entity.type = certificate.type.value
        entity.name = certificate.name.strip()
        entity.domain_names = list(certificate.domain_names)
        entity.certificate_authority_id = certificate.certificate_authority_id
        entity.dns_provider_id = certificate.dns_provider_id
        entity.is_ecc = bool(certificate.is_ecc)
        entity.status = certificate.status.value
        entity.error_message = certificate.error_message or ""
        entity.expires_on = certificate.expires_on
        entity.meta = dict(certificate.meta)
        entity.modified_on = datetime.utcnow()
        return entity

    def _entity_to_domain(self, entity: CertificateEntity) -> Certificate:
        return Certificate(
            id=entity.id,
            type=CertificateType(entity.type),
            name=entity.name,
            user_id=entity.user_id,
            domain_names=list(entity.domain_names or []),
            certificate_authority_id=entity.certificate_authority_id,
            dns_provider_id=entity.dns_provider_id,
            is_ecc=bool(entity.is_ecc),
            status=CertificateStatus(entity.status),
            error_message=entity.error_message or "",
            expires_on=entity.expires_on,
            meta=dict(entity.meta or {}),
            created_on=entity.created_on,
            modified_on=entity.modified_on,
        )


__all__ = [
    "CertificatePage",
    "CertificateStore",
    "FILTERABLE_FIELDS",
    "FILTER_VALUE_KINDS",
    "SORTABLE_FIELDS",
]
