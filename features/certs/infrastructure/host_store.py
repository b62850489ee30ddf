"""証明書を参照するホストの参照数を返すストア"""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from core.db import db

from features.certs.domain.exceptions import CertificateStoreError

from .models import HostEntity


class HostStore:
    """ホストによる証明書参照の照会"""

    def get_certificate_use_count(self, certificate_id: int) -> int:
        try:
            count = db.session.scalar(
                select(func.count())
                .select_from(HostEntity)
                .where(HostEntity.certificate_id == certificate_id)
            )
        except SQLAlchemyError as exc:
            raise CertificateStoreError(str(exc)) from exc
        return int(count or 0)


__all__ = ["HostStore"]
