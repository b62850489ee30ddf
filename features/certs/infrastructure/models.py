"""証明書機能のSQLAlchemyモデル"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import BigInt, db
from core.models.user import User  # noqa: F401  relationship("User") の解決に必要


class CertificateEntity(db.Model):
    """証明書を保持するテーブル"""

    __tablename__ = "certificate"

    id: Mapped[int] = mapped_column(BigInt, primary_key=True, autoincrement=True)
    created_on: Mapped[datetime] = mapped_column(
        db.DateTime, nullable=False, default=datetime.utcnow
    )
    modified_on: Mapped[datetime] = mapped_column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    user_id: Mapped[int] = mapped_column(
        BigInt, db.ForeignKey("user.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(db.String(32), nullable=False, index=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False, unique=True)
    domain_names: Mapped[list] = mapped_column(
        db.JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )
    certificate_authority_id: Mapped[int | None] = mapped_column(BigInt, nullable=True)
    dns_provider_id: Mapped[int | None] = mapped_column(BigInt, nullable=True)
    is_ecc: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(db.String(32), nullable=False, default="ready", index=True)
    error_message: Mapped[str] = mapped_column(db.Text, nullable=False, default="")
    expires_on: Mapped[datetime | None] = mapped_column(db.DateTime, nullable=True, index=True)
    meta: Mapped[dict] = mapped_column(
        db.JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict
    )

    owner: Mapped["User"] = relationship("User", lazy="select")  # noqa: F821

    hosts: Mapped[list["HostEntity"]] = relationship(
        "HostEntity",
        back_populates="certificate",
        lazy="select",
        passive_deletes=True,
    )


class HostEntity(db.Model):
    """証明書を参照するプロキシホスト（参照数のみを利用する）"""

    __tablename__ = "host"

    id: Mapped[int] = mapped_column(BigInt, primary_key=True, autoincrement=True)
    created_on: Mapped[datetime] = mapped_column(
        db.DateTime, nullable=False, default=datetime.utcnow
    )
    user_id: Mapped[int | None] = mapped_column(BigInt, db.ForeignKey("user.id"), nullable=True)
    domain_names: Mapped[list] = mapped_column(
        db.JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )
    certificate_id: Mapped[int | None] = mapped_column(
        BigInt,
        db.ForeignKey("certificate.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    certificate: Mapped[CertificateEntity | None] = relationship(
        CertificateEntity,
        back_populates="hosts",
    )


__all__ = ["CertificateEntity", "HostEntity"]
