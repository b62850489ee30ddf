from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Mapped, mapped_column

from ..db import BigInt, db


class WorkerLog(db.Model):
    """Celeryワーカーのログ（プロビジョニングジョブ単位で追跡する）"""

    __tablename__ = "worker_log"

    id: Mapped[int] = mapped_column(BigInt, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    level: Mapped[str] = mapped_column(db.String(20), nullable=False)
    event: Mapped[str] = mapped_column(db.String(50), nullable=False, index=True)
    logger_name: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    task_name: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    task_uuid: Mapped[str | None] = mapped_column(db.String(36), nullable=True)
    certificate_id: Mapped[int | None] = mapped_column(BigInt, nullable=True, index=True)
    status: Mapped[str | None] = mapped_column(db.String(40), nullable=True)
    message: Mapped[str] = mapped_column(db.Text, nullable=False)
    trace: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    meta_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    extra_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)


__all__ = ["WorkerLog"]
