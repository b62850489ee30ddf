from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Mapped, mapped_column

from core.db import BigInt, db


class User(db.Model):
    """管理画面のユーザー（証明書の所有者として参照される）"""

    __tablename__ = "user"

    id: Mapped[int] = mapped_column(BigInt, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(db.String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(db.String(100), nullable=False, default="")
    nickname: Mapped[str | None] = mapped_column(db.String(100), nullable=True)
    is_disabled: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def is_active(self) -> bool:
        return not self.is_disabled


__all__ = ["User"]
