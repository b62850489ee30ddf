"""証明書の種別・状態に関する定義"""
from __future__ import annotations

from enum import Enum


class CertificateType(str, Enum):
    """証明書の取得方法"""

    CUSTOM = "custom"
    HTTP = "http"
    DNS = "dns"
    MKCERT = "mkcert"

    @classmethod
    def from_str(cls, value: str | None) -> "CertificateType":
        """文字列から種別を解決"""

        if value is None:
            raise ValueError("typeは必須です")
        try:
            return cls(value)
        except ValueError as exc:  # noqa: B904 - Enum変換失敗時はValueErrorで十分
            raise ValueError(f"未知のtypeです: {value}") from exc

    @property
    def requires_issuer(self) -> bool:
        return self in (CertificateType.HTTP, CertificateType.DNS)


class CertificateStatus(str, Enum):
    """証明書のプロビジョニング状態"""

    READY = "ready"
    REQUESTING = "requesting"
    FAILED = "failed"
    PROVIDED = "provided"
