"""証明書機能で利用するドメインモデル"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .types import CertificateStatus, CertificateType


@dataclass(slots=True)
class CertificateOwner:
    """expand=user で付与される所有者情報"""

    id: int
    name: str | None = None
    nickname: str | None = None
    email: str | None = None


@dataclass(slots=True)
class Certificate:
    """TLS証明書リソース

    ``id`` が0の場合は未保存を表す。
    """

    type: CertificateType
    name: str
    id: int = 0
    user_id: int = 0
    domain_names: list[str] = field(default_factory=list)
    certificate_authority_id: int | None = None
    dns_provider_id: int | None = None
    is_ecc: bool = False
    status: CertificateStatus = CertificateStatus.READY
    error_message: str = ""
    expires_on: datetime | None = None
    meta: dict[str, Any] = field(default_factory=dict)
    created_on: datetime | None = None
    modified_on: datetime | None = None
    user: CertificateOwner | None = None

    @property
    def is_persisted(self) -> bool:
        return bool(self.id)


@dataclass(slots=True)
class IssuedMaterial:
    """発行処理の結果"""

    certificate_pem: str
    private_key_pem: str | None
    expires_on: datetime
    intermediate_pem: str | None = None
