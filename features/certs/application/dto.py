"""証明書機能のDTO"""
from __future__ import annotations

from dataclasses import dataclass, field

from shared.application.query import FilterCondition, PageInfo

from features.certs.domain.models import Certificate


@dataclass(slots=True)
class ListCertificatesInput:
    page: PageInfo = field(default_factory=PageInfo)
    filters: list[FilterCondition] = field(default_factory=list)
    expand: frozenset[str] = frozenset()


@dataclass(slots=True)
class CertificateListResult:
    total: int
    offset: int
    limit: int
    sort: str
    items: list[Certificate]


__all__ = ["CertificateListResult", "ListCertificatesInput"]
