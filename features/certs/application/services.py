"""証明書機能で利用する共通サービス定義"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from features.certs.application.provisioning import (
    CertificateIssuer,
    ConfiguredProvisioningDispatcher,
    ProvisioningDispatcher,
)
from features.certs.infrastructure.certificate_store import CertificateStore
from features.certs.infrastructure.host_store import HostStore


@dataclass(slots=True)
class CertificateServices:
    certificate_store: CertificateStore
    host_store: HostStore
    dispatcher: ProvisioningDispatcher
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("certificates"))
    issuer: CertificateIssuer | None = None


default_certificate_services = CertificateServices(
    certificate_store=CertificateStore(),
    host_store=HostStore(),
    dispatcher=ConfiguredProvisioningDispatcher(),
)


__all__ = ["CertificateServices", "default_certificate_services"]
