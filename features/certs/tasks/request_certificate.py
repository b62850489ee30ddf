"""証明書プロビジョニングCeleryタスク"""
from __future__ import annotations

from dataclasses import replace

from cli.src.celery.celery_app import celery
from core.logging_config import setup_task_logging
from features.certs.application.provisioning import (
    REQUEST_CERTIFICATE_TASK,
    RequestCertificateUseCase,
)
from features.certs.application.services import default_certificate_services

logger = setup_task_logging("celery.task.certificates")


@celery.task(bind=True, name=REQUEST_CERTIFICATE_TASK)
def request_certificate_task(self, certificate_id: int):
    """証明書の種別に応じて素材を確定させる"""

    services = replace(default_certificate_services, logger=logger)
    summary = RequestCertificateUseCase(services).execute(certificate_id)
    if summary is None:
        return {"certificateId": certificate_id, "status": "missing"}
    return summary


__all__ = ["request_certificate_task"]
