"""Celery background tasks."""

from .celery_app import celery  # noqa: F401

# 証明書プロビジョニング（certificates.request）
from features.certs.tasks import request_certificate  # noqa: E402,F401
