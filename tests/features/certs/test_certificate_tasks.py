from __future__ import annotations

import sys
from types import SimpleNamespace

from celery import Celery

from features.certs.application.provisioning import (
    REQUEST_CERTIFICATE_TASK,
    CeleryProvisioningDispatcher,
    ProvisioningJob,
    producer_client,
)
from features.certs.tasks import request_certificate


def test_task_is_registered_under_stable_name():
    from cli.src.celery.celery_app import celery

    assert REQUEST_CERTIFICATE_TASK == "certificates.request"
    assert REQUEST_CERTIFICATE_TASK in celery.tasks


def test_celery_dispatcher_sends_certificate_id_by_task_name():
    calls = []

    def _send_task(name, **kwargs):
        calls.append((name, kwargs))
        return SimpleNamespace(id="celery-task-1")

    dispatcher = CeleryProvisioningDispatcher(client=SimpleNamespace(send_task=_send_task))

    task_id = dispatcher.enqueue(ProvisioningJob(certificate_id=42))

    assert task_id == "celery-task-1"
    assert calls == [("certificates.request", {"kwargs": {"certificate_id": 42}})]


def test_producer_client_does_not_load_worker_app(monkeypatch):
    monkeypatch.delitem(sys.modules, "cli.src.celery.celery_app", raising=False)
    producer_client.cache_clear()
    try:
        client = producer_client()

        assert isinstance(client, Celery)
        assert client.conf.task_serializer == "json"
        assert producer_client() is client
        assert "cli.src.celery.celery_app" not in sys.modules
    finally:
        producer_client.cache_clear()


def test_task_reports_missing_certificate(monkeypatch):
    captured = {}

    class _FakeUseCase:
        def __init__(self, services):
            captured["logger"] = services.logger

        def execute(self, certificate_id):
            captured["certificate_id"] = certificate_id
            return None

    monkeypatch.setattr(request_certificate, "RequestCertificateUseCase", _FakeUseCase)

    result = request_certificate.request_certificate_task.run(5)

    assert result == {"certificateId": 5, "status": "missing"}
    assert captured["certificate_id"] == 5
    assert captured["logger"] is request_certificate.logger


def test_task_returns_summary(monkeypatch):
    summary = {"certificateId": 6, "status": "provided", "expiresOn": None, "errorMessage": None}

    class _FakeUseCase:
        def __init__(self, services):
            pass

        def execute(self, certificate_id):
            return summary

    monkeypatch.setattr(request_certificate, "RequestCertificateUseCase", _FakeUseCase)

    assert request_certificate.request_certificate_task.run(6) == summary
