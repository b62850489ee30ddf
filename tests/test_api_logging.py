"""APIの入出力ログとエラーハンドリングのテスト"""
import logging

from webapp import _dump_log_payload, _sanitize_for_log


def test_sanitize_masks_sensitive_keys_recursively():
    data = {
        "name": "example",
        "meta": {"certificate": "PEM", "certificate_key": "KEY"},
        "items": [{"api_key": "abc"}, "plain"],
    }

    assert _sanitize_for_log(data) == {
        "name": "example",
        "meta": {"certificate": "PEM", "certificate_key": "***"},
        "items": [{"api_key": "***"}, "plain"],
    }


def test_sanitize_shortens_long_strings():
    pem = "A" * 500

    sanitized = _sanitize_for_log({"meta": {"certificate": pem}, "short": "ok"})

    assert sanitized["short"] == "ok"
    assert sanitized["meta"]["certificate"].endswith("(500 chars)")
    assert len(sanitized["meta"]["certificate"]) < len(pem)


def test_dump_log_payload_omits_oversized_payloads():
    payload = {"status": 200, "json": "x" * 70_000}

    summary, text = _dump_log_payload(payload)

    assert summary["status"] == 200
    assert summary["_truncation"]["omitted"] is True
    assert "x" * 100 not in text


def test_api_request_and_response_are_logged(app_context, caplog):
    client = app_context.test_client()

    with caplog.at_level(logging.INFO, logger=app_context.logger.name):
        res = client.get("/api/certificates?limit=2")

    assert res.status_code == 401
    events = [getattr(record, "event", None) for record in caplog.records]
    assert "api.input" in events
    assert "api.output" in events
    assert "Server-Timing" in res.headers


def test_unknown_route_returns_json_404(app_context):
    res = app_context.test_client().get("/api/nope")

    assert res.status_code == 404
    assert res.get_json() == {"error": "Not Found"}
