# webapp/__init__.py
import json
import logging
import os
import sys
import time
from collections.abc import Mapping, Sequence
from typing import Any, Dict, Tuple
from uuid import uuid4

from flask import Flask, g, has_request_context, jsonify, request
from sqlalchemy.engine import make_url
from werkzeug.exceptions import HTTPException

from .extensions import db, migrate, login_manager, babel
from core.db_log_handler import DBLogHandler
from core.logging_config import ensure_appdb_file_logging


# キー名にこれらを含む値はログに残さない（証明書の秘密鍵を含む）
_SENSITIVE_KEYWORDS = ("password", "secret", "token", "api_key", "certificate_key", "private_key")

_MAX_LOG_PAYLOAD_BYTES = 60_000
_MAX_LOG_STRING_LENGTH = 120


def _is_sensitive_key(key) -> bool:
    return isinstance(key, str) and any(word in key.lower() for word in _SENSITIVE_KEYWORDS)


def _sanitize_for_log(value: Any) -> Any:
    """機密キーを伏せ、PEM等の長い文字列を短縮したコピーを返す"""

    if isinstance(value, Mapping):
        return {
            key: "***" if _is_sensitive_key(key) else _sanitize_for_log(item)
            for key, item in value.items()
        }
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [_sanitize_for_log(item) for item in value]
    if isinstance(value, str) and len(value) > _MAX_LOG_STRING_LENGTH:
        return f"{value[:_MAX_LOG_STRING_LENGTH]}… ({len(value)} chars)"
    return value


def _dump_log_payload(payload: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
    """ログ用にJSON化する。上限を超える場合は概要のみにする"""

    text = json.dumps(payload, ensure_ascii=False, default=str)
    if len(text.encode("utf-8")) <= _MAX_LOG_PAYLOAD_BYTES:
        return payload, text

    summary = {
        "status": payload.get("status"),
        "message": "payload omitted due to size limit",
        "_truncation": {"limitBytes": _MAX_LOG_PAYLOAD_BYTES, "omitted": True},
    }
    return summary, json.dumps(summary, ensure_ascii=False, default=str)


def _is_testing(app: Flask) -> bool:
    flag = os.environ.get("TESTING", "").strip().lower()
    return bool(app.config.get("TESTING")) or flag in {"1", "true", "yes", "on"}


def _uses_memory_sqlite(app: Flask) -> bool:
    uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not uri:
        return False
    try:
        url = make_url(uri)
    except Exception:  # pragma: no cover - 不正なURIでもログ設定は続行
        return False
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _configure_logging(app: Flask) -> None:
    if not _is_testing(app):
        ensure_appdb_file_logging(app.logger)
        if not _uses_memory_sqlite(app):
            for handler in app.logger.handlers:
                if isinstance(handler, DBLogHandler):
                    handler.bind_to_app(app)

    if app.debug:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        app.logger.addHandler(console_handler)
        app.logger.setLevel(logging.DEBUG)
    else:
        app.logger.setLevel(logging.INFO)


def _register_api_logging(app: Flask) -> None:
    """/api 配下の入出力を request_id 付きで記録する"""

    @app.before_request
    def log_api_request():
        g.start_time = time.perf_counter()
        if not request.path.startswith("/api"):
            return
        g.request_id = str(uuid4())

        entry: Dict[str, Any] = {"method": request.method}
        if request.args:
            entry["args"] = _sanitize_for_log(request.args.to_dict())
        body = request.get_json(silent=True)
        if body is not None:
            entry["json"] = _sanitize_for_log(body)
        _, text = _dump_log_payload(entry)
        app.logger.info(
            text,
            extra={"event": "api.input", "request_id": g.request_id, "path": request.path},
        )

    @app.after_request
    def log_api_response(response):
        if request.path.startswith("/api"):
            body = response.get_json(silent=True) if response.is_json else None
            _, text = _dump_log_payload(
                {
                    "status": response.status_code,
                    "json": _sanitize_for_log(body) if body is not None else None,
                }
            )
            extra = {
                "event": "api.output",
                "request_id": getattr(g, "request_id", None),
                "path": request.path,
            }
            level = logging.WARNING if response.status_code >= 400 else logging.INFO
            app.logger.log(level, text, extra=extra)

        started = getattr(g, "start_time", None)
        if started is not None:
            response.headers["Server-Timing"] = f"app;dur={(time.perf_counter() - started) * 1000:.2f}"
        return response


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    def handle_404(e):
        app.logger.warning(
            "404 path=%s full=%s ua=%s",
            request.path,
            request.full_path,
            request.user_agent,
            extra={"event": "api.not_found", "request_id": getattr(g, "request_id", None)},
        )
        return jsonify(error="Not Found"), 404

    @app.errorhandler(Exception)
    def handle_exception(e):
        is_http = isinstance(e, HTTPException)
        code = e.code if is_http else 500
        # 5xx の詳細は外部に返さない
        public_message = e.description if (is_http and code < 500) else "Internal Server Error"

        entry = {
            "method": request.method,
            "path": request.path,
            "full_path": request.full_path,
            "ua": request.user_agent.string,
            "status": code,
        }
        body = request.get_json(silent=True)
        if body is not None:
            entry["json"] = _sanitize_for_log(body)
        text = json.dumps(entry, ensure_ascii=False, default=str)
        request_id = getattr(g, "request_id", None)

        if is_http and code < 500:
            app.logger.warning(text, extra={"event": "api.http_4xx", "request_id": request_id})
        else:
            app.logger.exception(text, extra={"event": "api.http_5xx", "request_id": request_id})
        return jsonify({"error": public_message}), code


def create_app(config_object=None):
    """アプリケーションファクトリ"""
    from dotenv import load_dotenv
    from .config import Config

    # .env を読み込む（環境変数が未設定の場合のみ）
    load_dotenv()

    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    babel.init_app(app, locale_selector=_select_locale)

    _configure_logging(app)

    # モデル import（migrate 用に認識させる）
    from core.models import log as _log  # noqa: F401
    from core.models import worker_log as _worker_log  # noqa: F401
    from core.models import user as _user  # noqa: F401
    from features.certs.infrastructure import models as _cert_models  # noqa: F401

    from features.certs.presentation.api import certs_api_bp
    app.register_blueprint(certs_api_bp, url_prefix="/api")

    _register_api_logging(app)
    _register_error_handlers(app)

    if app.config.get("SQLALCHEMY_DATABASE_URI", "").startswith("sqlite://"):
        with app.app_context():
            db.create_all()

    return app


def _select_locale():
    """1) Accept-Language 2) default"""
    from flask import current_app

    default = current_app.config.get("BABEL_DEFAULT_LOCALE", "en")
    if not has_request_context():
        return default
    return request.accept_languages.best_match(current_app.config["LANGUAGES"]) or default
