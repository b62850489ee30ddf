import json
import logging
import sys
import time
from typing import Any

from celery import Celery
from dotenv import load_dotenv
from flask import Flask

from core.db import db
from core.logging_config import ensure_worker_db_logging, log_task_error, log_task_info
from core.settings import settings
from webapp.config import Config

# .envファイルを読み込み
load_dotenv()


def create_app():
    """ワーカー用の最小Flaskアプリ（Blueprintやログインは不要）"""
    app = Flask(__name__)
    app.config.from_object(Config)

    db.init_app(app)

    from webapp.extensions import migrate, babel
    migrate.init_app(app, db)
    babel.init_app(app)

    # モデル import（リレーション解決のため）
    from core.models import user as _user  # noqa: F401
    from core.models import worker_log as _worker_log  # noqa: F401
    from features.certs.infrastructure import models as _cert_models  # noqa: F401

    return app


celery = Celery(
    'cli.src.celery.celery_app',
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='Asia/Tokyo',
    enable_utc=True,
)

flask_app = create_app()


def setup_celery_logging():
    """ワーカーのログをコンソールと worker_log テーブルへ出力する"""
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')

    # celery.task.certificates などタスクのロガーは celery.task に伝播する
    for name in ('celery', 'celery.task'):
        logger = logging.getLogger(name)
        logger.setLevel(logging.INFO)
        if not any(type(h) is logging.StreamHandler for h in logger.handlers):
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)
        ensure_worker_db_logging(logger)

    # ルートロガーには重要なエラーのみ
    logging.getLogger().setLevel(logging.ERROR)


with flask_app.app_context():
    setup_celery_logging()


def _lifecycle_message(message: str, task_name: str, task_uuid: Any, **fields: Any) -> str:
    body = {"message": message, "task": task_name, "celeryTaskId": task_uuid, **fields}
    return json.dumps(body, ensure_ascii=False, default=str)


class ContextTask(celery.Task):
    """タスクをFlaskアプリコンテキスト内で実行し、開始と終了を worker_log に残す"""

    def __call__(self, *args, **kwargs):
        lifecycle_logger = logging.getLogger("celery.task.lifecycle")
        task_uuid = getattr(getattr(self, "request", None), "id", None)
        certificate_id = kwargs.get("certificate_id", args[0] if args else None)
        context = {"task_name": self.name, "task_uuid": task_uuid, "certificate_id": certificate_id}

        with flask_app.app_context():
            log_task_info(
                lifecycle_logger,
                _lifecycle_message("Celery task started", self.name, task_uuid, certificateId=certificate_id),
                event="celery.task.started",
                **context,
            )
            started = time.perf_counter()
            try:
                result = self.run(*args, **kwargs)
            except Exception as exc:
                db.session.rollback()
                log_task_error(
                    lifecycle_logger,
                    _lifecycle_message("Celery task failed", self.name, task_uuid, error=str(exc)),
                    event="celery.task.failed",
                    **context,
                )
                raise
            finally:
                db.session.remove()

            log_task_info(
                lifecycle_logger,
                _lifecycle_message(
                    "Celery task finished",
                    self.name,
                    task_uuid,
                    elapsedSeconds=round(time.perf_counter() - started, 3),
                ),
                event="celery.task.succeeded",
                status=result.get("status") if isinstance(result, dict) else None,
                **context,
            )
            return result


celery.Task = ContextTask

# タスク登録
from cli.src.celery import tasks  # noqa: E402,F401
