"""Logging handlers that persist records into the ``log`` / ``worker_log`` tables.

Each record is stored as a JSON document.  The formatted message is parsed as
JSON when possible (API input/output logs are already JSON), then ``_meta``
(where the record came from) and ``_extra`` (custom ``extra=`` attributes) are
attached.  ``event``, ``path`` and ``request_id`` are promoted to columns.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

from flask import has_app_context
from sqlalchemy import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .db import db

if TYPE_CHECKING:  # pragma: no cover
    from flask import Flask


_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
    "stacklevel",
}

_COLUMN_ATTRS = frozenset({"event", "path", "request_id"})


def _clip(value: Optional[Any], max_length: int) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text[:max_length] if len(text) > max_length else text


def _as_int(value: Optional[Any]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _jsonable(value: Optional[Any]) -> Optional[Any]:
    if value is None:
        return None
    return json.loads(json.dumps(value, ensure_ascii=False, default=str))


@dataclass
class PreparedRecord:
    """A log record reduced to what the log tables store."""

    event: str
    payload: Dict[str, Any]
    extras: Dict[str, Any] = field(default_factory=dict)
    trace: Optional[str] = None

    @property
    def message_json(self) -> str:
        return json.dumps(self.payload, ensure_ascii=False, default=str)

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> "PreparedRecord":
        raw = record.getMessage()
        try:
            payload = json.loads(raw)
        except ValueError:
            payload = raw
        if not isinstance(payload, dict):
            payload = {"message": payload}

        payload.setdefault("_meta", {}).update(
            logger=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
            level=record.levelname,
        )

        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and key not in _COLUMN_ATTRS and not key.startswith("_")
        }
        if extras:
            payload["_extra"] = extras

        trace = None
        if record.exc_info:
            trace = logging.Formatter().formatException(record.exc_info)

        event = getattr(record, "event", None) or record.name or "general"
        return cls(event=str(event)[:50], payload=payload, extras=extras, trace=trace)


class DBLogHandler(logging.Handler):
    """Persist application log records to the ``log`` table."""

    def __init__(self, app: Optional["Flask"] = None, *, engine: Optional[Engine] = None) -> None:
        super().__init__()
        self._app = app
        self._engine: Optional[Engine] = engine
        self._tables_ready: Set[int] = set()

    def bind_to_app(self, app: "Flask") -> None:
        """Rebind this handler to *app* and forget the cached engine."""

        self._app = app
        self._engine = None
        self._tables_ready.clear()

    def _get_log_model(self):
        from .models.log import Log

        return Log

    def _resolve_engine(self) -> Optional[Engine]:
        if self._engine is None:
            if has_app_context():
                self._engine = db.engine
            elif self._app is not None:
                with self._app.app_context():
                    self._engine = db.engine
        return self._engine

    def _ensure_table(self, engine: Engine) -> None:
        if id(engine) in self._tables_ready or not isinstance(engine, Engine):
            return
        self._get_log_model().__table__.create(bind=engine, checkfirst=True)
        self._tables_ready.add(id(engine))

    def build_row(self, record: logging.LogRecord, prepared: PreparedRecord) -> Dict[str, Any]:
        return {
            "level": record.levelname,
            "event": prepared.event,
            "logger_name": _clip(record.name, 120),
            "message": prepared.message_json,
            "trace": prepared.trace,
            "path": _clip(getattr(record, "path", None), 255),
            "request_id": _clip(getattr(record, "request_id", None), 36),
        }

    def emit(self, record: logging.LogRecord) -> None:
        engine = self._resolve_engine()
        if engine is None:
            return

        row = self.build_row(record, PreparedRecord.from_record(record))
        try:
            self._ensure_table(engine)
            with engine.begin() as conn:
                conn.execute(insert(self._get_log_model()).values(**row))
        except SQLAlchemyError:  # pragma: no cover - reported through logging.raiseExceptions
            self.handleError(record)


class WorkerDBLogHandler(DBLogHandler):
    """Persist Celery worker records, keyed by task and certificate."""

    def _get_log_model(self):
        from .models.worker_log import WorkerLog

        return WorkerLog

    def build_row(self, record: logging.LogRecord, prepared: PreparedRecord) -> Dict[str, Any]:
        extras = prepared.extras
        payload = prepared.payload
        task_uuid = extras.get("task_uuid") or extras.get("task_id")
        return {
            "level": _clip(record.levelname, 20),
            "event": prepared.event,
            "logger_name": _clip(record.name, 120),
            "task_name": _clip(extras.get("task_name"), 255),
            "task_uuid": _clip(task_uuid, 36),
            "certificate_id": _as_int(extras.get("certificate_id", payload.get("certificateId"))),
            "status": _clip(extras.get("status", payload.get("status")), 40),
            "message": prepared.message_json,
            "trace": prepared.trace,
            "meta_json": _jsonable(payload.get("_meta")),
            "extra_json": _jsonable(payload.get("_extra")),
        }


__all__ = ["DBLogHandler", "PreparedRecord", "WorkerDBLogHandler"]
