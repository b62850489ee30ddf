"""ORM models shared across applications."""

# モデルの循環インポートを避けるため、ここで一括インポート
from .user import User
from .log import Log
from .worker_log import WorkerLog

__all__ = [
    "User",
    "Log",
    "WorkerLog",
]
