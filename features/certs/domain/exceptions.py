"""証明書機能で利用する例外定義"""
from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus


class CertificateError(Exception):
    """証明書関連の基本例外"""

    status_code: int = HTTPStatus.BAD_REQUEST


class InvalidPayloadError(CertificateError):
    """リクエストボディが解釈できない場合の例外"""

    def __init__(self, message: str = "Invalid payload") -> None:
        super().__init__(message)


class InvalidQueryError(CertificateError):
    """ページング・フィルタ指定が不正な場合の例外"""


class CertificateNotFoundError(CertificateError):
    """証明書が存在しない場合の例外"""

    status_code = HTTPStatus.NOT_FOUND


class CertificateValidationError(CertificateError):
    """ストアが書き込みを拒否した場合の例外"""


class CertificatePersistenceError(CertificateError):
    """読み出し時のストア障害"""


class CertificateInUseError(CertificateError):
    """ホストから参照されているため削除できない場合の例外"""


class CertificateSchemaFatalError(CertificateError):
    """スキーマ検証エンジン自体の障害"""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


@dataclass(frozen=True, slots=True)
class SchemaFieldError:
    """フィールド単位のスキーマ違反"""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class CertificateSchemaError(CertificateError):
    """スキーマ違反の一覧を保持する例外"""

    def __init__(self, errors: list[SchemaFieldError]) -> None:
        super().__init__("Request failed validation")
        self.errors = list(errors)


class CertificateStoreError(Exception):
    """ストア層の失敗をラップする例外"""


class CertificateIssuerError(CertificateError):
    """外部発行処理の失敗"""


__all__ = [
    "CertificateError",
    "CertificateInUseError",
    "CertificateIssuerError",
    "CertificateNotFoundError",
    "CertificatePersistenceError",
    "CertificateSchemaError",
    "CertificateSchemaFatalError",
    "CertificateStoreError",
    "CertificateValidationError",
    "InvalidPayloadError",
    "InvalidQueryError",
    "SchemaFieldError",
]
