"""JWT アクセストークン管理サービス

API は ``Authorization: Bearer <token>`` のみで認証する。トークンは HS256 で
署名し、``sub`` は ``i+<user id>``、``scope`` は空白区切りの権限コード。
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

import jwt
from flask import current_app

from core.db import db
from core.models.user import User
from core.settings import settings
from shared.application.authenticated_principal import AuthenticatedPrincipal

# 検証失敗の理由（debugログ用）。先に一致したものを採用する
_REJECTION_REASONS: tuple[tuple[type[jwt.InvalidTokenError], str], ...] = (
    (jwt.ExpiredSignatureError, "expired"),
    (jwt.InvalidAudienceError, "audience_mismatch"),
    (jwt.InvalidIssuerError, "issuer_mismatch"),
    (jwt.MissingRequiredClaimError, "missing_claim"),
    (jwt.InvalidSignatureError, "bad_signature"),
)

SUBJECT_PREFIX = "i+"


class TokenService:
    """アクセストークンの発行と、トークンから ``AuthenticatedPrincipal`` への復元"""

    ALGORITHM = "HS256"

    @staticmethod
    def _scope_claim(scope: Iterable[str] | None) -> str:
        return " ".join(sorted({item.strip() for item in scope or () if item and item.strip()}))

    @classmethod
    def generate_access_token(cls, user: User, scope: Iterable[str] | None = None) -> str:
        """アクセストークンを生成する"""

        now = datetime.now(timezone.utc)
        payload = {
            "sub": f"{SUBJECT_PREFIX}{user.id}",
            "iat": now,
            "exp": now + timedelta(seconds=settings.access_token_ttl_seconds),
            "jti": secrets.token_urlsafe(8),
            "type": "access",
            "scope": cls._scope_claim(scope),
            "iss": settings.access_token_issuer,
            "aud": settings.access_token_audience,
        }
        return jwt.encode(payload, settings.jwt_secret_key, algorithm=cls.ALGORITHM)

    @classmethod
    def _reject(cls, reason: str, **extra: Any) -> None:
        current_app.logger.debug(
            "JWT token rejected: %s",
            reason,
            extra={"event": "auth.jwt.rejected", "reason": reason, **extra},
        )

    @classmethod
    def _decode(cls, token: str) -> Optional[dict[str, Any]]:
        issuer = settings.access_token_issuer or None
        required = ["aud", "exp", "sub"] + (["iss"] if issuer else [])

        try:
            payload = jwt.decode(
                token,
                settings.jwt_secret_key,
                algorithms=[cls.ALGORITHM],
                audience=settings.access_token_audience,
                issuer=issuer,
                options={"require": required},
            )
        except jwt.InvalidTokenError as exc:
            reason = next(
                (label for error_type, label in _REJECTION_REASONS if isinstance(exc, error_type)),
                "invalid",
            )
            cls._reject(reason, error=str(exc))
            return None

        if payload.get("type", "access") != "access":
            cls._reject("not_access_token")
            return None
        return payload

    @staticmethod
    def _subject_user_id(payload: dict[str, Any]) -> Optional[int]:
        subject = str(payload.get("sub", ""))
        if subject.startswith(SUBJECT_PREFIX):
            subject = subject[len(SUBJECT_PREFIX):]
        try:
            return int(subject)
        except ValueError:
            return None

    @staticmethod
    def _scope_items(payload: dict[str, Any]) -> set[str]:
        claim = payload.get("scope", "")
        if isinstance(claim, str):
            return set(claim.split())
        if isinstance(claim, (list, tuple)):
            return {str(item).strip() for item in claim if str(item).strip()}
        return set()

    @classmethod
    def create_principal_from_token(cls, token: str) -> Optional[AuthenticatedPrincipal]:
        """トークンを検証し、有効なユーザーの principal を返す。不正なら None"""

        payload = cls._decode(token)
        if payload is None:
            return None

        user_id = cls._subject_user_id(payload)
        if user_id is None:
            cls._reject("invalid_subject")
            return None

        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            cls._reject("inactive_user", user_id=user_id)
            return None

        return AuthenticatedPrincipal.from_user(user, cls._scope_items(payload))


__all__ = ["TokenService"]
