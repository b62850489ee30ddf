from flask import current_app
from flask_babel import Babel
from flask_login import LoginManager
from flask_migrate import Migrate

from core.db import db

migrate = Migrate()
login_manager = LoginManager()
babel = Babel()

login_manager.login_message = None


def _bearer_token(header):
    scheme, _, token = (header or "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


@login_manager.user_loader
def load_user(user_id):
    # セッションログインは扱わない（Bearerトークンのみ）
    return None


@login_manager.request_loader
def load_user_from_request(request):
    """Authorization: Bearer のアクセストークンから principal を復元する"""
    token = _bearer_token(request.headers.get("Authorization"))
    if token is None:
        return None

    from webapp.services.token_service import TokenService

    principal = TokenService.create_principal_from_token(token)
    if principal is None:
        current_app.logger.debug(
            "Bearer token rejected in request_loader",
            extra={"event": "auth.jwt.invalid"},
        )
    return principal


__all__ = ["babel", "db", "login_manager", "migrate"]
