import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("TESTING", "true")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def app_context():
    """アプリケーションコンテキストを提供するfixture"""
    from webapp import create_app
    from webapp.config import TestConfig
    from webapp.extensions import db

    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def make_user(app_context):
    """テスト用ユーザーを作成するファクトリ"""
    from core.db import db
    from core.models.user import User

    def _make_user(email="admin@example.com", **attrs):
        user = User(email=email, name=attrs.pop("name", "Admin"), **attrs)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    """ユーザーとスコープからBearerヘッダを作る"""
    from webapp.services.token_service import TokenService

    def _auth_headers(user, scope=("certificate:manage",)):
        token = TokenService.generate_access_token(user, scope)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
