import pytest

from core.models.user import User
from shared.application.authenticated_principal import AuthenticatedPrincipal


def _principal(**overrides):
    attrs = {
        "subject_id": 1,
        "identifier": "i+1",
        "scope": ["certificate:manage"],
        "display_name": "admin",
        "email": " admin@example.com ",
    }
    attrs.update(overrides)
    return AuthenticatedPrincipal(**attrs)


def test_scope_is_frozen_and_email_normalised():
    principal = _principal()

    assert principal.scope == frozenset({"certificate:manage"})
    assert principal.email == "admin@example.com"
    assert principal.id == 1
    assert principal.get_id() == "1"
    assert principal.is_authenticated and not principal.is_anonymous


@pytest.mark.parametrize(
    "codes, expected",
    [
        ((), True),
        (("certificate:manage",), True),
        (("user:manage", "certificate:manage"), True),
        (("user:manage",), False),
    ],
)
def test_can_checks_any_code(codes, expected):
    assert _principal().can(*codes) is expected


def test_blank_email_becomes_none():
    assert _principal(email="   ").email is None


@pytest.mark.parametrize(
    "nickname, name, expected",
    [
        ("boss", "Admin", "boss"),
        (None, "Admin", "Admin"),
        (None, "", "ops@example.com"),
    ],
)
def test_from_user_display_name_fallback(nickname, name, expected):
    user = User(id=3, email="ops@example.com", name=name, nickname=nickname)

    principal = AuthenticatedPrincipal.from_user(user, ["certificate:manage"])

    assert principal.identifier == "i+3"
    assert principal.display_name == expected
    assert principal.can("certificate:manage")
