"""Bearer-token principal exposed to flask-login as ``current_user``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, FrozenSet, Iterable, Optional

if TYPE_CHECKING:  # pragma: no cover
    from core.models.user import User


@dataclass(frozen=True, slots=True)
class AuthenticatedPrincipal:
    """Immutable snapshot of the token subject and its granted scope."""

    subject_id: int
    identifier: str
    scope: FrozenSet[str] = field(default_factory=frozenset)
    display_name: Optional[str] = None
    email: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "scope", frozenset(self.scope))
        email = self.email.strip() if isinstance(self.email, str) else ""
        object.__setattr__(self, "email", email or None)

    @classmethod
    def from_user(cls, user: "User", scope: Iterable[str]) -> "AuthenticatedPrincipal":
        return cls(
            subject_id=user.id,
            identifier=f"i+{user.id}",
            scope=frozenset(scope),
            display_name=user.nickname or user.name or user.email,
            email=user.email,
        )

    # flask-login
    @property
    def id(self) -> int:
        return self.subject_id

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:
        return True

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        return str(self.subject_id)

    def can(self, *codes: str) -> bool:
        """True when any of *codes* is granted (or none were asked for)."""

        return not codes or any(code in self.scope for code in codes)


__all__ = ["AuthenticatedPrincipal"]
