"""
Identity domain constants and the authenticated principal.

Why:
- Centralize allowed roles to avoid drift between the token service, the web
  layer and the classroom policy.
- The role travels as an explicit tag on the token payload. It is never
  inferred from which store a record was loaded from.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class Role(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"


# Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset(r.value for r in Role)


def parse_role(value: object) -> Role:
    """Return the `Role` for a raw claim value or raise `ValueError`."""
    if isinstance(value, Role):
        return value
    if not isinstance(value, str) or value not in ALLOWED_ROLES:
        raise ValueError("invalid_role")
    return Role(value)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller derived from a verified token (not persisted)."""

    id: str
    role: Role
    username: str = ""

    @classmethod
    def from_claims(cls, claims: Mapping[str, object]) -> "Principal":
        sub = claims.get("sub") or claims.get("id")
        if not isinstance(sub, str) or not sub:
            raise ValueError("missing_sub")
        username = claims.get("username")
        return cls(
            id=sub,
            role=parse_role(claims.get("role")),
            username=username if isinstance(username, str) else "",
        )


__all__ = ["ALLOWED_ROLES", "Principal", "Role", "parse_role"]
