"""
Access token issuing and verification for the identity_access context.

Why: Keep cryptographic handling of bearer tokens outside the web adapter so we
can unit test it independently of FastAPI.

Security: Tokens are HS256-signed with the shared `JWT_SECRET`. Verification
pins the algorithm, requires an expiry and re-checks temporal claims with a
small skew allowance. The role travels as an explicit `role` claim.
"""
from __future__ import annotations

from typing import Dict
import time

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JOSEError

from .domain import Principal, Role


ALGORITHM = "HS256"
MAX_CLOCK_SKEW_SECONDS = 5  # Allow minimal skew between servers


class TokenVerificationError(Exception):
    """Raised when an access token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def issue_access_token(
    *,
    user_id: str,
    username: str,
    role: Role,
    secret: str,
    ttl_seconds: int = 3600,
    now: float | None = None,
) -> str:
    """Return a signed token carrying the caller's id, username and role."""
    issued_at = int(now if now is not None else time.time())
    claims = {
        "sub": user_id,
        "id": user_id,
        "username": username,
        "role": role.value,
        "iat": issued_at,
        "exp": issued_at + int(ttl_seconds),
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def verify_access_token(*, token: str, secret: str) -> Dict[str, object]:
    """Validate an access token and return its claims.

    Raises
    ------
    TokenVerificationError:
        `expired_token` when past `exp`, `invalid_token` for any other
        signature, format or claim problem.
    """
    if not token or not isinstance(token, str):
        raise TokenVerificationError("invalid_token")
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"verify_aud": False, "require_exp": True},
        )
    except ExpiredSignatureError as exc:
        raise TokenVerificationError("expired_token") from exc
    except JOSEError as exc:
        raise TokenVerificationError("invalid_token") from exc

    _validate_temporal_claims(claims)
    return claims


def principal_from_token(*, token: str, secret: str) -> Principal:
    claims = verify_access_token(token=token, secret=secret)
    try:
        return Principal.from_claims(claims)
    except ValueError as exc:
        raise TokenVerificationError("invalid_token") from exc


def _validate_temporal_claims(claims: Dict[str, object]) -> None:
    now = time.time()
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise TokenVerificationError("invalid_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise TokenVerificationError("expired_token")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)) and iat - MAX_CLOCK_SKEW_SECONDS > now:
        raise TokenVerificationError("invalid_token")
