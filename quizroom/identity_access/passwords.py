"""Password hashing helpers (bcrypt).

Blocking by nature; web handlers call these through `asyncio.to_thread`.
"""
from __future__ import annotations

import bcrypt

# bcrypt only looks at the first 72 bytes; reject longer input instead of
# silently truncating it.
MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    if not isinstance(password, str) or not password:
        raise ValueError("invalid_password")
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        raise ValueError("invalid_password")
    return raw


def hash_password(password: str, *, rounds: int = 10) -> str:
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Return True when `password` matches the stored bcrypt hash."""
    try:
        raw = _encode(password)
    except ValueError:
        return False
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(raw, password_hash.encode("ascii"))
    except ValueError:
        # Malformed stored hash
        return False
