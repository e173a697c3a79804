"""
Configuration and startup security checks for the quiz backend.

Why: A classroom service holds student data and signs its own tokens, so an
accidental insecure deployment (dev secret, memory storage, debug errors) must
not reach production. Development stays permissive for convenience.

Permissions: The caller needs no special privileges. Functions only read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
import os

DEV_JWT_SECRET = "quizroom-dev-secret-change-me"
_PLACEHOLDER_SECRETS = {"", "changeme", "change_me", "secret", DEV_JWT_SECRET.lower()}


@dataclass(frozen=True)
class AppConfig:
    env: str
    jwt_secret: str
    jwt_ttl_seconds: int
    storage_backend: str  # "memory" | "db"
    database_url: str
    bcrypt_rounds: int
    debug_errors: bool


def is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def _int_env(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")
    if value < lo or value > hi:
        raise ValueError(f"{name} out of range ({lo}..{hi}), got: {value}")
    return value


def load_config() -> AppConfig:
    """
    Parse and validate application configuration from environment variables.

    Behavior:
        - `QUIZROOM_ENV` defaults to "dev".
        - `JWT_SECRET` falls back to a fixed development secret (the startup
          guard refuses that fallback in prod-like envs).
        - `STORAGE_BACKEND` is "memory" (default) or "db".
        - `JWT_TTL_SECONDS` (60..86400, default 3600) and `BCRYPT_ROUNDS`
          (4..15, default 10) are range-checked.
    """
    backend = (os.getenv("STORAGE_BACKEND") or "memory").strip().lower()
    if backend not in {"memory", "db"}:
        raise ValueError("STORAGE_BACKEND must be 'memory' or 'db'")
    return AppConfig(
        env=(os.getenv("QUIZROOM_ENV") or "dev").strip().lower(),
        jwt_secret=(os.getenv("JWT_SECRET") or "").strip() or DEV_JWT_SECRET,
        jwt_ttl_seconds=_int_env("JWT_TTL_SECONDS", 3600, lo=60, hi=86400),
        storage_backend=backend,
        database_url=(os.getenv("DATABASE_URL") or "").strip(),
        bcrypt_rounds=_int_env("BCRYPT_ROUNDS", 10, lo=4, hi=15),
        debug_errors=_bool_env("QUIZROOM_DEBUG_ERRORS"),
    )


def ensure_secure_config_on_startup() -> None:
    """Fail fast on invalid or insecure configuration.

    Intent: Abort process startup when a setting cannot be parsed (any env) or
    when obviously insecure settings are detected in production/staging.
    Development remains permissive otherwise.

    Checks:
    - Every value `load_config()` parses must be valid.
    - JWT_SECRET must be set, not a placeholder and at least 32 characters.
    - QUIZROOM_DEBUG_ERRORS must be off (no exception details in responses).
    - DATABASE_URL must not explicitly disable TLS.
    - STORAGE_BACKEND must not be the in-memory store, and `db` needs a DSN.
    """

    try:
        cfg = load_config()
    except ValueError as exc:
        raise SystemExit(f"Refusing to start: {exc}")
    if not is_prod_like(cfg.env):
        return  # dev/test remain permissive

    # 1) Token signing secret
    secret = cfg.jwt_secret
    if secret.lower() in _PLACEHOLDER_SECRETS or secret.upper().startswith("CHANGE_ME"):
        raise SystemExit("Refusing to start: JWT_SECRET is unset or a placeholder in production.")
    if len(secret) < 32:
        raise SystemExit("Refusing to start: JWT_SECRET must be at least 32 characters in production.")

    # 2) Error details are for local debugging only
    if cfg.debug_errors:
        raise SystemExit("Refusing to start: QUIZROOM_DEBUG_ERRORS must be false in production/staging.")

    # 3) Postgres TLS: basic guard to avoid explicit disable
    if "sslmode=disable" in cfg.database_url:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )

    # 4) In-memory storage loses every account, class and quiz on restart
    if cfg.storage_backend == "memory":
        raise SystemExit("Refusing to start: STORAGE_BACKEND=memory is not allowed in production/staging.")
    if not cfg.database_url:
        raise SystemExit("Refusing to start: STORAGE_BACKEND=db requires DATABASE_URL in production/staging.")
