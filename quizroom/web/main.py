"Quizroom classroom-quiz API"
from __future__ import annotations

import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from quizroom.identity_access.tokens import TokenVerificationError, principal_from_token

from . import config as _cfg
from .routes.auth import auth_router, get_identity_store
from .routes.classes import classes_router


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via QUIZROOM_ENABLE_DOTENV (default true
      outside pytest).
    """
    if _under_pytest():
        return False
    flag = (os.getenv("QUIZROOM_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


try:
    from dotenv import load_dotenv
    if _should_load_dotenv():
        load_dotenv()
except ImportError:
    pass

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("quizroom.web")

app = FastAPI(
    title="Quizroom",
    description="Classes, scheduled quizzes and role-based access for teachers and students",
    version="0.1.0",
    docs_url="/api-docs",
)

app.include_router(auth_router)
app.include_router(classes_router)


# --- Auth Helpers & Middleware --------------------------------------------------

def _is_public_path(path: str) -> bool:
    if path in ("/health", "/api-docs", "/openapi.json") or path.startswith("/api-docs/"):
        return True
    return path.startswith("/api/user/") or not path.startswith("/api/")


def _private_error(payload: dict, *, status_code: int) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)

    token = _bearer_token(request)
    if token is None:
        return _private_error({"error": "unauthenticated", "detail": "token_missing"}, status_code=401)
    try:
        principal = principal_from_token(token=token, secret=_cfg.load_config().jwt_secret)
    except TokenVerificationError as exc:
        logger.warning("Token verification failed: %s", exc.code)
        return _private_error({"error": "invalid_token", "detail": exc.code}, status_code=401)

    # A valid token for a deleted account is answered like the lookup it is.
    if get_identity_store().get_user(principal.role, principal.id) is None:
        return _private_error({"error": "not_found", "detail": "user_not_found"}, status_code=404)

    request.state.principal = principal
    return await call_next(request)


# --- Error boundary ---------------------------------------------------------------

def _debug_errors_enabled() -> bool:
    try:
        return _cfg.load_config().debug_errors
    except ValueError:
        return False


# Registered after the auth middleware so it wraps it (outermost user middleware).

@app.middleware("http")
async def error_boundary(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        payload = {"error": "internal_error"}
        if _debug_errors_enabled():
            payload["detail"] = f"{exc.__class__.__name__}: {exc}"
        return _private_error(payload, status_code=500)


# --- Routes ---------------------------------------------------------------------

@app.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})


@app.get("/api/me")
async def get_me(request: Request):
    """Return the authenticated principal (id, role, username)."""
    principal = request.state.principal
    return JSONResponse(
        {"id": principal.id, "role": principal.role.value, "username": principal.username},
        headers={"Cache-Control": "private, no-store"},
    )


def serve() -> None:
    """Run the API with uvicorn (`quizroom-serve`); HOST/PORT from env."""
    import uvicorn

    uvicorn.run(
        "quizroom.web.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
    )
