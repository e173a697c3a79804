"""
Signup and login for teachers and students (bearer-token issuance).

Why:
    Each role has its own account collection; a successful signup or login
    returns a signed access token whose `role` claim is the explicit tag the
    rest of the API authorizes on.

Security:
    - Passwords are hashed with bcrypt in a worker thread so the event loop is
      never blocked by key stretching.
    - Unknown username and wrong password yield the same 401 body.
    - Neither passwords nor tokens are logged.
"""
from __future__ import annotations

import asyncio
import logging
import re

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from quizroom.identity_access.domain import Role
from quizroom.identity_access.passwords import hash_password, verify_password
from quizroom.identity_access.stores import DuplicateUserError
from quizroom.identity_access.tokens import issue_access_token

from ..config import load_config
from ..storage_wiring import build_identity_store

auth_router = APIRouter(tags=["Authentication"])
logger = logging.getLogger("quizroom.web.auth")

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


"""Lazy identity store accessor; tests swap it via `set_identity_store`."""
_IDENTITY = None


def get_identity_store():
    global _IDENTITY
    if _IDENTITY is None:
        _IDENTITY = build_identity_store(load_config())
    return _IDENTITY


def set_identity_store(store) -> None:
    """Allow tests to swap the identity store implementation."""
    global _IDENTITY
    _IDENTITY = store


class SignupPayload(BaseModel):
    username: object | None = None
    password: object | None = None
    full_name: object | None = None
    email: object | None = None


class LoginPayload(BaseModel):
    username: object | None = None
    password: object | None = None


def _private_no_store() -> dict:
    return {"Cache-Control": "private, no-store"}


def _bad_request(detail: str) -> JSONResponse:
    return JSONResponse({"error": "bad_request", "detail": detail}, status_code=400, headers=_private_no_store())


def _required_text(value: object, code: str, *, max_len: int = 200) -> str:
    if not isinstance(value, str):
        raise ValueError(code)
    trimmed = value.strip()
    if not trimmed or len(trimmed) > max_len:
        raise ValueError(code)
    return trimmed


def _token_response(user) -> JSONResponse:
    cfg = load_config()
    token = issue_access_token(
        user_id=user.id,
        username=user.username,
        role=user.role,
        secret=cfg.jwt_secret,
        ttl_seconds=cfg.jwt_ttl_seconds,
    )
    return JSONResponse({"token": token}, status_code=200, headers=_private_no_store())


async def _signup(role: Role, payload: SignupPayload) -> JSONResponse:
    try:
        username = _required_text(payload.username, "invalid_username", max_len=64)
        full_name = _required_text(payload.full_name, "invalid_full_name")
        email = _required_text(payload.email, "invalid_email", max_len=254)
        if not EMAIL_RE.match(email):
            raise ValueError("invalid_email")
        if not isinstance(payload.password, str):
            raise ValueError("invalid_password")
        password_hash = await asyncio.to_thread(
            hash_password, payload.password, rounds=load_config().bcrypt_rounds
        )
    except ValueError as exc:
        return _bad_request(str(exc))
    try:
        user = get_identity_store().create_user(
            role=role,
            username=username,
            password_hash=password_hash,
            full_name=full_name,
            email=email,
        )
    except DuplicateUserError as exc:
        return _bad_request(exc.code)
    logger.info("signup role=%s id=%s", role.value, user.id[-6:])
    return _token_response(user)


async def _login(role: Role, payload: LoginPayload) -> JSONResponse:
    if not isinstance(payload.username, str) or not isinstance(payload.password, str):
        return _bad_request("invalid_input")
    user = get_identity_store().find_by_username(role, payload.username.strip())
    ok = False
    if user is not None:
        ok = await asyncio.to_thread(verify_password, payload.password, user.password_hash)
    if not ok:
        logger.info("login failed role=%s", role.value)
        return JSONResponse(
            {"error": "invalid_credentials", "detail": "Invalid username or password"},
            status_code=401,
            headers=_private_no_store(),
        )
    return _token_response(user)


@auth_router.post("/api/user/teacher/signup")
async def teacher_signup(payload: SignupPayload):
    """Create a teacher account and return `{token}`.

    Behavior:
        - 200 with `{token}` on success
        - 400 on invalid fields or a taken username
    """
    return await _signup(Role.TEACHER, payload)


@auth_router.post("/api/user/student/signup")
async def student_signup(payload: SignupPayload):
    """Create a student account and return `{token}` (email must be unused)."""
    return await _signup(Role.STUDENT, payload)


@auth_router.post("/api/user/teacher/login")
async def teacher_login(payload: LoginPayload):
    return await _login(Role.TEACHER, payload)


@auth_router.post("/api/user/student/login")
async def student_login(payload: LoginPayload):
    return await _login(Role.STUDENT, payload)
