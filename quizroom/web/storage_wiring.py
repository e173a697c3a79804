"""
Shared helper for wiring the classroom repository and identity store.

Why:
    Routes and the auth middleware need the same store instances. This module
    picks the implementation from `STORAGE_BACKEND` once and hands the result
    to the web modules, which keep their own `set_*` hooks for tests.

Behavior:
    - `memory` (default): in-memory stores, never touches a database.
    - `db`: Postgres-backed stores. In dev, when psycopg or the DSN is
      unavailable the helper logs a warning and degrades to the in-memory
      stores. Prod-like envs re-raise instead of degrading.
"""
from __future__ import annotations

import logging

from quizroom.classroom.repo_memory import InMemoryClassroomRepo
from quizroom.identity_access.stores import IdentityStore

from .config import AppConfig, is_prod_like

logger = logging.getLogger("quizroom.web")


def build_classroom_repo(cfg: AppConfig):
    """Prefer the DB-backed repo when configured; fall back to in-memory in dev."""
    if cfg.storage_backend != "db":
        return InMemoryClassroomRepo()
    try:
        from quizroom.classroom.repo_db import DBClassroomRepo

        return DBClassroomRepo(cfg.database_url or None)
    except Exception as exc:
        if is_prod_like(cfg.env):
            logger.error("Classroom repo unavailable in %s (%s)", cfg.env, exc)
            raise
        logger.warning("Classroom repo unavailable (%s); using in-memory fallback", exc)
        return InMemoryClassroomRepo()


def build_identity_store(cfg: AppConfig):
    if cfg.storage_backend != "db":
        return IdentityStore()
    try:
        from quizroom.identity_access.stores_db import DBIdentityStore

        return DBIdentityStore(cfg.database_url or None)
    except Exception as exc:
        if is_prod_like(cfg.env):
            logger.error("Identity store unavailable in %s (%s)", cfg.env, exc)
            raise
        logger.warning("Identity store unavailable (%s); using in-memory fallback", exc)
        return IdentityStore()


__all__ = ["build_classroom_repo", "build_identity_store"]
