"""
Database-backed identity store (Postgres).

Why: The in-memory store is not durable and does not scale across instances.
This store persists teachers and students in Postgres while keeping password
hashes server-side.

Note: This module uses psycopg3. It is imported only when enabled via
`STORAGE_BACKEND=db`. Tests keep using the in-memory store.
"""
from __future__ import annotations

from typing import Iterable, List, Optional
import os
import uuid

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False
else:
    from psycopg.errors import UniqueViolation

from .domain import Role
from .stores import DuplicateUserError, UserRecord


_TABLES = {Role.TEACHER: "public.teachers", Role.STUDENT: "public.students"}


class DBIdentityStore:
    """Postgres-backed identity store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Defaults to `DATABASE_URL`.
    """

    def __init__(self, dsn: str | None = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBIdentityStore")
        self._dsn = dsn or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBIdentityStore")

    def create_user(
        self,
        *,
        role: Role,
        username: str,
        password_hash: str,
        full_name: str,
        email: str,
    ) -> UserRecord:
        table = _TABLES[role]
        try:
            with psycopg.connect(self._dsn) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"insert into {table} (username, password_hash, full_name, email) "
                        "values (%s, %s, %s, %s) returning id::text",
                        (username, password_hash, full_name, email),
                    )
                    row = cur.fetchone()
                conn.commit()
        except UniqueViolation as exc:
            constraint = getattr(getattr(exc, "diag", None), "constraint_name", "") or ""
            raise DuplicateUserError("email_taken" if "email" in constraint else "username_taken") from exc
        return UserRecord(
            id=str(row[0]),
            role=role,
            username=username,
            password_hash=password_hash,
            full_name=full_name,
            email=email,
        )

    def _select(self, role: Role, where: str, params: tuple) -> List[UserRecord]:
        table = _TABLES[role]
        classes_col = "class_ids::text[]" if role is Role.STUDENT else "'{}'::text[]"
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select id::text, username, password_hash, full_name, email, {classes_col} "
                    f"from {table} where {where}",
                    params,
                )
                rows = cur.fetchall() or []
        return [
            UserRecord(
                id=r[0],
                role=role,
                username=r[1],
                password_hash=r[2],
                full_name=r[3],
                email=r[4],
                classes=list(r[5] or []),
            )
            for r in rows
        ]

    def get_user(self, role: Role, user_id: str) -> Optional[UserRecord]:
        if not _is_uuid_like(user_id):
            return None
        rows = self._select(role, "id = %s::uuid", (user_id,))
        return rows[0] if rows else None

    def find_by_username(self, role: Role, username: str) -> Optional[UserRecord]:
        rows = self._select(role, "username = %s", (username,))
        return rows[0] if rows else None

    def get_students(self, student_ids: Iterable[str]) -> List[UserRecord]:
        ids = [sid for sid in student_ids if _is_uuid_like(sid)]
        if not ids:
            return []
        rows = self._select(Role.STUDENT, "id = any(%s::uuid[])", (ids,))
        by_id = {r.id: r for r in rows}
        return [by_id[sid] for sid in ids if sid in by_id]

    def add_class_to_student(self, student_id: str, class_id: str) -> bool:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("select 1 from public.students where id = %s::uuid", (student_id,))
                if cur.fetchone() is None:
                    raise LookupError("student_not_found")
                cur.execute(
                    """
                    update public.students
                       set class_ids = array_append(class_ids, %s::uuid)
                     where id = %s::uuid and not (%s::uuid = any(class_ids))
                    """,
                    (class_id, student_id, class_id),
                )
                changed = cur.rowcount == 1
            conn.commit()
        return changed


def _is_uuid_like(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except (ValueError, TypeError):
        return False
    return True
