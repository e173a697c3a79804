"""
Postgres-backed repository for classes, quizzes and student responses.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Document-style rows: a class embeds its member ids (`student_ids uuid[]`),
  a quiz embeds its questions and options (`questions jsonb`).
- Membership appends are conditional on the id not being present yet, so a
  single write is idempotent and atomic for its row.
- Returns classroom dataclasses to keep the services independent of SQL.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple
import logging
import os
import uuid

try:
    import psycopg
    from psycopg.types.json import Jsonb
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    Jsonb = None  # type: ignore
    HAVE_PSYCOPG = False

from .models import ClassRecord, Question, QuizRecord, ResponseItem, StudentResponse

logger = logging.getLogger("quizroom.classroom.repo_db")

_UNSET = object()

_TS = """to_char({col} at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')"""

_CLASS_COLUMNS_SQL = f"""
    c.id::text,
    c.class_name,
    c.teacher_id::text,
    c.student_ids::text[],
    coalesce(
        (select array_agg(q.id::text order by q.created_at, q.id)
           from public.quizzes q where q.class_id = c.id),
        '{{}}'::text[]
    ),
    {_TS.format(col="c.created_at")}
"""

_QUIZ_COLUMNS_SQL = f"""
    id::text,
    class_id::text,
    quiz_name,
    start_date,
    duration,
    questions,
    {_TS.format(col="created_at")},
    {_TS.format(col="updated_at")}
"""


def _dsn() -> str:
    for dsn in (os.getenv("CLASSROOM_DATABASE_URL"), os.getenv("DATABASE_URL")):
        if dsn:
            return dsn
    raise RuntimeError("Database DSN unavailable for DBClassroomRepo")


def _is_uuid_like(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except (ValueError, TypeError):
        return False
    return True


def _class_row(r: Tuple) -> ClassRecord:
    return ClassRecord(
        id=r[0],
        class_name=r[1],
        teacher_id=r[2],
        students=list(r[3] or []),
        quizzes=list(r[4] or []),
        created_at=r[5],
    )


def _quiz_row(r: Tuple) -> QuizRecord:
    return QuizRecord(
        id=r[0],
        class_id=r[1],
        quiz_name=r[2],
        start_date=r[3],
        duration=int(r[4]),
        questions=[Question.from_dict(q) for q in (r[5] or [])],
        created_at=r[6],
        updated_at=r[7],
    )


def _questions_json(questions: Sequence[Question]) -> Any:
    return Jsonb([q.to_dict(include_correctness=True) for q in questions])


class DBClassroomRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        """Initialize a Postgres-backed repository.

        Does not open a connection eagerly; connections are per-call.
        """
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBClassroomRepo")
        self._dsn = dsn or _dsn()

    # --- Classes ----------------------------------------------------------------
    def create_class(self, *, class_name: str, teacher_id: str) -> ClassRecord:
        name = (class_name or "").strip()
        if not name or len(name) > 200:
            raise ValueError("invalid_class_name")
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "insert into public.classes (class_name, teacher_id) values (%s, %s::uuid) returning id",
                    (name, teacher_id),
                )
                new_id = cur.fetchone()[0]
                cur.execute(f"select {_CLASS_COLUMNS_SQL} from public.classes c where c.id = %s", (new_id,))
                row = cur.fetchone()
            conn.commit()
        return _class_row(row)

    def get_class(self, class_id: str) -> Optional[ClassRecord]:
        if not _is_uuid_like(class_id):
            return None
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_CLASS_COLUMNS_SQL} from public.classes c where c.id = %s::uuid", (class_id,))
                row = cur.fetchone()
        return _class_row(row) if row else None

    def list_classes_for_teacher(self, *, teacher_id: str, limit: int, offset: int) -> List[ClassRecord]:
        if not _is_uuid_like(teacher_id):
            return []
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_CLASS_COLUMNS_SQL}
                    from public.classes c
                    where c.teacher_id = %s::uuid
                    order by c.created_at, c.id
                    limit %s offset %s
                    """,
                    (teacher_id, int(limit), int(offset)),
                )
                rows = cur.fetchall() or []
        return [_class_row(r) for r in rows]

    def list_classes_for_student(self, *, student_id: str, limit: int, offset: int) -> List[ClassRecord]:
        if not _is_uuid_like(student_id):
            return []
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_CLASS_COLUMNS_SQL}
                    from public.classes c
                    where %s::uuid = any(c.student_ids)
                    order by c.created_at, c.id
                    limit %s offset %s
                    """,
                    (student_id, int(limit), int(offset)),
                )
                rows = cur.fetchall() or []
        return [_class_row(r) for r in rows]

    def add_member(self, class_id: str, student_id: str) -> bool:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    update public.classes
                       set student_ids = array_append(student_ids, %s::uuid)
                     where id = %s::uuid and not (%s::uuid = any(student_ids))
                    """,
                    (student_id, class_id, student_id),
                )
                changed = cur.rowcount == 1
                if not changed:
                    cur.execute("select 1 from public.classes where id = %s::uuid", (class_id,))
                    if cur.fetchone() is None:
                        raise LookupError("class_not_found")
                    logger.debug("add_member no-op class=%s (already member)", class_id[-6:])
            conn.commit()
        return changed

    # --- Quizzes ----------------------------------------------------------------
    def create_quiz(
        self,
        *,
        class_id: str,
        quiz_name: str,
        start_date: datetime,
        duration: int,
        questions: Sequence[Question],
    ) -> QuizRecord:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into public.quizzes (class_id, quiz_name, start_date, duration, questions)
                    values (%s::uuid, %s, %s, %s, %s)
                    returning {_QUIZ_COLUMNS_SQL}
                    """,
                    (class_id, quiz_name, start_date, int(duration), _questions_json(questions)),
                )
                row = cur.fetchone()
            conn.commit()
        return _quiz_row(row)

    def get_quiz(self, quiz_id: str) -> Optional[QuizRecord]:
        if not _is_uuid_like(quiz_id):
            return None
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_QUIZ_COLUMNS_SQL} from public.quizzes where id = %s::uuid", (quiz_id,))
                row = cur.fetchone()
        return _quiz_row(row) if row else None

    def list_quizzes_for_class(self, class_id: str) -> List[QuizRecord]:
        if not _is_uuid_like(class_id):
            return []
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_QUIZ_COLUMNS_SQL} from public.quizzes where class_id = %s::uuid order by created_at, id",
                    (class_id,),
                )
                rows = cur.fetchall() or []
        return [_quiz_row(r) for r in rows]

    def update_quiz(
        self,
        quiz_id: str,
        *,
        quiz_name=_UNSET,
        start_date=_UNSET,
        duration=_UNSET,
        questions=_UNSET,
    ) -> Optional[QuizRecord]:
        sets: list[str] = []
        params: list[Any] = []
        if quiz_name is not _UNSET:
            sets.append("quiz_name = %s")
            params.append(quiz_name)
        if start_date is not _UNSET:
            sets.append("start_date = %s")
            params.append(start_date)
        if duration is not _UNSET:
            sets.append("duration = %s")
            params.append(int(duration))
        if questions is not _UNSET:
            sets.append("questions = %s")
            params.append(_questions_json(questions))
        sets.append("updated_at = now()")
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"update public.quizzes set {', '.join(sets)} where id = %s::uuid returning {_QUIZ_COLUMNS_SQL}",
                    (*params, quiz_id),
                )
                row = cur.fetchone()
            conn.commit()
        return _quiz_row(row) if row else None

    # --- Responses --------------------------------------------------------------
    def create_student_response(
        self, *, student_id: str, quiz_id: str, responses: Sequence[ResponseItem]
    ) -> StudentResponse:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into public.student_responses (student_id, quiz_id, responses)
                    values (%s::uuid, %s::uuid, %s)
                    returning id::text, {_TS.format(col="submitted_at")}
                    """,
                    (student_id, quiz_id, Jsonb([r.to_dict() for r in responses])),
                )
                row = cur.fetchone()
            conn.commit()
        return StudentResponse(
            id=row[0],
            student_id=student_id,
            quiz_id=quiz_id,
            responses=list(responses),
            submitted_at=row[1],
        )
