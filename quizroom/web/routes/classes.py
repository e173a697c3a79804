"""
Classroom API routes: classes, membership, quizzes and student responses.

Why:
    Thin HTTP adapter over the classroom services. The adapter reads the
    principal set by the auth middleware, forwards raw payload values and maps
    domain errors onto the JSON error contract.

Notes:
    - Persistence: the repository is chosen by `STORAGE_BACKEND` (in-memory by
      default). Tests call `set_repo` / `set_clock` to isolate state and time.
    - Error mapping: `PermissionError` -> 403, `LookupError` -> 404,
      `ValueError` -> 400. Anything else propagates to the app-level error
      boundary, which answers 500 without leaking internals.
    - Security: every response is `Cache-Control: private, no-store`.
"""
from __future__ import annotations

import logging
from typing import Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from quizroom.classroom.clock import Clock, SystemClock
from quizroom.classroom.errors import error_code
from quizroom.classroom.membership import MembershipResult
from quizroom.classroom.policy import QuizVisibility
from quizroom.classroom.services.classes import ClassesService
from quizroom.classroom.services.quizzes import QuizzesService
from quizroom.classroom.services.responses import ResponsesService
from quizroom.identity_access.domain import Principal

from ..config import load_config
from ..storage_wiring import build_classroom_repo
from .auth import get_identity_store

classes_router = APIRouter(tags=["Classes"])  # explicit paths below
logger = logging.getLogger("quizroom.web.classes")


"""Lazy repo accessor to avoid import-time DB checks in tests."""
_REPO = None
_CLOCK: Clock = SystemClock()


def _get_repo():  # pragma: no cover - simple accessor
    global _REPO
    if _REPO is None:
        _REPO = build_classroom_repo(load_config())
    return _REPO


def set_repo(repo) -> None:
    """Allow tests to swap the classroom repository implementation."""
    global _REPO
    _REPO = repo


def set_clock(clock: Clock) -> None:
    """Allow tests to freeze or move time for quiz window decisions."""
    global _CLOCK
    _CLOCK = clock


def _classes_service() -> ClassesService:
    return ClassesService(_get_repo(), get_identity_store())


def _quizzes_service() -> QuizzesService:
    return QuizzesService(_get_repo(), _CLOCK)


def _responses_service() -> ResponsesService:
    return ResponsesService(_get_repo(), _CLOCK)


# --- Request models --------------------------------------------------------------
# Fields are typed loosely on purpose: the services validate and answer 400 with
# a stable `detail` code instead of FastAPI's 422 body.

class ClassCreatePayload(BaseModel):
    class_name: object | None = None


class AddStudentPayload(BaseModel):
    studentId: object | None = None


class JoinClassPayload(BaseModel):
    classId: object | None = None


class QuizCreatePayload(BaseModel):
    quiz_name: object | None = None
    start_date: object | None = None
    duration: object | None = None
    questions: object | None = None


class QuizUpdatePayload(BaseModel):
    quiz_name: object | None = None
    start_date: object | None = None
    duration: object | None = None
    questions: object | None = None


class ResponsesPayload(BaseModel):
    responses: object | None = None


# --- Helpers ---------------------------------------------------------------------

def _principal(request: Request) -> Principal:
    # Set by the auth middleware for every /api/* path outside /api/user/*.
    return request.state.principal


def _json_private(payload, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers."""
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _domain_error(exc: Exception, principal: Principal, action: str) -> JSONResponse:
    if isinstance(exc, PermissionError):
        code = error_code(exc, "forbidden")
        logger.info("denied action=%s role=%s id=%s reason=%s", action, principal.role.value, principal.id[-6:], code)
        return _json_private({"error": "forbidden", "detail": code}, status_code=403)
    if isinstance(exc, LookupError):
        return _json_private({"error": "not_found", "detail": error_code(exc, str(exc) or "not_found")}, status_code=404)
    return _json_private({"error": "bad_request", "detail": error_code(exc, str(exc) or "invalid_input")}, status_code=400)


_MEMBERSHIP_MESSAGES = {
    MembershipResult.ADDED: "Student added to the class successfully",
    MembershipResult.JOINED: "Student joined the class successfully",
    MembershipResult.ALREADY_MEMBER: "Student already in the class",
}

_VISIBILITY_MESSAGES = {
    QuizVisibility.NOT_STARTED: "Quiz has not started yet",
    QuizVisibility.ENDED: "Quiz has passed",
}


# --- Classes ---------------------------------------------------------------------

@classes_router.get("/api/classes")
async def list_classes(request: Request, limit: int = 50, offset: int = 0):
    """
    List classes visible to the caller with simple pagination.

    Behavior:
        - Teachers: classes they own.
        - Students: classes they are a member of.
        - Each class carries the owning teacher's public profile.
    """
    principal = _principal(request)
    limit = max(1, min(100, int(limit or 50)))
    offset = max(0, int(offset or 0))
    items = _classes_service().list_for_principal(principal, limit=limit, offset=offset)
    return _json_private({"classes": items})


@classes_router.post("/api/classes/create")
async def create_class(request: Request, payload: ClassCreatePayload):
    """Create a class owned by the calling teacher.

    Behavior:
        - 201 with `{message, class}` on success
        - 400 on missing/too long `class_name`
        - 403 when the caller is not a teacher
    """
    principal = _principal(request)
    try:
        created = _classes_service().create_class(principal, payload.class_name)
    except (PermissionError, LookupError, ValueError) as exc:
        return _domain_error(exc, principal, "create_class")
    return _json_private({"message": "Class created successfully", "class": created.to_dict()}, status_code=201)


@classes_router.post("/api/classes/join")
async def join_class(request: Request, payload: JoinClassPayload):
    """Join a class as the calling student (idempotent)."""
    principal = _principal(request)
    try:
        result = _classes_service().join(principal, payload.classId)
    except (PermissionError, LookupError, ValueError) as exc:
        return _domain_error(exc, principal, "join_class")
    return _json_private({"message": _MEMBERSHIP_MESSAGES[result], "status": result.value})


@classes_router.post("/api/classes/{class_id}/add-student")
async def add_student(request: Request, class_id: str, payload: AddStudentPayload):
    """Add a student to a class (owner-only, idempotent).

    Behavior:
        - 200 with `status=added` or `status=already_member`
        - 403 when the caller does not own the class
        - 404 when the class or the student does not exist
    """
    principal = _principal(request)
    try:
        result = _classes_service().add_student(principal, class_id, payload.studentId)
    except (PermissionError, LookupError, ValueError) as exc:
        return _domain_error(exc, principal, "add_student")
    return _json_private({"message": _MEMBERSHIP_MESSAGES[result], "status": result.value})


@classes_router.get("/api/classes/{class_id}/students")
async def list_students(request: Request, class_id: str):
    principal = _principal(request)
    try:
        students = _classes_service().list_students(principal, class_id)
    except (PermissionError, LookupError, ValueError) as exc:
        return _domain_error(exc, principal, "list_students")
    return _json_private({"students": students})


# --- Quizzes ---------------------------------------------------------------------

@classes_router.post("/api/classes/{class_id}/quizzes")
async def create_quiz(request: Request, class_id: str, payload: QuizCreatePayload):
    """Create a quiz in an owned class.

    Behavior:
        - 201 with `{message, quiz}`; every question and option gets an id
        - 400 when `start_date` is not strictly in the future or a field is invalid
        - 403 for non-owners; 404 for unknown classes
        - storage failures propagate and surface as 500
    """
    principal = _principal(request)
    try:
        quiz = _quizzes_service().create_quiz(
            principal,
            class_id,
            quiz_name=payload.quiz_name,
            start_date=payload.start_date,
            duration=payload.duration,
            questions=payload.questions,
        )
    except (PermissionError, LookupError, ValueError) as exc:
        return _domain_error(exc, principal, "create_quiz")
    return _json_private({"message": "Quiz created successfully", "quiz": quiz.to_dict()}, status_code=201)


@classes_router.get("/api/classes/{class_id}/quizzes")
async def list_quizzes(request: Request, class_id: str):
    """Quiz summaries (name, id, start, duration) regardless of window state."""
    principal = _principal(request)
    try:
        quizzes = _quizzes_service().list_quizzes(principal, class_id)
    except (PermissionError, LookupError, ValueError) as exc:
        return _domain_error(exc, principal, "list_quizzes")
    return _json_private({"quizzes": quizzes})


@classes_router.get("/api/classes/{class_id}/quizzes/{quiz_id}")
async def get_quiz(request: Request, class_id: str, quiz_id: str):
    """Read a quiz; students only see its content while the window is open.

    Behavior:
        - Teachers (owner): full quiz including `is_correct`.
        - Students before the start / at or after the end: 200 with a status
          message and no quiz content.
        - Students inside the window: quiz without `is_correct`.
    """
    principal = _principal(request)
    try:
        view = _quizzes_service().get_quiz(principal, class_id, quiz_id)
    except (PermissionError, LookupError, ValueError) as exc:
        return _domain_error(exc, principal, "get_quiz")
    if view.visibility is not QuizVisibility.FULL:
        return _json_private({"message": _VISIBILITY_MESSAGES[view.visibility], "status": view.visibility.value})
    return _json_private({"quiz": view.quiz})


@classes_router.patch("/api/classes/{class_id}/quizzes/{quiz_id}")
async def update_quiz(request: Request, class_id: str, quiz_id: str, payload: QuizUpdatePayload):
    """Partially update a quiz (owner-only); the effective start must be in the future."""
    principal = _principal(request)
    raw_updates = payload.model_dump(mode="python", exclude_unset=True)
    if not raw_updates:
        return _json_private({"error": "bad_request", "detail": "empty_payload"}, status_code=400)
    kwargs: Dict[str, object] = {}
    for key in ("quiz_name", "start_date", "duration", "questions"):
        if key in raw_updates:
            kwargs[key] = raw_updates[key]
    try:
        quiz = _quizzes_service().update_quiz(principal, class_id, quiz_id, **kwargs)
    except (PermissionError, LookupError, ValueError) as exc:
        return _domain_error(exc, principal, "update_quiz")
    return _json_private({"message": "Quiz updated successfully", "quiz": quiz.to_dict()})


@classes_router.post("/api/classes/{class_id}/quizzes/{quiz_id}/responses")
async def submit_responses(request: Request, class_id: str, quiz_id: str, payload: ResponsesPayload):
    """Store a student's answers while the quiz is open (no grading)."""
    principal = _principal(request)
    try:
        saved = _responses_service().submit(principal, class_id, quiz_id, payload.responses)
    except (PermissionError, LookupError, ValueError) as exc:
        return _domain_error(exc, principal, "submit_responses")
    return _json_private(
        {"message": "Responses submitted successfully", "response_id": saved.id},
        status_code=201,
    )
