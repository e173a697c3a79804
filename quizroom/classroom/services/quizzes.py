"""Quiz use cases (create/update/read/list) with window and visibility rules.

Why:
    Quiz payloads are validated here so the web adapter only forwards raw JSON
    values. The current instant always comes from the injected clock; the
    policy module decides ownership, membership, the start-in-the-future rule
    and how much of a quiz a caller may see.

Behavior:
    - Create and update both require the (effective) start to be strictly
      after `clock.now()`. An update that leaves `start_date` untouched is
      therefore rejected once the stored start has been reached.
    - Students never receive `is_correct` on options.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Protocol, Sequence
from uuid import uuid4

from quizroom.identity_access.domain import Principal, Role

from ..clock import Clock
from ..models import Option, Question, QuizRecord
from ..policy import (
    QuizVisibility,
    authorize_class_member,
    authorize_class_owner,
    ensure_quiz_window,
    require_role,
    resolve_quiz_visibility,
)
from .common import require_class, require_quiz_in_class

MAX_DURATION_MINUTES = 24 * 60
MAX_QUESTIONS = 200
MAX_OPTIONS = 20


class QuizzesRepoProtocol(Protocol):
    def get_class(self, class_id: str) -> Any:
        ...

    def get_quiz(self, quiz_id: str) -> Optional[QuizRecord]:
        ...

    def list_quizzes_for_class(self, class_id: str) -> List[QuizRecord]:
        ...

    def create_quiz(
        self,
        *,
        class_id: str,
        quiz_name: str,
        start_date: datetime,
        duration: int,
        questions: Sequence[Question],
    ) -> QuizRecord:
        ...

    def update_quiz(
        self,
        quiz_id: str,
        *,
        quiz_name: Any = ...,
        start_date: Any = ...,
        duration: Any = ...,
        questions: Any = ...,
    ) -> Optional[QuizRecord]:
        ...


_UNSET = object()


def _normalize_quiz_name(value: object) -> str:
    if not isinstance(value, str):
        raise ValueError("invalid_quiz_name")
    trimmed = value.strip()
    if not trimmed or len(trimmed) > 200:
        raise ValueError("invalid_quiz_name")
    return trimmed


def _normalize_duration(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("invalid_duration")
    if value < 1 or value > MAX_DURATION_MINUTES:
        raise ValueError("invalid_duration")
    return value


def _parse_start_date(value: object) -> datetime:
    if not isinstance(value, str):
        raise ValueError("invalid_start_date")
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValueError("invalid_start_date") from exc
    if parsed.tzinfo is None:
        raise ValueError("invalid_start_date")
    return parsed.astimezone(timezone.utc)


def _normalize_option(value: object) -> Option:
    if not isinstance(value, Mapping):
        raise ValueError("invalid_option")
    text = value.get("option_text")
    if not isinstance(text, str) or not text.strip():
        raise ValueError("invalid_option")
    is_correct = value.get("is_correct", False)
    if not isinstance(is_correct, bool):
        raise ValueError("invalid_option")
    return Option(id=str(uuid4()), option_text=text.strip(), is_correct=is_correct)


def _normalize_question(value: object) -> Question:
    if not isinstance(value, Mapping):
        raise ValueError("invalid_question")
    text = value.get("question_text")
    if not isinstance(text, str) or not text.strip():
        raise ValueError("invalid_question")
    multiple = value.get("is_multiple_choice", False)
    if not isinstance(multiple, bool):
        raise ValueError("invalid_question")
    raw_options = value.get("options")
    if not isinstance(raw_options, list) or not raw_options or len(raw_options) > MAX_OPTIONS:
        raise ValueError("invalid_options")
    return Question(
        id=str(uuid4()),
        question_text=text.strip(),
        options=[_normalize_option(o) for o in raw_options],
        is_multiple_choice=multiple,
    )


def _normalize_questions(value: object) -> List[Question]:
    if not isinstance(value, list) or len(value) > MAX_QUESTIONS:
        raise ValueError("invalid_questions")
    return [_normalize_question(q) for q in value]


@dataclass(frozen=True)
class QuizView:
    """What a caller gets back for a single quiz read."""

    visibility: QuizVisibility
    quiz: Optional[dict] = None


@dataclass
class QuizzesService:
    """Use cases for quizzes inside a class (framework-independent)."""

    repo: QuizzesRepoProtocol
    clock: Clock

    def create_quiz(
        self,
        principal: Principal,
        class_id: str,
        *,
        quiz_name: object,
        start_date: object,
        duration: object,
        questions: object = None,
    ) -> QuizRecord:
        require_role(principal, Role.TEACHER).raise_if_denied()
        class_ = require_class(self.repo, class_id)
        authorize_class_owner(principal, class_).raise_if_denied()
        name = _normalize_quiz_name(quiz_name)
        start = _parse_start_date(start_date)
        minutes = _normalize_duration(duration)
        items = _normalize_questions([] if questions is None else questions)
        ensure_quiz_window(start, self.clock.now())
        return self.repo.create_quiz(
            class_id=class_.id,
            quiz_name=name,
            start_date=start,
            duration=minutes,
            questions=items,
        )

    def update_quiz(
        self,
        principal: Principal,
        class_id: str,
        quiz_id: str,
        *,
        quiz_name: object = _UNSET,
        start_date: object = _UNSET,
        duration: object = _UNSET,
        questions: object = _UNSET,
    ) -> QuizRecord:
        require_role(principal, Role.TEACHER).raise_if_denied()
        class_ = require_class(self.repo, class_id)
        authorize_class_owner(principal, class_).raise_if_denied()
        current = require_quiz_in_class(self.repo, class_, quiz_id)
        repo_kwargs: dict[str, Any] = {}
        if quiz_name is not _UNSET:
            repo_kwargs["quiz_name"] = _normalize_quiz_name(quiz_name)
        if start_date is not _UNSET:
            repo_kwargs["start_date"] = _parse_start_date(start_date)
        if duration is not _UNSET:
            repo_kwargs["duration"] = _normalize_duration(duration)
        if questions is not _UNSET:
            repo_kwargs["questions"] = _normalize_questions(questions)
        ensure_quiz_window(repo_kwargs.get("start_date", current.start_date), self.clock.now())
        result = self.repo.update_quiz(current.id, **repo_kwargs)
        if result is None:
            raise LookupError("quiz_not_found")
        return result

    def get_quiz(self, principal: Principal, class_id: str, quiz_id: str) -> QuizView:
        class_ = require_class(self.repo, class_id)
        authorize_class_member(principal, class_).raise_if_denied()
        quiz = require_quiz_in_class(self.repo, class_, quiz_id)
        visibility = resolve_quiz_visibility(principal, quiz, self.clock.now())
        if visibility is not QuizVisibility.FULL:
            return QuizView(visibility=visibility)
        return QuizView(
            visibility=visibility,
            quiz=quiz.to_dict(include_correctness=principal.role is Role.TEACHER),
        )

    def list_quizzes(self, principal: Principal, class_id: str) -> List[dict]:
        class_ = require_class(self.repo, class_id)
        authorize_class_member(principal, class_).raise_if_denied()
        return [q.summary() for q in self.repo.list_quizzes_for_class(class_.id)]
