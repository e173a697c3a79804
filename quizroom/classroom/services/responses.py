"""Student answer submission (write-only, no grading)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Protocol, Sequence

from quizroom.identity_access.domain import Principal, Role

from ..clock import Clock
from ..errors import QuizNotOpen
from ..models import QuizRecord, ResponseItem, StudentResponse
from ..policy import QuizState, authorize_class_member, quiz_state, require_role
from .common import require_class, require_quiz_in_class


class ResponsesRepoProtocol(Protocol):
    def get_class(self, class_id: str) -> Any:
        ...

    def get_quiz(self, quiz_id: str) -> Optional[QuizRecord]:
        ...

    def create_student_response(
        self, *, student_id: str, quiz_id: str, responses: Sequence[ResponseItem]
    ) -> StudentResponse:
        ...


def _normalize_responses(quiz: QuizRecord, value: object) -> List[ResponseItem]:
    """Check every answer against the quiz it is submitted for.

    Question ids must belong to the quiz and appear once; selected option ids
    must belong to their question, without repeats. Single-choice questions
    accept at most one option.
    """
    if not isinstance(value, list) or not value:
        raise ValueError("invalid_responses")
    seen: set[str] = set()
    items: List[ResponseItem] = []
    for raw in value:
        if not isinstance(raw, Mapping):
            raise ValueError("invalid_responses")
        qid = raw.get("question_id")
        selected = raw.get("selected_options")
        if not isinstance(qid, str) or not isinstance(selected, list):
            raise ValueError("invalid_responses")
        question = quiz.question_by_id(qid)
        if question is None:
            raise ValueError("unknown_question")
        if qid in seen:
            raise ValueError("duplicate_question")
        seen.add(qid)
        if any(not isinstance(o, str) for o in selected) or len(set(selected)) != len(selected):
            raise ValueError("invalid_selected_options")
        if not set(selected) <= question.option_ids():
            raise ValueError("unknown_option")
        if not question.is_multiple_choice and len(selected) > 1:
            raise ValueError("too_many_options")
        items.append(ResponseItem(question_id=qid, selected_options=list(selected)))
    return items


@dataclass
class ResponsesService:
    repo: ResponsesRepoProtocol
    clock: Clock

    def submit(self, principal: Principal, class_id: str, quiz_id: str, responses: object) -> StudentResponse:
        require_role(principal, Role.STUDENT).raise_if_denied()
        class_ = require_class(self.repo, class_id)
        authorize_class_member(principal, class_).raise_if_denied()
        quiz = require_quiz_in_class(self.repo, class_, quiz_id)
        state = quiz_state(quiz.start_date, quiz.duration, self.clock.now())
        if state is QuizState.SCHEDULED:
            raise QuizNotOpen("quiz_not_started")
        if state is QuizState.CLOSED:
            raise QuizNotOpen("quiz_ended")
        items = _normalize_responses(quiz, responses)
        return self.repo.create_student_response(student_id=principal.id, quiz_id=quiz.id, responses=items)
