"""Record lookups shared by the classroom services."""
from __future__ import annotations

from typing import Optional, Protocol

from ..errors import ResourceNotFound
from ..models import ClassRecord, QuizRecord


class _ClassLookup(Protocol):
    def get_class(self, class_id: str) -> Optional[ClassRecord]:
        ...


class _QuizLookup(Protocol):
    def get_quiz(self, quiz_id: str) -> Optional[QuizRecord]:
        ...


def require_class(repo: _ClassLookup, class_id: str) -> ClassRecord:
    class_ = repo.get_class(class_id)
    if class_ is None:
        raise ResourceNotFound("class_not_found")
    return class_


def require_quiz_in_class(repo: _QuizLookup, class_: ClassRecord, quiz_id: str) -> QuizRecord:
    """Fetch a quiz and make sure it is addressed under its own class."""
    quiz = repo.get_quiz(quiz_id)
    if quiz is None or quiz.class_id != class_.id:
        raise ResourceNotFound("quiz_not_found")
    return quiz
