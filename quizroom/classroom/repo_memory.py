"""
In-memory classroom repository (development and tests).

Records are handed out as detached copies, the same as a fetch from the
database, so callers never mutate stored state by accident. Each write takes
the repository lock, which mirrors per-document atomicity of the real store.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence
import threading
from uuid import uuid4

from .models import (
    ClassRecord,
    Question,
    QuizRecord,
    ResponseItem,
    StudentResponse,
    utc_now_iso,
)

_UNSET = object()


def _copy_class(c: ClassRecord) -> ClassRecord:
    return replace(c, students=list(c.students), quizzes=list(c.quizzes))


def _copy_quiz(q: QuizRecord) -> QuizRecord:
    return replace(q, questions=list(q.questions))


class InMemoryClassroomRepo:
    def __init__(self) -> None:
        self.classes: Dict[str, ClassRecord] = {}
        self.quizzes: Dict[str, QuizRecord] = {}
        self.responses: Dict[str, StudentResponse] = {}
        self._lock = threading.Lock()

    # --- Classes ------------------------------------------------------------
    def create_class(self, *, class_name: str, teacher_id: str) -> ClassRecord:
        name = (class_name or "").strip()
        if not name or len(name) > 200:
            raise ValueError("invalid_class_name")
        rec = ClassRecord(id=str(uuid4()), class_name=name, teacher_id=teacher_id, created_at=utc_now_iso())
        with self._lock:
            self.classes[rec.id] = rec
        return _copy_class(rec)

    def get_class(self, class_id: str) -> Optional[ClassRecord]:
        rec = self.classes.get(class_id)
        return _copy_class(rec) if rec else None

    def list_classes_for_teacher(self, *, teacher_id: str, limit: int, offset: int) -> List[ClassRecord]:
        items = [c for c in self.classes.values() if c.teacher_id == teacher_id]
        return [_copy_class(c) for c in items[offset: offset + limit]]

    def list_classes_for_student(self, *, student_id: str, limit: int, offset: int) -> List[ClassRecord]:
        items = [c for c in self.classes.values() if student_id in c.students]
        return [_copy_class(c) for c in items[offset: offset + limit]]

    def add_member(self, class_id: str, student_id: str) -> bool:
        with self._lock:
            rec = self.classes.get(class_id)
            if rec is None:
                raise LookupError("class_not_found")
            if student_id in rec.students:
                return False
            rec.students.append(student_id)
            return True

    # --- Quizzes ------------------------------------------------------------
    def create_quiz(
        self,
        *,
        class_id: str,
        quiz_name: str,
        start_date: datetime,
        duration: int,
        questions: Sequence[Question],
    ) -> QuizRecord:
        now = utc_now_iso()
        quiz = QuizRecord(
            id=str(uuid4()),
            class_id=class_id,
            quiz_name=quiz_name,
            start_date=start_date,
            duration=duration,
            questions=list(questions),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            owner = self.classes.get(class_id)
            if owner is None:
                raise LookupError("class_not_found")
            self.quizzes[quiz.id] = quiz
            owner.quizzes.append(quiz.id)
        return _copy_quiz(quiz)

    def get_quiz(self, quiz_id: str) -> Optional[QuizRecord]:
        rec = self.quizzes.get(quiz_id)
        return _copy_quiz(rec) if rec else None

    def list_quizzes_for_class(self, class_id: str) -> List[QuizRecord]:
        owner = self.classes.get(class_id)
        if owner is None:
            return []
        return [_copy_quiz(self.quizzes[qid]) for qid in owner.quizzes if qid in self.quizzes]

    def update_quiz(
        self,
        quiz_id: str,
        *,
        quiz_name=_UNSET,
        start_date=_UNSET,
        duration=_UNSET,
        questions=_UNSET,
    ) -> Optional[QuizRecord]:
        with self._lock:
            quiz = self.quizzes.get(quiz_id)
            if quiz is None:
                return None
            if quiz_name is not _UNSET:
                quiz.quiz_name = quiz_name
            if start_date is not _UNSET:
                quiz.start_date = start_date
            if duration is not _UNSET:
                quiz.duration = duration
            if questions is not _UNSET:
                quiz.questions = list(questions)
            quiz.updated_at = utc_now_iso()
            return _copy_quiz(quiz)

    # --- Responses ----------------------------------------------------------
    def create_student_response(
        self, *, student_id: str, quiz_id: str, responses: Sequence[ResponseItem]
    ) -> StudentResponse:
        rec = StudentResponse(
            id=str(uuid4()),
            student_id=student_id,
            quiz_id=quiz_id,
            responses=list(responses),
            submitted_at=utc_now_iso(),
        )
        with self._lock:
            self.responses[rec.id] = rec
        return rec
