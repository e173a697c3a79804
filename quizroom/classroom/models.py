"""Classroom records shared by repositories, services and routes."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping


@dataclass
class ClassRecord:
    id: str
    class_name: str
    teacher_id: str
    # Membership (class side); a student id appears at most once.
    students: List[str] = field(default_factory=list)
    # Quiz ids in creation order.
    quizzes: List[str] = field(default_factory=list)
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "class_name": self.class_name,
            "teacher_id": self.teacher_id,
            "students": list(self.students),
            "quizzes": list(self.quizzes),
            "created_at": self.created_at,
        }


@dataclass
class Option:
    id: str
    option_text: str
    is_correct: bool

    def to_dict(self, *, include_correctness: bool = True) -> dict:
        data: dict[str, Any] = {"id": self.id, "option_text": self.option_text}
        if include_correctness:
            data["is_correct"] = self.is_correct
        return data

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Option":
        return cls(id=str(raw["id"]), option_text=str(raw["option_text"]), is_correct=bool(raw.get("is_correct", False)))


@dataclass
class Question:
    id: str
    question_text: str
    options: List[Option] = field(default_factory=list)
    is_multiple_choice: bool = False

    def to_dict(self, *, include_correctness: bool = True) -> dict:
        return {
            "id": self.id,
            "question_text": self.question_text,
            "options": [o.to_dict(include_correctness=include_correctness) for o in self.options],
            "is_multiple_choice": self.is_multiple_choice,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Question":
        return cls(
            id=str(raw["id"]),
            question_text=str(raw["question_text"]),
            options=[Option.from_dict(o) for o in raw.get("options") or []],
            is_multiple_choice=bool(raw.get("is_multiple_choice", False)),
        )

    def option_ids(self) -> set[str]:
        return {o.id for o in self.options}


@dataclass
class QuizRecord:
    id: str
    class_id: str
    quiz_name: str
    start_date: datetime
    duration: int  # minutes
    questions: List[Question] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def question_by_id(self, question_id: str) -> Question | None:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    def to_dict(self, *, include_correctness: bool = True) -> dict:
        return {
            "id": self.id,
            "class_id": self.class_id,
            "quiz_name": self.quiz_name,
            "start_date": isoformat_utc(self.start_date),
            "duration": self.duration,
            "questions": [q.to_dict(include_correctness=include_correctness) for q in self.questions],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def summary(self) -> dict:
        return {
            "quiz_name": self.quiz_name,
            "quiz_id": self.id,
            "start_date": isoformat_utc(self.start_date),
            "duration": self.duration,
        }


@dataclass
class ResponseItem:
    question_id: str
    selected_options: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"question_id": self.question_id, "selected_options": list(self.selected_options)}


@dataclass
class StudentResponse:
    id: str
    student_id: str
    quiz_id: str
    responses: List[ResponseItem] = field(default_factory=list)
    submitted_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "quiz_id": self.quiz_id,
            "responses": [r.to_dict() for r in self.responses],
            "submitted_at": self.submitted_at,
        }


def quiz_window_end(start_date: datetime, duration_minutes: int) -> datetime:
    return start_date + timedelta(minutes=int(duration_minutes))


def isoformat_utc(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
