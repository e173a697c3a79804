"""
Authorization & visibility rules for classes and quizzes.

Why:
    Route handlers must not re-derive who may act on a class or when a quiz is
    visible. This module is the single, framework-free decision point: pure
    functions over a principal, the stored records and an explicit `now`.

Behavior:
    - Class ownership: teacher role AND `class.teacher_id == principal.id`.
    - Class membership: the owning teacher or a student listed in the class.
    - Quiz window is half-open `[start_date, start_date + duration)`: the start
      instant is inside, the end instant is outside.
    - Quiz state is never stored; it is recomputed from
      `(start_date, duration, now)` on every call.

Permissions:
    No side effects. Callers turn a denied `Decision` into an error via
    `Decision.raise_if_denied()`.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from quizroom.identity_access.domain import Principal, Role

from .errors import MembershipForbidden, OwnershipForbidden, RoleForbidden, ValidationFailed
from .models import ClassRecord, QuizRecord, quiz_window_end


class DenyReason(str, Enum):
    NOT_TEACHER = "not_teacher"
    NOT_STUDENT = "not_student"
    NOT_OWNER = "not_owner"
    NOT_MEMBER = "not_member"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason) -> "Decision":
        return cls(allowed=False, reason=reason)

    def raise_if_denied(self) -> None:
        if self.allowed:
            return
        if self.reason in (DenyReason.NOT_TEACHER, DenyReason.NOT_STUDENT):
            raise RoleForbidden(self.reason.value)
        if self.reason is DenyReason.NOT_OWNER:
            raise OwnershipForbidden(self.reason.value)
        raise MembershipForbidden(DenyReason.NOT_MEMBER.value)


class QuizVisibility(str, Enum):
    FULL = "full"
    NOT_STARTED = "not_started"
    ENDED = "ended"


class QuizState(str, Enum):
    SCHEDULED = "scheduled"
    OPEN = "open"
    CLOSED = "closed"


class WindowCheck(str, Enum):
    OK = "ok"
    START_NOT_FUTURE = "start_not_future"


def require_role(principal: Principal, role: Role) -> Decision:
    if principal.role is role:
        return Decision.allow()
    return Decision.deny(DenyReason.NOT_TEACHER if role is Role.TEACHER else DenyReason.NOT_STUDENT)


def authorize_class_owner(principal: Principal, class_: ClassRecord) -> Decision:
    if principal.role is not Role.TEACHER:
        return Decision.deny(DenyReason.NOT_TEACHER)
    if class_.teacher_id != principal.id:
        return Decision.deny(DenyReason.NOT_OWNER)
    return Decision.allow()


def authorize_class_member(principal: Principal, class_: ClassRecord) -> Decision:
    if principal.role is Role.TEACHER and class_.teacher_id == principal.id:
        return Decision.allow()
    if principal.role is Role.STUDENT and principal.id in class_.students:
        return Decision.allow()
    return Decision.deny(DenyReason.NOT_MEMBER)


def quiz_state(start_date: datetime, duration: int, now: datetime) -> QuizState:
    if now < start_date:
        return QuizState.SCHEDULED
    if now >= quiz_window_end(start_date, duration):
        return QuizState.CLOSED
    return QuizState.OPEN


def resolve_quiz_visibility(principal: Principal, quiz: QuizRecord, now: datetime) -> QuizVisibility:
    """Return how much of `quiz` the caller may see at `now`.

    Teachers always get `FULL`; class membership is checked beforehand by
    `authorize_class_member`. Students get `FULL` only inside the window.
    """
    if principal.role is Role.TEACHER:
        return QuizVisibility.FULL
    state = quiz_state(quiz.start_date, quiz.duration, now)
    if state is QuizState.SCHEDULED:
        return QuizVisibility.NOT_STARTED
    if state is QuizState.CLOSED:
        return QuizVisibility.ENDED
    return QuizVisibility.FULL


def validate_quiz_window(start_date: datetime, now: datetime) -> WindowCheck:
    """Accept only a start strictly after `now` (equal instants are rejected)."""
    if start_date > now:
        return WindowCheck.OK
    return WindowCheck.START_NOT_FUTURE


def ensure_quiz_window(start_date: datetime, now: datetime) -> None:
    if validate_quiz_window(start_date, now) is not WindowCheck.OK:
        raise ValidationFailed(WindowCheck.START_NOT_FUTURE.value)
