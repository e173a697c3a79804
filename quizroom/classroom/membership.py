"""
Class <-> student membership with idempotent add/join semantics.

Why:
    Teacher-initiated adds and student joins must behave the same way: check
    membership first, never push a duplicate, and keep both sides of the
    relation (`Class.students` and `Student.classes`) in step.

Behavior:
    - Already a member: no mutation, `ALREADY_MEMBER`.
    - Otherwise the class side is written first, then the student side. The two
      writes are not one transaction; a crash in between leaves the class side
      only, which a repeated add/join does not repair (it sees the member).
    - Missing class or student: `ResourceNotFound` before any write.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Protocol

from quizroom.identity_access.domain import Role
from quizroom.identity_access.stores import UserRecord

from .errors import ResourceNotFound, ValidationFailed
from .models import ClassRecord


class MembershipResult(str, Enum):
    ADDED = "added"
    JOINED = "joined"
    ALREADY_MEMBER = "already_member"


class ClassMembersPort(Protocol):
    def add_member(self, class_id: str, student_id: str) -> bool:
        ...


class StudentClassesPort(Protocol):
    def add_class_to_student(self, student_id: str, class_id: str) -> bool:
        ...


class MembershipManager:
    def __init__(self, classes: ClassMembersPort, students: StudentClassesPort) -> None:
        self._classes = classes
        self._students = students

    def add_student_to_class(self, class_: Optional[ClassRecord], student: Optional[UserRecord]) -> MembershipResult:
        """Teacher path: enrol `student` in `class_` (owner check happens before)."""
        return self._enrol(class_, student, success=MembershipResult.ADDED)

    def student_join_class(self, class_: Optional[ClassRecord], student: Optional[UserRecord]) -> MembershipResult:
        """Student path: the caller joins `class_` themselves."""
        return self._enrol(class_, student, success=MembershipResult.JOINED)

    def _enrol(
        self,
        class_: Optional[ClassRecord],
        student: Optional[UserRecord],
        *,
        success: MembershipResult,
    ) -> MembershipResult:
        if class_ is None:
            raise ResourceNotFound("class_not_found")
        if student is None:
            raise ResourceNotFound("student_not_found")
        if student.role is not Role.STUDENT:
            raise ValidationFailed("not_a_student")
        if student.id in class_.students:
            return MembershipResult.ALREADY_MEMBER

        created = self._classes.add_member(class_.id, student.id)
        if not created:
            # Another request enrolled the student between our read and write.
            return MembershipResult.ALREADY_MEMBER
        class_.students.append(student.id)
        if self._students.add_class_to_student(student.id, class_.id):
            student.classes.append(class_.id)
        return success
