"""Class use cases: create, list, roster and membership.

Why:
    Keeps the web adapter thin. Every operation resolves the records it needs,
    asks the policy module for a decision and only then touches storage, so a
    denied request never leaves a partial write behind.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol

from quizroom.identity_access.domain import Principal, Role
from quizroom.identity_access.stores import UserRecord

from ..membership import MembershipManager, MembershipResult
from ..models import ClassRecord
from ..policy import authorize_class_member, authorize_class_owner, require_role
from .common import require_class


class ClassesRepoProtocol(Protocol):
    def create_class(self, *, class_name: str, teacher_id: str) -> ClassRecord:
        ...

    def get_class(self, class_id: str) -> Optional[ClassRecord]:
        ...

    def list_classes_for_teacher(self, *, teacher_id: str, limit: int, offset: int) -> List[ClassRecord]:
        ...

    def list_classes_for_student(self, *, student_id: str, limit: int, offset: int) -> List[ClassRecord]:
        ...

    def add_member(self, class_id: str, student_id: str) -> bool:
        ...


class IdentityPort(Protocol):
    def get_user(self, role: Role, user_id: str) -> Optional[UserRecord]:
        ...

    def get_students(self, student_ids: Iterable[str]) -> List[UserRecord]:
        ...

    def add_class_to_student(self, student_id: str, class_id: str) -> bool:
        ...


def _normalize_class_name(value: object) -> str:
    if not isinstance(value, str):
        raise ValueError("invalid_class_name")
    trimmed = value.strip()
    if not trimmed or len(trimmed) > 200:
        raise ValueError("invalid_class_name")
    return trimmed


def _student_view(rec: UserRecord) -> dict:
    return {"id": rec.id, "name": rec.full_name, "email": rec.email, "username": rec.username}


@dataclass
class ClassesService:
    """Use cases for classes and their membership (framework-independent)."""

    repo: ClassesRepoProtocol
    identity: IdentityPort
    _members: MembershipManager = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._members = MembershipManager(self.repo, self.identity)

    def create_class(self, principal: Principal, class_name: object) -> ClassRecord:
        require_role(principal, Role.TEACHER).raise_if_denied()
        name = _normalize_class_name(class_name)
        return self.repo.create_class(class_name=name, teacher_id=principal.id)

    def list_for_principal(self, principal: Principal, *, limit: int = 50, offset: int = 0) -> List[dict]:
        """Classes the caller owns (teacher) or belongs to (student).

        Each entry carries the owning teacher's public profile under `teacher`.
        """
        if principal.role is Role.TEACHER:
            items = self.repo.list_classes_for_teacher(teacher_id=principal.id, limit=limit, offset=offset)
        else:
            items = self.repo.list_classes_for_student(student_id=principal.id, limit=limit, offset=offset)
        profiles: dict[str, Optional[dict]] = {}
        out: List[dict] = []
        for class_ in items:
            if class_.teacher_id not in profiles:
                teacher = self.identity.get_user(Role.TEACHER, class_.teacher_id)
                profiles[class_.teacher_id] = teacher.public_profile() if teacher else None
            data = class_.to_dict()
            data["teacher"] = profiles[class_.teacher_id]
            out.append(data)
        return out

    def list_students(self, principal: Principal, class_id: str) -> List[dict]:
        class_ = require_class(self.repo, class_id)
        authorize_class_member(principal, class_).raise_if_denied()
        return [_student_view(s) for s in self.identity.get_students(class_.students)]

    def add_student(self, principal: Principal, class_id: str, student_id: object) -> MembershipResult:
        require_role(principal, Role.TEACHER).raise_if_denied()
        class_ = require_class(self.repo, class_id)
        authorize_class_owner(principal, class_).raise_if_denied()
        if not isinstance(student_id, str) or not student_id.strip():
            raise ValueError("invalid_student_id")
        student = self.identity.get_user(Role.STUDENT, student_id.strip())
        return self._members.add_student_to_class(class_, student)

    def join(self, principal: Principal, class_id: object) -> MembershipResult:
        require_role(principal, Role.STUDENT).raise_if_denied()
        if not isinstance(class_id, str) or not class_id.strip():
            raise ValueError("invalid_class_id")
        class_ = require_class(self.repo, class_id.strip())
        student = self.identity.get_user(Role.STUDENT, principal.id)
        return self._members.student_join_class(class_, student)
