"""
In-memory identity store for development and tests.

Why: Teachers and students are persisted by a collaborator; the web layer only
needs lookup by id/username, creation, and maintenance of the student-side
class list. For production, use `stores_db.DBIdentityStore`.

Security: Records carry bcrypt hashes only. `public_profile` never includes
the hash.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional
import threading
import uuid

from .domain import Role


class DuplicateUserError(ValueError):
    """Raised when a username (per role) or a student email is already taken."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass
class UserRecord:
    id: str
    role: Role
    username: str
    password_hash: str
    full_name: str
    email: str
    # Student side of class membership; always empty for teachers.
    classes: List[str] = field(default_factory=list)

    def public_profile(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "email": self.email,
        }


class IdentityStore:
    def __init__(self) -> None:
        self._data: Dict[str, UserRecord] = {}
        self._lock = threading.Lock()

    def create_user(
        self,
        *,
        role: Role,
        username: str,
        password_hash: str,
        full_name: str,
        email: str,
    ) -> UserRecord:
        with self._lock:
            for rec in self._data.values():
                if rec.role is role and rec.username == username:
                    raise DuplicateUserError("username_taken")
                if role is Role.STUDENT and rec.role is Role.STUDENT and rec.email.lower() == email.lower():
                    raise DuplicateUserError("email_taken")
            rec = UserRecord(
                id=str(uuid.uuid4()),
                role=role,
                username=username,
                password_hash=password_hash,
                full_name=full_name,
                email=email,
            )
            self._data[rec.id] = rec
            return _copy(rec)

    def get_user(self, role: Role, user_id: str) -> Optional[UserRecord]:
        rec = self._data.get(user_id)
        if rec is None or rec.role is not role:
            return None
        return _copy(rec)

    def find_by_username(self, role: Role, username: str) -> Optional[UserRecord]:
        for rec in self._data.values():
            if rec.role is role and rec.username == username:
                return _copy(rec)
        return None

    def get_students(self, student_ids: Iterable[str]) -> List[UserRecord]:
        """Return student records in the order of `student_ids`, skipping unknown ids."""
        out: List[UserRecord] = []
        for sid in student_ids:
            rec = self.get_user(Role.STUDENT, sid)
            if rec is not None:
                out.append(rec)
        return out

    def add_class_to_student(self, student_id: str, class_id: str) -> bool:
        """Append `class_id` to the student's class list; False when already present."""
        with self._lock:
            rec = self._data.get(student_id)
            if rec is None or rec.role is not Role.STUDENT:
                raise LookupError("student_not_found")
            if class_id in rec.classes:
                return False
            rec.classes.append(class_id)
            return True


def _copy(rec: UserRecord) -> UserRecord:
    # Callers get detached copies, the same as a fetch from the database.
    return replace(rec, classes=list(rec.classes))
