"""
Classroom error taxonomy.

Each class subclasses the builtin the web adapters already map
(`PermissionError` -> 403, `LookupError` -> 404, `ValueError` -> 400), so use
cases stay framework-free and routes keep a single mapping point. The `code`
becomes the `detail` field of the JSON error body.
"""
from __future__ import annotations


class RoleForbidden(PermissionError):
    def __init__(self, code: str = "role_forbidden"):
        super().__init__(code)
        self.code = code


class OwnershipForbidden(PermissionError):
    def __init__(self, code: str = "not_owner"):
        super().__init__(code)
        self.code = code


class MembershipForbidden(PermissionError):
    def __init__(self, code: str = "not_member"):
        super().__init__(code)
        self.code = code


class QuizNotOpen(PermissionError):
    def __init__(self, code: str = "quiz_not_open"):
        super().__init__(code)
        self.code = code


class ResourceNotFound(LookupError):
    def __init__(self, code: str = "not_found"):
        super().__init__(code)
        self.code = code


class ValidationFailed(ValueError):
    def __init__(self, code: str = "invalid_input"):
        super().__init__(code)
        self.code = code


def error_code(exc: BaseException, default: str) -> str:
    code = getattr(exc, "code", None)
    return code if isinstance(code, str) and code else default
