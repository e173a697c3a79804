"""
Pytest configuration for quizroom tests.

Why: Force AnyIO to use the asyncio backend and give every test fresh
in-memory stores, the system clock and a dev-like environment, so state and
env toggles never leak between tests.
"""
import sys
from pathlib import Path

import pytest

# Ensure the repo root (for `quizroom`) and this directory (for `utils`) are importable
REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = Path(__file__).resolve().parent
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _dev_env_and_clear_flags(monkeypatch: pytest.MonkeyPatch):
    """Default to a dev environment with cheap bcrypt and no stray toggles."""
    for var in (
        "QUIZROOM_ENV",
        "JWT_SECRET",
        "JWT_TTL_SECONDS",
        "STORAGE_BACKEND",
        "QUIZROOM_DEBUG_ERRORS",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    yield


@pytest.fixture(autouse=True)
def _reset_stores_and_clock():
    """Swap in empty in-memory stores and the real clock before each test."""
    from quizroom.classroom.clock import SystemClock
    from quizroom.classroom.repo_memory import InMemoryClassroomRepo
    from quizroom.identity_access.stores import IdentityStore
    from quizroom.web.routes import auth, classes

    auth.set_identity_store(IdentityStore())
    classes.set_repo(InMemoryClassroomRepo())
    classes.set_clock(SystemClock())
    yield
