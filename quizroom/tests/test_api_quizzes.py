"""
Quizzes API: scheduling rules and time-gated reads, driven by a fixed clock.
"""
from __future__ import annotations

from datetime import timedelta

import pytest

from quizroom.classroom.clock import FixedClock
from quizroom.web.routes import classes as classes_routes
from utils.api import BASE_NOW, ONE_HOUR, bearer, client, create_class, iso, sample_questions, signup

pytestmark = pytest.mark.anyio("asyncio")


async def _classroom(c):
    """Teacher with a class and one joined student; returns tokens and class id."""
    t_token, _ = await signup(c, "teacher")
    s_token, _ = await signup(c, "student")
    class_id = await create_class(c, t_token)
    r = await c.post("/api/classes/join", json={"classId": class_id}, headers=bearer(s_token))
    assert r.status_code == 200
    return t_token, s_token, class_id


async def _create_quiz(c, token, class_id, start, duration=60):
    return await c.post(
        f"/api/classes/{class_id}/quizzes",
        json={"quiz_name": "Cells", "start_date": iso(start), "duration": duration, "questions": sample_questions()},
        headers=bearer(token),
    )


async def test_student_sees_not_started_then_full_then_ended():
    clock = FixedClock(BASE_NOW)
    classes_routes.set_clock(clock)
    async with client() as c:
        t_token, s_token, class_id = await _classroom(c)
        created = await _create_quiz(c, t_token, class_id, BASE_NOW + ONE_HOUR)
        assert created.status_code == 201
        assert created.json()["message"] == "Quiz created successfully"
        quiz_id = created.json()["quiz"]["id"]
        url = f"/api/classes/{class_id}/quizzes/{quiz_id}"

        before = await c.get(url, headers=bearer(s_token))
        clock.set(BASE_NOW + ONE_HOUR)
        during = await c.get(url, headers=bearer(s_token))
        clock.set(BASE_NOW + 2 * ONE_HOUR + timedelta(minutes=1))
        after = await c.get(url, headers=bearer(s_token))
        teacher_after = await c.get(url, headers=bearer(t_token))

    assert before.status_code == 200
    assert before.json() == {"message": "Quiz has not started yet", "status": "not_started"}
    assert during.status_code == 200
    quiz = during.json()["quiz"]
    assert quiz["id"] == quiz_id
    assert all("is_correct" not in o for q in quiz["questions"] for o in q["options"])
    assert after.json() == {"message": "Quiz has passed", "status": "ended"}
    assert teacher_after.json()["quiz"]["questions"][0]["options"][0]["is_correct"] is True


async def test_end_boundary_is_exclusive():
    clock = FixedClock(BASE_NOW)
    classes_routes.set_clock(clock)
    async with client() as c:
        t_token, s_token, class_id = await _classroom(c)
        quiz_id = (await _create_quiz(c, t_token, class_id, BASE_NOW + ONE_HOUR, duration=30)).json()["quiz"]["id"]
        clock.set(BASE_NOW + ONE_HOUR + timedelta(minutes=30))
        r = await c.get(f"/api/classes/{class_id}/quizzes/{quiz_id}", headers=bearer(s_token))
    assert r.json()["status"] == "ended"


@pytest.mark.parametrize("offset", [timedelta(minutes=-1), timedelta(0)])
async def test_start_not_in_future_is_400(offset):
    classes_routes.set_clock(FixedClock(BASE_NOW))
    async with client() as c:
        t_token, _, class_id = await _classroom(c)
        r = await _create_quiz(c, t_token, class_id, BASE_NOW + offset)
        lst = await c.get(f"/api/classes/{class_id}/quizzes", headers=bearer(t_token))
    assert r.status_code == 400
    assert r.json() == {"error": "bad_request", "detail": "start_not_future"}
    assert lst.json()["quizzes"] == []


async def test_only_owner_creates_quizzes():
    classes_routes.set_clock(FixedClock(BASE_NOW))
    async with client() as c:
        _, s_token, class_id = await _classroom(c)
        other_teacher, _ = await signup(c, "teacher")
        by_student = await _create_quiz(c, s_token, class_id, BASE_NOW + ONE_HOUR)
        by_other = await _create_quiz(c, other_teacher, class_id, BASE_NOW + ONE_HOUR)
        unknown = await _create_quiz(c, other_teacher, "missing", BASE_NOW + ONE_HOUR)
    assert by_student.status_code == 403
    assert by_other.status_code == 403
    assert unknown.status_code == 404


async def test_patch_is_partial_and_revalidates_start():
    clock = FixedClock(BASE_NOW)
    classes_routes.set_clock(clock)
    async with client() as c:
        t_token, s_token, class_id = await _classroom(c)
        quiz = (await _create_quiz(c, t_token, class_id, BASE_NOW + ONE_HOUR)).json()["quiz"]
        url = f"/api/classes/{class_id}/quizzes/{quiz['id']}"

        renamed = await c.patch(url, json={"quiz_name": "Cells II"}, headers=bearer(t_token))
        past = await c.patch(url, json={"start_date": iso(BASE_NOW - ONE_HOUR)}, headers=bearer(t_token))
        empty = await c.patch(url, json={}, headers=bearer(t_token))
        by_student = await c.patch(url, json={"quiz_name": "x"}, headers=bearer(s_token))
        clock.set(BASE_NOW + ONE_HOUR)
        after_start = await c.patch(url, json={"duration": 10}, headers=bearer(t_token))

    assert renamed.status_code == 200
    assert renamed.json()["quiz"]["quiz_name"] == "Cells II"
    assert renamed.json()["quiz"]["start_date"] == quiz["start_date"]
    assert renamed.json()["quiz"]["questions"] == quiz["questions"]
    assert past.status_code == 400
    assert past.json()["detail"] == "start_not_future"
    assert empty.status_code == 400
    assert by_student.status_code == 403
    assert after_start.status_code == 400


async def test_list_returns_summaries_for_members_only():
    classes_routes.set_clock(FixedClock(BASE_NOW))
    async with client() as c:
        t_token, s_token, class_id = await _classroom(c)
        outsider, _ = await signup(c, "student")
        quiz_id = (await _create_quiz(c, t_token, class_id, BASE_NOW + ONE_HOUR)).json()["quiz"]["id"]
        lst = await c.get(f"/api/classes/{class_id}/quizzes", headers=bearer(s_token))
        denied = await c.get(f"/api/classes/{class_id}/quizzes", headers=bearer(outsider))
        denied_read = await c.get(f"/api/classes/{class_id}/quizzes/{quiz_id}", headers=bearer(outsider))
    assert lst.json()["quizzes"] == [
        {"quiz_name": "Cells", "quiz_id": quiz_id, "start_date": iso(BASE_NOW + ONE_HOUR), "duration": 60}
    ]
    assert denied.status_code == 403
    assert denied_read.status_code == 403


async def test_quiz_from_other_class_is_not_found():
    classes_routes.set_clock(FixedClock(BASE_NOW))
    async with client() as c:
        t_token, _, class_id = await _classroom(c)
        other_class = await create_class(c, t_token, "Second class")
        quiz_id = (await _create_quiz(c, t_token, class_id, BASE_NOW + ONE_HOUR)).json()["quiz"]["id"]
        r = await c.get(f"/api/classes/{other_class}/quizzes/{quiz_id}", headers=bearer(t_token))
    assert r.status_code == 404
    assert r.json() == {"error": "not_found", "detail": "quiz_not_found"}


async def test_student_quiz_writes_on_unknown_class_are_role_denied_first():
    classes_routes.set_clock(FixedClock(BASE_NOW))
    async with client() as c:
        s_token, _ = await signup(c, "student")
        created = await _create_quiz(c, s_token, "missing", BASE_NOW + ONE_HOUR)
        patched = await c.patch("/api/classes/missing/quizzes/q1", json={"duration": 30}, headers=bearer(s_token))
    assert created.status_code == 403
    assert created.json()["detail"] == "not_teacher"
    assert patched.status_code == 403
    assert patched.json()["detail"] == "not_teacher"
