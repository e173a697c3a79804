"""
Classes API: create/list, teacher add-student, student join and roster access.
"""
from __future__ import annotations

import pytest

from utils.api import bearer, client, create_class, signup

pytestmark = pytest.mark.anyio("asyncio")


async def test_teacher_creates_class_and_lists_it_with_owner_profile():
    async with client() as c:
        token, teacher_id = await signup(c, "teacher", "ms_honey")
        r = await c.post("/api/classes/create", json={"class_name": "  Reading 2a "}, headers=bearer(token))
        assert r.status_code == 201
        body = r.json()
        assert body["message"] == "Class created successfully"
        assert body["class"]["class_name"] == "Reading 2a"
        assert body["class"]["teacher_id"] == teacher_id

        lst = await c.get("/api/classes", headers=bearer(token))
    assert lst.status_code == 200
    classes = lst.json()["classes"]
    assert [k["id"] for k in classes] == [body["class"]["id"]]
    assert classes[0]["teacher"]["username"] == "ms_honey"
    assert "password_hash" not in classes[0]["teacher"]


async def test_student_cannot_create_class_and_empty_name_is_400():
    async with client() as c:
        s_token, _ = await signup(c, "student")
        t_token, _ = await signup(c, "teacher")
        forbidden = await c.post("/api/classes/create", json={"class_name": "Mine"}, headers=bearer(s_token))
        empty = await c.post("/api/classes/create", json={"class_name": "   "}, headers=bearer(t_token))
    assert forbidden.status_code == 403
    assert forbidden.json() == {"error": "forbidden", "detail": "not_teacher"}
    assert empty.status_code == 400
    assert empty.json()["detail"] == "invalid_class_name"


async def test_join_is_idempotent_and_listed_for_student():
    async with client() as c:
        t_token, _ = await signup(c, "teacher")
        s_token, student_id = await signup(c, "student")
        class_id = await create_class(c, t_token)

        first = await c.post("/api/classes/join", json={"classId": class_id}, headers=bearer(s_token))
        second = await c.post("/api/classes/join", json={"classId": class_id}, headers=bearer(s_token))
        mine = await c.get("/api/classes", headers=bearer(s_token))
        roster = await c.get(f"/api/classes/{class_id}/students", headers=bearer(t_token))

    assert first.status_code == 200
    assert first.json() == {"message": "Student joined the class successfully", "status": "joined"}
    assert second.status_code == 200
    assert second.json() == {"message": "Student already in the class", "status": "already_member"}
    assert [k["id"] for k in mine.json()["classes"]] == [class_id]
    assert mine.json()["classes"][0]["students"] == [student_id]
    assert [s["id"] for s in roster.json()["students"]] == [student_id]
    assert set(roster.json()["students"][0]) == {"id", "name", "email", "username"}


async def test_teacher_join_is_forbidden_and_unknown_class_is_404():
    async with client() as c:
        t_token, _ = await signup(c, "teacher")
        s_token, _ = await signup(c, "student")
        class_id = await create_class(c, t_token)
        teacher_join = await c.post("/api/classes/join", json={"classId": class_id}, headers=bearer(t_token))
        unknown = await c.post("/api/classes/join", json={"classId": "does-not-exist"}, headers=bearer(s_token))
        missing = await c.post("/api/classes/join", json={}, headers=bearer(s_token))
    assert teacher_join.status_code == 403
    assert unknown.status_code == 404
    assert unknown.json()["detail"] == "class_not_found"
    assert missing.status_code == 400


async def test_owner_adds_student_once_and_both_sides_are_updated():
    from quizroom.identity_access.domain import Role
    from quizroom.web.routes.auth import get_identity_store

    async with client() as c:
        t_token, _ = await signup(c, "teacher")
        _, student_id = await signup(c, "student")
        class_id = await create_class(c, t_token)
        url = f"/api/classes/{class_id}/add-student"
        first = await c.post(url, json={"studentId": student_id}, headers=bearer(t_token))
        again = await c.post(url, json={"studentId": student_id}, headers=bearer(t_token))
        roster = await c.get(f"/api/classes/{class_id}/students", headers=bearer(t_token))

    assert first.json() == {"message": "Student added to the class successfully", "status": "added"}
    assert again.json()["status"] == "already_member"
    assert [s["id"] for s in roster.json()["students"]] == [student_id]
    assert get_identity_store().get_user(Role.STUDENT, student_id).classes == [class_id]


async def test_add_student_requires_owner_and_existing_student():
    async with client() as c:
        owner, _ = await signup(c, "teacher")
        other, _ = await signup(c, "teacher")
        _, student_id = await signup(c, "student")
        class_id = await create_class(c, owner)
        url = f"/api/classes/{class_id}/add-student"
        not_owner = await c.post(url, json={"studentId": student_id}, headers=bearer(other))
        unknown_student = await c.post(url, json={"studentId": "ghost"}, headers=bearer(owner))
        unknown_class = await c.post("/api/classes/nope/add-student", json={"studentId": student_id}, headers=bearer(owner))
        roster = await c.get(f"/api/classes/{class_id}/students", headers=bearer(owner))
    assert not_owner.status_code == 403
    assert not_owner.json()["detail"] == "not_owner"
    assert unknown_student.status_code == 404
    assert unknown_student.json()["detail"] == "student_not_found"
    assert unknown_class.status_code == 404
    assert roster.json()["students"] == []


async def test_roster_is_member_only():
    async with client() as c:
        owner, _ = await signup(c, "teacher")
        other_teacher, _ = await signup(c, "teacher")
        member, _ = await signup(c, "student")
        outsider, _ = await signup(c, "student")
        class_id = await create_class(c, owner)
        await c.post("/api/classes/join", json={"classId": class_id}, headers=bearer(member))

        ok = await c.get(f"/api/classes/{class_id}/students", headers=bearer(member))
        denied_student = await c.get(f"/api/classes/{class_id}/students", headers=bearer(outsider))
        denied_teacher = await c.get(f"/api/classes/{class_id}/students", headers=bearer(other_teacher))
    assert ok.status_code == 200
    assert denied_student.status_code == 403
    assert denied_teacher.status_code == 403
    assert denied_student.json() == {"error": "forbidden", "detail": "not_member"}


async def test_student_add_student_on_unknown_class_is_role_denied():
    async with client() as c:
        s_token, student_id = await signup(c, "student")
        r = await c.post("/api/classes/nope/add-student", json={"studentId": student_id}, headers=bearer(s_token))
    assert r.status_code == 403
    assert r.json() == {"error": "forbidden", "detail": "not_teacher"}
