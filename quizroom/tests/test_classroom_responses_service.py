"""
Response submission: only student members, only while the quiz is open,
answers checked against the quiz's own question/option ids.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quizroom.classroom.clock import FixedClock
from quizroom.classroom.errors import MembershipForbidden, QuizNotOpen, RoleForbidden
from quizroom.classroom.models import Option, Question
from quizroom.classroom.repo_memory import InMemoryClassroomRepo
from quizroom.classroom.services.responses import ResponsesService
from quizroom.identity_access.domain import Principal, Role

START = datetime(2030, 6, 1, 10, 0, tzinfo=timezone.utc)
STUDENT = Principal(id="s-1", role=Role.STUDENT)


def _setup():
    repo = InMemoryClassroomRepo()
    class_ = repo.create_class(class_name="Chemistry", teacher_id="t-1")
    repo.add_member(class_.id, STUDENT.id)
    single = Question(
        id="q-single",
        question_text="H2O is?",
        options=[Option(id="o-1", option_text="water", is_correct=True), Option(id="o-2", option_text="salt", is_correct=False)],
    )
    multi = Question(
        id="q-multi",
        question_text="Noble gases?",
        options=[Option(id="o-3", option_text="He", is_correct=True), Option(id="o-4", option_text="Ne", is_correct=True)],
        is_multiple_choice=True,
    )
    quiz = repo.create_quiz(class_id=class_.id, quiz_name="Basics", start_date=START, duration=30, questions=[single, multi])
    clock = FixedClock(START + timedelta(minutes=5))
    return ResponsesService(repo, clock), repo, clock, class_, quiz


def test_student_member_submits_while_open():
    svc, repo, _, class_, quiz = _setup()
    saved = svc.submit(
        STUDENT,
        class_.id,
        quiz.id,
        [
            {"question_id": "q-single", "selected_options": ["o-1"]},
            {"question_id": "q-multi", "selected_options": ["o-3", "o-4"]},
        ],
    )
    assert saved.id in repo.responses
    assert saved.student_id == STUDENT.id
    assert [r.question_id for r in saved.responses] == ["q-single", "q-multi"]


@pytest.mark.parametrize(
    "moment,code",
    [(START - timedelta(seconds=1), "quiz_not_started"), (START + timedelta(minutes=30), "quiz_ended")],
)
def test_submission_outside_window_is_refused(moment, code):
    svc, repo, clock, class_, quiz = _setup()
    clock.set(moment)
    with pytest.raises(QuizNotOpen) as exc:
        svc.submit(STUDENT, class_.id, quiz.id, [{"question_id": "q-single", "selected_options": ["o-1"]}])
    assert exc.value.code == code
    assert repo.responses == {}


def test_teacher_and_non_member_cannot_submit():
    svc, _, _, class_, quiz = _setup()
    answer = [{"question_id": "q-single", "selected_options": ["o-1"]}]
    with pytest.raises(RoleForbidden):
        svc.submit(Principal(id="t-1", role=Role.TEACHER), class_.id, quiz.id, answer)
    with pytest.raises(MembershipForbidden):
        svc.submit(Principal(id="s-2", role=Role.STUDENT), class_.id, quiz.id, answer)


@pytest.mark.parametrize(
    "responses,code",
    [
        ([], "invalid_responses"),
        ([{"question_id": "nope", "selected_options": []}], "unknown_question"),
        ([{"question_id": "q-single", "selected_options": ["o-3"]}], "unknown_option"),
        ([{"question_id": "q-single", "selected_options": ["o-1", "o-2"]}], "too_many_options"),
        ([{"question_id": "q-multi", "selected_options": ["o-3", "o-3"]}], "invalid_selected_options"),
        (
            [
                {"question_id": "q-single", "selected_options": ["o-1"]},
                {"question_id": "q-single", "selected_options": ["o-2"]},
            ],
            "duplicate_question",
        ),
    ],
)
def test_answers_are_checked_against_quiz(responses, code):
    svc, _, _, class_, quiz = _setup()
    with pytest.raises(ValueError) as exc:
        svc.submit(STUDENT, class_.id, quiz.id, responses)
    assert str(exc.value) == code
