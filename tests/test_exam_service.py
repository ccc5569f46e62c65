from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from conftest import result_of
from core.exceptions import PermissionDenied, RuleViolation
from models.course import Course
from models.enrollment import Enrollment
from models.exam import Exam, ExamAttempt
from services.exam_service import (
    ExamService, build_sections, grade_answer, recompute_totals, remaining_seconds,
    serialize_exam, validate_exam,
)

NOW = datetime.now(timezone.utc)

MCQ = {"id": "m1", "type": "mcq", "question": "2+2?", "options": ["3", "4", "5"],
       "correct_option": 1, "marks": 2.0, "negative_marks": 0.5}
ESSAY = {"id": "s1", "type": "subjective", "question": "Explain gravity", "options": [],
         "correct_option": None, "marks": 5.0, "negative_marks": 0.0}


def make_exam(**overrides):
    fields = dict(
        id=21, title="Midterm", description="", course_id=5, created_by=3, duration=30,
        start_time=NOW - timedelta(hours=1), end_time=NOW + timedelta(hours=1),
        is_published=True, negative_marking=False, passing_marks=3, instructions="",
        sections=[{"id": "sec1", "title": "Part A", "description": "", "total_marks": 7.0,
                   "questions": [dict(MCQ), dict(ESSAY)]}],
        total_marks=7.0,
    )
    fields.update(overrides)
    return Exam(**fields)


def make_attempt(exam, started=None, **overrides):
    fields = dict(
        id=31, exam_id=exam.id, user_id=7, course_id=exam.course_id,
        start_time=started or NOW - timedelta(minutes=5), duration=exam.duration,
        time_remaining=exam.duration * 60, status="in-progress",
        answers=[
            {"question_id": "m1", "answer": "", "selected_option": None,
             "marks_awarded": 0, "is_graded": False, "feedback": None},
            {"question_id": "s1", "answer": "", "selected_option": None,
             "marks_awarded": 0, "is_graded": False, "feedback": None},
        ],
        total_marks=exam.total_marks,
    )
    fields.update(overrides)
    attempt = ExamAttempt(**fields)
    attempt.exam = exam
    return attempt


def exam_payload(**overrides):
    data = {
        "title": "Final", "course_id": 5, "duration": 60,
        "start_time": NOW + timedelta(days=1), "end_time": NOW + timedelta(days=1, hours=2),
        "sections": [{"title": "Part A", "questions": [
            {"type": "mcq", "question": "2+2?", "options": ["3", "4"], "correct_option": 1, "marks": 2},
            {"type": "subjective", "question": "Why?", "marks": 3},
        ]}],
    }
    data.update(overrides)
    return data


class TestValidation:
    def test_valid_exam_passes(self):
        data = exam_payload()
        validate_exam(data["title"], data["start_time"], data["end_time"], data["duration"], data["sections"])

    def test_end_before_start(self):
        with pytest.raises(RuleViolation, match="End time"):
            validate_exam("Exam", NOW, NOW - timedelta(minutes=1), 30, [])

    def test_mcq_needs_two_options(self):
        sections = [{"title": "A", "questions": [
            {"type": "mcq", "question": "?", "options": ["only"], "correct_option": 0, "marks": 1}]}]
        with pytest.raises(RuleViolation, match="at least 2 options"):
            validate_exam("Exam", NOW, NOW + timedelta(hours=1), 30, sections)

    def test_mcq_correct_option_in_range(self):
        sections = [{"title": "A", "questions": [
            {"type": "mcq", "question": "?", "options": ["a", "b"], "correct_option": 2, "marks": 1}]}]
        with pytest.raises(RuleViolation, match="correct_option"):
            validate_exam("Exam", NOW, NOW + timedelta(hours=1), 30, sections)

    def test_marks_must_be_positive(self):
        sections = [{"title": "A", "questions": [{"type": "subjective", "question": "?", "marks": 0}]}]
        with pytest.raises(RuleViolation, match="marks greater than 0"):
            validate_exam("Exam", NOW, NOW + timedelta(hours=1), 30, sections)


def test_build_sections_totals_and_ids():
    sections, total = build_sections(exam_payload()["sections"])
    assert total == 5.0
    assert sections[0]["total_marks"] == 5.0
    assert sections[0]["id"]
    essay = sections[0]["questions"][1]
    assert essay["options"] == [] and essay["correct_option"] is None


def test_serialize_hides_correct_option_for_students():
    exam = make_exam()
    hidden = serialize_exam(exam, include_answers=False)
    assert hidden["sections"][0]["questions"][0]["correct_option"] is None
    assert serialize_exam(exam)["sections"][0]["questions"][0]["correct_option"] == 1
    # Stored exam is untouched
    assert exam.sections[0]["questions"][0]["correct_option"] == 1


class TestGrading:
    def test_correct_mcq(self):
        graded = grade_answer(MCQ, {"question_id": "m1", "answer": "4"}, negative_marking=False)
        assert graded["selected_option"] == 1
        assert graded["marks_awarded"] == 2.0
        assert graded["is_graded"]

    def test_wrong_mcq_with_negative_marking(self):
        graded = grade_answer(MCQ, {"question_id": "m1", "answer": "5"}, negative_marking=True)
        assert graded["marks_awarded"] == -0.5

    def test_wrong_mcq_without_negative_marking(self):
        graded = grade_answer(MCQ, {"question_id": "m1", "answer": "5"}, negative_marking=False)
        assert graded["marks_awarded"] == 0

    def test_blank_subjective_is_graded_zero(self):
        graded = grade_answer(ESSAY, {"question_id": "s1", "answer": "  "}, negative_marking=False)
        assert graded["is_graded"] and graded["marks_awarded"] == 0

    def test_written_subjective_waits_for_tutor(self):
        graded = grade_answer(ESSAY, {"question_id": "s1", "answer": "Mass attracts", "is_graded": False},
                              negative_marking=False)
        assert not graded["is_graded"]

    def test_recompute_totals(self):
        attempt = make_attempt(make_exam(), answers=[
            {"question_id": "m1", "marks_awarded": 2.0, "is_graded": True},
            {"question_id": "s1", "marks_awarded": 4.0, "is_graded": True},
        ])
        recompute_totals(attempt)
        assert attempt.total_marks_awarded == 6.0
        assert attempt.percentage == 85.71
        assert attempt.is_graded
        assert attempt.status == "in-progress"


def test_remaining_seconds_is_wall_clock():
    attempt = make_attempt(make_exam(), started=NOW - timedelta(minutes=10))
    assert remaining_seconds(attempt, NOW) == 20 * 60
    assert remaining_seconds(attempt, NOW + timedelta(hours=1)) == 0


@pytest.mark.asyncio
async def test_create_exam(db, tutor):
    course = Course(id=5, title="Math", description="", visibility_type="public", created_by=3)
    db.execute.return_value = result_of(course)

    exam = await ExamService(db).create_exam(tutor, exam_payload())

    assert exam.total_marks == 5.0
    assert not exam.is_published
    assert exam.created_by == tutor.id
    db.add.assert_called_once_with(exam)


@pytest.mark.asyncio
async def test_students_cannot_create_exams(db, student):
    with pytest.raises(PermissionDenied):
        await ExamService(db).create_exam(student, exam_payload())


@pytest.mark.asyncio
async def test_update_published_exam_with_attempts_is_blocked(db, tutor):
    db.execute.side_effect = [result_of(make_exam()), result_of(2)]
    with pytest.raises(PermissionDenied, match="already has attempts"):
        await ExamService(db).update_exam(21, tutor, exam_payload())


@pytest.mark.asyncio
async def test_delete_exam_with_attempts_needs_admin(db, tutor, admin):
    db.execute.side_effect = [result_of(make_exam()), result_of(1)]
    with pytest.raises(PermissionDenied):
        await ExamService(db).delete_exam(21, tutor)

    db.execute.side_effect = [result_of(make_exam()), result_of(1), result_of(None)]
    assert await ExamService(db).delete_exam(21, admin) is True
    db.delete.assert_awaited_once()


@pytest.mark.asyncio
async def test_publish_requires_questions(db, tutor):
    db.execute.return_value = result_of(make_exam(sections=[], is_published=False))
    with pytest.raises(RuleViolation, match="without questions"):
        await ExamService(db).set_published(21, tutor, True)


@pytest.mark.asyncio
async def test_student_view_of_unpublished_exam(db, student):
    db.execute.return_value = result_of(make_exam(is_published=False, created_by=99))
    with pytest.raises(PermissionDenied, match="not published"):
        await ExamService(db).view_exam(21, student)


@pytest.mark.asyncio
async def test_start_attempt_creates_blank_answers(db, student):
    enrollment = Enrollment(id=1, course_id=5, user_id=7, is_enrolled=True)
    db.execute.side_effect = [result_of(make_exam()), result_of(enrollment), result_of(None)]

    exam, attempt = await ExamService(db).start_attempt(21, student)

    assert attempt.status == "in-progress"
    assert attempt.time_remaining == 30 * 60
    assert [a["question_id"] for a in attempt.answers] == ["m1", "s1"]


@pytest.mark.asyncio
async def test_start_attempt_outside_window(db, student):
    exam = make_exam(start_time=NOW + timedelta(hours=1), end_time=NOW + timedelta(hours=2))
    db.execute.return_value = result_of(exam)
    with pytest.raises(PermissionDenied, match="not started"):
        await ExamService(db).start_attempt(21, student)


@pytest.mark.asyncio
async def test_start_attempt_after_finishing(db, student):
    exam = make_exam()
    enrollment = Enrollment(id=1, course_id=5, user_id=7, is_enrolled=True)
    done = make_attempt(exam, status="submitted")
    db.execute.side_effect = [result_of(exam), result_of(enrollment), result_of(done)]
    with pytest.raises(PermissionDenied, match="already completed"):
        await ExamService(db).start_attempt(21, student)


@pytest.mark.asyncio
async def test_submit_attempt_auto_grades_mcq(db, student):
    exam = make_exam()
    attempt = make_attempt(exam)
    db.execute.return_value = result_of(attempt)

    result = await ExamService(db).submit_attempt(31, student, [
        {"question_id": "m1", "answer": "4"},
        {"question_id": "s1", "answer": "Because mass"},
    ])

    assert result.status == "submitted"
    assert result.total_marks_awarded == 2.0
    assert not result.is_graded
    assert result.submitted_at is not None


@pytest.mark.asyncio
async def test_submit_after_deadline_is_timed_out(db, student):
    exam = make_exam()
    attempt = make_attempt(exam, started=NOW - timedelta(hours=2))
    db.execute.return_value = result_of(attempt)

    result = await ExamService(db).submit_attempt(31, student, [{"question_id": "m1", "answer": "4"}])

    assert result.status == "timed-out"
    assert result.time_remaining == 0


@pytest.mark.asyncio
async def test_grade_attempt_completes_grading(db, tutor):
    exam = make_exam()
    attempt = make_attempt(exam, status="submitted", answers=[
        {"question_id": "m1", "answer": "4", "selected_option": 1, "marks_awarded": 2.0, "is_graded": True},
        {"question_id": "s1", "answer": "Because", "selected_option": None, "marks_awarded": 0,
         "is_graded": False},
    ])
    db.execute.return_value = result_of(attempt)

    result = await ExamService(db).grade_attempt(31, tutor, [
        {"question_id": "s1", "marks_awarded": 3, "feedback": "Good"},
    ])

    assert result.status == "graded"
    assert result.total_marks_awarded == 5.0
    assert result.is_graded


@pytest.mark.asyncio
async def test_grade_rejects_marks_above_maximum(db, tutor):
    exam = make_exam()
    db.execute.return_value = result_of(make_attempt(exam, status="submitted"))
    with pytest.raises(RuleViolation, match="between 0 and 5.0"):
        await ExamService(db).grade_attempt(31, tutor, [{"question_id": "s1", "marks_awarded": 6}])


@pytest.mark.asyncio
async def test_expire_overdue_only_closes_elapsed_attempts(db):
    exam = make_exam()
    overdue = make_attempt(exam, id=1, started=NOW - timedelta(hours=2))
    running = make_attempt(exam, id=2, started=NOW - timedelta(minutes=1))
    db.execute.return_value = result_of([overdue, running])

    assert await ExamService(db).expire_overdue() == 1
    assert overdue.status == "timed-out"
    assert running.status == "in-progress"


@pytest.mark.asyncio
async def test_monitor_rolls_back_on_error(db):
    from services import monitoring_service

    db.execute.side_effect = RuntimeError("db down")
    session_factory = lambda: _Ctx(db)  # noqa: E731
    with patch.object(monitoring_service, "AsyncSessionLocal", session_factory):
        await monitoring_service.monitor_exam_attempts()
    db.rollback.assert_awaited_once()


class _Ctx:
    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc):
        return False


def mcq_only_exam():
    return make_exam(sections=[{"id": "sec1", "title": "Part A", "description": "", "total_marks": 2.0,
                                "questions": [dict(MCQ)]}], total_marks=2.0)


@pytest.mark.asyncio
async def test_fully_graded_submit_becomes_graded(db, student):
    exam = mcq_only_exam()
    attempt = make_attempt(exam, answers=[{"question_id": "m1", "answer": "", "selected_option": None,
                                           "marks_awarded": 0, "is_graded": False, "feedback": None}])
    db.execute.return_value = result_of(attempt)

    result = await ExamService(db).submit_attempt(31, student, [{"question_id": "m1", "answer": "4"}])

    assert result.is_graded
    assert result.status == "graded"


@pytest.mark.asyncio
async def test_fully_graded_expiry_stays_timed_out(db):
    exam = mcq_only_exam()
    attempt = make_attempt(exam, started=NOW - timedelta(hours=2), answers=[
        {"question_id": "m1", "answer": "4", "selected_option": 1,
         "marks_awarded": 0, "is_graded": False, "feedback": None},
    ])
    db.execute.return_value = result_of([attempt])

    assert await ExamService(db).expire_overdue() == 1
    assert attempt.is_graded
    assert attempt.total_marks_awarded == 2.0
    assert attempt.status == "timed-out"


@pytest.mark.asyncio
async def test_grading_a_timed_out_attempt_completes_it(db, tutor):
    exam = make_exam()
    attempt = make_attempt(exam, status="timed-out", answers=[
        {"question_id": "m1", "answer": "4", "selected_option": 1, "marks_awarded": 2.0, "is_graded": True},
        {"question_id": "s1", "answer": "Because", "selected_option": None, "marks_awarded": 0,
         "is_graded": False},
    ])
    db.execute.return_value = result_of(attempt)

    result = await ExamService(db).grade_attempt(31, tutor, [{"question_id": "s1", "marks_awarded": 1}])

    assert result.status == "graded"
