from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import RateLimited, RuleViolation, UpstreamError
from models.course import Course
from models.enrollment import Enrollment
from services.practice_service import PracticeService, serialize_practice, history_item
from conftest import result_of


def fake_ai(questions=None, error=None):
    ai = MagicMock()
    ai.generate_practice = AsyncMock(return_value=(questions or [], error))
    return ai


def course():
    return Course(id=5, title="Math", description="Numbers", visibility_type="public", created_by=3)


@pytest.mark.asyncio
async def test_generate_creates_attempt(db, student, generated_questions):
    enrollment = Enrollment(id=1, course_id=5, user_id=7, is_enrolled=True)
    db.execute.side_effect = [result_of(enrollment), result_of(course()), result_of([])]
    ai = fake_ai(generated_questions)

    practice = await PracticeService(db, ai=ai).generate(student, 5, "hard", 5)

    assert practice.title == "Math Practice - Hard"
    assert practice.number_of_questions == 3
    assert practice.time_limit == 180
    assert practice.time_remaining == 180
    assert not practice.is_completed
    ids = {q["id"] for q in practice.questions}
    assert len(ids) == 3
    assert all(q["user_answer"] is None for q in practice.questions)
    db.add.assert_called_once_with(practice)
    db.commit.assert_awaited()
    ai.generate_practice.assert_awaited_once_with("Math", "Numbers", "hard", 5, [])


@pytest.mark.asyncio
async def test_generate_passes_previous_questions(db, student, generated_questions, make_practice):
    enrollment = Enrollment(id=1, course_id=5, user_id=7, is_enrolled=True)
    db.execute.side_effect = [result_of(enrollment), result_of(course()), result_of([make_practice()])]
    ai = fake_ai(generated_questions)

    await PracticeService(db, ai=ai).generate(student, 5, "easy", 5)

    avoid = ai.generate_practice.call_args.args[4]
    assert avoid == ["What is 2+2?", "Capital of France?"]


@pytest.mark.asyncio
async def test_generate_requires_enrollment(db, student):
    db.execute.side_effect = [result_of(None)]
    ai = fake_ai()

    with pytest.raises(RuleViolation, match="not enrolled"):
        await PracticeService(db, ai=ai).generate(student, 5, "medium", 5)
    ai.generate_practice.assert_not_called()


@pytest.mark.asyncio
async def test_generate_unknown_course(db, student):
    enrollment = Enrollment(id=1, course_id=5, user_id=7, is_enrolled=True)
    db.execute.side_effect = [result_of(enrollment), result_of(None)]

    assert await PracticeService(db, ai=fake_ai()).generate(student, 5, "medium", 5) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("difficulty,count", [("extreme", 5), ("easy", 4), ("easy", 51)])
async def test_generate_rejects_bad_parameters(db, student, difficulty, count):
    with pytest.raises(RuleViolation):
        await PracticeService(db, ai=fake_ai()).generate(student, 5, difficulty, count)
    db.execute.assert_not_called()


@pytest.mark.asyncio
async def test_generate_ai_failure(db, student):
    enrollment = Enrollment(id=1, course_id=5, user_id=7, is_enrolled=True)
    db.execute.side_effect = [result_of(enrollment), result_of(course()), result_of([])]

    with pytest.raises(UpstreamError, match="API error: 500"):
        await PracticeService(db, ai=fake_ai(error="API error: 500")).generate(student, 5, "medium", 5)
    db.add.assert_not_called()


@pytest.mark.asyncio
async def test_generate_rate_limited(db, student):
    enrollment = Enrollment(id=1, course_id=5, user_id=7, is_enrolled=True)
    db.execute.side_effect = [result_of(enrollment), result_of(course())]
    redis = MagicMock()
    redis.incr = AsyncMock(return_value=99)
    redis.expire = AsyncMock()

    with pytest.raises(RateLimited):
        await PracticeService(db, redis=redis, ai=fake_ai()).generate(student, 5, "medium", 5)
    redis.incr.assert_awaited_once_with("rl:practice:7")


@pytest.mark.asyncio
async def test_start_sets_start_time_once(db, make_practice):
    practice = make_practice()
    db.execute.return_value = result_of(practice)
    service = PracticeService(db, ai=fake_ai())

    started, expired = await service.start(11, 7)
    first = started.start_time
    assert first is not None
    assert not expired

    started, _ = await service.start(11, 7)
    assert started.start_time == first
    assert started.time_remaining == 120


@pytest.mark.asyncio
async def test_start_with_no_time_left_expires(db, make_practice):
    practice = make_practice(time_remaining=0)
    db.execute.return_value = result_of(practice)

    started, expired = await PracticeService(db, ai=fake_ai()).start(11, 7)

    assert expired
    assert started.is_completed
    assert started.completed_at is not None


@pytest.mark.asyncio
async def test_start_missing_attempt(db):
    db.execute.return_value = result_of(None)
    assert await PracticeService(db, ai=fake_ai()).start(11, 7) is None


@pytest.mark.asyncio
async def test_update_time_never_increases(db, make_practice):
    practice = make_practice(time_remaining=90)
    db.execute.return_value = result_of(practice)
    service = PracticeService(db, ai=fake_ai())

    await service.update_time(11, 7, 300)
    assert practice.time_remaining == 90

    await service.update_time(11, 7, 60)
    assert practice.time_remaining == 60

    await service.update_time(11, 7, -5)
    assert practice.time_remaining == 0


@pytest.mark.asyncio
async def test_update_time_on_completed_attempt(db, make_practice):
    db.execute.return_value = result_of(make_practice(is_completed=True))
    with pytest.raises(RuleViolation):
        await PracticeService(db, ai=fake_ai()).update_time(11, 7, 30)


@pytest.mark.asyncio
async def test_submit_grades_by_option_text(db, make_practice):
    practice = make_practice()
    db.execute.return_value = result_of(practice)

    result = await PracticeService(db, ai=fake_ai()).submit(11, 7, [
        {"question_id": "q1", "answer": "4"},
        {"question_id": "q2", "answer": "Rome"},
    ])

    assert result.is_completed
    assert result.correct_answers == 1
    assert result.questions[0]["is_correct"] is True
    assert result.questions[1]["is_correct"] is False
    assert result.questions[1]["user_answer"] == "Rome"
    assert history_item(result)["score"] == 50


@pytest.mark.asyncio
async def test_submit_leaves_unanswered_questions_blank(db, make_practice):
    practice = make_practice()
    db.execute.return_value = result_of(practice)

    result = await PracticeService(db, ai=fake_ai()).submit(11, 7, [{"question_id": "q2", "answer": "Paris"}])

    assert result.correct_answers == 1
    assert result.questions[0]["user_answer"] is None
    assert result.questions[0]["is_correct"] is None


@pytest.mark.asyncio
async def test_submit_twice_is_rejected(db, make_practice):
    db.execute.return_value = result_of(make_practice(is_completed=True))
    with pytest.raises(RuleViolation, match="already been completed"):
        await PracticeService(db, ai=fake_ai()).submit(11, 7, [])


def test_serialize_hides_answers_until_completed(make_practice):
    open_attempt = serialize_practice(make_practice())
    assert "correct_answer" not in open_attempt["questions"][0]
    assert open_attempt["time_expired"] is False

    done = serialize_practice(make_practice(is_completed=True), time_expired=True)
    assert done["questions"][0]["correct_answer"] == "4"
    assert done["time_expired"] is True


def test_history_item_score_only_when_completed(make_practice):
    assert history_item(make_practice())["score"] is None
    assert history_item(make_practice())["course_title"] == "Unknown Course"
