import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm.attributes import flag_modified
from models.course import Course
from models.enrollment import Enrollment
from models.practice import Practice, DIFFICULTIES
from models.user import User
from services.ai_service import AIService
from core.config import settings
from core.exceptions import RateLimited, RuleViolation, UpstreamError
from core.logger import logger
from utils.scoring import score_percent


def serialize_practice(practice: Practice, time_expired: bool = False) -> Dict:
    """
    Wire representation of a practice attempt.
    Correct answers stay hidden until the attempt is completed.
    """
    questions = []
    for q in practice.questions or []:
        item = {
            "id": q["id"],
            "question": q["question"],
            "options": q["options"],
            "user_answer": q.get("user_answer"),
        }
        if practice.is_completed:
            item["correct_answer"] = q.get("correct_answer")
            item["is_correct"] = q.get("is_correct")
        questions.append(item)

    return {
        "id": practice.id,
        "user_id": practice.user_id,
        "course_id": practice.course_id,
        "course_title": practice.course.title if practice.course else None,
        "title": practice.title,
        "difficulty": practice.difficulty,
        "number_of_questions": practice.number_of_questions,
        "start_time": practice.start_time,
        "time_limit": practice.time_limit,
        "time_remaining": practice.time_remaining,
        "questions": questions,
        "correct_answers": practice.correct_answers or 0,
        "is_completed": practice.is_completed,
        "created_at": practice.created_at,
        "completed_at": practice.completed_at,
        "time_expired": time_expired,
    }


def history_item(practice: Practice) -> Dict:
    return {
        "id": practice.id,
        "course_id": practice.course_id,
        "course_title": practice.course.title if practice.course else "Unknown Course",
        "title": practice.title,
        "difficulty": practice.difficulty,
        "number_of_questions": practice.number_of_questions,
        "correct_answers": practice.correct_answers or 0,
        "is_completed": practice.is_completed,
        "score": score_percent(practice.correct_answers or 0, practice.number_of_questions)
        if practice.is_completed else None,
        "created_at": practice.created_at,
        "completed_at": practice.completed_at,
    }


class PracticeService:
    def __init__(self, db: AsyncSession, redis=None, ai: Optional[AIService] = None):
        self.db = db
        self.redis = redis
        self.ai = ai or AIService()

    async def _check_rate_limit(self, user_id: int):
        if not self.redis:
            return
        key = f"rl:practice:{user_id}"
        count = await self.redis.incr(key)
        if count == 1:
            await self.redis.expire(key, 60)
        if count > settings.GENERATION_RATE_LIMIT:
            logger.warning("Practice generation rate limited", user_id=user_id, count=count)
            raise RateLimited("Too many practice generations, please wait a minute")

    async def _previous_questions(self, user_id: int, course_id: int) -> List[str]:
        result = await self.db.execute(
            select(Practice)
            .filter(Practice.user_id == user_id, Practice.course_id == course_id)
            .order_by(Practice.created_at.desc())
            .limit(settings.PRACTICE_HISTORY_LOOKBACK)
        )
        previous = []
        for practice in result.scalars().all():
            previous.extend(q["question"] for q in practice.questions or [])
        return previous[:settings.PRACTICE_EXCLUDE_LIMIT]

    async def generate(self, user: User, course_id: int, difficulty: str = "medium",
                       number_of_questions: int = 5) -> Optional[Practice]:
        """Create a new practice attempt with AI-generated questions. None if the course is missing."""
        if difficulty not in DIFFICULTIES:
            raise RuleViolation(f"Unknown difficulty: {difficulty}")
        if not settings.PRACTICE_MIN_QUESTIONS <= number_of_questions <= settings.PRACTICE_MAX_QUESTIONS:
            raise RuleViolation(
                f"Number of questions must be between {settings.PRACTICE_MIN_QUESTIONS} "
                f"and {settings.PRACTICE_MAX_QUESTIONS}"
            )

        result = await self.db.execute(
            select(Enrollment).filter(
                Enrollment.user_id == user.id,
                Enrollment.course_id == course_id,
                Enrollment.is_enrolled == True,
            )
        )
        if not result.scalar_one_or_none():
            raise RuleViolation("You are not enrolled in this course")

        result = await self.db.execute(select(Course).filter(Course.id == course_id))
        course = result.scalar_one_or_none()
        if not course:
            return None

        await self._check_rate_limit(user.id)

        avoid = await self._previous_questions(user.id, course_id)
        logger.info("Generating practice", user_id=user.id, course_id=course_id,
                    difficulty=difficulty, count=number_of_questions, avoid=len(avoid))

        generated, error = await self.ai.generate_practice(
            course.title, course.description, difficulty, number_of_questions, avoid
        )
        if error or not generated:
            raise UpstreamError(f"Error generating questions with AI: {error or 'no questions returned'}")

        questions = [
            {
                "id": uuid.uuid4().hex,
                "question": q["question"],
                "options": q["options"],
                "correct_answer": q["correct_answer"],
                "user_answer": None,
                "is_correct": None,
            }
            for q in generated
        ]
        time_limit = len(questions) * settings.PRACTICE_SECONDS_PER_QUESTION

        practice = Practice(
            user_id=user.id,
            course_id=course_id,
            title=f"{course.title} Practice - {difficulty.capitalize()}",
            difficulty=difficulty,
            number_of_questions=len(questions),
            time_limit=time_limit,
            time_remaining=time_limit,
            questions=questions,
            correct_answers=0,
            is_completed=False,
        )
        self.db.add(practice)
        await self.db.commit()
        await self.db.refresh(practice)
        logger.info("Practice created", practice_id=practice.id, user_id=user.id, questions=len(questions))
        return practice

    async def get_practice(self, practice_id: int, user_id: int) -> Optional[Practice]:
        result = await self.db.execute(
            select(Practice).filter(Practice.id == practice_id, Practice.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def _expire(self, practice: Practice):
        """Auto-complete an attempt whose time ran out without a submission."""
        practice.is_completed = True
        practice.time_remaining = 0
        practice.completed_at = datetime.now(timezone.utc)
        await self.db.commit()
        logger.info("Practice expired", practice_id=practice.id, user_id=practice.user_id)

    async def start(self, practice_id: int, user_id: int) -> Optional[tuple]:
        """
        Mark the attempt as started and return (practice, time_expired).
        The remaining time is the last value the client synced, not wall-clock time.
        """
        practice = await self.get_practice(practice_id, user_id)
        if not practice:
            return None
        if practice.is_completed:
            return practice, False

        if practice.time_remaining is not None and practice.time_remaining <= 0:
            await self._expire(practice)
            return practice, True

        if not practice.start_time:
            practice.start_time = datetime.now(timezone.utc)
            if practice.time_remaining is None:
                practice.time_remaining = practice.time_limit
            await self.db.commit()
            logger.info("Practice started", practice_id=practice_id, user_id=user_id)
        return practice, False

    async def update_time(self, practice_id: int, user_id: int, time_remaining: int) -> Optional[Practice]:
        practice = await self.get_practice(practice_id, user_id)
        if not practice:
            return None
        if practice.is_completed:
            raise RuleViolation("Cannot update time for a completed practice")

        # The countdown only moves down
        current = practice.time_remaining if practice.time_remaining is not None else practice.time_limit
        practice.time_remaining = max(0, min(time_remaining, current))
        await self.db.commit()
        logger.debug("Practice time synced", practice_id=practice_id, time_remaining=practice.time_remaining)
        return practice

    async def submit(self, practice_id: int, user_id: int, answers: List[Dict]) -> Optional[Practice]:
        """Grade the submitted answers by exact option text and complete the attempt."""
        practice = await self.get_practice(practice_id, user_id)
        if not practice:
            return None
        if practice.is_completed:
            raise RuleViolation("This practice session has already been completed")

        by_id = {a["question_id"]: a["answer"] for a in answers}
        correct = 0
        graded = []
        for q in practice.questions:
            q = dict(q)
            if q["id"] in by_id:
                q["user_answer"] = by_id[q["id"]]
                q["is_correct"] = q["correct_answer"] == q["user_answer"]
                if q["is_correct"]:
                    correct += 1
            graded.append(q)

        practice.questions = graded
        flag_modified(practice, "questions")
        practice.correct_answers = correct
        practice.is_completed = True
        practice.completed_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(practice)
        logger.info("Practice submitted", practice_id=practice_id, user_id=user_id,
                    answered=len(by_id), correct=correct, total=len(graded))
        return practice

    async def get_history(self, user_id: int) -> List[Practice]:
        result = await self.db.execute(
            select(Practice).filter(Practice.user_id == user_id).order_by(Practice.created_at.desc())
        )
        return list(result.scalars().all())
