import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from models.course import Course
from models.enrollment import Enrollment
from models.exam import Exam, ExamAttempt, FINISHED_STATUSES
from models.user import User
from core.exceptions import PermissionDenied, RuleViolation
from core.logger import logger
from utils.scoring import option_index


def aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes coming from clients are taken as UTC."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def validate_exam(title: str, start_time: datetime, end_time: datetime, duration: int, sections: List[Dict]):
    if not title or not title.strip():
        raise RuleViolation("Missing required fields: title, course_id, start_time, end_time and duration are required")
    if aware(start_time) >= aware(end_time):
        raise RuleViolation("End time must be after start time")
    if duration is None or duration <= 0:
        raise RuleViolation("Duration must be a positive number")

    for section in sections:
        if not (section.get("title") or "").strip():
            raise RuleViolation("Each section must have a title")
        for question in section.get("questions", []):
            if not question.get("type") or not (question.get("question") or "").strip():
                raise RuleViolation("Each question must have a type and question text")
            if question["type"] == "mcq":
                options = question.get("options") or []
                if len(options) < 2:
                    raise RuleViolation("MCQ questions must have at least 2 options")
                correct = question.get("correct_option")
                if correct is None or not 0 <= correct < len(options):
                    raise RuleViolation("MCQ questions must have a valid correct_option index")
            if question.get("marks") is None or question["marks"] <= 0:
                raise RuleViolation(f"{question['type']} questions must have marks greater than 0")


def build_sections(sections: List[Dict]) -> tuple:
    """Assign ids to sections and questions; returns (sections, total_marks)."""
    built, total = [], 0.0
    for section in sections:
        questions = []
        for q in section.get("questions", []):
            questions.append({
                "id": q.get("id") or uuid.uuid4().hex,
                "type": q["type"],
                "question": q["question"].strip(),
                "options": list(q.get("options") or []) if q["type"] == "mcq" else [],
                "correct_option": q.get("correct_option") if q["type"] == "mcq" else None,
                "marks": float(q["marks"]),
                "negative_marks": float(q.get("negative_marks") or 0),
            })
        section_total = sum(q["marks"] for q in questions)
        total += section_total
        built.append({
            "id": section.get("id") or uuid.uuid4().hex,
            "title": section["title"].strip(),
            "description": section.get("description") or "",
            "total_marks": section_total,
            "questions": questions,
        })
    return built, total


def iter_questions(exam: Exam):
    for section in exam.sections or []:
        for question in section.get("questions", []):
            yield question


def serialize_exam(exam: Exam, include_answers: bool = True) -> Dict:
    sections = []
    for section in exam.sections or []:
        questions = []
        for q in section.get("questions", []):
            q = dict(q)
            if not include_answers:
                q["correct_option"] = None
            questions.append(q)
        sections.append({**section, "questions": questions})

    return {
        "id": exam.id,
        "title": exam.title,
        "description": exam.description or "",
        "course_id": exam.course_id,
        "created_by": exam.created_by,
        "duration": exam.duration,
        "start_time": exam.start_time,
        "end_time": exam.end_time,
        "is_published": exam.is_published,
        "negative_marking": exam.negative_marking,
        "passing_marks": exam.passing_marks,
        "instructions": exam.instructions or "",
        "total_marks": exam.total_marks or 0,
        "sections": sections,
    }


def remaining_seconds(attempt: ExamAttempt, now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    elapsed = int((now - aware(attempt.start_time)).total_seconds())
    return max(0, attempt.duration * 60 - elapsed)


def grade_answer(question: Dict, answer: Dict, negative_marking: bool) -> Dict:
    """Auto-grade one answer. MCQ answers are matched to options by text."""
    answer = dict(answer)
    text = answer.get("answer") or ""

    if question["type"] == "mcq":
        selected = option_index(question["options"], text) if text else None
        answer["selected_option"] = selected
        if selected is None:
            answer["marks_awarded"] = 0
        elif selected == question["correct_option"]:
            answer["marks_awarded"] = question["marks"]
        elif negative_marking:
            answer["marks_awarded"] = -question.get("negative_marks", 0)
        else:
            answer["marks_awarded"] = 0
        answer["is_graded"] = True
    elif not text.strip():
        # Unanswered subjective questions need no manual review
        answer["marks_awarded"] = 0
        answer["is_graded"] = True
    return answer


def recompute_totals(attempt: ExamAttempt):
    awarded = sum(a.get("marks_awarded") or 0 for a in attempt.answers)
    attempt.total_marks_awarded = awarded
    attempt.percentage = round(awarded * 100 / attempt.total_marks, 2) if attempt.total_marks else 0.0
    attempt.is_graded = all(a.get("is_graded") for a in attempt.answers)


class ExamService:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def can_manage(exam: Exam, user: User) -> bool:
        return user.is_admin or user.is_tutor or exam.created_by == user.id

    async def get_exam(self, exam_id: int) -> Optional[Exam]:
        result = await self.db.execute(select(Exam).filter(Exam.id == exam_id))
        return result.scalar_one_or_none()

    async def _get_course(self, course_id: int) -> Optional[Course]:
        result = await self.db.execute(select(Course).filter(Course.id == course_id))
        return result.scalar_one_or_none()

    async def _is_enrolled(self, user_id: int, course_id: int) -> bool:
        result = await self.db.execute(
            select(Enrollment).filter(
                Enrollment.user_id == user_id,
                Enrollment.course_id == course_id,
                Enrollment.is_enrolled == True,
            )
        )
        return result.scalar_one_or_none() is not None

    async def create_exam(self, user: User, data: Dict) -> Optional[Exam]:
        """Create an exam; None if the course does not exist."""
        if not (user.is_admin or user.is_tutor):
            raise PermissionDenied("You do not have permission to create an exam for this course")
        validate_exam(data.get("title"), data["start_time"], data["end_time"], data.get("duration"),
                      data.get("sections", []))
        if not await self._get_course(data["course_id"]):
            return None

        sections, total = build_sections(data.get("sections", []))
        exam = Exam(
            title=data["title"].strip(),
            description=data.get("description") or "",
            course_id=data["course_id"],
            created_by=user.id,
            duration=data["duration"],
            start_time=aware(data["start_time"]),
            end_time=aware(data["end_time"]),
            negative_marking=data.get("negative_marking", False),
            passing_marks=data.get("passing_marks", 0),
            instructions=data.get("instructions") or "",
            sections=sections,
            total_marks=total,
            is_published=False,
        )
        self.db.add(exam)
        await self.db.commit()
        await self.db.refresh(exam)
        logger.info("Exam created", exam_id=exam.id, course_id=exam.course_id, user_id=user.id, total_marks=total)
        return exam

    async def _attempt_count(self, exam_id: int) -> int:
        result = await self.db.execute(select(func.count(ExamAttempt.id)).filter(ExamAttempt.exam_id == exam_id))
        return result.scalar() or 0

    async def update_exam(self, exam_id: int, user: User, data: Dict) -> Optional[Exam]:
        exam = await self.get_exam(exam_id)
        if not exam:
            return None
        if not self.can_manage(exam, user):
            raise PermissionDenied("You do not have permission to update this exam")
        if exam.is_published and await self._attempt_count(exam_id):
            raise PermissionDenied("Cannot update an exam that already has attempts. Create a new exam instead.")

        validate_exam(data.get("title"), data["start_time"], data["end_time"], data.get("duration"),
                      data.get("sections", []))
        if data["course_id"] != exam.course_id and not await self._get_course(data["course_id"]):
            raise RuleViolation("Course not found")

        sections, total = build_sections(data.get("sections", []))
        exam.title = data["title"].strip()
        exam.description = data.get("description") or ""
        exam.course_id = data["course_id"]
        exam.duration = data["duration"]
        exam.start_time = aware(data["start_time"])
        exam.end_time = aware(data["end_time"])
        exam.negative_marking = data.get("negative_marking", False)
        exam.passing_marks = data.get("passing_marks", 0)
        exam.instructions = data.get("instructions") or ""
        exam.sections = sections
        exam.total_marks = total
        await self.db.commit()
        await self.db.refresh(exam)
        logger.info("Exam updated", exam_id=exam_id, user_id=user.id)
        return exam

    async def delete_exam(self, exam_id: int, user: User) -> bool:
        exam = await self.get_exam(exam_id)
        if not exam:
            return False
        if not self.can_manage(exam, user):
            raise PermissionDenied("You do not have permission to delete this exam")

        attempts = await self._attempt_count(exam_id)
        if attempts:
            if not user.is_admin:
                raise PermissionDenied("Cannot delete an exam that has attempts. Please contact an administrator.")
            await self.db.execute(delete(ExamAttempt).where(ExamAttempt.exam_id == exam_id))

        await self.db.delete(exam)
        await self.db.commit()
        logger.info("Exam deleted", exam_id=exam_id, user_id=user.id, attempts_removed=attempts)
        return True

    async def set_published(self, exam_id: int, user: User, is_published: bool) -> Optional[Exam]:
        exam = await self.get_exam(exam_id)
        if not exam:
            return None
        if not self.can_manage(exam, user):
            raise PermissionDenied("You do not have permission to update this exam")
        if is_published and not any(True for _ in iter_questions(exam)):
            raise RuleViolation("Cannot publish an exam without questions. Please add at least one question.")

        exam.is_published = is_published
        await self.db.commit()
        await self.db.refresh(exam)
        logger.info("Exam publish status changed", exam_id=exam_id, is_published=is_published)
        return exam

    async def view_exam(self, exam_id: int, user: User) -> Optional[Dict]:
        """Exam as seen by the user; students never see correct options."""
        exam = await self.get_exam(exam_id)
        if not exam:
            return None
        if self.can_manage(exam, user):
            return serialize_exam(exam)
        if not exam.is_published:
            raise PermissionDenied("This exam is not published yet")
        if datetime.now(timezone.utc) > aware(exam.end_time):
            raise PermissionDenied("This exam has expired")
        return serialize_exam(exam, include_answers=False)

    async def course_exams(self, course_id: int, user: User) -> Optional[List[Dict]]:
        course = await self._get_course(course_id)
        if not course:
            return None
        privileged = user.is_admin or user.is_tutor or course.created_by == user.id
        if not privileged and not await self._is_enrolled(user.id, course_id):
            raise PermissionDenied("You are not enrolled in this course")

        query = select(Exam).filter(Exam.course_id == course_id).order_by(Exam.created_at.desc())
        if not privileged:
            query = query.filter(Exam.is_published == True)
        result = await self.db.execute(query)
        return [serialize_exam(e, include_answers=privileged) for e in result.scalars().all()]

    async def user_exams(self, user: User) -> List[Dict]:
        """Dashboard listing: staff see every exam, students the published exams of their enrolled courses."""
        now = datetime.now(timezone.utc)
        if user.is_admin or user.is_tutor:
            result = await self.db.execute(select(Exam).order_by(Exam.start_time))
            exams = result.scalars().all()
            attempts = {}
        else:
            enrolled = select(Enrollment.course_id).filter(
                Enrollment.user_id == user.id, Enrollment.is_enrolled == True
            )
            result = await self.db.execute(
                select(Exam)
                .filter(Exam.course_id.in_(enrolled), Exam.is_published == True)
                .order_by(Exam.start_time)
            )
            exams = result.scalars().all()
            result = await self.db.execute(select(ExamAttempt).filter(ExamAttempt.user_id == user.id))
            attempts = {a.exam_id: a for a in result.scalars().all()}

        items = []
        for exam in exams:
            start, end = aware(exam.start_time), aware(exam.end_time)
            phase = "upcoming" if now < start else ("live" if now <= end else "ended")
            item = {
                "id": exam.id,
                "title": exam.title,
                "course_id": exam.course_id,
                "course_title": exam.course.title if exam.course else None,
                "start_time": exam.start_time,
                "end_time": exam.end_time,
                "duration": exam.duration,
                "total_marks": exam.total_marks or 0,
                "is_published": exam.is_published,
                "phase": phase,
                "status": "not-started",
            }
            attempt = attempts.get(exam.id)
            if attempt:
                item["attempt_id"] = attempt.id
                item["status"] = {
                    "in-progress": "attempted",
                    "submitted": "submitted",
                }.get(attempt.status, "completed")
                item["total_marks_awarded"] = attempt.total_marks_awarded
                item["percentage"] = attempt.percentage
            items.append(item)
        return items

    async def _latest_attempt(self, exam_id: int, user_id: int) -> Optional[ExamAttempt]:
        result = await self.db.execute(
            select(ExamAttempt)
            .filter(ExamAttempt.exam_id == exam_id, ExamAttempt.user_id == user_id)
            .order_by(ExamAttempt.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def finalize_attempt(self, attempt: ExamAttempt, status: str, exam: Optional[Exam] = None):
        """Close an attempt, auto-grading whatever answers it holds."""
        exam = exam or attempt.exam
        questions = {q["id"]: q for q in iter_questions(exam)}
        attempt.answers = [
            grade_answer(questions[a["question_id"]], a, exam.negative_marking)
            if a["question_id"] in questions else a
            for a in attempt.answers
        ]
        attempt.status = status
        attempt.time_remaining = 0 if status == "timed-out" else remaining_seconds(attempt)
        attempt.submitted_at = datetime.now(timezone.utc)
        recompute_totals(attempt)
        # Timed-out attempts keep their status; only a regular submit is promoted
        if status == "submitted" and attempt.is_graded:
            attempt.status = "graded"
        await self.db.commit()
        logger.info("Exam attempt finalized", attempt_id=attempt.id, exam_id=attempt.exam_id,
                    status=attempt.status, awarded=attempt.total_marks_awarded)

    async def start_attempt(self, exam_id: int, user: User) -> Optional[tuple]:
        """Start or resume the user's attempt; returns (exam, attempt)."""
        exam = await self.get_exam(exam_id)
        if not exam:
            return None
        if not exam.is_published:
            raise PermissionDenied("This exam is not available yet")

        now = datetime.now(timezone.utc)
        if now < aware(exam.start_time):
            raise PermissionDenied("This exam has not started yet")
        if now > aware(exam.end_time):
            raise PermissionDenied("This exam has already ended")
        if not await self._is_enrolled(user.id, exam.course_id):
            raise PermissionDenied("You are not enrolled in this course")

        attempt = await self._latest_attempt(exam_id, user.id)
        if attempt and attempt.status in FINISHED_STATUSES:
            raise PermissionDenied("You have already completed this exam")

        if attempt:
            if remaining_seconds(attempt, now) <= 0:
                await self.finalize_attempt(attempt, "timed-out", exam)
                raise PermissionDenied("Your time for this exam has expired")
            attempt.time_remaining = remaining_seconds(attempt, now)
            await self.db.commit()
            logger.info("Exam attempt resumed", attempt_id=attempt.id, user_id=user.id)
            return exam, attempt

        attempt = ExamAttempt(
            exam_id=exam.id,
            user_id=user.id,
            course_id=exam.course_id,
            start_time=now,
            duration=exam.duration,
            time_remaining=exam.duration * 60,
            status="in-progress",
            answers=[
                {"question_id": q["id"], "answer": "", "selected_option": None,
                 "marks_awarded": 0, "is_graded": False, "feedback": None}
                for q in iter_questions(exam)
            ],
            total_marks=exam.total_marks or 0,
        )
        self.db.add(attempt)
        await self.db.commit()
        await self.db.refresh(attempt)
        logger.info("Exam attempt started", attempt_id=attempt.id, exam_id=exam_id, user_id=user.id)
        return exam, attempt

    async def attempt_status(self, exam_id: int, user: User) -> Optional[ExamAttempt]:
        attempt = await self._latest_attempt(exam_id, user.id)
        if not attempt:
            return None
        if attempt.status == "in-progress":
            left = remaining_seconds(attempt)
            if left <= 0:
                await self.finalize_attempt(attempt, "timed-out")
            else:
                attempt.time_remaining = left
        return attempt

    async def _own_attempt(self, attempt_id: int, user: User) -> Optional[ExamAttempt]:
        result = await self.db.execute(
            select(ExamAttempt).filter(ExamAttempt.id == attempt_id, ExamAttempt.user_id == user.id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _merge_answers(attempt: ExamAttempt, answers: List[Dict], exam: Exam):
        questions = {q["id"]: q for q in iter_questions(exam)}
        merged = {a["question_id"]: dict(a) for a in attempt.answers}
        for incoming in answers:
            question = questions.get(incoming["question_id"])
            if not question:
                continue
            slot = merged.setdefault(incoming["question_id"], {
                "question_id": incoming["question_id"], "answer": "", "selected_option": None,
                "marks_awarded": 0, "is_graded": False, "feedback": None,
            })
            slot["answer"] = incoming.get("answer") or ""
            if question["type"] == "mcq":
                slot["selected_option"] = option_index(question["options"], slot["answer"])
        attempt.answers = list(merged.values())

    async def save_progress(self, attempt_id: int, user: User, answers: List[Dict],
                            time_remaining: Optional[int] = None) -> Optional[ExamAttempt]:
        attempt = await self._own_attempt(attempt_id, user)
        if not attempt:
            return None
        if attempt.status != "in-progress":
            raise RuleViolation("No active attempt found for this exam")
        if remaining_seconds(attempt) <= 0:
            await self.finalize_attempt(attempt, "timed-out")
            raise RuleViolation("Your time for this exam has expired")

        self._merge_answers(attempt, answers, attempt.exam)
        left = remaining_seconds(attempt)
        if time_remaining is not None:
            left = min(left, time_remaining)
        attempt.time_remaining = min(left, attempt.time_remaining)
        await self.db.commit()
        await self.db.refresh(attempt)
        logger.debug("Exam progress saved", attempt_id=attempt_id, answers=len(answers))
        return attempt

    async def submit_attempt(self, attempt_id: int, user: User, answers: List[Dict]) -> Optional[ExamAttempt]:
        attempt = await self._own_attempt(attempt_id, user)
        if not attempt:
            return None
        if attempt.status != "in-progress":
            raise RuleViolation("This exam attempt has already been submitted")

        self._merge_answers(attempt, answers, attempt.exam)
        status = "timed-out" if remaining_seconds(attempt) <= 0 else "submitted"
        await self.finalize_attempt(attempt, status)
        await self.db.refresh(attempt)
        return attempt

    async def grade_attempt(self, attempt_id: int, user: User, grades: List[Dict]) -> Optional[ExamAttempt]:
        result = await self.db.execute(select(ExamAttempt).filter(ExamAttempt.id == attempt_id))
        attempt = result.scalar_one_or_none()
        if not attempt:
            return None
        exam = attempt.exam
        if not self.can_manage(exam, user):
            raise PermissionDenied("You do not have permission to grade this attempt")
        if attempt.status == "in-progress":
            raise RuleViolation("Cannot grade an attempt that is still in progress")

        questions = {q["id"]: q for q in iter_questions(exam)}
        answers = {a["question_id"]: dict(a) for a in attempt.answers}
        for grade in grades:
            question = questions.get(grade["question_id"])
            if not question:
                raise RuleViolation(f"Unknown question: {grade['question_id']}")
            if not 0 <= grade["marks_awarded"] <= question["marks"]:
                raise RuleViolation(f"Marks for a question must be between 0 and {question['marks']}")
            answer = answers.setdefault(grade["question_id"], {
                "question_id": grade["question_id"], "answer": "", "selected_option": None,
            })
            answer["marks_awarded"] = grade["marks_awarded"]
            answer["feedback"] = grade.get("feedback")
            answer["is_graded"] = True

        attempt.answers = list(answers.values())
        recompute_totals(attempt)
        if attempt.is_graded:
            attempt.status = "graded"
        await self.db.commit()
        await self.db.refresh(attempt)
        logger.info("Exam attempt graded", attempt_id=attempt_id, grader=user.id,
                    awarded=attempt.total_marks_awarded, fully_graded=attempt.is_graded)
        return attempt

    async def my_attempts(self, user_id: int) -> List[ExamAttempt]:
        result = await self.db.execute(
            select(ExamAttempt).filter(ExamAttempt.user_id == user_id).order_by(ExamAttempt.created_at.desc())
        )
        return list(result.scalars().all())

    async def exam_attempts(self, exam_id: int, user: User) -> Optional[List[ExamAttempt]]:
        exam = await self.get_exam(exam_id)
        if not exam:
            return None
        if not self.can_manage(exam, user):
            raise PermissionDenied("You do not have permission to view exam attempts")
        result = await self.db.execute(
            select(ExamAttempt).filter(ExamAttempt.exam_id == exam_id).order_by(ExamAttempt.created_at)
        )
        return list(result.scalars().all())

    async def expire_overdue(self) -> int:
        """Time out in-progress attempts whose duration has elapsed. Returns how many were closed."""
        result = await self.db.execute(select(ExamAttempt).filter(ExamAttempt.status == "in-progress"))
        now = datetime.now(timezone.utc)
        expired = 0
        for attempt in result.scalars().all():
            if remaining_seconds(attempt, now) <= 0:
                await self.finalize_attempt(attempt, "timed-out")
                expired += 1
        return expired
