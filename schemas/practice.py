from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

Difficulty = Literal["easy", "medium", "hard"]


class PracticeGenerateRequest(BaseModel):
    """Request body for generating a new practice attempt."""
    course_id: int
    difficulty: Difficulty = "medium"
    number_of_questions: int = Field(5, ge=5, le=50)


class PracticeQuestion(BaseModel):
    """
    A practice question. `correct_answer` and `is_correct` are only
    present once the attempt is completed.
    """
    id: str
    question: str
    options: List[str]
    user_answer: Optional[str] = None
    correct_answer: Optional[str] = None
    is_correct: Optional[bool] = None


class PracticeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    course_title: Optional[str] = None
    title: str
    difficulty: Difficulty
    number_of_questions: int
    start_time: Optional[datetime] = None
    time_limit: Optional[int] = None
    time_remaining: Optional[int] = None
    questions: List[PracticeQuestion]
    correct_answers: int = 0
    is_completed: bool = False
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    time_expired: bool = False


class PracticeHistoryItem(BaseModel):
    id: int
    course_id: int
    course_title: Optional[str] = None
    title: str
    difficulty: Difficulty
    number_of_questions: int
    correct_answers: int = 0
    is_completed: bool = False
    score: Optional[int] = Field(None, description="Rounded percentage, completed attempts only")
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TimeUpdateRequest(BaseModel):
    time_remaining: int = Field(..., ge=0, description="Seconds left on the client countdown")


class AnswerIn(BaseModel):
    question_id: str
    answer: str = Field(..., description="Literal text of the selected option")


class SubmitRequest(BaseModel):
    answers: List[AnswerIn] = Field(default_factory=list)
