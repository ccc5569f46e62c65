from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

QuestionType = Literal["mcq", "subjective"]
AttemptStatus = Literal["in-progress", "submitted", "timed-out", "graded"]


class ExamQuestionIn(BaseModel):
    type: QuestionType
    question: str = Field(..., min_length=1)
    options: List[str] = Field(default_factory=list)
    correct_option: Optional[int] = None
    marks: float = 1
    negative_marks: float = 0


class ExamSectionIn(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    questions: List[ExamQuestionIn] = Field(default_factory=list)


class ExamIn(BaseModel):
    """Request body for creating or updating an exam."""
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    course_id: int
    start_time: datetime
    end_time: datetime
    duration: int = Field(..., description="Minutes allowed per attempt")
    negative_marking: bool = False
    passing_marks: int = 0
    instructions: str = ""
    sections: List[ExamSectionIn] = Field(default_factory=list)


class ExamQuestionOut(BaseModel):
    id: str
    type: QuestionType
    question: str
    options: List[str] = Field(default_factory=list)
    marks: float
    negative_marks: float = 0
    correct_option: Optional[int] = None


class ExamSectionOut(BaseModel):
    id: str
    title: str
    description: str = ""
    total_marks: float = 0
    questions: List[ExamQuestionOut] = Field(default_factory=list)


class ExamOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str = ""
    course_id: int
    created_by: int
    duration: int
    start_time: datetime
    end_time: datetime
    is_published: bool = False
    negative_marking: bool = False
    passing_marks: int = 0
    instructions: str = ""
    total_marks: float = 0
    sections: List[ExamSectionOut] = Field(default_factory=list)


class PublishRequest(BaseModel):
    is_published: bool


class ExamAnswerIn(BaseModel):
    question_id: str
    answer: str = ""


class ExamProgressRequest(BaseModel):
    answers: List[ExamAnswerIn] = Field(default_factory=list)
    time_remaining: Optional[int] = Field(None, ge=0)


class ExamSubmitRequest(BaseModel):
    answers: List[ExamAnswerIn] = Field(default_factory=list)


class ExamAnswerOut(BaseModel):
    question_id: str
    answer: str = ""
    selected_option: Optional[int] = None
    marks_awarded: float = 0
    is_graded: bool = False
    feedback: Optional[str] = None


class ExamAttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    exam_id: int
    user_id: int
    course_id: int
    start_time: datetime
    duration: int
    time_remaining: int
    status: AttemptStatus
    answers: List[ExamAnswerOut] = Field(default_factory=list)
    total_marks: float = 0
    total_marks_awarded: float = 0
    percentage: float = 0
    is_graded: bool = False
    submitted_at: Optional[datetime] = None


class ExamStartResponse(BaseModel):
    exam: ExamOut
    attempt: ExamAttemptOut


class GradeItem(BaseModel):
    question_id: str
    marks_awarded: float
    feedback: Optional[str] = None


class GradeRequest(BaseModel):
    grades: List[GradeItem]


class UserExamItem(BaseModel):
    """An exam as listed on a user's dashboard, with the user's own attempt state."""
    id: int
    title: str
    course_id: int
    course_title: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration: int
    total_marks: float = 0
    is_published: bool = False
    phase: Literal["upcoming", "live", "ended"]
    status: Literal["not-started", "attempted", "submitted", "completed"] = "not-started"
    attempt_id: Optional[int] = None
    total_marks_awarded: Optional[float] = None
    percentage: Optional[float] = None
