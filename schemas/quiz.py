from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.session import QuizSession


class QuestionOut(BaseModel):
    """A question as it was frozen on the session when the quiz started."""
    id: int = Field(..., description="Question bank ID")
    question: str = Field(..., description="Prompt shown to the user")
    options: List[str] = Field(..., description="Answer options in display order")
    correct_answer: str = Field(..., description="The option that is correct")
    image: Optional[str] = Field(None, description="Optional illustration")
    category: str = Field("general", description="Classification tag")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AnswerRecordOut(BaseModel):
    """One submitted answer. Keys on the wire are camelCase."""
    model_config = ConfigDict(populate_by_name=True)

    quiz_id: str = Field(..., alias="quizId", description="Session the answer belongs to")
    user_answer: str = Field(..., alias="userAnswer", description="Option chosen by the user")
    correct_answer: str = Field(..., alias="correctAnswer", description="Correct option at answer time")
    correct: bool = Field(..., description="Whether the chosen option was correct")


class QuizSessionOut(BaseModel):
    """Full session with questions and answer history."""
    session_id: str
    current_question: int = Field(..., description="0-based cursor into questions")
    score: int
    completed: bool
    language: str = "en"
    created_at: datetime
    questions: List[QuestionOut]
    answer_history: List[AnswerRecordOut]

    @classmethod
    def from_model(cls, session: QuizSession) -> "QuizSessionOut":
        return cls(
            session_id=session.id,
            current_question=session.current_index,
            score=session.score,
            completed=session.completed,
            language=session.language,
            created_at=session.created_at,
            questions=[QuestionOut.model_validate(q) for q in session.questions_json or []],
            answer_history=[
                AnswerRecordOut(
                    quiz_id=session.id,
                    user_answer=record.user_answer,
                    correct_answer=record.correct_answer,
                    correct=record.is_correct,
                )
                for record in session.answers
            ],
        )


class QuizSessionSummary(BaseModel):
    """Session row for the dashboard; per-question detail omitted."""
    session_id: str
    language: str
    correct_answer: Optional[str] = Field(None, description="Correct option of the last answered question")
    completed: bool
    created_at: datetime
    score: int
    total_questions: int

    @classmethod
    def from_model(cls, session: QuizSession) -> "QuizSessionSummary":
        last = session.answers[-1] if session.answers else None
        return cls(
            session_id=session.id,
            language=session.language,
            correct_answer=last.correct_answer if last else None,
            completed=session.completed,
            created_at=session.created_at,
            score=session.score,
            total_questions=session.total_questions,
        )


class HistoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    past_quizzes: List[QuizSessionSummary] = Field(..., alias="pastQuizzes")


class QuizDetailsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quiz_details: Optional[QuizSessionOut] = Field(None, alias="quizDetails")


class QuizSummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quiz_summary: Optional[QuizSessionOut] = Field(None, alias="quizSummary")


class StartQuizRequest(BaseModel):
    """Request body for starting (or resuming) a quiz session."""
    session_id: str = Field(
        ...,
        description="Client generated session ID",
        min_length=1,
        max_length=64,
        pattern=r"^[A-Za-z0-9_-]+$",
    )


class AnswerRequest(BaseModel):
    """Request body for answering the current question."""
    session_id: str = Field(..., min_length=1, max_length=64)
    question_index: int = Field(..., description="Index of the question being answered", ge=0)
    answer: str = Field(..., description="Chosen option text", max_length=255)


class AnswerResponse(BaseModel):
    correct: bool
    correct_answer: str
    score: int
    completed: bool
    current_question: int


class LeaderboardEntry(BaseModel):
    user_id: str
    total_score: int
    quizzes_completed: int


class LeaderboardResponse(BaseModel):
    leaderboard: List[LeaderboardEntry]


class DeleteResponse(BaseModel):
    status: str = Field(default="deleted", description="Operation status")


class ErrorResponse(BaseModel):
    error: str
