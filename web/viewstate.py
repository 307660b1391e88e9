"""
View-state for the server rendered pages.

Everything here is pure: it turns what the REST API returned (or the way the
request to it failed) into the state a template renders. Each page follows
the same small machine: loading -> ready | empty | not_found | error.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import List, Optional, Sequence

from core.security import Identity
from schemas.quiz import AnswerRecordOut, QuestionOut, QuizSessionOut, QuizSessionSummary
from services.integrity import IntegrityIssue, check_session


class ViewStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"
    NOT_FOUND = "not_found"
    ERROR = "error"


class GateDecision(str, Enum):
    LOADING = "loading"
    REDIRECT = "redirect"
    ALLOW = "allow"


class ReviewKind(str, Enum):
    """The two review pages share one view; they differ only in naming."""
    DETAILS = "quiz-details"
    SUMMARY = "quiz-summary"

    @property
    def title(self) -> str:
        return "Quiz Details" if self is ReviewKind.DETAILS else "Quiz Summary"

    @property
    def api_path(self) -> str:
        return f"/api/{self.value}"

    @property
    def response_key(self) -> str:
        return "quizDetails" if self is ReviewKind.DETAILS else "quizSummary"

    def page_path(self, session_id: str) -> str:
        return f"/{self.value}/{session_id}"


def gate(identity: Identity) -> GateDecision:
    """Auth gate applied to every session-bearing page."""
    if not identity.is_loaded:
        return GateDecision.LOADING
    if not identity.is_signed_in or not identity.user_id:
        return GateDecision.REDIRECT
    return GateDecision.ALLOW


def percentage(score: int, total: int) -> Optional[int]:
    """Score as a whole percentage, rounded half up. None when there are no questions."""
    if total <= 0:
        return None
    value = Decimal(score) * 100 / Decimal(total)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_percentage(value: Optional[int]) -> str:
    return "N/A" if value is None else f"{value}%"


def format_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}, {value:%I:%M %p}"


def quiz_path(session_id: str) -> str:
    return f"/quiz/{session_id}"


@dataclass
class SessionRow:
    session_id: str
    created_label: str
    score_label: str
    completed: bool
    action_label: str
    action_href: str


@dataclass
class DashboardState:
    status: ViewStatus
    rows: List[SessionRow] = field(default_factory=list)
    error: Optional[str] = None


def build_dashboard_state(summaries: Sequence[QuizSessionSummary]) -> DashboardState:
    """Rows keep the order the API returned."""
    if not summaries:
        return DashboardState(status=ViewStatus.EMPTY)

    rows = []
    for summary in summaries:
        if summary.completed:
            action_label, action_href = "Details", ReviewKind.DETAILS.page_path(summary.session_id)
        else:
            action_label, action_href = "Continue", quiz_path(summary.session_id)
        rows.append(SessionRow(
            session_id=summary.session_id,
            created_label=format_date(summary.created_at),
            score_label=f"{summary.score} / {summary.total_questions}",
            completed=summary.completed,
            action_label=action_label,
            action_href=action_href,
        ))
    return DashboardState(status=ViewStatus.READY, rows=rows)


def dashboard_error(message: str) -> DashboardState:
    return DashboardState(status=ViewStatus.ERROR, error=message)


@dataclass
class ReviewItem:
    number: int
    question: str
    options: List[str]
    image: Optional[str]
    correct_answer: str
    user_answer: Optional[str]
    status: str  # correct, incorrect, unanswered

    @property
    def answered(self) -> bool:
        return self.status != "unanswered"

    @property
    def is_correct(self) -> bool:
        return self.status == "correct"


def review_items(questions: Sequence[QuestionOut], history: Sequence[AnswerRecordOut]) -> List[ReviewItem]:
    """Pair questions with answers by position; a missing answer is unanswered, never correct."""
    items = []
    for index, question in enumerate(questions):
        record = history[index] if index < len(history) else None
        if record is None:
            status = "unanswered"
        elif record.correct:
            status = "correct"
        else:
            status = "incorrect"
        items.append(ReviewItem(
            number=index + 1,
            question=question.question,
            options=list(question.options),
            image=question.image,
            correct_answer=question.correct_answer,
            user_answer=record.user_answer if record else None,
            status=status,
        ))
    return items


@dataclass
class ReviewState:
    kind: ReviewKind
    session_id: str
    status: ViewStatus
    session: Optional[QuizSessionOut] = None
    items: List[ReviewItem] = field(default_factory=list)
    issues: List[IntegrityIssue] = field(default_factory=list)
    percentage: Optional[int] = None
    error: Optional[str] = None
    delete_error: Optional[str] = None
    confirm_delete: bool = False

    @property
    def title(self) -> str:
        return self.kind.title

    @property
    def percentage_label(self) -> str:
        return format_percentage(self.percentage)

    @property
    def score_label(self) -> str:
        if not self.session:
            return ""
        return f"{self.session.score} / {len(self.session.questions)}"

    @property
    def status_label(self) -> str:
        if not self.session:
            return ""
        return "Completed" if self.session.completed else "Incomplete"

    @property
    def created_label(self) -> str:
        return format_date(self.session.created_at) if self.session else ""

    @property
    def page_path(self) -> str:
        return self.kind.page_path(self.session_id)

    @property
    def delete_path(self) -> str:
        return f"{self.page_path}/delete"


def build_review_state(kind: ReviewKind, session_id: str, session: Optional[QuizSessionOut]) -> ReviewState:
    if session is None:
        return ReviewState(kind=kind, session_id=session_id, status=ViewStatus.NOT_FOUND)

    return ReviewState(
        kind=kind,
        session_id=session_id,
        status=ViewStatus.READY,
        session=session,
        items=review_items(session.questions, session.answer_history),
        issues=check_session(session),
        percentage=percentage(session.score, len(session.questions)),
    )


def review_error(kind: ReviewKind, session_id: str, message: str) -> ReviewState:
    return ReviewState(kind=kind, session_id=session_id, status=ViewStatus.ERROR, error=message)
