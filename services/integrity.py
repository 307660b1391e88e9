from dataclasses import dataclass
from typing import List

from schemas.quiz import QuizSessionOut


@dataclass(frozen=True)
class IntegrityIssue:
    code: str
    message: str


def check_session(session: QuizSessionOut) -> List[IntegrityIssue]:
    """
    Return every way the session breaks the answer-history invariants.
    An empty list means the session is consistent.
    """
    issues = []
    total = len(session.questions)
    answered = len(session.answer_history)

    if answered > total:
        issues.append(IntegrityIssue(
            "history_overflow",
            f"{answered} answers recorded for {total} questions",
        ))

    correct = sum(1 for record in session.answer_history if record.correct)
    if session.score != correct:
        issues.append(IntegrityIssue(
            "score_mismatch",
            f"score is {session.score} but {correct} answers are correct",
        ))

    if session.completed and answered != total:
        issues.append(IntegrityIssue(
            "incomplete_history",
            f"marked completed with {answered} of {total} answers",
        ))

    for index, (question, record) in enumerate(zip(session.questions, session.answer_history), 1):
        if record.correct_answer != question.correct_answer:
            issues.append(IntegrityIssue(
                "answer_mismatch",
                f"question {index}: recorded correct answer differs from the question",
            ))
        if record.correct != (record.user_answer == record.correct_answer):
            issues.append(IntegrityIssue(
                "correct_flag_mismatch",
                f"question {index}: correct flag disagrees with the answers",
            ))

    return issues
