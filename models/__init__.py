from models.base import Base
from models.question import Question
from models.session import QuizSession, AnswerRecord

__all__ = ["Base", "Question", "QuizSession", "AnswerRecord"]
