from sqlalchemy import Column, Integer, String, Boolean, JSON, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin, utcnow

class QuizSession(Base, TimestampMixin):
    __tablename__ = "quiz_sessions"

    # Generated by the client that starts the quiz
    id = Column(String(64), primary_key=True)
    user_id = Column(String(255), index=True, nullable=False)
    language = Column(String(10), default="en", nullable=False)

    current_index = Column(Integer, default=0, nullable=False)
    score = Column(Integer, default=0, nullable=False)
    total_questions = Column(Integer, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)

    # Snapshot of the question bank rows, fixed at creation
    questions_json = Column(JSON, nullable=False)

    answers = relationship(
        "AnswerRecord",
        back_populates="session",
        order_by="AnswerRecord.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )


class AnswerRecord(Base):
    __tablename__ = "answer_records"
    __table_args__ = (
        UniqueConstraint("session_id", "position", name="uq_answer_session_position"),
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), ForeignKey("quiz_sessions.id", ondelete="CASCADE"), index=True, nullable=False)
    position = Column(Integer, nullable=False)
    question_id = Column(Integer, nullable=True)
    user_answer = Column(String(255), nullable=False)
    correct_answer = Column(String(255), nullable=False)
    is_correct = Column(Boolean, nullable=False)
    answered_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    session = relationship("QuizSession", back_populates="answers")
