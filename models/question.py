from sqlalchemy import Column, Integer, String, JSON
from models.base import Base, TimestampMixin

class Question(Base, TimestampMixin):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    question = Column(String(500), nullable=False)
    options = Column(JSON, nullable=False)
    correct_answer = Column(String(255), nullable=False)
    image = Column(String(500), nullable=True)
    category = Column(String(50), default="general", nullable=False, index=True)

    def to_snapshot(self) -> dict:
        """Frozen copy stored on a session when the quiz starts."""
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "image": self.image,
            "category": self.category,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
