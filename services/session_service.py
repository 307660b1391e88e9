from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, delete
from models.session import QuizSession, AnswerRecord
from core.config import settings
from core.logger import logger


class SessionConflictError(Exception):
    """The requested change does not fit the current state of the session."""


class InvalidAnswerError(ValueError):
    """The submitted answer is not one of the question's options."""


class SessionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_user_sessions(self, user_id: str) -> List[QuizSession]:
        result = await self.db.execute(
            select(QuizSession).filter(QuizSession.user_id == user_id).order_by(QuizSession.created_at.desc())
        )
        return result.scalars().all()

    async def get_user_session(self, session_id: str, user_id: str) -> Optional[QuizSession]:
        """Get a session ensuring it belongs to the user."""
        result = await self.db.execute(
            select(QuizSession).filter(QuizSession.id == session_id, QuizSession.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_session(
        self,
        session_id: str,
        user_id: str,
        questions: List[dict],
        language: Optional[str] = None,
    ) -> tuple[QuizSession, bool]:
        """
        Create a session under a client generated ID.
        Starting an ID the user already owns returns the existing session.
        """
        existing = await self.db.get(QuizSession, session_id)
        if existing:
            if existing.user_id != user_id:
                raise SessionConflictError("Session ID is already in use")
            return existing, False

        session = QuizSession(
            id=session_id,
            user_id=user_id,
            language=language or settings.DEFAULT_LANGUAGE,
            current_index=0,
            score=0,
            completed=False,
            total_questions=len(questions),
            questions_json=questions,
            answers=[],
        )
        self.db.add(session)
        try:
            await self.db.commit()
        except IntegrityError:
            # Another request created the same ID first
            await self.db.rollback()
            existing = await self.get_user_session(session_id, user_id)
            if not existing:
                raise SessionConflictError("Session ID is already in use")
            return existing, False

        await self.db.refresh(session)
        logger.info("Quiz session created", user_id=user_id, session_id=session_id, questions=len(questions))
        return session, True

    async def record_answer(self, session_id: str, user_id: str, question_index: int, answer: str) -> Optional[QuizSession]:
        # Row lock serialises answers from concurrent tabs
        result = await self.db.execute(
            select(QuizSession)
            .filter(QuizSession.id == session_id, QuizSession.user_id == user_id)
            .with_for_update()
        )
        session = result.scalar_one_or_none()
        if not session:
            return None

        if session.completed or session.current_index >= session.total_questions:
            raise SessionConflictError("Quiz is already completed")
        if question_index != session.current_index:
            raise SessionConflictError(
                f"Question {question_index} is not the current question ({session.current_index})"
            )

        question = session.questions_json[question_index]
        if answer not in question["options"]:
            raise InvalidAnswerError("Answer is not one of the options")

        is_correct = answer == question["correct_answer"]
        session.answers.append(
            AnswerRecord(
                position=question_index,
                question_id=question.get("id"),
                user_answer=answer,
                correct_answer=question["correct_answer"],
                is_correct=is_correct,
            )
        )
        session.current_index += 1
        if is_correct:
            session.score += 1
        if session.current_index >= session.total_questions:
            session.completed = True

        await self.db.commit()
        await self.db.refresh(session)
        logger.info(
            "Answer recorded",
            session_id=session_id,
            user_id=user_id,
            index=question_index,
            correct=is_correct,
            completed=session.completed,
        )
        return session

    async def delete_session(self, session_id: str, user_id: str) -> bool:
        session = await self.get_user_session(session_id, user_id)
        if not session:
            logger.info("Quiz session delete refused", session_id=session_id, user_id=user_id)
            return False

        # Delete answer records first to avoid foreign key constraints
        await self.db.execute(delete(AnswerRecord).where(AnswerRecord.session_id == session_id))
        result = await self.db.execute(
            delete(QuizSession).where(QuizSession.id == session_id, QuizSession.user_id == user_id)
        )
        await self.db.commit()
        success = result.rowcount > 0
        logger.info("Quiz session deleted", session_id=session_id, user_id=user_id, success=success)
        return success

    async def iter_session_batches(self, batch_size: int):
        """Yield all sessions in primary key order, batch by batch."""
        last_id = None
        while True:
            query = select(QuizSession).order_by(QuizSession.id).limit(batch_size)
            if last_id is not None:
                query = query.filter(QuizSession.id > last_id)
            result = await self.db.execute(query)
            batch = result.scalars().all()
            if not batch:
                return
            yield batch
            last_id = batch[-1].id
