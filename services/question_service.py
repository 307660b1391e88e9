from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from models.question import Question
from core.logger import logger


class QuestionBankExhaustedError(Exception):
    """The bank holds fewer questions than a quiz needs."""


class QuestionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def count(self, category: Optional[str] = None) -> int:
        query = select(func.count(Question.id))
        if category:
            query = query.filter(Question.category == category)
        return int((await self.db.execute(query)).scalar() or 0)

    async def draw_questions(self, count: int, category: Optional[str] = None) -> List[dict]:
        """Pick `count` random questions and return their snapshots."""
        if count <= 0:
            return []

        query = select(Question).order_by(func.random()).limit(count)
        if category:
            query = query.filter(Question.category == category)
        result = await self.db.execute(query)
        questions = result.scalars().all()

        if len(questions) < count:
            logger.warning("Question bank too small", wanted=count, available=len(questions), category=category)
            raise QuestionBankExhaustedError(f"Need {count} questions, bank has {len(questions)}")
        return [q.to_snapshot() for q in questions]

    async def import_questions(self, items: Iterable[dict]) -> int:
        """
        Add questions to the bank, skipping prompts that already exist.
        Each item needs `question`, `options` and `correct_answer`.
        """
        result = await self.db.execute(select(Question.question))
        known = set(result.scalars().all())

        added = 0
        for item in items:
            prompt = (item.get("question") or "").strip()
            options = [str(o).strip() for o in item.get("options") or []]
            correct = str(item.get("correct_answer") or "").strip()

            if not prompt or prompt in known:
                continue
            if len(options) < 2 or correct not in options:
                logger.warning("Skipping malformed question", question=prompt[:80])
                continue

            self.db.add(Question(
                question=prompt,
                options=options,
                correct_answer=correct,
                image=item.get("image"),
                category=item.get("category") or "general",
            ))
            known.add(prompt)
            added += 1

        await self.db.commit()
        logger.info("Questions imported", added=added)
        return added
