from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc
from models.session import QuizSession


class StatsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_leaderboard(self, limit: int = 20) -> List[dict]:
        """Rank users by total score over completed sessions."""
        total_score = func.sum(QuizSession.score).label("total_score")
        quizzes_completed = func.count(QuizSession.id).label("quizzes_completed")
        query = (
            select(QuizSession.user_id, total_score, quizzes_completed)
            .filter(QuizSession.completed == True)
            .group_by(QuizSession.user_id)
            .order_by(desc(total_score), desc(quizzes_completed), QuizSession.user_id)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [
            {
                "user_id": row.user_id,
                "total_score": int(row.total_score or 0),
                "quizzes_completed": int(row.quizzes_completed or 0),
            }
            for row in result.all()
        ]
