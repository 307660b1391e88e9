import uuid

from redis.asyncio import Redis
from core.config import settings
from core.logger import logger


class CreationGuard:
    """
    Hands out fresh quiz session IDs.

    Every start gets a new uuid4, recorded in Redis against the user who
    asked for it. The quiz page only creates a session for an ID issued to
    the same user; any other ID can be resumed but never created. Unused IDs
    expire after the TTL.
    """

    def __init__(self, redis: Redis, ttl_seconds: int = None):
        self.redis = redis
        self.ttl = ttl_seconds or settings.PENDING_CREATE_TTL_SECONDS

    @staticmethod
    def _key(session_id: str) -> str:
        return f"divequiz:pending_create:{session_id}"

    async def issue(self, user_id: str) -> str:
        """Return a session ID that has never been handed out before."""
        while True:
            session_id = str(uuid.uuid4())
            if await self.redis.set(self._key(session_id), user_id, nx=True, ex=self.ttl):
                logger.info("Quiz session ID issued", user_id=user_id, session_id=session_id)
                return session_id

    async def is_pending(self, user_id: str, session_id: str) -> bool:
        return await self.redis.get(self._key(session_id)) == user_id

    async def release(self, user_id: str, session_id: str):
        if await self.is_pending(user_id, session_id):
            await self.redis.delete(self._key(session_id))
