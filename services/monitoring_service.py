from core.logger import logger
from core.config import settings
from db.session import AsyncSessionLocal
from schemas.quiz import QuizSessionOut
from services.integrity import check_session
from services.session_service import SessionService


async def audit_sessions(session_factory=AsyncSessionLocal) -> int:
    """
    Scan every stored session for broken answer-history invariants.
    Logs each anomaly and returns the number of sessions affected.
    """
    logger.debug("Starting session integrity audit...")
    scanned = 0
    broken = 0

    async with session_factory() as db:
        service = SessionService(db)
        async for batch in service.iter_session_batches(settings.AUDIT_BATCH_SIZE):
            for session in batch:
                scanned += 1
                issues = check_session(QuizSessionOut.from_model(session))
                if not issues:
                    continue
                broken += 1
                for issue in issues:
                    logger.warning(
                        "Audit: session integrity anomaly",
                        session_id=session.id,
                        user_id=session.user_id,
                        code=issue.code,
                        detail=issue.message,
                    )

    logger.info("Session integrity audit completed", scanned=scanned, anomalies=broken)
    return broken
