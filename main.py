import asyncio
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from core.config import settings
from core.logger import setup_logging, logger
from services.monitoring_service import audit_sessions


async def start_api():
    import uvicorn
    from api.main import app
    config = uvicorn.Config(app, host="0.0.0.0", port=8000, log_level="info")
    server = uvicorn.Server(config)
    await server.serve()


async def main():
    # Setup structured logging
    setup_logging()

    scheduler = AsyncIOScheduler(timezone="UTC")

    # Integrity audit of stored quiz sessions
    scheduler.add_job(
        audit_sessions,
        trigger="interval",
        minutes=settings.AUDIT_INTERVAL_MINUTES,
        id="session_audit",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler started (Session audit).", interval_minutes=settings.AUDIT_INTERVAL_MINUTES)

    logger.info("Starting DIVE quiz API...", env=settings.ENV)
    try:
        await start_api()
    finally:
        scheduler.shutdown(wait=False)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Application stopped.")
