import asyncio
import json
import os
import sys

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.session import AsyncSessionLocal
from services.question_service import QuestionService
from core.logger import setup_logging, logger

DEFAULT_SOURCE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data", "ive_questions.json")


async def seed_questions(path: str):
    with open(path, "r", encoding="utf-8") as f:
        items = json.load(f)

    if not isinstance(items, list):
        print("❌ Question file must contain a JSON list.")
        return

    async with AsyncSessionLocal() as session:
        service = QuestionService(session)
        added = await service.import_questions(items)
        total = await service.count()

    print(f"✅ Added {added} questions ({total} in bank).")
    logger.info("Question bank seeded", source=path, added=added, total=total)


if __name__ == "__main__":
    setup_logging()
    source = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_SOURCE
    if os.name == 'nt':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(seed_questions(source))
