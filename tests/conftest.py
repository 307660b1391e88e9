"""
Pytest configuration and fixtures for the DIVE quiz tests.
"""
import sys
import os

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Settings are read at import time
os.environ["AUTH_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["QUIZ_LENGTH"] = "3"
os.environ["ENV"] = "test"

import httpx
import pytest
import pytest_asyncio
from fastapi import Request
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from api.main import app
from core.config import settings
from core.security import issue_token, token_from_request
from db.session import get_db, get_redis
from models import Base, Question
from web.client import QuizApiClient
from web.routes import get_api_client



class FakeRedis:
    """In-memory stand-in for the few redis.asyncio calls the app makes."""

    def __init__(self):
        self.store = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, *keys):
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    async def aclose(self):
        pass


class FailingRedis:
    """Redis double for an unreachable server."""

    async def set(self, *args, **kwargs):
        raise RedisConnectionError("redis down")

    async def get(self, *args, **kwargs):
        raise RedisConnectionError("redis down")

    async def delete(self, *args, **kwargs):
        raise RedisConnectionError("redis down")

    async def aclose(self):
        pass


async def broken_redis():
    yield FailingRedis()


class ApiTransport(httpx.AsyncBaseTransport):
    """Routes the pages' API calls back into the app, with switchable failures."""

    def __init__(self):
        self.inner = httpx.ASGITransport(app=app)
        self.offline = False
        self.fail_deletes = False

    async def handle_async_request(self, request):
        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_deletes and request.method == "DELETE":
            return httpx.Response(500, json={"error": "Database unavailable"}, request=request)
        return await self.inner.handle_async_request(request)


@pytest.fixture
def sample_questions():
    """Sample question bank rows"""
    return [
        {
            "question": "What is the name of IVE's debut single?",
            "options": ["Eleven", "Love Dive", "After Like", "Kitsch"],
            "correct_answer": "Eleven",
            "category": "discography",
        },
        {
            "question": "What is the name of IVE's official fandom?",
            "options": ["DIVE", "WAVE", "ONCE", "MY"],
            "correct_answer": "DIVE",
            "category": "fandom",
        },
        {
            "question": "Who is the leader of IVE?",
            "options": ["Yujin", "Wonyoung", "Gaeul", "Rei"],
            "correct_answer": "Yujin",
            "category": "members",
        },
        {
            "question": "How many members does IVE have?",
            "options": ["4", "5", "6", "7"],
            "correct_answer": "6",
            "category": "members",
        },
        {
            "question": "Which agency manages IVE?",
            "options": ["Starship Entertainment", "JYP Entertainment", "SM Entertainment", "HYBE"],
            "correct_answer": "Starship Entertainment",
            "category": "history",
        },
    ]


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session_factory, sample_questions):
    async with session_factory() as session:
        for item in sample_questions:
            session.add(Question(**item))
        await session.commit()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def api_transport():
    return ApiTransport()


@pytest_asyncio.fixture
async def client(session_factory, seeded, fake_redis, api_transport):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        yield fake_redis

    async def override_get_api_client(request: Request):
        api = QuizApiClient("http://testserver", token=token_from_request(request), transport=api_transport)
        try:
            yield api
        finally:
            await api.aclose()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_api_client] = override_get_api_client

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as http:
        yield http

    app.dependency_overrides.clear()


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {issue_token(user_id)}"}


def sign_in(http: httpx.AsyncClient, user_id: str):
    http.cookies.set(settings.AUTH_COOKIE_NAME, issue_token(user_id))


async def start_quiz(http: httpx.AsyncClient, user_id: str, session_id: str) -> dict:
    response = await http.post("/api/quiz", json={"session_id": session_id}, headers=auth_headers(user_id))
    assert response.status_code in (200, 201), response.text
    return response.json()


async def answer_all(http: httpx.AsyncClient, user_id: str, session: dict, correct_count: int, limit: int = None):
    """Answer questions in order; the first `correct_count` correctly."""
    questions = session["questions"][:limit] if limit is not None else session["questions"]
    for index, question in enumerate(questions):
        if index < correct_count:
            answer = question["correct_answer"]
        else:
            answer = next(o for o in question["options"] if o != question["correct_answer"])
        response = await http.post(
            "/api/quiz/answer",
            json={"session_id": session["session_id"], "question_index": index, "answer": answer},
            headers=auth_headers(user_id),
        )
        assert response.status_code == 200, response.text
