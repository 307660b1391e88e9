import pytest

from models import AnswerRecord, Question, QuizSession
from services.creation_guard import CreationGuard
from services.monitoring_service import audit_sessions
from services.question_service import QuestionBankExhaustedError, QuestionService
from services.session_service import InvalidAnswerError, SessionConflictError, SessionService
from services.stats_service import StatsService


def snapshot(n, correct="A"):
    return {"id": n, "question": f"Q{n}", "options": ["A", "B", "C"], "correct_answer": correct, "category": "general"}


@pytest.mark.asyncio
async def test_import_questions_skips_duplicates_and_malformed(db, sample_questions):
    service = QuestionService(db)
    assert await service.import_questions(sample_questions) == 5

    extra = [
        sample_questions[0],
        {"question": "Missing correct option", "options": ["A", "B"], "correct_answer": "C"},
        {"question": "Single option", "options": ["A"], "correct_answer": "A"},
        {"question": "What color is IVE's official lightstick heart?", "options": ["Red", "Blue"], "correct_answer": "Red"},
    ]
    assert await service.import_questions(extra) == 1
    assert await service.count() == 6
    assert await service.count(category="members") == 2


@pytest.mark.asyncio
async def test_draw_questions_returns_distinct_snapshots(db, sample_questions):
    service = QuestionService(db)
    await service.import_questions(sample_questions)

    drawn = await service.draw_questions(4)
    assert len(drawn) == 4
    assert len({q["id"] for q in drawn}) == 4
    for q in drawn:
        assert q["correct_answer"] in q["options"]

    with pytest.raises(QuestionBankExhaustedError):
        await service.draw_questions(6)


@pytest.mark.asyncio
async def test_create_session_is_idempotent_for_owner(db):
    service = SessionService(db)
    session, created = await service.create_session("s1", "alice", [snapshot(1), snapshot(2)])
    assert created
    assert session.total_questions == 2
    assert session.language == "en"

    again, created = await service.create_session("s1", "alice", [snapshot(3)])
    assert not created
    assert again.questions_json == session.questions_json

    with pytest.raises(SessionConflictError):
        await service.create_session("s1", "bob", [snapshot(1)])


@pytest.mark.asyncio
async def test_record_answer_advances_session(db):
    service = SessionService(db)
    await service.create_session("s1", "alice", [snapshot(1), snapshot(2, correct="B")])

    session = await service.record_answer("s1", "alice", 0, "A")
    assert (session.current_index, session.score, session.completed) == (1, 1, False)

    with pytest.raises(SessionConflictError):
        await service.record_answer("s1", "alice", 0, "A")
    with pytest.raises(InvalidAnswerError):
        await service.record_answer("s1", "alice", 1, "Z")

    session = await service.record_answer("s1", "alice", 1, "C")
    assert (session.current_index, session.score, session.completed) == (2, 1, True)
    assert [a.is_correct for a in session.answers] == [True, False]
    assert [a.correct_answer for a in session.answers] == ["A", "B"]

    assert await service.record_answer("s1", "bob", 0, "A") is None


@pytest.mark.asyncio
async def test_delete_session_checks_owner(db):
    service = SessionService(db)
    await service.create_session("s1", "alice", [snapshot(1)])
    await service.record_answer("s1", "alice", 0, "A")

    assert not await service.delete_session("s1", "bob")
    assert await service.get_user_session("s1", "alice") is not None

    assert await service.delete_session("s1", "alice")
    assert await service.list_user_sessions("alice") == []
    assert not await service.delete_session("s1", "alice")


@pytest.mark.asyncio
async def test_iter_session_batches_visits_every_session(db):
    service = SessionService(db)
    for n in range(5):
        await service.create_session(f"s{n}", "alice", [snapshot(1)])

    batches = [batch async for batch in service.iter_session_batches(2)]
    assert [len(batch) for batch in batches] == [2, 2, 1]
    assert [s.id for batch in batches for s in batch] == ["s0", "s1", "s2", "s3", "s4"]


@pytest.mark.asyncio
async def test_audit_counts_inconsistent_sessions(session_factory):
    async with session_factory() as db:
        service = SessionService(db)
        await service.create_session("good", "alice", [snapshot(1)])
        await service.record_answer("good", "alice", 0, "A")

        # Score and completion flag disagree with the stored answers
        db.add(QuizSession(
            id="broken",
            user_id="bob",
            total_questions=2,
            current_index=1,
            score=2,
            completed=True,
            questions_json=[snapshot(1), snapshot(2)],
            answers=[AnswerRecord(position=0, user_answer="B", correct_answer="A", is_correct=False)],
        ))
        await db.commit()

    assert await audit_sessions(session_factory) == 1


@pytest.mark.asyncio
async def test_leaderboard_ignores_unfinished_sessions(db):
    service = SessionService(db)
    await service.create_session("a1", "alice", [snapshot(1)])
    await service.record_answer("a1", "alice", 0, "A")
    await service.create_session("b1", "bob", [snapshot(1), snapshot(2)])
    await service.record_answer("b1", "bob", 0, "A")

    assert await StatsService(db).get_leaderboard() == [
        {"user_id": "alice", "total_score": 1, "quizzes_completed": 1},
    ]


@pytest.mark.asyncio
async def test_creation_guard_issues_fresh_ids(fake_redis):
    guard = CreationGuard(fake_redis, ttl_seconds=5)

    first = await guard.issue("alice")
    second = await guard.issue("alice")
    assert first != second

    assert await guard.is_pending("alice", first)
    assert not await guard.is_pending("bob", first)
    assert not await guard.is_pending("alice", "never-issued")

    # Releasing for the wrong user leaves the ID alone
    await guard.release("bob", first)
    assert await guard.is_pending("alice", first)

    await guard.release("alice", first)
    assert not await guard.is_pending("alice", first)
    assert await guard.is_pending("alice", second)
