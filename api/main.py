from fastapi import FastAPI, HTTPException, Depends, Request, Response, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.logger import logger
from core.security import verify_token, token_from_request
from db.session import get_db
from schemas.quiz import (
    AnswerRequest,
    AnswerResponse,
    DeleteResponse,
    ErrorResponse,
    HistoryResponse,
    LeaderboardResponse,
    QuizDetailsResponse,
    QuizSessionOut,
    QuizSessionSummary,
    QuizSummaryResponse,
    StartQuizRequest,
)
from services.integrity import check_session
from services.question_service import QuestionService, QuestionBankExhaustedError
from services.session_service import SessionService, SessionConflictError, InvalidAnswerError
from services.stats_service import StatsService

# API Documentation
API_DESCRIPTION = """
## DIVE Quiz API

REST API behind the IVE fan quiz: quiz history, quiz review and deletion,
and the quiz-taking write path.

### Authentication

Every quiz endpoint requires a signed identity token issued by the identity
provider, sent as one of:

- Header: `Authorization: Bearer <token>`
- Header: `X-Auth-Token: <token>`
- Cookie: `divequiz_token`

A user only ever sees and changes their own quiz sessions.
"""

TAGS_METADATA = [
    {
        "name": "history",
        "description": "Quiz sessions of the authenticated user.",
    },
    {
        "name": "quiz",
        "description": "Starting a quiz and answering its questions.",
    },
    {
        "name": "info",
        "description": "Public information endpoints.",
    },
]

AUTH_RESPONSES = {401: {"model": ErrorResponse, "description": "Authentication required"}}

app = FastAPI(
    title="DIVE Quiz API",
    description=API_DESCRIPTION,
    version="1.0.0",
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    debug=settings.DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _is_api_path(request: Request) -> bool:
    return request.url.path.startswith("/api/")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if not _is_api_path(request):
        return render_error_page(request, exc.status_code, str(exc.detail))
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    if not _is_api_path(request):
        return render_error_page(request, 422, "The submitted form was incomplete or invalid.")
    return JSONResponse(
        {"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        status_code=422,
    )


def get_current_user(request: Request) -> str:
    user_id = verify_token(token_from_request(request))
    if user_id:
        return user_id

    logger.warning("Auth failed: Missing or invalid credentials", path=request.url.path)
    raise HTTPException(status_code=401, detail="Unauthorized")


async def _load_session(session_id: str, user_id: str, db: AsyncSession):
    service = SessionService(db)
    session = await service.get_user_session(session_id, user_id)
    if not session:
        # Missing and foreign sessions look the same to the caller
        return None

    payload = QuizSessionOut.from_model(session)
    for issue in check_session(payload):
        logger.warning("Session integrity anomaly", session_id=session_id, code=issue.code, detail=issue.message)
    return payload


async def _delete_session(session_id: str, user_id: str, db: AsyncSession):
    service = SessionService(db)
    if not await service.delete_session(session_id, user_id):
        raise HTTPException(status_code=404, detail="Quiz not found or unauthorized")
    return {"status": "deleted"}


@app.get(
    "/api/history",
    response_model=HistoryResponse,
    tags=["history"],
    summary="List quiz sessions",
    description="Returns summaries of every quiz session owned by the authenticated user.",
    responses=AUTH_RESPONSES,
)
async def get_history(user_id: str = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    service = SessionService(db)
    sessions = await service.list_user_sessions(user_id)
    return {"pastQuizzes": [QuizSessionSummary.from_model(s) for s in sessions]}


@app.get(
    "/api/quiz-details",
    response_model=QuizDetailsResponse,
    tags=["history"],
    summary="Get quiz details",
    description="Returns a session with questions and answer history, or null when it is missing or not owned.",
    responses=AUTH_RESPONSES,
)
async def get_quiz_details(
    id: str = Query(..., description="Session ID"),
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"quizDetails": await _load_session(id, user_id, db)}


@app.delete(
    "/api/quiz-details",
    response_model=DeleteResponse,
    tags=["history"],
    summary="Delete quiz",
    description="Deletes a session and its answer history. Irreversible.",
    responses={**AUTH_RESPONSES, 404: {"model": ErrorResponse, "description": "Quiz not found or not owned by user"}},
)
async def delete_quiz_details(
    id: str = Query(..., description="Session ID"),
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _delete_session(id, user_id, db)


@app.get(
    "/api/quiz-summary",
    response_model=QuizSummaryResponse,
    tags=["history"],
    summary="Get quiz summary",
    description="Same contract as quiz details, keyed as quizSummary.",
    responses=AUTH_RESPONSES,
)
async def get_quiz_summary(
    id: str = Query(..., description="Session ID"),
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"quizSummary": await _load_session(id, user_id, db)}


@app.delete(
    "/api/quiz-summary",
    response_model=DeleteResponse,
    tags=["history"],
    summary="Delete quiz",
    description="Same contract as deleting through quiz details.",
    responses={**AUTH_RESPONSES, 404: {"model": ErrorResponse, "description": "Quiz not found or not owned by user"}},
)
async def delete_quiz_summary(
    id: str = Query(..., description="Session ID"),
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _delete_session(id, user_id, db)


@app.post(
    "/api/quiz",
    response_model=QuizSessionOut,
    tags=["quiz"],
    summary="Start quiz",
    description="Creates a session under the client generated ID, or returns it when the caller already started it.",
    responses={
        **AUTH_RESPONSES,
        201: {"description": "Session created"},
        409: {"model": ErrorResponse, "description": "Session ID belongs to another user"},
        503: {"model": ErrorResponse, "description": "Question bank cannot fill a quiz"},
    },
)
async def start_quiz(
    body: StartQuizRequest,
    response: Response,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = SessionService(db)
    existing = await service.get_user_session(body.session_id, user_id)
    if existing:
        return QuizSessionOut.from_model(existing)

    try:
        questions = await QuestionService(db).draw_questions(settings.QUIZ_LENGTH)
        session, created = await service.create_session(body.session_id, user_id, questions)
    except QuestionBankExhaustedError:
        raise HTTPException(status_code=503, detail="Not enough questions available")
    except SessionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if created:
        response.status_code = 201
    return QuizSessionOut.from_model(session)


@app.post(
    "/api/quiz/answer",
    response_model=AnswerResponse,
    tags=["quiz"],
    summary="Answer current question",
    description="Records the answer to the session's current question.",
    responses={
        **AUTH_RESPONSES,
        400: {"model": ErrorResponse, "description": "Answer is not one of the options"},
        404: {"model": ErrorResponse, "description": "Quiz not found"},
        409: {"model": ErrorResponse, "description": "Question already answered or quiz completed"},
    },
)
async def answer_question(
    body: AnswerRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = SessionService(db)
    try:
        session = await service.record_answer(body.session_id, user_id, body.question_index, body.answer)
    except SessionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidAnswerError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not session:
        raise HTTPException(status_code=404, detail="Quiz not found")

    record = session.answers[body.question_index]
    return {
        "correct": record.is_correct,
        "correct_answer": record.correct_answer,
        "score": session.score,
        "completed": session.completed,
        "current_question": session.current_index,
    }


@app.get(
    "/api/leaderboard",
    response_model=LeaderboardResponse,
    tags=["info"],
    summary="Leaderboard",
    description="Top users by total score over completed quizzes.",
)
async def get_leaderboard(db: AsyncSession = Depends(get_db)):
    stats = StatsService(db)
    return {"leaderboard": await stats.get_leaderboard(settings.LEADERBOARD_SIZE)}


@app.get("/api/health", tags=["info"], summary="Health check")
async def health_check():
    return {"status": "healthy", "environment": settings.ENV}


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


# Server rendered pages consume the endpoints above over HTTP
from web.routes import router as web_router, render_error_page

app.include_router(web_router)
