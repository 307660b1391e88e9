import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, Query
from fastapi.responses import RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from redis.exceptions import RedisError

from core.config import settings
from core.logger import logger
from core.security import Identity, verify_token, token_from_request
from db.session import get_redis
from services.creation_guard import CreationGuard
from web.client import ApiError, QuizApiClient
from web.viewstate import (
    GateDecision,
    ReviewKind,
    ViewStatus,
    build_dashboard_state,
    build_review_state,
    dashboard_error,
    gate,
    review_error,
)

router = APIRouter(include_in_schema=False)
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


def get_identity(request: Request) -> Identity:
    user_id = verify_token(token_from_request(request))
    return Identity.signed_in(user_id) if user_id else Identity.anonymous()


async def get_api_client(request: Request):
    client = QuizApiClient(
        settings.API_BASE_URL,
        token=token_from_request(request),
        timeout=settings.API_TIMEOUT_SECONDS,
    )
    try:
        yield client
    finally:
        await client.aclose()


async def get_creation_guard(redis=Depends(get_redis)) -> CreationGuard:
    return CreationGuard(redis)


def _render(request: Request, name: str, identity: Identity, status_code: int = 200, **context) -> Response:
    context["identity"] = identity
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def _safe_next(target: Optional[str]) -> str:
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return "/dashboard"


def _apply_gate(request: Request, identity: Identity) -> Optional[Response]:
    """Response to send instead of the page, or None when the visitor may proceed."""
    decision = gate(identity)
    if decision is GateDecision.LOADING:
        return _render(request, "loading.html", identity)
    if decision is GateDecision.REDIRECT:
        return RedirectResponse(url=f"/sign-in?next={request.url.path}", status_code=303)
    return None


@router.get("/")
async def home():
    return RedirectResponse(url="/quiz", status_code=303)


@router.get("/sign-in")
async def sign_in(request: Request, token: Optional[str] = None, next: Optional[str] = None):
    target = _safe_next(next)
    if token:
        user_id = verify_token(token)
        if user_id:
            response = RedirectResponse(url=target, status_code=303)
            response.set_cookie(
                settings.AUTH_COOKIE_NAME,
                token,
                max_age=settings.TOKEN_TTL_SECONDS,
                httponly=True,
                samesite="lax",
                secure=settings.ENV == "production",
            )
            logger.info("User signed in", user_id=user_id)
            return response

    identity = get_identity(request)
    if identity.is_signed_in:
        return RedirectResponse(url=target, status_code=303)
    return _render(
        request,
        "sign_in.html",
        identity,
        provider_url=settings.SIGN_IN_URL,
        rejected=bool(token),
        next=target,
    )


@router.get("/sign-out")
async def sign_out():
    response = RedirectResponse(url="/quiz", status_code=303)
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return response


@router.get("/quiz")
async def quiz_landing(request: Request, identity: Identity = Depends(get_identity)):
    return _render(request, "quiz.html", identity)


async def _issue_session_id(user_id: str, guard: CreationGuard) -> str:
    try:
        return await guard.issue(user_id)
    except RedisError as e:
        logger.error("Creation guard unavailable, issuing unrecorded ID", user_id=user_id, error=str(e))
        return str(uuid.uuid4())


async def _start_quiz(request: Request, identity: Identity, guard: CreationGuard):
    blocked = _apply_gate(request, identity)
    if blocked:
        return blocked

    session_id = await _issue_session_id(identity.user_id, guard)
    return RedirectResponse(url=f"/quiz/{session_id}", status_code=303)


@router.post("/quiz/new")
async def create_quiz(
    request: Request,
    identity: Identity = Depends(get_identity),
    guard: CreationGuard = Depends(get_creation_guard),
):
    return await _start_quiz(request, identity, guard)


@router.get("/quiz/new")
async def create_quiz_after_sign_in(
    request: Request,
    identity: Identity = Depends(get_identity),
    guard: CreationGuard = Depends(get_creation_guard),
):
    # Sign-in sends visitors back here with a GET
    return await _start_quiz(request, identity, guard)


async def _may_create(identity: Identity, session_id: str, guard: CreationGuard) -> bool:
    try:
        return await guard.is_pending(identity.user_id, session_id)
    except RedisError as e:
        logger.error("Creation guard unavailable, allowing create", session_id=session_id, error=str(e))
        return True


async def _release(identity: Identity, session_id: str, guard: CreationGuard):
    try:
        await guard.release(identity.user_id, session_id)
    except RedisError as e:
        logger.warning("Could not release issued quiz ID", session_id=session_id, error=str(e))


@router.get("/quiz/{session_id}")
async def take_quiz(
    request: Request,
    session_id: str,
    identity: Identity = Depends(get_identity),
    client: QuizApiClient = Depends(get_api_client),
    guard: CreationGuard = Depends(get_creation_guard),
):
    blocked = _apply_gate(request, identity)
    if blocked:
        return blocked

    try:
        if await _may_create(identity, session_id, guard):
            session = await client.start_session(session_id)
            await _release(identity, session_id, guard)
        else:
            # Only IDs issued by /quiz/new are created; anything else is resumed
            session = await client.fetch_session(ReviewKind.DETAILS, session_id)
    except ApiError as e:
        if e.status_code in (409, 422):
            return _render(request, "take.html", identity, status=ViewStatus.NOT_FOUND, session_id=session_id)
        return _render(request, "take.html", identity, status=ViewStatus.ERROR, session_id=session_id, error=e.message)

    if session is None:
        return _render(request, "take.html", identity, status=ViewStatus.NOT_FOUND, session_id=session_id)
    if session.completed or session.current_question >= len(session.questions):
        return RedirectResponse(url=ReviewKind.SUMMARY.page_path(session_id), status_code=303)

    return _render(
        request,
        "take.html",
        identity,
        status=ViewStatus.READY,
        session_id=session_id,
        session=session,
        index=session.current_question,
        question=session.questions[session.current_question],
    )


@router.post("/quiz/{session_id}")
async def answer_quiz(
    request: Request,
    session_id: str,
    question_index: int = Form(...),
    answer: str = Form(...),
    identity: Identity = Depends(get_identity),
    client: QuizApiClient = Depends(get_api_client),
):
    blocked = _apply_gate(request, identity)
    if blocked:
        return blocked

    try:
        result = await client.submit_answer(session_id, question_index, answer)
    except ApiError as e:
        # Stale or duplicate submits land back on the current question
        logger.info("Answer not accepted", session_id=session_id, status=e.status_code, error=e.message)
        return RedirectResponse(url=f"/quiz/{session_id}", status_code=303)

    if result.completed:
        return RedirectResponse(url=ReviewKind.SUMMARY.page_path(session_id), status_code=303)
    return RedirectResponse(url=f"/quiz/{session_id}", status_code=303)


@router.get("/dashboard")
async def dashboard(
    request: Request,
    identity: Identity = Depends(get_identity),
    client: QuizApiClient = Depends(get_api_client),
):
    blocked = _apply_gate(request, identity)
    if blocked:
        return blocked

    try:
        state = build_dashboard_state(await client.fetch_history())
    except ApiError as e:
        logger.error("Failed to fetch past quizzes", user_id=identity.user_id, error=e.message)
        state = dashboard_error("We couldn't load your quizzes. Please try again.")

    return _render(request, "dashboard.html", identity, state=state)


async def _load_review(kind: ReviewKind, session_id: str, client: QuizApiClient):
    try:
        return build_review_state(kind, session_id, await client.fetch_session(kind, session_id))
    except ApiError as e:
        logger.error("Failed to fetch quiz", kind=kind.value, session_id=session_id, error=e.message)
        return review_error(kind, session_id, "We couldn't load this quiz. Please try again.")


async def _review_page(
    kind: ReviewKind,
    request: Request,
    session_id: str,
    identity: Identity,
    client: QuizApiClient,
    confirm_delete: bool,
):
    blocked = _apply_gate(request, identity)
    if blocked:
        return blocked

    state = await _load_review(kind, session_id, client)
    if state.issues:
        logger.warning(
            "Rendering quiz with integrity anomalies",
            session_id=session_id,
            codes=[issue.code for issue in state.issues],
        )
    state.confirm_delete = confirm_delete and state.status is ViewStatus.READY
    status_code = 404 if state.status is ViewStatus.NOT_FOUND else 200
    return _render(request, "review.html", identity, status_code=status_code, state=state)


async def _delete_and_leave(
    kind: ReviewKind,
    request: Request,
    session_id: str,
    identity: Identity,
    client: QuizApiClient,
):
    blocked = _apply_gate(request, identity)
    if blocked:
        return blocked

    try:
        await client.delete_session(kind, session_id)
    except ApiError as e:
        logger.error("Failed to delete quiz", kind=kind.value, session_id=session_id, error=e.message)
        # Keep showing the quiz as it is, with the failure on screen
        state = await _load_review(kind, session_id, client)
        state.delete_error = f"Failed to delete quiz: {e.message}"
        return _render(request, "review.html", identity, state=state)

    logger.info("Quiz deleted from review page", kind=kind.value, session_id=session_id, user_id=identity.user_id)
    return RedirectResponse(url="/dashboard", status_code=303)


@router.get("/quiz-details/{session_id}")
async def quiz_details(
    request: Request,
    session_id: str,
    confirm_delete: bool = Query(False),
    identity: Identity = Depends(get_identity),
    client: QuizApiClient = Depends(get_api_client),
):
    return await _review_page(ReviewKind.DETAILS, request, session_id, identity, client, confirm_delete)


@router.post("/quiz-details/{session_id}/delete")
async def delete_quiz_details(
    request: Request,
    session_id: str,
    identity: Identity = Depends(get_identity),
    client: QuizApiClient = Depends(get_api_client),
):
    return await _delete_and_leave(ReviewKind.DETAILS, request, session_id, identity, client)


@router.get("/quiz-summary/{session_id}")
async def quiz_summary(
    request: Request,
    session_id: str,
    confirm_delete: bool = Query(False),
    identity: Identity = Depends(get_identity),
    client: QuizApiClient = Depends(get_api_client),
):
    return await _review_page(ReviewKind.SUMMARY, request, session_id, identity, client, confirm_delete)


@router.post("/quiz-summary/{session_id}/delete")
async def delete_quiz_summary(
    request: Request,
    session_id: str,
    identity: Identity = Depends(get_identity),
    client: QuizApiClient = Depends(get_api_client),
):
    return await _delete_and_leave(ReviewKind.SUMMARY, request, session_id, identity, client)


@router.get("/leaderboard")
async def leaderboard(
    request: Request,
    identity: Identity = Depends(get_identity),
    client: QuizApiClient = Depends(get_api_client),
):
    try:
        entries = await client.fetch_leaderboard()
        status = ViewStatus.READY if entries else ViewStatus.EMPTY
        error = None
    except ApiError as e:
        logger.error("Failed to fetch leaderboard", error=e.message)
        entries, status, error = [], ViewStatus.ERROR, "We couldn't load the leaderboard."

    return _render(request, "leaderboard.html", identity, status=status, entries=entries, error=error)


ERROR_TITLES = {
    400: "Bad request",
    404: "Page not found",
    405: "Not allowed",
    422: "Bad request",
}


def render_error_page(request: Request, status_code: int, message: str) -> Response:
    """HTML counterpart of the API's {error} bodies, for page routes."""
    title = ERROR_TITLES.get(status_code, "Something went wrong")
    return _render(
        request,
        "error.html",
        get_identity(request),
        status_code=status_code,
        title=title,
        message=message,
    )
