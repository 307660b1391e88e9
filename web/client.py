from typing import Any, Dict, List, Optional

import httpx

from core.logger import logger
from schemas.quiz import (
    AnswerResponse,
    LeaderboardEntry,
    QuizSessionOut,
    QuizSessionSummary,
)
from web.viewstate import ReviewKind


class ApiError(Exception):
    """A request to the quiz API failed or returned a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"Request failed with status {response.status_code}"


class QuizApiClient:
    """
    HTTP client the pages use to reach the quiz API.
    One instance per page request; the caller's token is forwarded.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "QuizApiClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Quiz API unreachable", method=method, url=url, error=str(e))
            raise ApiError("Could not reach the quiz service") from e

        if response.is_error:
            message = _error_message(response)
            logger.warning("Quiz API error", method=method, url=url, status=response.status_code, error=message)
            raise ApiError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise ApiError("Malformed response from the quiz service", status_code=response.status_code) from e

    async def fetch_history(self) -> List[QuizSessionSummary]:
        data = await self._request("GET", "/api/history")
        return [QuizSessionSummary.model_validate(item) for item in data.get("pastQuizzes") or []]

    async def fetch_session(self, kind: ReviewKind, session_id: str) -> Optional[QuizSessionOut]:
        """None when the session does not exist or belongs to someone else."""
        data = await self._request("GET", kind.api_path, params={"id": session_id})
        payload = data.get(kind.response_key)
        if payload is None:
            return None
        return QuizSessionOut.model_validate(payload)

    async def delete_session(self, kind: ReviewKind, session_id: str):
        await self._request("DELETE", kind.api_path, params={"id": session_id})

    async def start_session(self, session_id: str) -> QuizSessionOut:
        data = await self._request("POST", "/api/quiz", json={"session_id": session_id})
        return QuizSessionOut.model_validate(data)

    async def submit_answer(self, session_id: str, question_index: int, answer: str) -> AnswerResponse:
        data = await self._request(
            "POST",
            "/api/quiz/answer",
            json={"session_id": session_id, "question_index": question_index, "answer": answer},
        )
        return AnswerResponse.model_validate(data)

    async def fetch_leaderboard(self) -> List[LeaderboardEntry]:
        data = await self._request("GET", "/api/leaderboard")
        return [LeaderboardEntry.model_validate(item) for item in data.get("leaderboard") or []]
