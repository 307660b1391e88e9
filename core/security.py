import hmac
import hashlib
import time
from dataclasses import dataclass
from typing import Optional

from core.config import settings
from core.logger import logger


@dataclass(frozen=True)
class Identity:
    """What the identity provider reports about the current visitor."""
    is_loaded: bool
    is_signed_in: bool
    user_id: Optional[str] = None

    @classmethod
    def loading(cls) -> "Identity":
        return cls(is_loaded=False, is_signed_in=False)

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls(is_loaded=True, is_signed_in=False)

    @classmethod
    def signed_in(cls, user_id: str) -> "Identity":
        return cls(is_loaded=True, is_signed_in=True, user_id=user_id)


def _sign(data: str) -> str:
    secret = settings.AUTH_SECRET.encode()
    return hmac.new(secret, data.encode(), hashlib.sha256).hexdigest()


def issue_token(user_id: str, timestamp: Optional[int] = None) -> str:
    """
    Issue a signed identity token.
    Format: {user_id}:{timestamp}:{signature}
    """
    if not user_id or ":" in user_id:
        raise ValueError("user_id must be non-empty and must not contain ':'")
    if timestamp is None:
        timestamp = int(time.time())
    data = f"{user_id}:{timestamp}"
    return f"{data}:{_sign(data)}"


def verify_token(token: Optional[str]) -> Optional[str]:
    """Return the user id carried by a valid, unexpired token."""
    if not token:
        return None

    parts = token.split(":")
    if len(parts) != 3:
        return None

    user_id, timestamp_str, signature = parts
    if not user_id:
        return None

    try:
        timestamp = int(timestamp_str)
    except ValueError:
        return None

    if int(time.time()) - timestamp > settings.TOKEN_TTL_SECONDS:
        logger.warning("Token expired", user_id=user_id)
        return None

    expected_signature = _sign(f"{user_id}:{timestamp_str}")
    if hmac.compare_digest(expected_signature, signature):
        return user_id

    logger.warning("Token signature mismatch", user_id=user_id)
    return None


def token_from_headers(authorization: Optional[str], x_auth_token: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip()
    return x_auth_token


def token_from_request(request) -> Optional[str]:
    """Token from the Authorization/X-Auth-Token headers, else the auth cookie."""
    token = token_from_headers(request.headers.get("authorization"), request.headers.get("x-auth-token"))
    return token or request.cookies.get(settings.AUTH_COOKIE_NAME)
