"""
Auth utilities for the Tangabiz API.

Validates HS256 session JWTs and extracts the caller's identity (user_id and
verified email) from request context. Outside production, X-User-Id /
X-User-Email headers are accepted for service-to-service calls and tests.
"""
from dataclasses import dataclass
from fastapi import Depends, Header, HTTPException, Request
from typing import Any, Dict, Optional
import logging

import jwt

from tangabiz.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    email: Optional[str] = None


def header_identity_allowed() -> bool:
    """Header identity is only trusted outside production."""
    return settings.ENV.lower() != "production"


def decode_session_jwt(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify a session JWT and return its claims.

    Returns:
        Claims dict, or None when no JWT_SECRET is configured

    Raises:
        HTTPException 401: Invalid or expired token, or no 'sub' claim
    """
    if not settings.JWT_SECRET:
        logger.debug("No JWT_SECRET configured, skipping JWT validation")
        return None

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


async def get_current_user(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Non-production fallback: caller user ID"),
    x_user_email: Optional[str] = Header(None, description="Non-production fallback: caller email"),
) -> CurrentUser:
    """
    Resolve the caller.

    Priority:
    1. JWT from Authorization header ('sub', 'email' claims)
    2. X-User-Id / X-User-Email headers, unless ENV is production
    3. Raise 401 Unauthorized
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        claims = decode_session_jwt(auth_header[7:])
        if claims:
            user = CurrentUser(user_id=str(claims["sub"]), email=claims.get("email"))
            request.state.user_id = user.user_id
            return user

    if x_user_id and header_identity_allowed():
        request.state.user_id = x_user_id
        return CurrentUser(user_id=x_user_id, email=x_user_email)

    if x_user_id:
        logger.warning("[auth] header identity rejected in production", extra={"path": request.url.path})
    raise HTTPException(
        status_code=401,
        detail="Missing Authorization (Bearer JWT) or X-User-Id header",
    )


async def get_current_user_id(user: CurrentUser = Depends(get_current_user)) -> str:
    return user.user_id
