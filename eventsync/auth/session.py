"""Tracker session tokens.

The tracker front end signs in its users and hands them an HS256 JWT, sent
either as the ``session`` cookie or as a bearer token. This service only
verifies the token and maps it to a local user row.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from eventsync.config import get_session_secret, get_settings
from eventsync.database import get_database

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SESSION_COOKIE_NAME = "session"


class SessionClaims(BaseModel):
    user_id: int
    email: str
    exp: datetime


class User(BaseModel):
    """The tracker user behind a request."""
    id: int
    email: str
    display_name: Optional[str] = None


def create_session_token(user_id: int, email: str) -> str:
    """Sign a session token the way the tracker front end does."""
    claims = {
        "user_id": user_id,
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(days=get_settings().session_expire_days),
    }
    return jwt.encode(claims, get_session_secret(), algorithm=ALGORITHM)


def verify_session_token(token: str) -> Optional[SessionClaims]:
    try:
        return SessionClaims(**jwt.decode(token, get_session_secret(), algorithms=[ALGORITHM]))
    except (JWTError, ValidationError) as e:
        logger.warning(f"Rejected session token: {e}")
        return None


def _request_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return request.cookies.get(SESSION_COOKIE_NAME)


async def get_user_by_id(user_id: int) -> Optional[User]:
    db = await get_database()
    cursor = await db.execute(
        "SELECT id, email, display_name FROM users WHERE id = ?", (user_id,)
    )
    row = await cursor.fetchone()
    return User(**dict(row)) if row else None


async def get_session_user(request: Request) -> Optional[User]:
    """
    Resolve the user a request is signed in as, or None.

    A token whose email no longer matches the user row is treated as stale.
    """
    token = _request_token(request)
    if not token:
        return None

    claims = verify_session_token(token)
    if not claims:
        return None

    user = await get_user_by_id(claims.user_id)
    if user and user.email != claims.email:
        logger.warning(f"Session for user {user.id} carries an outdated email")
        return None
    return user


async def get_current_user(request: Request) -> User:
    """FastAPI dependency: the signed-in user, or 401."""
    user = await get_session_user(request)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
