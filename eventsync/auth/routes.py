"""Google Calendar connect/disconnect routes."""

import logging
import secrets
from datetime import timedelta
from typing import Optional
from urllib.parse import quote, urljoin

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from eventsync.auth.google import (
    build_auth_url,
    exchange_code_for_tokens,
    get_oauth_client,
    get_primary_calendar_id,
)
from eventsync.auth.session import get_current_user, get_session_user, User
from eventsync.calendar.mapping import format_timestamp, utcnow
from eventsync.config import get_settings
from eventsync.credentials import delete_credentials, get_credentials, upsert_credentials
from eventsync.database import get_database, log_sync_action

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth/google", tags=["auth"])

CALLBACK_PATH = "/auth/google/callback"


async def store_oauth_state(state: str, user_id: int, next_url: Optional[str] = None, ttl_minutes: int = 10) -> None:
    """Store OAuth state in database with TTL."""
    db = await get_database()
    expires_at = format_timestamp(utcnow() + timedelta(minutes=ttl_minutes))
    await db.execute(
        """INSERT INTO oauth_states (state, user_id, next_url, expires_at)
           VALUES (?, ?, ?, ?)""",
        (state, user_id, next_url, expires_at)
    )
    await db.commit()


async def pop_oauth_state(state: Optional[str]) -> Optional[dict]:
    """Retrieve and delete an unexpired OAuth state."""
    if not state:
        return None

    db = await get_database()
    cursor = await db.execute(
        """SELECT user_id, next_url FROM oauth_states
           WHERE state = ? AND expires_at > ?""",
        (state, format_timestamp(utcnow()))
    )
    row = await cursor.fetchone()

    # One-time use
    await db.execute("DELETE FROM oauth_states WHERE state = ?", (state,))
    await db.commit()

    if row:
        return {"user_id": row["user_id"], "next": row["next_url"]}
    return None


async def cleanup_expired_oauth_states() -> None:
    """Clean up expired OAuth states."""
    db = await get_database()
    await db.execute(
        "DELETE FROM oauth_states WHERE expires_at < ?",
        (format_timestamp(utcnow()),)
    )
    await db.commit()


def get_redirect_uri() -> str:
    """Absolute OAuth redirect URI."""
    return urljoin(get_settings().public_url, CALLBACK_PATH)


def _redirect_with(next_url: str, key: str, message: str) -> RedirectResponse:
    separator = "&" if "?" in next_url else "?"
    return RedirectResponse(
        url=f"{next_url}{separator}{key}={quote(message)}",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/connect")
async def connect_google_calendar(next: Optional[str] = None, user: User = Depends(get_current_user)):
    """Start the Google OAuth flow for calendar access."""
    try:
        client_id, _ = get_oauth_client()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Google OAuth not configured. Please set GOOGLE_CLIENT_ID.",
        )

    # Only same-site relative redirects
    if not next or not next.startswith("/") or next.startswith("//"):
        next = "/"

    state = secrets.token_urlsafe(32)
    await store_oauth_state(state, user.id, next_url=next)
    await cleanup_expired_oauth_states()

    auth_url = build_auth_url(client_id=client_id, redirect_uri=get_redirect_uri(), state=state)
    return RedirectResponse(url=auth_url, status_code=status.HTTP_302_FOUND)


@router.get("/callback")
async def google_calendar_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
):
    """Handle the OAuth callback and store the user's calendar credentials."""
    if error:
        logger.error(f"Google OAuth error: {error}")
        return _redirect_with("/", "google_error", "Google authorization was denied")

    state_data = await pop_oauth_state(state)
    if not code or not state_data:
        return _redirect_with("/", "google_error", "Invalid callback parameters")

    next_url = state_data["next"] or "/"
    user = await get_session_user(request)
    if not user or user.id != state_data["user_id"]:
        return RedirectResponse(url="/login", status_code=status.HTTP_302_FOUND)

    try:
        tokens = await exchange_code_for_tokens(code, get_redirect_uri())
    except ValueError as e:
        logger.error(f"Google token exchange failed for user {user.id}: {e}")
        return _redirect_with(next_url, "google_error", "Failed to get access token")

    access_token = tokens["access_token"]
    calendar_id = await get_primary_calendar_id(access_token)

    # Google may omit the refresh token on a reconnect; keep the stored one
    refresh_token = tokens.get("refresh_token")
    if not refresh_token:
        existing = await get_credentials(user.id)
        refresh_token = existing.refresh_token if existing else ""

    await upsert_credentials(
        user_id=user.id,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=tokens.get("expires_in"),
        calendar_id=calendar_id,
    )
    await log_sync_action(user.id, None, "google_connect", "success", calendar_id)

    logger.info(f"Google Calendar connected for user {user.id}")
    return _redirect_with(next_url, "google_success", "Google Calendar connected!")


@router.post("/disconnect")
async def disconnect_google_calendar(user: User = Depends(get_current_user)):
    """Remove the user's Google credentials."""
    removed = await delete_credentials(user.id)
    await log_sync_action(user.id, None, "google_disconnect", "success", None)

    logger.info(f"Google Calendar disconnected for user {user.id}")
    return {"success": True, "removed": removed}
