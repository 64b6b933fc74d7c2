"""Google OAuth helpers and access-token refresh."""

import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode

import aiosqlite
import httpx

from eventsync.calendar.mapping import utcnow
from eventsync.config import get_settings
from eventsync.credentials import (
    PRIMARY_CALENDAR,
    get_credentials,
    update_access_token,
)

logger = logging.getLogger(__name__)

# Google OAuth endpoints
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_PRIMARY_CALENDAR_URL = "https://www.googleapis.com/calendar/v3/users/me/calendarList/primary"

# Calendar access plus Meet link creation
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]


def get_oauth_client() -> tuple[str, str]:
    """Get the configured OAuth client id and secret."""
    settings = get_settings()
    if not settings.google_client_id or not settings.google_client_secret:
        raise ValueError("Google OAuth credentials not configured")
    return settings.google_client_id, settings.google_client_secret


def build_auth_url(client_id: str, redirect_uri: str, state: str) -> str:
    """Build the Google consent URL for offline calendar access."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(CALENDAR_SCOPES),
        "access_type": "offline",
        # Force consent so Google always returns a refresh token
        "prompt": "consent",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def exchange_code_for_tokens(code: str, redirect_uri: str) -> dict:
    """Exchange an authorization code for tokens."""
    client_id, client_secret = get_oauth_client()

    async with httpx.AsyncClient() as client:
        response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
        )

        if response.status_code != 200:
            logger.error(f"Token exchange failed: {response.text}")
            raise ValueError(f"Token exchange failed: {response.text}")

        return response.json()


async def refresh_access_token(refresh_token: str) -> dict:
    """Refresh an access token."""
    client_id, client_secret = get_oauth_client()

    async with httpx.AsyncClient() as client:
        response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "refresh_token": refresh_token,
                "client_id": client_id,
                "client_secret": client_secret,
                "grant_type": "refresh_token",
            },
        )

        if response.status_code != 200:
            raise ValueError(f"Token refresh failed: {response.text}")

        return response.json()


async def get_primary_calendar_id(access_token: str) -> str:
    """Look up the id of the user's primary calendar."""
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                GOOGLE_PRIMARY_CALENDAR_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
    except httpx.HTTPError as e:
        logger.warning(f"Could not look up primary calendar: {e}")
        return PRIMARY_CALENDAR

    if response.status_code != 200:
        return PRIMARY_CALENDAR
    return response.json().get("id") or PRIMARY_CALENDAR


async def get_valid_access_token(user_id: int) -> Optional[str]:
    """
    Get a usable access token for a user, refreshing it when needed.

    The stored token is returned as-is while it is valid for longer than
    the refresh margin. Returns None when the user has no credentials or
    the refresh fails for any reason.
    """
    try:
        credentials = await get_credentials(user_id)
    except Exception as e:
        logger.error(f"Could not load Google credentials for user {user_id}: {e}")
        return None

    if not credentials:
        logger.warning(f"No Google credentials found for user {user_id}")
        return None

    now = utcnow()
    margin = timedelta(minutes=get_settings().token_refresh_margin_minutes)
    if credentials.token_expiry and now < credentials.token_expiry - margin:
        return credentials.access_token

    logger.info(f"Refreshing Google access token for user {user_id}")
    try:
        tokens = await refresh_access_token(credentials.refresh_token)
        access_token = tokens["access_token"]
        new_expiry = now + timedelta(seconds=int(tokens["expires_in"]))
    except (httpx.HTTPError, ValueError, KeyError) as e:
        logger.error(f"Token refresh failed for user {user_id}: {e}")
        return None

    try:
        stored = await update_access_token(
            user_id,
            access_token,
            new_expiry,
            expected_expiry=credentials.token_expiry,
        )
    except aiosqlite.Error as e:
        logger.error(f"Could not store refreshed token for user {user_id}: {e}")
        return access_token

    if not stored:
        # A concurrent refresh already replaced the token
        logger.info(f"Token for user {user_id} was refreshed concurrently")
        try:
            latest = await get_credentials(user_id)
        except Exception as e:
            logger.error(f"Could not re-read Google credentials for user {user_id}: {e}")
            return access_token
        if latest and latest.token_expiry and now < latest.token_expiry - margin:
            return latest.access_token

    return access_token
