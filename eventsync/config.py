"""Application configuration management."""

import hashlib
import os
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_path: str = "/data/eventsync.db"

    # Encryption
    encryption_key_file: str = "/secrets/encryption.key"

    # Server
    public_url: str = "http://localhost:3000"
    log_level: str = "info"

    # Session (issued by the tracker front end, verified here)
    session_secret_key: Optional[str] = None
    session_expire_days: int = 7

    # Google OAuth client
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None

    # Rate limiting
    rate_limit_per_minute: int = 30

    # Sync settings
    token_refresh_margin_minutes: int = 5
    sync_window_past_days: int = 30
    sync_window_future_days: int = 180
    sync_max_results: int = 250

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_encryption_key() -> bytes:
    """Load the token encryption key from file."""
    key_file = get_settings().encryption_key_file

    if not os.path.exists(key_file):
        raise RuntimeError(f"Encryption key file not found at {key_file}")

    with open(key_file, "rb") as f:
        key = f.read().rstrip(b"\r\n")

    if len(key) < 32:
        raise RuntimeError("Invalid encryption key: must be at least 32 bytes")

    return key


def get_session_secret() -> str:
    """Get session secret key, derived from encryption key if not set."""
    settings = get_settings()
    if settings.session_secret_key:
        return settings.session_secret_key

    return hashlib.sha256(get_encryption_key() + b"session_secret").hexdigest()
