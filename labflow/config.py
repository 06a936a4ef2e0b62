"""
Application settings loaded from environment variables
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _get_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Container for application level settings"""

    app_name: str = "LabFlow"
    database_url: str = "sqlite:///./labflow.db"
    secret_key: str = "change-me-in-production"
    access_token_expire_minutes: int = 30
    log_level: str = "INFO"
    rate_limit_enabled: bool = True

    # File storage
    storage_root: str = "./storage/order-files"
    signed_url_expire_seconds: int = 3600
    max_upload_bytes: int = 50 * 1024 * 1024

    # Analytics
    timezone: str = "UTC"
    week_starts_on: int = 6  # 0=Monday ... 6=Sunday

    # Production floor layout (JSON file), optional
    floor_layout_path: Optional[str] = None

    # Change feed
    change_feed_queue_size: int = 100

    # Initial admin account created at startup when both are set
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
    bootstrap_admin_username: str = "admin"

    cors_origins: list = field(default_factory=lambda: ["*"])


def load_settings() -> Settings:
    """Build settings from the current environment"""
    cors = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        app_name=os.getenv("APP_NAME", "LabFlow"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./labflow.db"),
        secret_key=os.getenv("SECRET_KEY", "change-me-in-production"),
        access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        rate_limit_enabled=_get_bool("RATE_LIMIT_ENABLED", True),
        storage_root=os.getenv("STORAGE_ROOT", "./storage/order-files"),
        signed_url_expire_seconds=int(os.getenv("SIGNED_URL_EXPIRE_SECONDS", "3600")),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024))),
        timezone=os.getenv("LAB_TIMEZONE", "UTC"),
        week_starts_on=int(os.getenv("WEEK_STARTS_ON", "6")),
        floor_layout_path=os.getenv("FLOOR_LAYOUT_PATH") or None,
        change_feed_queue_size=int(os.getenv("CHANGE_FEED_QUEUE_SIZE", "100")),
        bootstrap_admin_email=os.getenv("BOOTSTRAP_ADMIN_EMAIL") or None,
        bootstrap_admin_password=os.getenv("BOOTSTRAP_ADMIN_PASSWORD") or None,
        bootstrap_admin_username=os.getenv("BOOTSTRAP_ADMIN_USERNAME", "admin"),
        cors_origins=[origin.strip() for origin in cors.split(",") if origin.strip()],
    )


settings = load_settings()
