from __future__ import annotations

from typing import Annotated, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class TrackerSettings(BaseSettings):
    """
    Configuration for the tracker relay service.
    """

    # Load environment variables from .env if present.
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # ignore unknown env vars
    )

    # --- HTTP server ---
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False

    # Comma-separated in the environment, e.g. CORS_ORIGINS=http://a,http://b
    cors_origins: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    # --- Logging ---
    log_level: str = "INFO"

    # --- Movement detection ---
    # Number of consecutive "moving" reports needed before an alert is considered.
    movement_window_size: int = 3
    # Minimum spacing between two alert emails (seconds).
    alert_cooldown_sec: int = 300

    # --- Browser map client ---
    maps_api_key: Optional[str] = None

    # --- Email alerts (SMTP) ---
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_starttls: bool = True
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_timeout_sec: float = 10.0

    alert_from: Optional[str] = None  # defaults to smtp_user
    alert_to: Optional[str] = None
    alert_subject: str = "GPS Tracker Movement Alert"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @property
    def email_enabled(self) -> bool:
        """True when enough SMTP settings exist to actually send mail."""
        return bool(self.smtp_host and self.alert_to and (self.alert_from or self.smtp_user))


# Convenience global settings object.
# This lets other modules do: from gps_tracker.config import settings
settings = TrackerSettings()
