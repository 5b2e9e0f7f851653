import logging
import re
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


DEFAULT_SESSION_EXPIRATION_SECONDS = 1800
MIN_SESSION_EXPIRATION_SECONDS = 60

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}

# logging_config imports settings, so reach the application logger by name.
_log = logging.getLogger("nfaproxy")


def parse_duration_seconds(value: str) -> int:
    """
    Convert a Go-style duration string ("1h", "30m", "1h30m", "90s") into
    whole seconds. A bare number is read as seconds.
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("empty duration")
    if text.isdigit():
        return int(text)

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration: {value!r}")
    return int(total)


class Settings(BaseSettings):
    # Read from OS env and optional .env file in project root.
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    consumer_node_url: Optional[str] = Field(
        default=None,
        alias="CONSUMER_NODE_URL",
        description="Consumer node base URL used for sessions and chat completions",
    )
    marketplace_url: str = Field(
        "http://marketplace:9000",
        alias="MARKETPLACE_URL",
        description="Marketplace base URL exposing /blockchain/models",
    )

    session_duration: str = Field(
        "1h",
        alias="SESSION_DURATION",
        description="Requested session length, e.g. '1h' or '30m'",
    )
    session_expiration_seconds: int = Field(
        DEFAULT_SESSION_EXPIRATION_SECONDS,
        alias="SESSION_EXPIRATION_SECONDS",
        description="How long a cached session is reused before a new one is opened",
    )
    session_mode: str = Field(
        "live",
        alias="SESSION_MODE",
        description="'live' talks to the marketplace, 'dummy' serves canned responses",
    )
    session_sweep_enabled: bool = Field(True, alias="SESSION_SWEEP_ENABLED")

    port: int = Field(8081, alias="PORT")
    chat_completions_path: str = Field(
        "/v1/chat/completions", alias="CHAT_COMPLETIONS_PATH"
    )

    # Basic-Auth credentials for the consumer node.
    cookie_file_path: str = Field(".cookie", alias="COOKIE_FILE_PATH")
    consumer_username: Optional[str] = Field(default=None, alias="CONSUMER_USERNAME")
    consumer_password: Optional[str] = Field(default=None, alias="CONSUMER_PASSWORD")

    # Application log level for our nfaproxy logger.
    log_level: str = Field(
        "INFO",
        alias="LOG_LEVEL",
        description="Application log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_timezone: Optional[str] = Field(
        default=None,
        alias="LOG_TIMEZONE",
        description="Timezone name for log timestamps, e.g. 'Europe/Berlin'. Defaults to system local time.",
    )
    log_dir: str = Field("logs", alias="LOG_DIR")

    @field_validator("session_expiration_seconds", mode="before")
    @classmethod
    def _fallback_expiration(cls, value):
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            seconds = None
        if seconds is None or seconds < MIN_SESSION_EXPIRATION_SECONDS:
            _log.warning(
                "Invalid SESSION_EXPIRATION_SECONDS value: %r, using default of %d",
                value,
                DEFAULT_SESSION_EXPIRATION_SECONDS,
            )
            return DEFAULT_SESSION_EXPIRATION_SECONDS
        return seconds

    @field_validator("session_mode")
    @classmethod
    def _normalise_mode(cls, value: str) -> str:
        mode = value.strip().lower()
        if mode not in ("live", "dummy"):
            raise ValueError("SESSION_MODE must be 'live' or 'dummy'")
        return mode

    @property
    def session_duration_seconds(self) -> int:
        return parse_duration_seconds(self.session_duration)

    def ensure_required(self) -> None:
        """
        Fail fast on settings the live proxy cannot run without.
        """
        if self.session_mode == "live" and not self.consumer_node_url:
            raise ConfigurationError(
                "CONSUMER_NODE_URL environment variable is required"
            )
        try:
            self.session_duration_seconds
        except ValueError as exc:
            raise ConfigurationError(
                f"failed to parse SESSION_DURATION: {exc}"
            ) from exc


settings = Settings()  # Reads from environment if available
