import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    SQLite is only meant for local development. Production deployments set
    DATABASE_URL to a PostgreSQL connection string.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "exercise_sync.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.warning(f"Using SQLite database (LOCAL DEV ONLY): {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )

    # External systems
    player_api_url: str = Field(default="http://localhost:4300/", validation_alias="PLAYER_API_URL")
    gallery_api_url: str = Field(default="http://localhost:4722/", validation_alias="GALLERY_API_URL")
    cite_api_url: str = Field(default="http://localhost:4720/", validation_alias="CITE_API_URL")
    client_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="CLIENT_TIMEOUT_SECONDS",
        description="Timeout applied to every call made to Player, Gallery and CITE",
    )

    # Resource owner credentials used by the background workers
    identity_authority: str = Field(default="http://localhost:5000", validation_alias="IDENTITY_AUTHORITY")
    identity_client_id: str = Field(default="", validation_alias="IDENTITY_CLIENT_ID")
    identity_client_secret: str = Field(default="", validation_alias="IDENTITY_CLIENT_SECRET")
    identity_username: str = Field(default="", validation_alias="IDENTITY_USERNAME")
    identity_password: str = Field(default="", validation_alias="IDENTITY_PASSWORD")
    identity_scope: str = Field(default="player-api gallery-api cite-api", validation_alias="IDENTITY_SCOPE")
    identity_validate_discovery: bool = Field(default=True, validation_alias="IDENTITY_VALIDATE_DISCOVERY")

    # Workers
    integration_max_workers: int = Field(
        default=8,
        validation_alias="INTEGRATION_MAX_WORKERS",
        description="Upper bound on concurrently running jobs per queue",
    )
    queue_poll_interval_seconds: float = Field(default=1.0, validation_alias="QUEUE_POLL_INTERVAL_SECONDS")

    # Status fan-out
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    status_redis_enabled: bool = Field(
        default=False,
        validation_alias="STATUS_REDIS_ENABLED",
        description="Also publish push/pull status messages on Redis pub/sub",
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    log_json: bool = Field(default=False, validation_alias="LOG_JSON", description="Write the log file as JSON lines")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("integration_max_workers")
    @classmethod
    def validate_max_workers(cls, value: int) -> int:
        if value < 1:
            logger.warning(f"INTEGRATION_MAX_WORKERS must be at least 1, got {value}. Using 1.")
            return 1
        return value

    @field_validator("identity_client_id", "identity_username")
    @classmethod
    def validate_identity(cls, value: str) -> str:
        """Warn when worker credentials are missing.

        Empty values are allowed for local development; every push or pull
        will fail at the token step until they are set.
        """
        if not value:
            logger.warning(
                "IDENTITY_CLIENT_ID and/or IDENTITY_USERNAME are not set. "
                "Background workers will not be able to call Player, Gallery or CITE."
            )
        return value

    @field_validator("player_api_url", "gallery_api_url", "cite_api_url")
    @classmethod
    def ensure_trailing_slash(cls, value: str) -> str:
        """Base URLs are joined with relative paths, which requires a trailing slash."""
        if value and not value.endswith("/"):
            return value + "/"
        return value


settings = Settings()
