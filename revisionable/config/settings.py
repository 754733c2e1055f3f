from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Default to a SQLite file next to the package when DATABASE_URL is not set."""
    db_path = Path(__file__).parent.parent.parent / "revisions.db"
    db_url = f"sqlite:///{db_path.resolve()}"
    logger.debug(f"Using default database path: {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    revision_null_string: str = Field(
        default="nothing",
        validation_alias="REVISION_NULL_STRING",
        description="Displayed when a revision's stored value is null or empty",
    )
    revision_unknown_string: str = Field(
        default="unknown",
        validation_alias="REVISION_UNKNOWN_STRING",
        description="Displayed when a foreign key value does not resolve to a record",
    )
    revision_actor_model: str = Field(
        default="User",
        validation_alias="REVISION_ACTOR_MODEL",
        description="Registered type name used to resolve a revision's actor_id",
    )

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
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("revision_actor_model")
    @classmethod
    def validate_actor_model(cls, value: str) -> str:
        """Reject a blank actor model name; it could never resolve."""
        if not value.strip():
            raise ValueError("REVISION_ACTOR_MODEL must name a registered model, e.g. 'User'")
        return value.strip()


settings = Settings()
