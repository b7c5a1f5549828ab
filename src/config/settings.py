from __future__ import annotations

from typing import Literal, Self

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.constants import DB_SCHEMA

# .env values become process env vars before any settings class is instantiated
load_dotenv()


class DatabaseSettings(BaseSettings):
    """PostgreSQL holding conversation history. Env vars prefixed with DATABASE_."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    name: str = "taskpilot"
    schema_: str = Field(DB_SCHEMA, validation_alias="DATABASE_SCHEMA")
    pool_size: int = Field(5, gt=0)
    max_overflow: int = Field(10, ge=0)

    @field_validator("schema_")
    @classmethod
    def _validate_schema(cls, v: str) -> str:
        if v != DB_SCHEMA:
            msg = f"DATABASE_SCHEMA must be '{DB_SCHEMA}' (got '{v}')"
            raise ValueError(msg)
        return v


class OpenAISettings(BaseSettings):
    """OpenAI API settings. Env vars prefixed with OPENAI_.

    An empty api_key disables every LLM-backed collaborator; the assistant
    then runs on heuristics and static help only.
    """

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    api_key: str = ""
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    max_retries: int = Field(3, ge=0, le=10)
    timeout_seconds: float = Field(30.0, gt=0)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key.strip())


class AssistantSettings(BaseSettings):
    """Project assistant behaviour. Env vars prefixed with ASSISTANT_."""

    model_config = SettingsConfigDict(env_prefix="ASSISTANT_")

    ai_enhancement_enabled: bool = True  # global switch for the ai-assistant tool
    history_backend: Literal["postgres", "memory"] = "postgres"
    history_load_limit: int = Field(100, gt=0)  # turns loaded from the store per request
    history_tail_for_llm: int = Field(15, gt=0)  # turns forwarded to LLM prompts
    answer_max_chars: int = Field(800, gt=0)
    classifier_temperature: float = 0.1
    answer_temperature: float = 0.2
    planner_temperature: float = 0.0
    assistant_temperature: float = 0.4
    assistant_max_sessions: int = Field(500, gt=0)  # ai-assistant session threads kept

    @model_validator(mode="after")
    def _validate(self) -> Self:
        if self.history_tail_for_llm > self.history_load_limit:
            raise ValueError(
                f"history_tail_for_llm ({self.history_tail_for_llm}) must not exceed "
                f"history_load_limit ({self.history_load_limit})"
            )
        for name in (
            "classifier_temperature",
            "answer_temperature",
            "planner_temperature",
            "assistant_temperature",
        ):
            value = getattr(self, name)
            if not (0.0 <= value <= 2.0):
                raise ValueError(f"{name} must be in [0.0, 2.0], got {value}")
        return self


class GatewaySettings(BaseSettings):
    """HTTP gateway bind address and log output. Env vars prefixed with GATEWAY_."""

    model_config = SettingsConfigDict(env_prefix="GATEWAY_")

    host: str = "0.0.0.0"
    port: int = 19789
    log_json: bool = True
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v = v.upper()
        if v not in allowed:
            msg = f"GATEWAY_LOG_LEVEL must be one of {sorted(allowed)} (got '{v}')"
            raise ValueError(msg)
        return v


class Settings(BaseSettings):
    """All TaskPilot settings; each section reads its own env prefix."""

    model_config = SettingsConfigDict(extra="ignore")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    assistant: AssistantSettings = Field(default_factory=AssistantSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on invalid values."""
    return Settings()
