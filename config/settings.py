import os
from dataclasses import dataclass


def _env_optional(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass(frozen=True)
class Settings:
    SECRET_KEY: str
    OPENAI_API_KEY: str | None
    OPENAI_BASE_URL: str | None
    GRADING_MODEL: str
    GRADING_MAX_OUTPUT_TOKENS: int
    GRADING_TEMPERATURE: float
    AI_TIMEOUT_SECONDS: float
    DATABASE_URL: str | None
    DATABASE_SSLMODE: str | None
    DB_CONNECT_TIMEOUT_SECONDS: int
    DB_CLOSE_TIMEOUT_SECONDS: float
    LOG_LEVEL: str


def get_settings() -> Settings:
    return Settings(
        SECRET_KEY=os.getenv("SECRET_KEY", "dev-insecure-key"),
        OPENAI_API_KEY=_env_optional("OPENAI_API_KEY"),
        OPENAI_BASE_URL=_env_optional("OPENAI_BASE_URL"),
        GRADING_MODEL=os.getenv("GRADING_MODEL", "gpt-4o-mini"),
        GRADING_MAX_OUTPUT_TOKENS=int(os.getenv("GRADING_MAX_OUTPUT_TOKENS", "150")),
        GRADING_TEMPERATURE=float(os.getenv("GRADING_TEMPERATURE", "0.2")),
        AI_TIMEOUT_SECONDS=float(os.getenv("AI_TIMEOUT_SECONDS", "30")),
        DATABASE_URL=_env_optional("DATABASE_URL"),
        DATABASE_SSLMODE=_env_optional("DATABASE_SSLMODE"),
        DB_CONNECT_TIMEOUT_SECONDS=int(os.getenv("DB_CONNECT_TIMEOUT_SECONDS", "10")),
        DB_CLOSE_TIMEOUT_SECONDS=float(os.getenv("DB_CLOSE_TIMEOUT_SECONDS", "5")),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
