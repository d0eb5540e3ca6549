"""Application configuration settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "Mock Test Engine"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./mocktest.db"

    # AI providers (OpenAI first, Anthropic as text-only fallback)
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    openai_text_model: str = "gpt-4o-mini"
    openai_image_model: str = "gpt-image-1"
    anthropic_model: str = "claude-3-haiku-20240307"

    # Exam format
    attempt_time_limit_seconds: int = 120 * 60
    listening_question_total: int = 100
    reading_question_total: int = 100
    enforce_canonical_totals: bool = False

    # Tick attempts on the server instead of trusting the client's time_left
    server_clock: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
