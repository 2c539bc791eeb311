from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # API Keys
    anthropic_api_key: str = ""  # Optional — semantic summary/action merge; deterministic fallback if absent
    gemini_api_key: str = ""
    assemblyai_api_key: str = ""  # Optional — independent diarization signal

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    llm_model: str = "claude-sonnet-4-20250514"
    transcription_model: str = "gemini-2.5-flash"
    diarization_enabled: bool = True
    session_store: str = "memory"  # "memory" | "supabase"
    max_upload_mb: int = 50
    log_level: str = "INFO"

    # Consolidation
    retry_attempts: int = 3
    retry_base_delay_ms: int = 1000
    max_save_conflicts: int = 5
    completed_session_policy: str = "reject"  # "reject" | "ignore"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
