"""Application settings loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the application."""

    service_name: str = Field(default="marginalia")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    language: str = Field(default="en")

    # Text generation (Replicate)
    replicate_api_token: str = Field(default="")
    llm_model: str = Field(default="openai/gpt-5-nano")
    llm_max_completion_tokens: int = Field(default=256)
    llm_log_payloads: bool = Field(default=False)

    # Annotation protocol: "adaptive" classifies before generating,
    # "direct" uses the single journaling prompt.
    annotation_mode: Literal["adaptive", "direct"] = Field(default="adaptive")
    prompts_path: Optional[Path] = Field(default=None)

    # Triggering
    trigger_policy: Literal["double-terminator", "paragraph-count"] = Field(
        default="double-terminator"
    )
    min_paragraph_chars: int = Field(default=10)
    reanchor_notes: bool = Field(default=True)

    # Persistence
    storage_backend: Literal["file", "sql", "memory"] = Field(default="file")
    storage_dir: Path = Field(default=Path("/tmp/marginalia"))
    database_url: str = Field(default="sqlite:///marginalia.db")
    content_key: str = Field(default="marginalia-content")
    notes_key: str = Field(default="marginalia-notes")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Be lenient with env var names (e.g., LLM_MODEL vs llm_model)
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return application settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
