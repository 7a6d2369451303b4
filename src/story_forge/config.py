"""Configuration management for Story Forge."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, loaded from environment and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SF_",
    )

    # Ollama (local LLM)
    ollama_base_url: str = Field(default="http://localhost:11434")

    # Hugging Face Inference API
    hf_api_key: str = Field(default="")
    hf_base_url: str = Field(default="https://router.huggingface.co/v1")
    llm_provider: str = Field(default="ollama", description="ollama or huggingface")

    # Agents
    agents_file: Path | None = Field(default=None, description="JSON roster of writers and evaluators")

    # Timeouts (seconds)
    writer_timeout: float = Field(default=120.0, gt=0)
    evaluator_timeout: float = Field(default=60.0, gt=0)

    # Evaluation
    evaluator_max_retries: int = Field(default=2, ge=0, description="Extra attempts on malformed judge output")

    # Draft guard
    coherence_retries: int = Field(default=2, ge=0, description="Regenerations for gibberish drafts")
    min_draft_chars: int = Field(default=0, ge=0, description="Extend drafts shorter than this (0 disables)")
    max_extension_rounds: int = Field(default=6, ge=0)

    # Paths
    data_dir: Path = Field(default=Path("data"))

    log_level: str = Field(default="INFO")

    @property
    def results_file(self) -> Path:
        return self.data_dir / "generations.jsonl"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
