"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: URCHIN_
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="URCHIN_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Language model
    llm_model: str = Field(default="gpt-4o-mini", description="LiteLLM model name")
    llm_api_key: str = Field(default="", description="API key for the model provider")
    llm_api_base: str = Field(default="", description="Custom OpenAI-compatible endpoint")
    llm_temperature: float = Field(default=0.7, description="Sampling temperature")
    llm_max_tokens: int = Field(default=8192, description="Max completion tokens")
    llm_timeout: float = Field(default=120.0, description="Hard wall-clock limit per model call")

    # Embeddings
    embedding_model: str = Field(default="text-embedding-3-small", description="Embedding model")
    embedding_api_key: str = Field(
        default="",
        description=(
            "Embedding API key (defaults to llm_api_key). Provider environment variables such as "
            "OPENAI_API_KEY are not detected; without a key or llm_api_base, ranking is keyword-only"
        ),
    )
    embedding_timeout: float = Field(default=30.0, description="Embedding request timeout")

    # Reasoning loop
    max_steps: int = Field(default=12, description="Max think-act-observe iterations")
    max_context_chars: int = Field(default=80000, description="Character budget for the message stack")
    max_history: int = Field(default=30, description="Recent turns injected verbatim")

    # Tools
    fetch_timeout: float = Field(default=15.0, description="FETCH_URL timeout")
    search_timeout: float = Field(default=10.0, description="WEB_SEARCH timeout")

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    db_name: str = Field(default="urchin.db", description="SQLite database name")

    # Logging
    log_level: str = Field(default="INFO", description="Package log level (DEBUG, INFO, WARNING, ...)")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def embedding_credentials(self) -> str:
        return self.embedding_api_key or self.llm_api_key


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
