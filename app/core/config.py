from typing import Optional
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    name: str = Field(default="learnit-quizgen", alias="APP_NAME")
    version: str = Field(default="v1", alias="API_VERSION")
    port: int = Field(default=9000, alias="APP_PORT")
    mode: str = Field(default="prod", alias="MODE")

    @computed_field
    def is_production(self) -> bool:
        return self.mode != "dev"


class GenerationSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    # ~700K tokens at 4 chars/token; above this the document is chunked
    chunk_threshold: int = Field(default=2_800_000, alias="CHUNK_THRESHOLD_CHARS")
    # ~150K tokens per chunk
    chunk_size: int = Field(default=600_000, alias="CHUNK_SIZE_CHARS")

    model_name: str = Field(default="gemini-2.0-flash", alias="GEMINI_MODEL")
    temperature: float = Field(default=0.7, alias="GENERATION_TEMPERATURE")
    top_k: int = Field(default=40, alias="GENERATION_TOP_K")
    top_p: float = Field(default=0.95, alias="GENERATION_TOP_P")
    max_output_tokens: int = Field(
        default=8192, alias="GENERATION_MAX_OUTPUT_TOKENS"
    )

    retry_attempts: int = Field(default=3, alias="GENERATION_RETRY_ATTEMPTS")
    retry_initial_delay: float = Field(
        default=0.5, alias="GENERATION_RETRY_INITIAL_DELAY"
    )
    retry_max_delay: float = Field(default=5.0, alias="GENERATION_RETRY_MAX_DELAY")
    retry_factor: float = Field(default=2.0, alias="GENERATION_RETRY_FACTOR")


class CacheSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    ttl_seconds: int = Field(default=24 * 60 * 60, alias="CACHE_TTL_SECONDS")
    max_entries: int = Field(default=100, alias="CACHE_MAX_ENTRIES")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=lambda: AppSettings())
    generation: GenerationSettings = Field(
        default_factory=lambda: GenerationSettings()
    )
    cache: CacheSettings = Field(default_factory=lambda: CacheSettings())

    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    openrouter_api_key: Optional[str] = Field(
        default=None, alias="OPENROUTER_API_KEY"
    )

    # Model provider selection: "google" or "openrouter"
    model_provider: str = Field(default="google", alias="MODEL_PROVIDER")
    openrouter_model: str = Field(
        default="google/gemini-2.0-flash-001", alias="OPENROUTER_MODEL"
    )


settings = Settings()
