"""Configuration models for the retrieval engine."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetrievalConfig(BaseModel):
    """Configures fusion weights, selection thresholds and result caching."""

    model_config = ConfigDict(frozen=True)

    default_top_k: int = Field(default=16, ge=1)
    rerank_limit: int = Field(default=8, ge=1)
    vector_weight: float = Field(default=1.2, gt=0.0)
    primary_threshold: float = Field(default=0.55, ge=0.0)
    secondary_threshold: float = Field(default=0.4, ge=0.0)
    language_boost: float = Field(default=0.05, ge=0.0)
    fallback_limit: int = Field(default=3, ge=1)
    disable_fusion: bool = False
    disable_keyword: bool = False
    candidate_multiplier: int = Field(default=10, ge=1)
    min_candidates: int = Field(default=100, ge=1)
    result_cache_ttl_seconds: int = Field(default=600, ge=0)

    @model_validator(mode="after")
    def _check_thresholds(self) -> "RetrievalConfig":
        if self.secondary_threshold > self.primary_threshold:
            raise ValueError("secondary_threshold must not exceed primary_threshold")
        return self

    @property
    def keyword_enabled(self) -> bool:
        return not (self.disable_fusion or self.disable_keyword)


class StoreConfig(BaseModel):
    """Names the document store indexes and bounds its query time."""

    model_config = ConfigDict(frozen=True)

    vector_index: str = "embedding_vectorIndex"
    vector_path: str = "embedding"
    text_index: str = "kb_text"
    content_path: str = "content"
    max_time_ms: int = Field(default=5000, ge=1)
    fuzzy_max_edits: int = Field(default=1, ge=0, le=2)
    fuzzy_prefix_length: int = Field(default=2, ge=0)


class EmbeddingConfig(BaseModel):
    """Configures the embedding provider call, batching limits and caching."""

    model_config = ConfigDict(frozen=True)

    api_url: str = "https://api.openai.com/v1/embeddings"
    model: str = "text-embedding-3-small"
    api_key: SecretStr | None = None
    max_input_chars: int = Field(default=8000, ge=1)
    timeout_seconds: float = Field(default=10.0, gt=0.0)
    cache_ttl_seconds: int = Field(default=86400, ge=0)
    max_batch_size: int = Field(default=20, ge=1)
    max_request_chars: int = Field(default=24000, ge=2000)
    cache_namespace: str = Field(default="embed", min_length=1)


class CacheConfig(BaseModel):
    """Configures the shared cache store connection and key prefix."""

    model_config = ConfigDict(frozen=True)

    redis_url: str | None = None
    prefix: str = Field(default="kb", min_length=1)
    default_ttl_seconds: int = Field(default=300, ge=0)


class Settings(BaseSettings):
    """All engine settings, read once from the environment.

    Nested sections use a double underscore, e.g.
    ``KB_RETRIEVAL__PRIMARY_THRESHOLD=0.6`` or ``KB_EMBEDDING__API_KEY=sk-...``.
    """

    model_config = SettingsConfigDict(
        env_prefix="KB_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = "INFO"
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


def load_settings() -> Settings:
    return Settings()
