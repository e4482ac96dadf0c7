# docqa/config.py

"""
Configuration for the Document Q&A System.

Two layers:

• Settings   → process settings loaded once from the environment / .env
• RAGConfig  → retrieval and generation parameters, validated on every write

The RAGConfig instance is owned by a ConfigManager which is passed into the
services that need it. Updates replace the whole value; a rejected update
leaves the previous value untouched.
"""

import threading
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docqa.errors import ConfigurationError


# ========== DOCUMENT PROCESSING ==========

DEFAULT_CHUNK_SIZE = 1000  # characters per chunk
DEFAULT_CHUNK_OVERLAP = 200  # characters shared between neighbouring chunks

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB


# ========== EMBEDDING CONFIGURATION ==========

DEFAULT_EMBEDDING_MODEL = "text-embedding-ada-002"


# ========== VECTOR STORE ==========

DEFAULT_VECTOR_STORE_TYPE = "memory"
# - "memory" → FAISS flat index, delete = full scan + rebuild
# - "qdrant" → Qdrant collection (":memory:" unless VECTOR_STORE_PATH is set),
#              native point delete


# ========== LLM CONFIGURATION ==========

DEFAULT_LLM_MODEL = "gpt-3.5-turbo"
DEFAULT_LLM_TEMPERATURE = 0.0
DEFAULT_LLM_MAX_TOKENS = 500


# ========== RETRIEVAL CONFIGURATION ==========

DEFAULT_TOP_K = 4
DEFAULT_SCORE_THRESHOLD = 0.7


class RAGConfig(BaseModel):
    """Retrieval and generation parameters shared by all requests."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    chunk_size: int = Field(DEFAULT_CHUNK_SIZE, ge=100, le=10000)
    chunk_overlap: int = Field(DEFAULT_CHUNK_OVERLAP, ge=0, le=5000)

    embedding_model: str = DEFAULT_EMBEDDING_MODEL

    vector_store_type: Literal["memory", "qdrant"] = DEFAULT_VECTOR_STORE_TYPE
    vector_store_path: Optional[str] = None

    llm_model: str = DEFAULT_LLM_MODEL
    llm_temperature: float = Field(DEFAULT_LLM_TEMPERATURE, ge=0.0, le=2.0)
    llm_max_tokens: int = Field(DEFAULT_LLM_MAX_TOKENS, ge=1, le=4000)

    top_k: int = Field(DEFAULT_TOP_K, ge=1, le=20)
    score_threshold: float = Field(DEFAULT_SCORE_THRESHOLD, ge=0.0, le=1.0)

    @field_validator("embedding_model", "llm_model")
    @classmethod
    def validate_model_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v.strip()

    @model_validator(mode="after")
    def validate_overlap(self):
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Chunk overlap ({self.chunk_overlap}) must be less than "
                f"chunk size ({self.chunk_size})"
            )
        return self


RAG_CONFIG_FIELDS = set(RAGConfig.model_fields)


class Settings(BaseSettings):
    """Process settings. RAG fields are range-checked when converted to RAGConfig."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    port: int = Field(5000, ge=1, le=65535)
    environment: str = "development"
    max_file_size: int = Field(DEFAULT_MAX_FILE_SIZE, ge=1024)
    upload_dir: str = "./uploads"
    frontend_url: str = "http://localhost:5173"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/app.log"

    # Credentials
    openai_api_key: Optional[str] = None

    # RAG
    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    vector_store_type: str = DEFAULT_VECTOR_STORE_TYPE
    vector_store_path: Optional[str] = None
    llm_model: str = DEFAULT_LLM_MODEL
    llm_temperature: float = DEFAULT_LLM_TEMPERATURE
    llm_max_tokens: int = DEFAULT_LLM_MAX_TOKENS
    top_k: int = DEFAULT_TOP_K
    score_threshold: float = DEFAULT_SCORE_THRESHOLD

    def rag_config(self) -> RAGConfig:
        return build_rag_config(self.model_dump(include=RAG_CONFIG_FIELDS))


def _describe_validation_error(exc: ValidationError) -> str:

    parts = []

    for err in exc.errors():

        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid value")

        # model-level errors have an empty location
        parts.append(f"{loc}: {msg}" if loc else msg)

    return "; ".join(parts)


def build_rag_config(values: Dict[str, Any]) -> RAGConfig:
    """Validate raw values into a RAGConfig, raising ConfigurationError."""

    try:
        return RAGConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {_describe_validation_error(e)}"
        )


def load_settings() -> Settings:

    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(
            f"Failed to load configuration: {_describe_validation_error(e)}"
        )


class ConfigManager:
    """
    Owner of the current RAGConfig.

    update() is the single place where configuration writes are validated.
    """

    def __init__(self, config: Optional[RAGConfig] = None):
        self._config = config or RAGConfig()
        self._lock = threading.Lock()

    @property
    def config(self) -> RAGConfig:
        return self._config

    def get(self) -> RAGConfig:
        return self._config

    def update(self, updates: Dict[str, Any]) -> RAGConfig:

        if not isinstance(updates, dict):
            raise ConfigurationError("Configuration update must be an object")

        unknown = set(updates) - RAG_CONFIG_FIELDS

        if unknown:
            raise ConfigurationError(
                f"Unknown configuration fields: {', '.join(sorted(unknown))}"
            )

        with self._lock:

            merged = {**self._config.model_dump(), **updates}

            new_config = build_rag_config(merged)

            self._config = new_config

        return new_config

    def reset(self, config: Optional[RAGConfig] = None) -> RAGConfig:

        with self._lock:
            self._config = config or RAGConfig()

        return self._config
