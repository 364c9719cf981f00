"""Shared configuration loaded from environment / ``.env``."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from knowledge_rag.prompts import DEFAULT_SYSTEM_PROMPT


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file.

    Build one instance at process start (see :func:`get_settings`) and
    hand it to :class:`~knowledge_rag.processor.DocumentProcessor`.
    """

    # Embedding
    embedding_provider: Literal["openai", "huggingface"] = "openai"
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Model id passed to the embedding provider",
    )
    embedding_dimensions: int | None = Field(
        default=1536,
        description="Expected vector size. ``None`` disables the dimension check.",
    )
    openai_api_key: str = Field(default="", description="OpenAI API key")
    embedding_base_url: str = Field(
        default="",
        description=(
            "Base URL for an OpenAI-compatible embedding endpoint. "
            "Leave empty to use OpenAI cloud."
        ),
    )
    embedding_batch_size: int = Field(default=64, gt=0)
    embedding_max_workers: int = Field(
        default=1,
        gt=0,
        description="Concurrent embedding batches per ingestion call (1 = sequential)",
    )

    # Vector store
    vector_store_backend: Literal["chroma", "memory"] = "chroma"
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    namespace: str = "knowledge-base"
    upsert_batch_size: int = Field(default=500, gt=0)
    list_limit: int = Field(default=10_000, gt=0)

    # Chunking
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    chunk_min_size: int = Field(default=1, ge=1)

    # Retrieval
    relevance_threshold: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Results must score strictly above this to enter the context",
    )
    max_context_chunks: int = Field(default=3, gt=0)
    preview_length: int = Field(default=150, gt=0)

    # Website fetching
    request_timeout: float = 30.0
    max_retries: int = Field(default=3, ge=1)
    user_agent: str = "knowledge-rag/0.1"

    # Prompting
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_chunk_window(self) -> Settings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be < chunk_size ({self.chunk_size})"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, built on first use."""
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Install a basic stream handler for the whole application."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
