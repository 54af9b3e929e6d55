"""
PolicyQA Configuration

Environment-backed settings for the ingestion and query pipelines.
Every value has a default so the service starts without any configuration;
secrets (API key, JWT secret) must be supplied in production.
"""

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in {"1", "true", "yes", "on"}


# ============================================
# Providers
# ============================================

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_CHAT_MODEL = "gpt-3.5-turbo"

# ============================================
# Retrieval
# ============================================

DEFAULT_DENSE_MATCH_COUNT = 5
DEFAULT_SPARSE_MATCH_COUNT = 5
DEFAULT_MATCH_THRESHOLD = 0.3
DEFAULT_RRF_K = 60
DEFAULT_FINAL_CONTEXT_COUNT = 5

# ============================================
# Chunking
# ============================================

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200

ADMIN_ROLES = frozenset({"administrator", "hr_admin"})


@dataclass(frozen=True)
class Settings:
    """Snapshot of the service configuration."""

    openai_api_key: str = ""
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dimension: int = 1536
    embedding_batch_size: int = 20
    embedding_timeout_seconds: float = 30.0
    chat_model: str = DEFAULT_CHAT_MODEL
    llm_temperature: float = 0.2
    llm_max_tokens: int = 500
    llm_timeout_seconds: float = 60.0
    extraction_timeout_seconds: float = 60.0
    dense_match_count: int = DEFAULT_DENSE_MATCH_COUNT
    sparse_match_count: int = DEFAULT_SPARSE_MATCH_COUNT
    match_threshold: float = DEFAULT_MATCH_THRESHOLD
    rrf_k: int = DEFAULT_RRF_K
    final_context_count: int = DEFAULT_FINAL_CONTEXT_COUNT
    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    fts_language: str = "english"
    upload_dir: str = "uploads"
    query_audit_enabled: bool = True
    admin_roles: frozenset[str] = field(default=ADMIN_ROLES)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
            openai_base_url=os.environ.get("OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL),
            embedding_model=os.environ.get("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
            embedding_dimension=int(os.environ.get("EMBEDDING_DIMENSION", "1536")),
            embedding_batch_size=int(os.environ.get("EMBEDDING_BATCH_SIZE", "20")),
            embedding_timeout_seconds=float(
                os.environ.get("EMBEDDING_TIMEOUT_SECONDS", "30")
            ),
            chat_model=os.environ.get("CHAT_MODEL", DEFAULT_CHAT_MODEL),
            llm_temperature=float(os.environ.get("LLM_TEMPERATURE", "0.2")),
            llm_max_tokens=int(os.environ.get("LLM_MAX_TOKENS", "500")),
            llm_timeout_seconds=float(os.environ.get("LLM_TIMEOUT_SECONDS", "60")),
            extraction_timeout_seconds=float(
                os.environ.get("EXTRACTION_TIMEOUT_SECONDS", "60")
            ),
            dense_match_count=int(
                os.environ.get("DENSE_MATCH_COUNT", str(DEFAULT_DENSE_MATCH_COUNT))
            ),
            sparse_match_count=int(
                os.environ.get("SPARSE_MATCH_COUNT", str(DEFAULT_SPARSE_MATCH_COUNT))
            ),
            match_threshold=float(
                os.environ.get("MATCH_THRESHOLD", str(DEFAULT_MATCH_THRESHOLD))
            ),
            rrf_k=int(os.environ.get("RRF_K", str(DEFAULT_RRF_K))),
            final_context_count=int(
                os.environ.get("FINAL_CONTEXT_COUNT", str(DEFAULT_FINAL_CONTEXT_COUNT))
            ),
            chunk_size=int(os.environ.get("CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE))),
            chunk_overlap=int(
                os.environ.get("CHUNK_OVERLAP", str(DEFAULT_CHUNK_OVERLAP))
            ),
            fts_language=os.environ.get("FTS_LANGUAGE", "english"),
            upload_dir=os.environ.get("UPLOAD_DIR", "uploads"),
            query_audit_enabled=_env_bool("QUERY_AUDIT_ENABLED", "true"),
        )


def get_settings() -> Settings:
    """Return settings read from the current environment."""
    return Settings.from_env()
