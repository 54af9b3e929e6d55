"""
PolicyQA Database Module

Database components:
- PostgreSQL with pgvector and full-text search
- SQLAlchemy models
- Connection management
- Chunk store
"""

from policyqa.db.chunk_store import ChunkStoreWriter, DocumentStore, build_chunk_rows
from policyqa.db.models import (
    EMBEDDING_DIMENSION,
    Base,
    ChunkMetadata,
    PolicyChunk,
    PolicyDocument,
    QueryLog,
)
from policyqa.db.postgres import (
    check_database_health,
    close_db,
    get_engine,
    get_session_maker,
    init_db,
)

__all__ = [
    # Base
    "Base",
    # Models
    "PolicyDocument",
    "PolicyChunk",
    "ChunkMetadata",
    "QueryLog",
    "EMBEDDING_DIMENSION",
    # Chunk store
    "ChunkStoreWriter",
    "DocumentStore",
    "build_chunk_rows",
    # Connection management
    "get_engine",
    "get_session_maker",
    "init_db",
    "close_db",
    "check_database_health",
]
