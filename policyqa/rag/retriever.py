"""
Hybrid Retrieval for PolicyQA

Runs a pgvector cosine-similarity search and a PostgreSQL full-text search
concurrently, each on its own session. Either path may fail on its own;
the query only fails when nothing at all comes back.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from policyqa.config import (
    DEFAULT_DENSE_MATCH_COUNT,
    DEFAULT_MATCH_THRESHOLD,
    DEFAULT_SPARSE_MATCH_COUNT,
)
from policyqa.db.models import ChunkMetadata
from policyqa.errors import NoRelevantResults, RetrievalFailure

logger = logging.getLogger(__name__)


# ============================================
# RetrievedChunk
# ============================================


@dataclass
class RetrievedChunk:
    """A chunk returned by one of the retrieval paths."""

    chunk_id: uuid.UUID
    document_id: uuid.UUID
    chunk_index: int
    chunk_text: str
    document_title: str
    document_status: str
    metadata: ChunkMetadata | None = None
    similarity: float | None = None  # dense path
    rank: float | None = None  # lexical path
    rrf_score: float = 0.0

    @property
    def section_title(self) -> str | None:
        return self.metadata.section_title if self.metadata else None


@dataclass
class RetrievalResult:
    """Per-path results plus the errors of any path that failed."""

    dense: list[RetrievedChunk]
    sparse: list[RetrievedChunk]
    errors: list[str] = field(default_factory=list)


def _to_vector_literal(embedding: list[float]) -> str:
    # pgvector literal: '[1.0,2.0,3.0]'
    return "[" + ",".join(str(v) for v in embedding) + "]"


_CHUNK_COLUMNS = (
    "c.id, c.document_id, c.chunk_index, c.chunk_text, "
    "c.metadata AS chunk_metadata, "
    "d.title AS document_title, d.status AS document_status"
)


def _parse_metadata(row) -> ChunkMetadata | None:
    if not row.chunk_metadata:
        return None
    try:
        return ChunkMetadata.model_validate(row.chunk_metadata)
    except ValidationError as e:
        logger.warning("Ignoring malformed metadata on chunk %s: %s", row.id, e)
        return None


def _row_to_chunk(row, **scores) -> RetrievedChunk:
    return RetrievedChunk(
        chunk_id=row.id,
        document_id=row.document_id,
        chunk_index=row.chunk_index,
        chunk_text=row.chunk_text,
        document_title=row.document_title,
        document_status=row.document_status,
        metadata=_parse_metadata(row),
        **scores,
    )


# ============================================
# DenseRetriever
# ============================================


class DenseRetriever:
    """Vector similarity search using pgvector cosine distance."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def search(
        self,
        query_embedding: list[float],
        match_count: int = DEFAULT_DENSE_MATCH_COUNT,
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
    ) -> list[RetrievedChunk]:
        """Chunks with similarity above ``match_threshold``, most similar first."""
        sql = text(
            f"SELECT {_CHUNK_COLUMNS}, "
            "1 - (c.embedding <=> CAST(:query_vector AS vector)) AS similarity "
            "FROM policy_chunks c "
            "JOIN policy_documents d ON d.id = c.document_id "
            "WHERE c.embedding IS NOT NULL "
            "AND 1 - (c.embedding <=> CAST(:query_vector AS vector)) > :threshold "
            "ORDER BY c.embedding <=> CAST(:query_vector AS vector) "
            "LIMIT :match_count"
        )
        result = await self._session.execute(
            sql,
            {
                "query_vector": _to_vector_literal(query_embedding),
                "threshold": match_threshold,
                "match_count": match_count,
            },
        )
        return [
            _row_to_chunk(row, similarity=float(row.similarity))
            for row in result.fetchall()
        ]


# ============================================
# SparseRetriever
# ============================================


class SparseRetriever:
    """Lexical search over the generated ``search_vector`` column."""

    def __init__(self, session: AsyncSession, language: str = "english"):
        self._session = session
        self._language = language

    async def search(
        self, query: str, match_count: int = DEFAULT_SPARSE_MATCH_COUNT
    ) -> list[RetrievedChunk]:
        """Chunks matching ``query``, best ``ts_rank_cd`` first."""
        sql = text(
            f"SELECT {_CHUNK_COLUMNS}, "
            "ts_rank_cd(c.search_vector, q) AS rank "
            "FROM policy_chunks c "
            "JOIN policy_documents d ON d.id = c.document_id, "
            "websearch_to_tsquery(CAST(:language AS regconfig), :query) q "
            "WHERE c.search_vector @@ q "
            "ORDER BY rank DESC "
            "LIMIT :match_count"
        )
        result = await self._session.execute(
            sql,
            {"language": self._language, "query": query, "match_count": match_count},
        )
        return [_row_to_chunk(row, rank=float(row.rank)) for row in result.fetchall()]


# ============================================
# HybridRetriever
# ============================================


class HybridRetriever:
    """Issues the dense and lexical searches concurrently."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dense_match_count: int = DEFAULT_DENSE_MATCH_COUNT,
        sparse_match_count: int = DEFAULT_SPARSE_MATCH_COUNT,
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
        fts_language: str = "english",
    ):
        self._session_factory = session_factory
        self.dense_match_count = dense_match_count
        self.sparse_match_count = sparse_match_count
        self.match_threshold = match_threshold
        self.fts_language = fts_language

    async def _dense(self, query_embedding: list[float]) -> list[RetrievedChunk]:
        async with self._session_factory() as session:
            return await DenseRetriever(session).search(
                query_embedding,
                match_count=self.dense_match_count,
                match_threshold=self.match_threshold,
            )

    async def _sparse(self, query: str) -> list[RetrievedChunk]:
        async with self._session_factory() as session:
            return await SparseRetriever(session, self.fts_language).search(
                query, match_count=self.sparse_match_count
            )

    async def retrieve(
        self, query: str, query_embedding: list[float]
    ) -> RetrievalResult:
        """Run both searches and collect their results.

        Raises:
            RetrievalFailure: A path failed and nothing was found.
            NoRelevantResults: Both paths succeeded and found nothing.
        """
        outcomes = await asyncio.gather(
            self._dense(query_embedding),
            self._sparse(query),
            return_exceptions=True,
        )

        errors: list[str] = []
        results: list[list[RetrievedChunk]] = []
        for path, outcome in zip(("dense", "sparse"), outcomes, strict=True):
            if isinstance(outcome, Exception):
                logger.error(
                    "%s search failed for query '%s': %s",
                    path.capitalize(),
                    query[:50],
                    outcome,
                )
                errors.append(f"{path} search: {outcome}")
                results.append([])
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)

        dense, sparse = results
        logger.info(
            "Retrieved %d dense and %d sparse results", len(dense), len(sparse)
        )

        if not dense and not sparse:
            if errors:
                raise RetrievalFailure("; ".join(errors))
            raise NoRelevantResults("No chunks matched the query")

        return RetrievalResult(dense=dense, sparse=sparse, errors=errors)
