"""
Policy Question-Answering Pipeline

Query path: embed the question -> hybrid retrieval (dense + lexical,
concurrent) -> reciprocal rank fusion -> grounded answer -> audit log.

"No results" is answered with a fixed message; every infrastructure
failure propagates as its own error.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from policyqa.config import DEFAULT_FINAL_CONTEXT_COUNT, DEFAULT_RRF_K, Settings
from policyqa.db.models import QueryLog
from policyqa.errors import NoRelevantResults, PolicyQAError
from policyqa.llm.openai_client import ChatCompletionClient
from policyqa.llm.prompt_templates import (
    NO_ANSWER_GENERATED,
    NOT_FOUND_ANSWER,
    PromptTemplate,
)
from policyqa.observability.metrics import record_query
from policyqa.rag.embedding import EmbeddingGenerator
from policyqa.rag.fusion import reciprocal_rank_fusion
from policyqa.rag.retriever import HybridRetriever, RetrievedChunk

logger = logging.getLogger(__name__)


def source_from_chunk(chunk: RetrievedChunk) -> dict[str, Any]:
    """Provenance record for one chunk used in an answer."""
    return {
        "document_id": str(chunk.document_id),
        "document_title": chunk.document_title,
        "document_status": chunk.document_status,
        "chunk_index": chunk.chunk_index,
        "chunk_text": chunk.chunk_text,
        "similarity": chunk.similarity,
        "section_title": chunk.section_title,
    }


@dataclass
class QAResponse:
    """An answer and the exact chunks it was generated from."""

    answer: str
    sources: list[dict[str, Any]] = field(default_factory=list)
    chunk_ids: list[uuid.UUID] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Result of one run of the query pipeline."""

    answer: str
    sources: list[dict[str, Any]]
    query_id: str
    processing_time_ms: float
    steps: list[dict[str, Any]] = field(default_factory=list)


# ============================================
# Answerer
# ============================================


class PolicyAnswerer:
    """Formats fused chunks into context and asks the chat model."""

    def __init__(
        self,
        chat_client: ChatCompletionClient,
        prompt_template: PromptTemplate | None = None,
    ):
        self.chat_client = chat_client
        self.prompt_template = prompt_template or PromptTemplate()

    async def answer(self, query: str, chunks: list[RetrievedChunk]) -> QAResponse:
        """Answer ``query`` from ``chunks`` only.

        With no chunks the fixed not-found answer is returned and the model
        is never called. CompletionFailure from the client propagates.
        """
        if not chunks:
            return QAResponse(answer=NOT_FOUND_ANSWER)

        messages = self.prompt_template.build_messages(query, chunks)
        text = await self.chat_client.complete(messages)

        return QAResponse(
            answer=text.strip() or NO_ANSWER_GENERATED,
            sources=[source_from_chunk(c) for c in chunks],
            chunk_ids=[c.chunk_id for c in chunks],
        )


# ============================================
# Query Pipeline
# ============================================


def _step(name: str, started: float, detail: str) -> dict[str, Any]:
    return {
        "name": name,
        "duration_ms": round((time.time() - started) * 1000, 1),
        "detail": detail,
    }


class PolicyQAPipeline:
    """Embed -> retrieve -> fuse -> answer, with metrics and audit logging."""

    def __init__(
        self,
        embedding_generator: EmbeddingGenerator,
        retriever: HybridRetriever,
        answerer: PolicyAnswerer,
        audit_session_factory: async_sessionmaker[AsyncSession] | None = None,
        rrf_k: int = DEFAULT_RRF_K,
        final_context_count: int = DEFAULT_FINAL_CONTEXT_COUNT,
    ):
        self.embedding_generator = embedding_generator
        self.retriever = retriever
        self.answerer = answerer
        self.audit_session_factory = audit_session_factory
        self.rrf_k = rrf_k
        self.final_context_count = final_context_count

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        chat_client: ChatCompletionClient | None = None,
    ) -> "PolicyQAPipeline":
        """Wire the pipeline from configuration and a session factory."""
        retriever = HybridRetriever(
            session_factory,
            dense_match_count=settings.dense_match_count,
            sparse_match_count=settings.sparse_match_count,
            match_threshold=settings.match_threshold,
            fts_language=settings.fts_language,
        )
        return cls(
            embedding_generator=EmbeddingGenerator.from_settings(settings),
            retriever=retriever,
            answerer=PolicyAnswerer(
                chat_client or ChatCompletionClient.from_settings(settings)
            ),
            audit_session_factory=(
                session_factory if settings.query_audit_enabled else None
            ),
            rrf_k=settings.rrf_k,
            final_context_count=settings.final_context_count,
        )

    async def search(self, query: str) -> list[RetrievedChunk]:
        """Fused ranking for ``query`` without generating an answer."""
        query_embedding = await self.embedding_generator.embed_query(query)
        return await self._retrieve_and_fuse(query, query_embedding)

    async def _retrieve_and_fuse(
        self, query: str, query_embedding: list[float]
    ) -> list[RetrievedChunk]:
        try:
            retrieval = await self.retriever.retrieve(query, query_embedding)
        except NoRelevantResults:
            logger.info("No relevant chunks for query '%s'", query[:50])
            return []
        return reciprocal_rank_fusion(
            retrieval.dense,
            retrieval.sparse,
            k=self.rrf_k,
            final_count=self.final_context_count,
        )

    async def run(self, query: str, user_id: str | None = None) -> PipelineResult:
        """Answer a policy question.

        Raises:
            EmbeddingFailure: The query could not be embedded.
            RetrievalFailure: Retrieval failed with nothing found.
            CompletionFailure: The chat model call failed.
        """
        start_time = time.time()
        query_id = str(uuid.uuid4())
        steps: list[dict[str, Any]] = []

        try:
            step_start = time.time()
            query_embedding = await self.embedding_generator.embed_query(query)
            steps.append(_step("embed", step_start, "Generated query embedding"))

            step_start = time.time()
            fused = await self._retrieve_and_fuse(query, query_embedding)
            steps.append(
                _step("retrieve", step_start, f"Fused {len(fused)} chunks")
            )

            step_start = time.time()
            response = await self.answerer.answer(query, fused)
            steps.append(_step("answer", step_start, "Generated answer"))
        except PolicyQAError as e:
            elapsed = (time.time() - start_time) * 1000
            logger.error("Query %s failed: %s", query_id, e.details)
            record_query(elapsed, success=False)
            await self._audit(
                query_id, query, user_id, elapsed, success=False, error=e.details
            )
            raise

        elapsed = (time.time() - start_time) * 1000
        record_query(elapsed, success=True, not_found=not fused)
        await self._audit(
            query_id,
            query,
            user_id,
            elapsed,
            success=True,
            answer=response.answer,
            chunk_ids=response.chunk_ids,
        )
        logger.info(
            "Query %s answered in %.0fms with %d sources",
            query_id,
            elapsed,
            len(response.sources),
        )

        return PipelineResult(
            answer=response.answer,
            sources=response.sources,
            query_id=query_id,
            processing_time_ms=round(elapsed, 1),
            steps=steps,
        )

    async def _audit(
        self,
        query_id: str,
        query: str,
        user_id: str | None,
        elapsed_ms: float,
        success: bool,
        answer: str | None = None,
        chunk_ids: list[uuid.UUID] | None = None,
        error: str | None = None,
    ) -> None:
        if self.audit_session_factory is None:
            return
        try:
            async with self.audit_session_factory() as session:
                async with session.begin():
                    session.add(
                        QueryLog(
                            id=uuid.UUID(query_id),
                            user_id=user_id,
                            query_text=query,
                            response_text=answer,
                            source_chunk_ids=chunk_ids or [],
                            processing_time_ms=int(elapsed_ms),
                            success=success,
                            error_text=error,
                        )
                    )
        except Exception as e:
            logger.warning("Failed to write audit log for query %s: %s", query_id, e)
