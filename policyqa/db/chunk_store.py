"""
PolicyQA Chunk Store

Writes a document's chunk set atomically and serves the document-level
reads the ingestion and status endpoints need.
"""

import logging
import uuid
from typing import Any

from sqlalchemy import delete, func, insert, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from policyqa.db.models import ChunkMetadata, PolicyChunk, PolicyDocument
from policyqa.errors import DocumentNotFound, StorageFailure
from policyqa.rag.chunker import DocumentChunk

logger = logging.getLogger(__name__)

# Serialises concurrent re-ingestion of the same document
ADVISORY_LOCK_SQL = text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))")


def build_chunk_rows(
    document: PolicyDocument,
    chunks: list[DocumentChunk],
    embeddings: list[list[float] | None],
) -> list[dict[str, Any]]:
    """Build insert rows for ``chunks`` with their per-chunk metadata."""
    if len(chunks) != len(embeddings):
        raise ValueError(
            f"Got {len(chunks)} chunks but {len(embeddings)} embeddings"
        )

    total = len(chunks)
    rows = []
    for chunk, embedding in zip(chunks, embeddings, strict=True):
        metadata = ChunkMetadata(
            title=document.title,
            document_status=document.status,
            chunk_number=chunk.chunk_index + 1,
            total_chunks=total,
            section_title=chunk.section_title,
        )
        rows.append(
            {
                "id": uuid.uuid4(),
                "document_id": document.id,
                "chunk_index": chunk.chunk_index,
                "chunk_text": chunk.text,
                "embedding": embedding,
                "chunk_metadata": metadata.model_dump(),
            }
        )
    return rows


# ============================================
# Chunk Store Writer
# ============================================


class ChunkStoreWriter:
    """Replaces a document's chunks in a single transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def replace_chunks(
        self,
        document: PolicyDocument,
        chunks: list[DocumentChunk],
        embeddings: list[list[float] | None],
    ) -> int:
        """Delete every chunk of ``document`` and insert the new set.

        Either the whole new set is visible afterwards or the old set
        survives untouched.

        Returns:
            Number of rows written.

        Raises:
            ValueError: If ``chunks`` and ``embeddings`` differ in length.
            StorageFailure: On any database error, naming the failed phase.
        """
        rows = build_chunk_rows(document, chunks, embeddings)

        phase = "delete"
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(ADVISORY_LOCK_SQL, {"key": str(document.id)})
                    await session.execute(
                        delete(PolicyChunk).where(
                            PolicyChunk.document_id == document.id
                        )
                    )
                    phase = "insert"
                    if rows:
                        await session.execute(insert(PolicyChunk), rows)
        except SQLAlchemyError as e:
            logger.error(
                "Chunk %s failed for document %s: %s", phase, document.id, e
            )
            raise StorageFailure(
                f"Failed to {phase} chunks: {e}", phase=phase
            ) from e

        logger.info("Stored %d chunks for document %s", len(rows), document.id)
        return len(rows)


# ============================================
# Document Store
# ============================================


class DocumentStore:
    """Read access to policy documents and their chunks."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_document(self, document_id: uuid.UUID) -> PolicyDocument:
        """Fetch a document by id.

        Raises:
            DocumentNotFound: If no such document exists.
        """
        try:
            async with self._session_factory() as session:
                document = await session.get(PolicyDocument, document_id)
        except SQLAlchemyError as e:
            logger.error("Document lookup failed for %s: %s", document_id, e)
            raise StorageFailure(f"Document lookup failed: {e}", phase="read") from e

        if document is None:
            raise DocumentNotFound(f"Document {document_id} not found")
        return document

    async def list_documents(self) -> list[PolicyDocument]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PolicyDocument).order_by(PolicyDocument.created_at)
            )
            return list(result.scalars().all())

    async def count_chunks(self, document_id: uuid.UUID) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(PolicyChunk)
                .where(PolicyChunk.document_id == document_id)
            )
            return int(result.scalar() or 0)

    async def get_chunks_by_ids(self, chunk_ids: list[uuid.UUID]) -> list[Any]:
        """Chunks with the given ids joined to their document's title and file.

        Rows expose ``id``, ``chunk_text``, ``document_title`` and
        ``file_path``. Unknown ids are skipped.

        Raises:
            StorageFailure: On any database error.
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(
                        PolicyChunk.id,
                        PolicyChunk.chunk_text,
                        PolicyDocument.title.label("document_title"),
                        PolicyDocument.file_path,
                    )
                    .join(PolicyDocument, PolicyDocument.id == PolicyChunk.document_id)
                    .where(PolicyChunk.id.in_(chunk_ids))
                )
                return list(result.all())
        except SQLAlchemyError as e:
            logger.error("Chunk lookup failed for %d ids: %s", len(chunk_ids), e)
            raise StorageFailure(
                f"Failed to retrieve policy chunks: {e}", phase="read"
            ) from e

    async def chunks_missing_embeddings(
        self, document_id: uuid.UUID
    ) -> list[PolicyChunk]:
        """Chunks of a document whose embedding is still null, in order."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(PolicyChunk)
                .where(
                    PolicyChunk.document_id == document_id,
                    PolicyChunk.embedding.is_(None),
                )
                .order_by(PolicyChunk.chunk_index)
            )
            return list(result.scalars().all())

    async def set_embedding(self, chunk_id: uuid.UUID, embedding: list[float]) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(
                        update(PolicyChunk)
                        .where(PolicyChunk.id == chunk_id)
                        .values(embedding=embedding)
                    )
        except SQLAlchemyError as e:
            logger.error("Embedding update failed for chunk %s: %s", chunk_id, e)
            raise StorageFailure(
                f"Failed to update embedding: {e}", phase="update"
            ) from e
