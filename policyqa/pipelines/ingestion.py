"""
Policy Document Ingestion Pipeline

Ingestion path: look up document -> extract text -> section-aware chunking
-> batch embedding -> atomic chunk replacement.

Embedding failures degrade to null vectors so the document stays
searchable lexically; ``backfill_embeddings`` fills them in later.
"""

import logging
import time
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from policyqa.config import Settings
from policyqa.db.chunk_store import ChunkStoreWriter, DocumentStore
from policyqa.errors import ExtractionFailure, PolicyQAError, UnsupportedFormat
from policyqa.observability.metrics import record_ingestion
from policyqa.rag.chunker import SectionAwareChunker
from policyqa.rag.embedding import EmbeddingGenerator
from policyqa.rag.extractor import TextExtractor
from policyqa.storage import LocalBlobStore

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Outcome of processing one document."""

    document_id: uuid.UUID
    chunk_count: int
    embedded_count: int
    processing_time_ms: float

    @property
    def message(self) -> str:
        return f"Processed document into {self.chunk_count} chunks"


@dataclass
class BackfillResult:
    """Outcome of re-embedding a document's embedding-less chunks."""

    document_id: uuid.UUID
    total: int
    successful: int
    failed: int

    @property
    def status_code(self) -> int:
        """200 when everything succeeded, 207 when partial, 500 when none."""
        if self.failed == 0:
            return 200
        if self.successful > 0:
            return 207
        return 500


class IngestionPipeline:
    """Turns a stored policy file into retrievable chunks."""

    def __init__(
        self,
        document_store: DocumentStore,
        blob_store: LocalBlobStore,
        extractor: TextExtractor,
        chunker: SectionAwareChunker,
        embedding_generator: EmbeddingGenerator,
        chunk_writer: ChunkStoreWriter,
        embedding_batch_size: int = 20,
    ):
        self.document_store = document_store
        self.blob_store = blob_store
        self.extractor = extractor
        self.chunker = chunker
        self.embedding_generator = embedding_generator
        self.chunk_writer = chunk_writer
        self.embedding_batch_size = max(1, embedding_batch_size)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> "IngestionPipeline":
        """Wire the pipeline from configuration and a session factory."""
        return cls(
            document_store=DocumentStore(session_factory),
            blob_store=LocalBlobStore(settings.upload_dir),
            extractor=TextExtractor(timeout=settings.extraction_timeout_seconds),
            chunker=SectionAwareChunker(settings.chunk_size, settings.chunk_overlap),
            embedding_generator=EmbeddingGenerator.from_settings(settings),
            chunk_writer=ChunkStoreWriter(session_factory),
            embedding_batch_size=settings.embedding_batch_size,
        )

    async def process(self, document_id: uuid.UUID) -> IngestionResult:
        """Extract, chunk, embed and store a document.

        Raises:
            DocumentNotFound: Unknown document id.
            UnsupportedFormat: No file attached, or not PDF/DOCX.
            ExtractionFailure: Parser error or empty text.
            StorageFailure: Blob download or chunk write failed.
        """
        start_time = time.time()
        try:
            result = await self._process(document_id, start_time)
        except PolicyQAError:
            record_ingestion(success=False)
            raise

        record_ingestion(
            success=True,
            chunks_written=result.chunk_count,
            chunks_without_embedding=result.chunk_count - result.embedded_count,
        )
        return result

    async def _process(
        self, document_id: uuid.UUID, start_time: float
    ) -> IngestionResult:
        document = await self.document_store.get_document(document_id)
        logger.info("Processing document %s ('%s')", document.id, document.title)

        if not document.file_path or not document.file_type:
            raise UnsupportedFormat(f"Document {document_id} has no file attached")

        text = await self.extractor.extract_document(
            self.blob_store, document.file_path, document.file_type
        )
        logger.info("Extracted %d characters from document %s", len(text), document.id)

        chunks = self.chunker.chunk(text, document.title)
        if not chunks:
            raise ExtractionFailure(f"No chunks produced for document {document_id}")

        embeddings = await self.embedding_generator.generate_embeddings(
            [chunk.text for chunk in chunks]
        )
        embedded = sum(1 for vector in embeddings if vector is not None)
        if embedded < len(chunks):
            logger.warning(
                "Document %s: %d of %d chunks stored without embeddings",
                document.id,
                len(chunks) - embedded,
                len(chunks),
            )

        written = await self.chunk_writer.replace_chunks(document, chunks, embeddings)
        elapsed = (time.time() - start_time) * 1000
        logger.info(
            "Document %s processed: %d chunks in %.0fms", document.id, written, elapsed
        )
        return IngestionResult(
            document_id=document.id,
            chunk_count=written,
            embedded_count=embedded,
            processing_time_ms=round(elapsed, 1),
        )

    async def backfill_embeddings(self, document_id: uuid.UUID) -> BackfillResult:
        """Embed every chunk of a document whose embedding is null.

        Chunks are sent in batches of ``embedding_batch_size``. A failed
        batch or write only counts against that batch's chunks.
        """
        await self.document_store.get_document(document_id)
        pending = await self.document_store.chunks_missing_embeddings(document_id)
        logger.info(
            "Backfilling %d chunks for document %s", len(pending), document_id
        )

        successful = 0
        failed = 0
        for start in range(0, len(pending), self.embedding_batch_size):
            batch = pending[start : start + self.embedding_batch_size]
            vectors = await self.embedding_generator.generate_embeddings(
                [chunk.chunk_text for chunk in batch]
            )
            for chunk, vector in zip(batch, vectors, strict=True):
                if vector is None:
                    failed += 1
                    continue
                try:
                    await self.document_store.set_embedding(chunk.id, vector)
                except PolicyQAError:
                    failed += 1
                    continue
                successful += 1

        logger.info(
            "Backfill for document %s: %d succeeded, %d failed",
            document_id,
            successful,
            failed,
        )
        return BackfillResult(
            document_id=document_id,
            total=len(pending),
            successful=successful,
            failed=failed,
        )
