"""
PolicyQA RAG Module

Ingestion and retrieval components:
text extraction, section-aware chunking, embedding generation,
hybrid retrieval and reciprocal rank fusion.
"""

from policyqa.rag.chunker import (
    DocumentChunk,
    SectionAwareChunker,
    classify_line,
    split_with_overlap,
)
from policyqa.rag.embedding import EmbeddingGenerator
from policyqa.rag.extractor import DocxExtractor, PDFParser, TextExtractor
from policyqa.rag.fusion import reciprocal_rank_fusion
from policyqa.rag.retriever import (
    DenseRetriever,
    HybridRetriever,
    RetrievalResult,
    RetrievedChunk,
    SparseRetriever,
)

__all__ = [
    # Extractor
    "TextExtractor",
    "PDFParser",
    "DocxExtractor",
    # Chunker
    "SectionAwareChunker",
    "DocumentChunk",
    "classify_line",
    "split_with_overlap",
    # Embedding
    "EmbeddingGenerator",
    # Retrieval
    "HybridRetriever",
    "DenseRetriever",
    "SparseRetriever",
    "RetrievalResult",
    "RetrievedChunk",
    "reciprocal_rank_fusion",
]
