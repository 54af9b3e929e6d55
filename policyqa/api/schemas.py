"""
Request/Response Models for the PolicyQA API
"""

import uuid

from pydantic import BaseModel, ConfigDict, Field


class ProcessDocumentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_id: uuid.UUID = Field(..., alias="documentId")


class ProcessDocumentResponse(BaseModel):
    success: bool = True
    message: str
    chunk_count: int


class DocumentStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_id: uuid.UUID = Field(..., serialization_alias="documentId")
    title: str
    status: str
    processed: bool
    chunk_count: int = Field(..., serialization_alias="chunkCount")


class BackfillResponse(BaseModel):
    success: bool
    message: str
    total: int
    successful: int
    failed: int


class QueryRequest(BaseModel):
    """Body of the ask and search endpoints."""

    model_config = ConfigDict(str_strip_whitespace=True)

    query: str = Field(..., min_length=1)


class Source(BaseModel):
    document_id: str
    document_title: str
    document_status: str
    chunk_index: int
    chunk_text: str
    similarity: float | None = None
    section_title: str | None = None


class AskResponse(BaseModel):
    answer: str
    sources: list[Source]


class SearchResult(Source):
    rank: float | None = None
    rrf_score: float


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResult]


class ChunkLookupRequest(BaseModel):
    """Chunk ids cited by an answer, for citation display."""

    model_config = ConfigDict(populate_by_name=True)

    chunk_ids: list[uuid.UUID] = Field(..., alias="chunkIds", min_length=1)


class CitedChunk(BaseModel):
    chunk_id: uuid.UUID
    content: str
    source: str


class ChunkLookupResponse(BaseModel):
    success: bool = True
    data: list[CitedChunk]
    count: int
    requested: int
