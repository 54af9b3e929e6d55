"""
PolicyQA - FastAPI Application Entry Point

Policy question answering over an organisation's policy documents.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from policyqa import __version__
from policyqa.api.auth import get_current_user, require_admin
from policyqa.api.schemas import (
    AskResponse,
    BackfillResponse,
    ChunkLookupRequest,
    ChunkLookupResponse,
    CitedChunk,
    DocumentStatusResponse,
    ProcessDocumentRequest,
    ProcessDocumentResponse,
    QueryRequest,
    SearchResponse,
    SearchResult,
)
from policyqa.config import Settings, get_settings
from policyqa.db.chunk_store import DocumentStore
from policyqa.errors import PolicyQAError
from policyqa.llm.openai_client import ChatCompletionClient
from policyqa.pipelines.ingestion import IngestionPipeline
from policyqa.pipelines.qa import PolicyQAPipeline, source_from_chunk

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    logger.info("Starting PolicyQA API v%s", __version__)
    settings = get_settings()
    app.state.settings = settings

    from policyqa.db.postgres import close_db, get_session_maker, init_db

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.warning("Database initialization failed: %s", e)

    session_maker = get_session_maker()
    app.state.document_store = DocumentStore(session_maker)
    app.state.ingestion_pipeline = IngestionPipeline.from_settings(
        settings, session_maker
    )
    app.state.chat_client = ChatCompletionClient.from_settings(settings)
    app.state.qa_pipeline = PolicyQAPipeline.from_settings(
        settings, session_maker, chat_client=app.state.chat_client
    )

    if not settings.openai_api_key:
        logger.warning(
            "OPENAI_API_KEY is not set: chunks will be stored without "
            "embeddings and questions cannot be answered"
        )

    yield

    logger.info("Shutting down PolicyQA API")
    await close_db()


# Create FastAPI application
app = FastAPI(
    title="PolicyQA",
    description="Question answering over organisational policy documents",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# Dependencies
# ============================================


def _from_state(request: Request, name: str) -> Any:
    component = getattr(request.app.state, name, None)
    if component is None:
        raise PolicyQAError(f"Service component '{name}' is not initialized")
    return component


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_document_store(request: Request) -> DocumentStore:
    return _from_state(request, "document_store")


def get_ingestion_pipeline(request: Request) -> IngestionPipeline:
    return _from_state(request, "ingestion_pipeline")


def get_qa_pipeline(request: Request) -> PolicyQAPipeline:
    return _from_state(request, "qa_pipeline")


def get_chat_client(request: Request) -> ChatCompletionClient | None:
    return getattr(request.app.state, "chat_client", None)


# ============================================
# Health Check Endpoints
# ============================================


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "service": "policyqa-api",
    }


@app.get("/ready", tags=["Health"])
async def readiness_check(
    settings: Settings = Depends(get_app_settings),
    chat_client: ChatCompletionClient | None = Depends(get_chat_client),
) -> dict[str, Any]:
    """Readiness check with dependency status.

    Both providers share one base URL and key, so the chat client's
    model listing stands in for the embedding provider too.
    """
    from policyqa.db.postgres import check_database_health

    database = await check_database_health()
    database_ok = database["status"] == "healthy"
    if chat_client is None or not settings.openai_api_key:
        provider_status = "unconfigured"
    elif await chat_client.health_check():
        provider_status = "ok"
    else:
        provider_status = "unavailable"

    return {
        "ready": database_ok,
        "checks": {
            "database": "ok" if database_ok else "unavailable",
            "embedding_provider": provider_status,
            "chat_provider": provider_status,
        },
    }


# ============================================
# API v1 Routes: Documents
# ============================================


@app.post(
    "/api/v1/documents/process",
    tags=["Documents"],
    response_model=ProcessDocumentResponse,
)
async def process_document(
    body: ProcessDocumentRequest,
    user: dict[str, Any] = Depends(require_admin),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
) -> ProcessDocumentResponse:
    """
    Extract, chunk and embed a policy document, replacing its chunks.

    Admin and HR admin roles only.
    """
    logger.info("User %s requested processing of %s", user.get("sub"), body.document_id)
    result = await pipeline.process(body.document_id)
    return ProcessDocumentResponse(
        success=True,
        message=result.message,
        chunk_count=result.chunk_count,
    )


@app.get(
    "/api/v1/documents/{document_id}/status",
    tags=["Documents"],
    response_model=DocumentStatusResponse,
)
async def document_status(
    document_id: uuid.UUID,
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
) -> DocumentStatusResponse:
    """Whether a document has been processed and how many chunks it has."""
    document = await store.get_document(document_id)
    chunk_count = await store.count_chunks(document_id)
    return DocumentStatusResponse(
        document_id=document.id,
        title=document.title,
        status=document.status,
        processed=chunk_count > 0,
        chunk_count=chunk_count,
    )


@app.post("/api/v1/documents/{document_id}/embeddings", tags=["Documents"])
async def backfill_embeddings(
    document_id: uuid.UUID,
    user: dict[str, Any] = Depends(require_admin),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
) -> JSONResponse:
    """
    Generate embeddings for chunks that were stored without one.

    Returns 200 when all succeed, 207 on partial success, 500 when none do.
    """
    result = await pipeline.backfill_embeddings(document_id)
    body = BackfillResponse(
        success=result.failed == 0,
        message=(
            f"Generated {result.successful} of {result.total} missing embeddings"
        ),
        total=result.total,
        successful=result.successful,
        failed=result.failed,
    )
    return JSONResponse(status_code=result.status_code, content=body.model_dump())


# ============================================
# API v1 Routes: Policy Questions
# ============================================


@app.post("/api/v1/policies/ask", tags=["Query"], response_model=AskResponse)
async def ask_policy_question(
    body: QueryRequest,
    user: dict[str, Any] = Depends(get_current_user),
    pipeline: PolicyQAPipeline = Depends(get_qa_pipeline),
) -> AskResponse:
    """
    Answer a question from the policy documents.

    The answer is grounded in the returned sources only.
    """
    result = await pipeline.run(body.query, user_id=str(user.get("sub")))
    return AskResponse(answer=result.answer, sources=result.sources)


@app.post("/api/v1/policies/search", tags=["Query"], response_model=SearchResponse)
async def search_policies(
    body: QueryRequest,
    user: dict[str, Any] = Depends(get_current_user),
    pipeline: PolicyQAPipeline = Depends(get_qa_pipeline),
) -> SearchResponse:
    """Hybrid search: the fused ranking without a generated answer."""
    chunks = await pipeline.search(body.query)
    results = [
        SearchResult(
            **source_from_chunk(chunk), rank=chunk.rank, rrf_score=chunk.rrf_score
        )
        for chunk in chunks
    ]
    return SearchResponse(query=body.query, results=results)


@app.post(
    "/api/v1/policies/chunks", tags=["Query"], response_model=ChunkLookupResponse
)
async def get_policy_chunks(
    body: ChunkLookupRequest,
    user: dict[str, Any] = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
) -> ChunkLookupResponse:
    """Look up cited chunks by id for citation display."""
    rows = await store.get_chunks_by_ids(body.chunk_ids)
    data = [
        CitedChunk(
            chunk_id=row.id,
            content=row.chunk_text,
            source=row.document_title or row.file_path or "Unknown source",
        )
        for row in rows
    ]
    return ChunkLookupResponse(
        data=data, count=len(data), requested=len(body.chunk_ids)
    )


# ============================================
# Monitoring
# ============================================


@app.get("/metrics", tags=["Monitoring"])
async def metrics_endpoint():
    """Prometheus-compatible metrics endpoint."""
    from policyqa.observability.metrics import get_metrics_text

    return PlainTextResponse(get_metrics_text(), media_type="text/plain")


# ============================================
# Exception Handlers
# ============================================


@app.exception_handler(PolicyQAError)
async def policyqa_exception_handler(request: Request, exc: PolicyQAError):
    """Render pipeline failures as ``{error, details}``."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400)."""
    problems = [
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": "; ".join(problems)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "details": str(exc) if app.debug else "An unexpected error occurred",
        },
    )


# ============================================
# Main Entry Point
# ============================================


def main():
    """Run the application using uvicorn."""
    import uvicorn

    uvicorn.run(
        "policyqa.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
    )


if __name__ == "__main__":
    main()
