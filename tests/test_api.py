"""
Tests for PolicyQA API endpoints.
"""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from policyqa.config import Settings
from policyqa.errors import (
    CompletionFailure,
    DocumentNotFound,
    RetrievalFailure,
    StorageFailure,
    UnsupportedFormat,
)
from policyqa.main import (
    app,
    get_app_settings,
    get_chat_client,
    get_document_store,
    get_ingestion_pipeline,
    get_qa_pipeline,
)
from policyqa.pipelines.ingestion import BackfillResult, IngestionResult
from policyqa.pipelines.qa import PipelineResult, source_from_chunk

DOCUMENT_ID = "00000000-0000-0000-0000-0000000000aa"


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def qa_pipeline():
    pipeline = AsyncMock()
    app.dependency_overrides[get_qa_pipeline] = lambda: pipeline
    return pipeline


@pytest.fixture
def ingestion_pipeline():
    pipeline = AsyncMock()
    app.dependency_overrides[get_ingestion_pipeline] = lambda: pipeline
    return pipeline


@pytest.fixture
def document_store():
    store = AsyncMock()
    app.dependency_overrides[get_document_store] = lambda: store
    return store


# ============================================
# Health and monitoring
# ============================================


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.unit
    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "policyqa-api"
        assert "version" in data

    @pytest.mark.unit
    def test_readiness_with_database(self, client, mocker):
        mocker.patch(
            "policyqa.db.postgres.check_database_health",
            AsyncMock(return_value={"status": "healthy"}),
        )

        response = client.get("/ready")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["ready"] is True
        assert data["checks"]["database"] == "ok"
        assert set(data["checks"]) == {"database", "embedding_provider", "chat_provider"}

    @pytest.mark.unit
    def test_readiness_without_database(self, client, mocker):
        mocker.patch(
            "policyqa.db.postgres.check_database_health",
            AsyncMock(return_value={"status": "unhealthy", "error": "refused"}),
        )

        data = client.get("/ready").json()

        assert data["ready"] is False
        assert data["checks"]["database"] == "unavailable"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("reachable", "expected"), [(True, "ok"), (False, "unavailable")]
    )
    def test_readiness_checks_chat_provider(self, client, mocker, reachable, expected):
        mocker.patch(
            "policyqa.db.postgres.check_database_health",
            AsyncMock(return_value={"status": "healthy"}),
        )
        app.dependency_overrides[get_app_settings] = lambda: Settings(
            openai_api_key="sk-test"
        )
        chat_client = AsyncMock()
        chat_client.health_check.return_value = reachable
        app.dependency_overrides[get_chat_client] = lambda: chat_client

        data = client.get("/ready").json()

        chat_client.health_check.assert_awaited_once()
        assert data["ready"] is True
        assert data["checks"]["chat_provider"] == expected
        assert data["checks"]["embedding_provider"] == expected

    @pytest.mark.unit
    def test_readiness_without_key_skips_provider_call(self, client, mocker):
        mocker.patch(
            "policyqa.db.postgres.check_database_health",
            AsyncMock(return_value={"status": "healthy"}),
        )
        app.dependency_overrides[get_app_settings] = lambda: Settings(
            openai_api_key=""
        )
        chat_client = AsyncMock()
        app.dependency_overrides[get_chat_client] = lambda: chat_client

        data = client.get("/ready").json()

        chat_client.health_check.assert_not_called()
        assert data["checks"]["chat_provider"] == "unconfigured"

    @pytest.mark.unit
    def test_metrics_endpoint(self, client):
        response = client.get("/metrics")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("text/plain")
        assert "queries_total 0" in response.text
        assert "ingestions_total 0" in response.text


# ============================================
# Ask
# ============================================


class TestAskEndpoint:
    """Tests for POST /api/v1/policies/ask."""

    @pytest.mark.unit
    def test_requires_token(self, client, qa_pipeline):
        response = client.post("/api/v1/policies/ask", json={"query": "Sick days?"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "Authentication failed"
        qa_pipeline.run.assert_not_called()

    @pytest.mark.unit
    def test_rejects_invalid_token(self, client, qa_pipeline):
        response = client.post(
            "/api/v1/policies/ask",
            json={"query": "Sick days?"},
            headers=auth("not-a-jwt"),
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.unit
    @pytest.mark.parametrize("body", [{}, {"query": ""}, {"query": "   "}])
    def test_missing_query_is_400(self, client, user_token, qa_pipeline, body):
        response = client.post(
            "/api/v1/policies/ask", json=body, headers=auth(user_token)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert set(response.json()) == {"error", "details"}
        qa_pipeline.run.assert_not_called()

    @pytest.mark.unit
    def test_answer_with_sources(self, client, user_token, qa_pipeline, make_chunk):
        chunk = make_chunk("C2", similarity=0.6, section_title="Sick Leave")
        qa_pipeline.run.return_value = PipelineResult(
            answer="According to the Leave Policy, you get 10 sick days.",
            sources=[source_from_chunk(chunk)],
            query_id=str(uuid.uuid4()),
            processing_time_ms=120.0,
        )

        response = client.post(
            "/api/v1/policies/ask",
            json={"query": "  How many sick days do I get?  "},
            headers=auth(user_token),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["answer"].startswith("According to the Leave Policy")
        assert data["sources"][0]["document_title"] == "Leave Policy"
        assert data["sources"][0]["section_title"] == "Sick Leave"
        assert data["sources"][0]["similarity"] == 0.6
        qa_pipeline.run.assert_awaited_once_with(
            "How many sick days do I get?", user_id="user-123"
        )

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("error", "message"),
        [
            (RetrievalFailure("dense search: down"), "Failed to retrieve relevant context"),
            (CompletionFailure("Provider returned HTTP 500"), "Answer generation failed"),
        ],
    )
    def test_pipeline_failures_are_500(
        self, client, user_token, qa_pipeline, error, message
    ):
        qa_pipeline.run.side_effect = error

        response = client.post(
            "/api/v1/policies/ask",
            json={"query": "Sick days?"},
            headers=auth(user_token),
        )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"error": message, "details": error.details}

    @pytest.mark.unit
    def test_unexpected_error_is_500(self, user_token, qa_pipeline):
        qa_pipeline.run.side_effect = RuntimeError("boom")
        client = TestClient(app, raise_server_exceptions=False)

        try:
            response = client.post(
                "/api/v1/policies/ask",
                json={"query": "Sick days?"},
                headers=auth(user_token),
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "Internal server error"


# ============================================
# Search
# ============================================


class TestSearchEndpoint:
    """Tests for POST /api/v1/policies/search."""

    @pytest.mark.unit
    def test_returns_fused_ranking(self, client, user_token, qa_pipeline, make_chunk):
        first = make_chunk("C2", similarity=0.6, rank=0.5)
        first.rrf_score = 1 / 62 + 1 / 61
        second = make_chunk("C3", rank=0.3)
        second.rrf_score = 1 / 62
        qa_pipeline.search.return_value = [first, second]

        response = client.post(
            "/api/v1/policies/search",
            json={"query": "sick days"},
            headers=auth(user_token),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["query"] == "sick days"
        assert [r["chunk_index"] for r in data["results"]] == [2, 3]
        assert data["results"][0]["rank"] == 0.5
        assert data["results"][1]["similarity"] is None
        assert data["results"][0]["rrf_score"] == pytest.approx(1 / 62 + 1 / 61)


# ============================================
# Documents
# ============================================


class TestProcessDocumentEndpoint:
    """Tests for POST /api/v1/documents/process."""

    @pytest.mark.unit
    def test_employee_forbidden(self, client, user_token, ingestion_pipeline):
        response = client.post(
            "/api/v1/documents/process",
            json={"documentId": DOCUMENT_ID},
            headers=auth(user_token),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        ingestion_pipeline.process.assert_not_called()

    @pytest.mark.unit
    def test_admin_processes_document(self, client, admin_token, ingestion_pipeline):
        ingestion_pipeline.process.return_value = IngestionResult(
            document_id=uuid.UUID(DOCUMENT_ID),
            chunk_count=3,
            embedded_count=3,
            processing_time_ms=850.0,
        )

        response = client.post(
            "/api/v1/documents/process",
            json={"documentId": DOCUMENT_ID},
            headers=auth(admin_token),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "success": True,
            "message": "Processed document into 3 chunks",
            "chunk_count": 3,
        }
        ingestion_pipeline.process.assert_awaited_once_with(uuid.UUID(DOCUMENT_ID))

    @pytest.mark.unit
    def test_missing_document_id_is_400(self, client, admin_token, ingestion_pipeline):
        response = client.post(
            "/api/v1/documents/process", json={}, headers=auth(admin_token)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "documentId" in response.json()["details"]

    @pytest.mark.unit
    def test_unknown_document_is_404(self, client, admin_token, ingestion_pipeline):
        ingestion_pipeline.process.side_effect = DocumentNotFound("no such document")

        response = client.post(
            "/api/v1/documents/process",
            json={"documentId": DOCUMENT_ID},
            headers=auth(admin_token),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.unit
    def test_legacy_doc_is_400(self, client, admin_token, ingestion_pipeline):
        ingestion_pipeline.process.side_effect = UnsupportedFormat(
            "Legacy .doc files are not supported; convert to .docx"
        )

        response = client.post(
            "/api/v1/documents/process",
            json={"documentId": DOCUMENT_ID},
            headers=auth(admin_token),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Unsupported file type"


class TestDocumentStatusEndpoint:
    """Tests for GET /api/v1/documents/{id}/status."""

    @pytest.mark.unit
    def test_processed_document(
        self, client, user_token, document_store, sample_document
    ):
        document_store.get_document.return_value = sample_document
        document_store.count_chunks.return_value = 3

        response = client.get(
            f"/api/v1/documents/{DOCUMENT_ID}/status", headers=auth(user_token)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "documentId": DOCUMENT_ID,
            "title": "Leave Policy",
            "status": "published",
            "processed": True,
            "chunkCount": 3,
        }

    @pytest.mark.unit
    def test_unprocessed_document(
        self, client, user_token, document_store, sample_document
    ):
        document_store.get_document.return_value = sample_document
        document_store.count_chunks.return_value = 0

        data = client.get(
            f"/api/v1/documents/{DOCUMENT_ID}/status", headers=auth(user_token)
        ).json()

        assert data["processed"] is False


class TestBackfillEndpoint:
    """Tests for POST /api/v1/documents/{id}/embeddings."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("successful", "failed", "expected"),
        [(3, 0, 200), (2, 1, 207), (0, 3, 500)],
    )
    def test_status_follows_outcome(
        self, client, admin_token, ingestion_pipeline, successful, failed, expected
    ):
        ingestion_pipeline.backfill_embeddings.return_value = BackfillResult(
            document_id=uuid.UUID(DOCUMENT_ID),
            total=successful + failed,
            successful=successful,
            failed=failed,
        )

        response = client.post(
            f"/api/v1/documents/{DOCUMENT_ID}/embeddings", headers=auth(admin_token)
        )

        assert response.status_code == expected
        data = response.json()
        assert data["successful"] == successful
        assert data["failed"] == failed
        assert data["success"] is (failed == 0)

    @pytest.mark.unit
    def test_employee_forbidden(self, client, user_token, ingestion_pipeline):
        response = client.post(
            f"/api/v1/documents/{DOCUMENT_ID}/embeddings", headers=auth(user_token)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestChunkLookupEndpoint:
    """Tests for POST /api/v1/policies/chunks."""

    CHUNK_ID = "00000000-0000-0000-0000-0000000000c1"

    @pytest.mark.unit
    def test_returns_chunks_with_source(self, client, user_token, document_store):
        other_id = "00000000-0000-0000-0000-0000000000c2"
        document_store.get_chunks_by_ids.return_value = [
            SimpleNamespace(
                id=uuid.UUID(self.CHUNK_ID),
                chunk_text="Employees accrue 10 sick days per year.",
                document_title="Leave Policy",
                file_path="policies/leave.pdf",
            ),
            SimpleNamespace(
                id=uuid.UUID(other_id),
                chunk_text="Untitled text.",
                document_title="",
                file_path="policies/misc.pdf",
            ),
        ]

        response = client.post(
            "/api/v1/policies/chunks",
            json={"chunkIds": [self.CHUNK_ID, other_id, str(uuid.uuid4())]},
            headers=auth(user_token),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["count"] == 2
        assert data["requested"] == 3
        assert data["data"][0] == {
            "chunk_id": self.CHUNK_ID,
            "content": "Employees accrue 10 sick days per year.",
            "source": "Leave Policy",
        }
        assert data["data"][1]["source"] == "policies/misc.pdf"
        requested = document_store.get_chunks_by_ids.call_args[0][0]
        assert requested[0] == uuid.UUID(self.CHUNK_ID)

    @pytest.mark.unit
    def test_requires_token(self, client, document_store):
        response = client.post(
            "/api/v1/policies/chunks", json={"chunkIds": [self.CHUNK_ID]}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        document_store.get_chunks_by_ids.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "body",
        [{}, {"chunkIds": []}, {"chunkIds": "c1"}, {"chunkIds": [42]}],
    )
    def test_invalid_ids_are_400(self, client, user_token, document_store, body):
        response = client.post(
            "/api/v1/policies/chunks", json=body, headers=auth(user_token)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        document_store.get_chunks_by_ids.assert_not_called()

    @pytest.mark.unit
    def test_storage_failure_is_500(self, client, user_token, document_store):
        document_store.get_chunks_by_ids.side_effect = StorageFailure(
            "Failed to retrieve policy chunks: connection reset", phase="read"
        )

        response = client.post(
            "/api/v1/policies/chunks",
            json={"chunkIds": [self.CHUNK_ID]},
            headers=auth(user_token),
        )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert "error" in response.json()
