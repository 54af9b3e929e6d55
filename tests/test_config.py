"""
Tests for environment-backed settings.
"""

import pytest

from policyqa.config import ADMIN_ROLES, Settings, get_settings


class TestSettings:
    @pytest.mark.unit
    def test_defaults(self, monkeypatch):
        for name in (
            "OPENAI_API_KEY",
            "CHUNK_SIZE",
            "RRF_K",
            "QUERY_AUDIT_ENABLED",
            "EMBEDDING_DIMENSION",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = get_settings()

        assert settings.openai_api_key == ""
        assert settings.chunk_size == 1000
        assert settings.chunk_overlap == 200
        assert settings.rrf_k == 60
        assert settings.final_context_count == 5
        assert settings.dense_match_count == 5
        assert settings.sparse_match_count == 5
        assert settings.embedding_model == "text-embedding-3-small"
        assert settings.embedding_dimension == 1536
        assert settings.query_audit_enabled is True
        assert settings.admin_roles == ADMIN_ROLES

    @pytest.mark.unit
    def test_overrides_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("CHUNK_SIZE", "800")
        monkeypatch.setenv("CHUNK_OVERLAP", "100")
        monkeypatch.setenv("MATCH_THRESHOLD", "0.5")
        monkeypatch.setenv("FTS_LANGUAGE", "simple")
        monkeypatch.setenv("EMBEDDING_DIMENSION", "768")
        monkeypatch.setenv("QUERY_AUDIT_ENABLED", "false")

        settings = Settings.from_env()

        assert settings.openai_api_key == "sk-env"
        assert settings.chunk_size == 800
        assert settings.chunk_overlap == 100
        assert settings.match_threshold == 0.5
        assert settings.fts_language == "simple"
        assert settings.embedding_dimension == 768
        assert settings.query_audit_enabled is False

    @pytest.mark.unit
    def test_settings_are_immutable(self):
        settings = Settings()
        with pytest.raises(AttributeError):
            settings.chunk_size = 10
