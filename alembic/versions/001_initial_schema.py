"""Initial schema for policy documents, chunks and query log

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates the document and chunk tables with pgvector and full-text search
indexes, plus the query audit log.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_DIMENSION = 1536
FTS_LANGUAGE = "english"


def upgrade() -> None:
    """Create all tables and indexes."""

    # Enable extensions
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ========================================
    # Policy documents table
    # ========================================
    op.create_table(
        "policy_documents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("uuid_generate_v4()")),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("status", sa.String(20), server_default="draft", nullable=False),
        sa.Column("file_path", sa.Text(), nullable=True),
        sa.Column("file_type", sa.String(255), nullable=True),
        sa.Column("version", sa.String(50), nullable=True),
        sa.Column("effective_date", sa.Date(), nullable=True),
        sa.Column("review_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True),
                  server_default=sa.text("NOW()"), nullable=False),
        sa.CheckConstraint(
            "status IN ('draft', 'review', 'published', 'archived')",
            name="policy_document_status",
        ),
    )
    op.create_index("idx_policy_documents_status", "policy_documents", ["status"])

    # ========================================
    # Policy chunks table
    # ========================================
    op.create_table(
        "policy_chunks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("uuid_generate_v4()")),
        sa.Column("document_id", postgresql.UUID(as_uuid=True),
                  sa.ForeignKey("policy_documents.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("chunk_index", sa.Integer(), nullable=False),
        sa.Column("chunk_text", sa.Text(), nullable=False),
        sa.Column("embedding", Vector(EMBEDDING_DIMENSION), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column(
            "search_vector",
            postgresql.TSVECTOR(),
            sa.Computed(f"to_tsvector('{FTS_LANGUAGE}', chunk_text)", persisted=True),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  server_default=sa.text("NOW()"), nullable=False),
        sa.UniqueConstraint("document_id", "chunk_index",
                            name="uq_policy_chunk_position"),
    )

    # Chunk indexes
    op.create_index("idx_policy_chunks_document_id", "policy_chunks", ["document_id"])
    op.create_index("idx_policy_chunks_search_vector", "policy_chunks",
                    ["search_vector"], postgresql_using="gin")

    # HNSW vector index for cosine similarity search (works on an empty table)
    op.execute("""
        CREATE INDEX idx_policy_chunks_embedding ON policy_chunks
        USING hnsw (embedding vector_cosine_ops)
    """)

    # ========================================
    # Queries log table
    # ========================================
    op.create_table(
        "queries_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("uuid_generate_v4()")),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("query_text", sa.Text(), nullable=False),
        sa.Column("response_text", sa.Text(), nullable=True),
        sa.Column("source_chunk_ids",
                  postgresql.ARRAY(postgresql.UUID(as_uuid=True)), nullable=True),
        sa.Column("processing_time_ms", sa.Integer(), nullable=True),
        sa.Column("success", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("error_text", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True),
                  server_default=sa.text("NOW()"), nullable=False),
    )

    op.create_index("idx_queries_user_id", "queries_log", ["user_id"])
    op.create_index("idx_queries_timestamp", "queries_log", ["timestamp"])

    # ========================================
    # Updated_at trigger function
    # ========================================
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ language 'plpgsql'
    """)

    op.execute("""
        CREATE TRIGGER update_policy_documents_updated_at
        BEFORE UPDATE ON policy_documents
        FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()
    """)


def downgrade() -> None:
    """Drop all tables."""

    op.execute(
        "DROP TRIGGER IF EXISTS update_policy_documents_updated_at ON policy_documents"
    )
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    # Drop tables (reverse order due to foreign keys)
    op.drop_table("queries_log")
    op.drop_table("policy_chunks")
    op.drop_table("policy_documents")

    # Note: Extensions are not dropped to avoid affecting other databases
