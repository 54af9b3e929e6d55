#!/usr/bin/env python3
"""
Re-process every policy document through the ingestion pipeline.

This script:
1. Connects to the database
2. Loads all rows from policy_documents
3. Re-extracts, re-chunks and re-embeds each document
4. Atomically replaces each document's chunks in policy_chunks

Run: python scripts/reindex_documents.py [--status published]

Prerequisites:
- PostgreSQL must be running with the schema migrated
- UPLOAD_DIR must contain the documents' files
- OPENAI_API_KEY should be set (otherwise chunks are stored without embeddings)
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def reindex_all(status: str | None = None) -> bool:
    """Re-process all documents, optionally only those with ``status``."""
    from policyqa.config import get_settings
    from policyqa.db.postgres import close_db, get_session_maker, init_db
    from policyqa.errors import PolicyQAError
    from policyqa.pipelines.ingestion import IngestionPipeline

    print("=" * 60)
    print("PolicyQA Document Re-indexing")
    print("=" * 60)
    print()

    print("[1/3] Initializing database...")
    try:
        await init_db()
        print("      Database connected.")
    except Exception as e:
        print(f"      ERROR: Database initialization failed: {e}")
        return False

    settings = get_settings()
    pipeline = IngestionPipeline.from_settings(settings, get_session_maker())
    if not settings.openai_api_key:
        print("      WARNING: OPENAI_API_KEY not set; chunks will have no embeddings.")

    print("[2/3] Loading documents...")
    docs = await pipeline.document_store.list_documents()
    if status:
        docs = [d for d in docs if d.status == status]
    print(f"      Found {len(docs)} document(s).")

    print("[3/3] Re-indexing documents...")
    total_chunks = 0
    failures = 0
    for i, doc in enumerate(docs, 1):
        print(f"      [{i}/{len(docs)}] {doc.title}...")
        try:
            result = await pipeline.process(doc.id)
        except PolicyQAError as e:
            failures += 1
            print(f"         FAILED: {e.error}: {e.details}")
            continue
        total_chunks += result.chunk_count
        print(
            f"         OK: {result.chunk_count} chunks, "
            f"{result.embedded_count} embedded"
        )

    await close_db()

    print()
    print("=" * 60)
    print(
        f"Done: {total_chunks} chunks across {len(docs) - failures} document(s), "
        f"{failures} failure(s)."
    )
    print("=" * 60)
    return failures == 0


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--status",
        choices=["draft", "review", "published", "archived"],
        help="Only re-index documents with this status",
    )
    args = parser.parse_args()
    success = asyncio.run(reindex_all(args.status))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
