"""
PolicyQA Pipelines

Ingestion and query orchestration.
"""
