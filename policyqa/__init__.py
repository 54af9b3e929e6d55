"""
PolicyQA - Policy Question-Answering Retrieval Service

Grounded question answering over an organisation's policy documents.

Features:
- PDF/DOCX text extraction with section-aware chunking
- Hybrid retrieval (pgvector similarity + PostgreSQL full-text search)
- Reciprocal Rank Fusion of the two rankings
- Provenance-preserving answers from a chat-completion model
"""

__version__ = "0.1.0"
__author__ = "PolicyQA Team"
