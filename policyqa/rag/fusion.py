"""
Reciprocal Rank Fusion (RRF)

Merges the dense and lexical rankings. Each list contributes
``1 / (k + rank)`` per chunk, with rank the 1-based position in that list;
contributions for the same chunk id are summed.
"""

import dataclasses
import logging
import uuid

from policyqa.config import DEFAULT_FINAL_CONTEXT_COUNT, DEFAULT_RRF_K
from policyqa.rag.retriever import RetrievedChunk

logger = logging.getLogger(__name__)


def reciprocal_rank_fusion(
    dense: list[RetrievedChunk],
    sparse: list[RetrievedChunk],
    k: int = DEFAULT_RRF_K,
    final_count: int = DEFAULT_FINAL_CONTEXT_COUNT,
) -> list[RetrievedChunk]:
    """Fuse two rankings into at most ``final_count`` chunks.

    Input order is taken as rank order; neither list is re-sorted first.
    Equal scores keep first-seen order (dense list, then sparse list).
    A chunk found by both paths keeps its dense record and gains the
    lexical ``rank``.
    """
    fused: dict[uuid.UUID, RetrievedChunk] = {}

    for results in (dense, sparse):
        for position, chunk in enumerate(results, start=1):
            contribution = 1.0 / (k + position)
            existing = fused.get(chunk.chunk_id)
            if existing is None:
                fused[chunk.chunk_id] = dataclasses.replace(
                    chunk, rrf_score=contribution
                )
                continue
            existing.rrf_score += contribution
            if existing.similarity is None:
                existing.similarity = chunk.similarity
            if existing.rank is None:
                existing.rank = chunk.rank

    # sorted() is stable, so ties stay in first-seen order
    ranked = sorted(fused.values(), key=lambda c: c.rrf_score, reverse=True)
    logger.debug(
        "Fused %d dense + %d sparse into %d unique chunks",
        len(dense),
        len(sparse),
        len(ranked),
    )
    return ranked[:final_count]
