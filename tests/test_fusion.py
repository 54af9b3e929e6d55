"""
Tests for Reciprocal Rank Fusion.
"""

import pytest

from policyqa.rag.fusion import reciprocal_rank_fusion


class TestReciprocalRankFusion:
    @pytest.mark.unit
    def test_dense_only_keeps_dense_order(self, make_chunk):
        x, y, z = make_chunk("X", 0.9), make_chunk("Y", 0.8), make_chunk("Z", 0.7)

        fused = reciprocal_rank_fusion([x, y, z], [])

        assert [c.chunk_id for c in fused] == [x.chunk_id, y.chunk_id, z.chunk_id]
        assert [c.rrf_score for c in fused] == pytest.approx([1 / 61, 1 / 62, 1 / 63])

    @pytest.mark.unit
    def test_sparse_only_keeps_sparse_order(self, make_chunk):
        a, b = make_chunk("A", rank=0.4), make_chunk("B", rank=0.2)

        fused = reciprocal_rank_fusion([], [a, b])

        assert [c.chunk_id for c in fused] == [a.chunk_id, b.chunk_id]

    @pytest.mark.unit
    def test_symmetric_lists_tie(self, make_chunk):
        a, b = make_chunk("A", 0.9), make_chunk("B", 0.8)

        fused = reciprocal_rank_fusion([a, b], [b, a])

        assert fused[0].rrf_score == pytest.approx(fused[1].rrf_score)
        # Stable tie-break: first seen in the dense list wins
        assert [c.chunk_id for c in fused] == [a.chunk_id, b.chunk_id]

    @pytest.mark.unit
    def test_chunk_in_both_lists_ranks_first(self, make_chunk):
        a, b, c = make_chunk("A", 0.9), make_chunk("B", 0.8), make_chunk("C", rank=0.1)

        fused = reciprocal_rank_fusion([a, b], [a, c])

        assert fused[0].chunk_id == a.chunk_id
        assert fused[0].rrf_score > fused[1].rrf_score

    @pytest.mark.unit
    def test_sick_days_query_scenario(self, make_chunk):
        c1 = make_chunk("C1", similarity=0.9)
        c2_dense = make_chunk("C2", similarity=0.6)
        c2_sparse = make_chunk("C2", rank=0.5)
        c3 = make_chunk("C3", rank=0.3)

        fused = reciprocal_rank_fusion([c1, c2_dense], [c2_sparse, c3], k=60)

        assert [c.chunk_id for c in fused] == [
            c2_dense.chunk_id,
            c1.chunk_id,
            c3.chunk_id,
        ]
        assert fused[0].rrf_score == pytest.approx(1 / 62 + 1 / 61)
        assert fused[1].rrf_score == pytest.approx(1 / 61)
        assert fused[2].rrf_score == pytest.approx(1 / 62)

    @pytest.mark.unit
    def test_merged_chunk_keeps_dense_record_and_gains_rank(self, make_chunk):
        dense = make_chunk("C2", similarity=0.6)
        sparse = make_chunk("C2", rank=0.5)

        fused = reciprocal_rank_fusion([dense], [sparse])

        assert len(fused) == 1
        assert fused[0].similarity == 0.6
        assert fused[0].rank == 0.5

    @pytest.mark.unit
    def test_final_count_limits_output(self, make_chunk):
        dense = [make_chunk(f"D{i}", similarity=0.9 - i / 100) for i in range(5)]
        sparse = [make_chunk(f"S{i}", rank=1.0 - i / 10) for i in range(5)]

        fused = reciprocal_rank_fusion(dense, sparse, final_count=5)

        assert len(fused) == 5

    @pytest.mark.unit
    def test_custom_k(self, make_chunk):
        fused = reciprocal_rank_fusion([make_chunk("A", 0.9)], [], k=10)

        assert fused[0].rrf_score == pytest.approx(1 / 11)

    @pytest.mark.unit
    def test_inputs_not_mutated(self, make_chunk):
        a = make_chunk("A", 0.9)
        a_sparse = make_chunk("A", rank=0.2)

        reciprocal_rank_fusion([a], [a_sparse])

        assert a.rrf_score == 0.0
        assert a.rank is None

    @pytest.mark.unit
    def test_empty_inputs(self):
        assert reciprocal_rank_fusion([], []) == []
