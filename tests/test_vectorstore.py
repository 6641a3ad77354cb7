# =============================================================================
# Unit Tests — Local Vector Index (ChromaDB PersistentClient)
# =============================================================================
#
# Every test gets its own temp folder, so collections never collide.
# =============================================================================

from __future__ import annotations

import pytest

from agentic_patterns.services.vectorstore import LocalVectorIndex


@pytest.fixture
def index(tmp_path):
    return LocalVectorIndex(tmp_path / "vector_index", "test_index")


def _populate(index: LocalVectorIndex) -> None:
    index.create_index()
    index.insert_items(
        texts=["inflation is falling", "the weather is nice", "prices are rising"],
        embeddings=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.9, 0.1, 0.0]],
    )


class TestLocalVectorIndex:
    def test_not_created_initially(self, index):
        assert index.is_index_created() is False

    def test_empty_collection_counts_as_not_created(self, index):
        index.create_index()
        assert index.is_index_created() is False

    def test_created_after_insert(self, index):
        _populate(index)
        assert index.is_index_created() is True

    def test_persists_across_instances(self, index, tmp_path):
        _populate(index)
        reopened = LocalVectorIndex(tmp_path / "vector_index", "test_index")
        assert reopened.is_index_created() is True

    def test_query_sorted_by_similarity(self, index):
        _populate(index)
        results = index.query_items([1.0, 0.0, 0.0], top_k=2)

        assert [r.text for r in results] == ["inflation is falling", "prices are rising"]
        assert results[0].similarity_score == pytest.approx(1.0, abs=1e-3)
        assert results[0].similarity_score > results[1].similarity_score

    def test_top_k_larger_than_collection(self, index):
        _populate(index)
        assert len(index.query_items([0.0, 1.0, 0.0], top_k=20)) == 3

    def test_query_empty_index(self, index):
        index.create_index()
        assert index.query_items([1.0, 0.0, 0.0]) == []

    def test_insert_length_mismatch(self, index):
        index.create_index()
        with pytest.raises(ValueError, match="2 texts but 1 embeddings"):
            index.insert_items(["a", "b"], [[1.0, 0.0, 0.0]])

    def test_insert_returns_ids(self, index):
        index.create_index()
        ids = index.insert_items(["a"], [[1.0, 0.0, 0.0]], metadatas=[{"n": 1}])
        assert len(ids) == 1
        assert index.query_items([1.0, 0.0, 0.0])[0].metadata == {"n": 1}

    def test_delete_index(self, index):
        _populate(index)
        index.delete_index()
        assert index.is_index_created() is False

    def test_delete_missing_index_is_noop(self, index):
        index.delete_index()
