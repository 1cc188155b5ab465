"""Tests for the embed -> cluster -> merge workflow glue."""

from unittest.mock import MagicMock

import pytest

from common.errors import ValidationError
from common.models import ClusteringConfig, Point
from workflow.embedding import Document, embed_documents
from workflow.merge import DocumentMerger


class LengthEmbedder:
    def __init__(self):
        self.calls = []

    def embed(self, texts):
        self.calls.append(list(texts))
        return [[float(len(t)), 1.0] for t in texts]


class TestEmbedDocuments:
    def test_points_in_input_order(self):
        docs = [Document(id=f"d{i}", content="x" * i, metadata={"owner": "ops"}) for i in range(5)]
        embedder = LengthEmbedder()

        points = embed_documents(docs, embedder, batch_size=2, max_workers=2)

        assert [p.id for p in points] == ["d0", "d1", "d2", "d3", "d4"]
        assert points[3].vector.tolist() == [3.0, 1.0]
        assert points[3].metadata == {"owner": "ops", "content": "xxx"}
        assert sorted(len(c) for c in embedder.calls) == [1, 2, 2]

    def test_embedder_count_mismatch(self):
        embedder = MagicMock()
        embedder.embed.return_value = [[1.0]]

        with pytest.raises(ValidationError):
            embed_documents([Document(id="a", content="a"), Document(id="b", content="b")], embedder)

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            embed_documents([], LengthEmbedder(), batch_size=0)


def _doc_point(pid, vector, content):
    return Point(id=pid, vector=vector, metadata={"content": content, "owner": "team"})


@pytest.fixture
def corpus():
    return [
        _doc_point("a1", [0.0, 0.0], "alpha one"),
        _doc_point("a2", [0.1, 0.0], "alpha two"),
        _doc_point("a3", [0.0, 0.1], "alpha three"),
        _doc_point("b1", [10.0, 0.0], "beta one"),
        _doc_point("b2", [10.1, 0.0], "beta two"),
        _doc_point("lonely", [1000.0, 1000.0], "outlier"),
    ]


class TestDocumentMerger:
    def test_merges_large_clusters_only(self, corpus):
        summarizer = MagicMock()
        summarizer.merge.side_effect = lambda texts: " + ".join(texts)
        merger = DocumentMerger(summarizer, merge_min_size=3)

        report = merger.run(corpus, ClusteringConfig(min_cluster_size=2, min_samples=2))

        summarizer.merge.assert_called_once_with(["alpha one", "alpha two", "alpha three"])
        assert [d.content for d in report.documents] == [
            "alpha one + alpha two + alpha three",
            "beta one",
            "beta two",
            "outlier",
        ]
        assert report.documents[0].merged is True
        assert report.documents[0].source_ids == ["a1", "a2", "a3"]
        assert report.documents[1].cluster_id == 1
        assert report.documents[3].cluster_id is None
        assert report.documents[3].metadata == {"owner": "team"}
        assert report.noise_ids == ["lonely"]

    def test_report_counts(self, corpus):
        summarizer = MagicMock()
        summarizer.merge.return_value = "merged"
        report = DocumentMerger(summarizer).run(corpus)

        assert report.input_count == 6
        assert report.output_count == 4
        assert report.reduction == pytest.approx(1 / 3)
        assert report.statistics.count == 2

        model = report.to_model()
        assert model.clustering.noise_ids == ["lonely"]
        assert [c.size for c in model.clustering.clusters] == [3, 2]
        assert model.model_dump(mode="json")["clustering"]["config"]["algorithm"] == "hdbscan"

    def test_empty_input(self):
        summarizer = MagicMock()
        report = DocumentMerger(summarizer).run([])

        assert report.documents == []
        assert report.reduction == 0.0
        summarizer.merge.assert_not_called()

    def test_invalid_merge_min_size(self):
        with pytest.raises(ValueError):
            DocumentMerger(MagicMock(), merge_min_size=0)
