import numpy as np
import pytest

from clustering import distance as distance_module
from clustering.distance import (
    cosine_distance,
    cosine_similarity,
    euclidean_distance,
    pairwise_distances,
    similarity,
    similarity_from_distance,
)
from common.errors import ConfigurationError
from common.models import DistanceMetric


def test_cosine_distance_identical_vectors_is_zero():
    rng = np.random.default_rng(0)
    for _ in range(20):
        v = rng.normal(size=16)
        assert cosine_distance(v, v) < 1e-9


def test_cosine_distance_range():
    a = np.array([1.0, 0.0])
    assert cosine_distance(a, -a) == pytest.approx(2.0)
    assert cosine_distance(a, np.array([0.0, 1.0])) == pytest.approx(1.0)


def test_cosine_zero_vector():
    zero = np.zeros(3)
    v = np.array([1.0, 2.0, 3.0])
    assert cosine_similarity(zero, v) == 0.0
    assert cosine_distance(zero, v) == 1.0


def test_euclidean_triangle_inequality():
    rng = np.random.default_rng(1)
    for _ in range(200):
        a, b, c = rng.normal(size=(3, 8))
        assert euclidean_distance(a, c) <= euclidean_distance(a, b) + euclidean_distance(b, c) + 1e-12


def test_euclidean_similarity():
    assert similarity([0.0, 0.0], [3.0, 4.0], DistanceMetric.EUCLIDEAN) == pytest.approx(1.0 / 6.0)
    assert similarity_from_distance(0.0, "euclidean") == 1.0


def test_unknown_metric():
    with pytest.raises(ConfigurationError):
        similarity([0.0], [1.0], "manhattan")


@pytest.mark.parametrize("metric", [DistanceMetric.EUCLIDEAN, DistanceMetric.COSINE])
def test_pairwise_matches_scalar(metric):
    rng = np.random.default_rng(2)
    data = rng.normal(size=(10, 4))
    matrix = pairwise_distances(data, metric)

    assert np.array_equal(matrix, matrix.T)
    assert np.all(np.diag(matrix) == 0.0)
    scalar = cosine_distance if metric == DistanceMetric.COSINE else euclidean_distance
    for i in range(10):
        for j in range(10):
            if i != j:
                assert matrix[i, j] == pytest.approx(scalar(data[i], data[j]), abs=1e-9)


def test_pairwise_cosine_zero_rows():
    data = np.array([[0.0, 0.0], [0.0, 0.0], [1.0, 0.0]])
    matrix = pairwise_distances(data, DistanceMetric.COSINE)
    assert matrix[0, 1] == 1.0
    assert matrix[0, 2] == 1.0
    assert matrix[0, 0] == 0.0


def test_pairwise_blocks_and_workers_agree(monkeypatch):
    rng = np.random.default_rng(4)
    data = rng.normal(size=(30, 5))
    single = pairwise_distances(data, DistanceMetric.EUCLIDEAN)

    monkeypatch.setattr(distance_module, "_BLOCK_FLOATS", 100)
    blocked = pairwise_distances(data, DistanceMetric.EUCLIDEAN, n_jobs=4)

    np.testing.assert_allclose(single, blocked, rtol=0, atol=1e-12)
    assert np.array_equal(blocked, blocked.T)


def test_pairwise_empty():
    assert pairwise_distances(np.zeros((0, 3))).shape == (0, 0)
