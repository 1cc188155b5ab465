"""
Distance and similarity primitives for embedding vectors.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Tuple

import numpy as np

from common.errors import ConfigurationError
from common.models import DistanceMetric

logger = logging.getLogger(__name__)

# Distances below this are treated as exact zero (identical vectors).
ZERO_TOLERANCE = 1e-12

# Upper bound on floats materialized per row block of a Euclidean matrix.
_BLOCK_FLOATS = 4_000_000


def resolve_metric(metric) -> DistanceMetric:
    try:
        return DistanceMetric(metric)
    except ValueError:
        raise ConfigurationError(f"Unsupported distance metric: {metric!r}") from None


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)))


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Normalized dot product; 0 when either vector has zero magnitude."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


def cosine_distance(a: np.ndarray, b: np.ndarray) -> float:
    distance = float(np.clip(1.0 - cosine_similarity(a, b), 0.0, 2.0))
    return 0.0 if distance < ZERO_TOLERANCE else distance


def distance(a: np.ndarray, b: np.ndarray, metric=DistanceMetric.EUCLIDEAN) -> float:
    if resolve_metric(metric) == DistanceMetric.COSINE:
        return cosine_distance(a, b)
    return euclidean_distance(a, b)


def similarity_from_distance(dist, metric=DistanceMetric.EUCLIDEAN):
    """
    Map a distance onto a similarity score.

    Cosine: the cosine similarity itself (1 - distance).
    Euclidean: 1 / (1 + distance).
    Works on scalars and numpy arrays alike.
    """
    if resolve_metric(metric) == DistanceMetric.COSINE:
        return 1.0 - dist
    return 1.0 / (1.0 + dist)


def similarity(a: np.ndarray, b: np.ndarray, metric=DistanceMetric.EUCLIDEAN) -> float:
    if resolve_metric(metric) == DistanceMetric.COSINE:
        return cosine_similarity(a, b)
    return 1.0 / (1.0 + euclidean_distance(a, b))


def _row_blocks(n_rows: int, block_size: int) -> List[Tuple[int, int]]:
    return [(start, min(start + block_size, n_rows)) for start in range(0, n_rows, block_size)]


def _euclidean_block(data: np.ndarray, start: int, stop: int, out: np.ndarray) -> None:
    diff = data[start:stop, None, :] - data[None, :, :]
    out[start:stop] = np.sqrt(np.einsum("ijk,ijk->ij", diff, diff))


def _cosine_block(unit: np.ndarray, zero_rows: np.ndarray, start: int, stop: int, out: np.ndarray) -> None:
    sims = np.clip(unit[start:stop] @ unit.T, -1.0, 1.0)
    # zero-magnitude vectors have similarity 0 with everything
    sims[zero_rows[start:stop], :] = 0.0
    sims[:, zero_rows] = 0.0
    block = np.clip(1.0 - sims, 0.0, 2.0)
    block[block < ZERO_TOLERANCE] = 0.0
    out[start:stop] = block


def pairwise_distances(
    data: np.ndarray,
    metric=DistanceMetric.EUCLIDEAN,
    n_jobs: int = 1,
) -> np.ndarray:
    """
    Dense symmetric distance matrix for the rows of `data`.

    Rows are computed in independent blocks, optionally on a thread pool
    (`n_jobs` > 1). Each block writes its own slice, and the result is
    symmetrized from the upper triangle, so the output is identical for any
    worker count. The diagonal is exactly 0.
    """
    metric = resolve_metric(metric)
    data = np.asarray(data, dtype=np.float64)
    n_rows = data.shape[0]
    out = np.zeros((n_rows, n_rows), dtype=np.float64)
    if n_rows == 0:
        return out

    if metric == DistanceMetric.COSINE:
        norms = np.linalg.norm(data, axis=1)
        zero_rows = norms == 0
        safe = np.where(zero_rows, 1.0, norms)
        unit = data / safe[:, None]
        block_size = max(1, min(n_rows, 1024))
        tasks = [(_cosine_block, (unit, zero_rows, start, stop, out)) for start, stop in _row_blocks(n_rows, block_size)]
    else:
        block_size = max(1, _BLOCK_FLOATS // max(1, n_rows * data.shape[1]))
        tasks = [(_euclidean_block, (data, start, stop, out)) for start, stop in _row_blocks(n_rows, block_size)]

    if n_jobs > 1 and len(tasks) > 1:
        logger.debug(f"Computing {n_rows}x{n_rows} {metric.value} distances in {len(tasks)} blocks on {n_jobs} workers")
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            futures = [pool.submit(fn, *args) for fn, args in tasks]
            for fut in futures:
                fut.result()
    else:
        for fn, args in tasks:
            fn(*args)

    upper = np.triu(out, k=1)
    out = upper + upper.T
    return out
