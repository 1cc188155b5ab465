"""
Clustering engine: validates points, dispatches to the configured
algorithm and assembles clusters, similarity queries and statistics.
"""
import logging
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from common.errors import ConfigurationError, ValidationError
from common.models import (
    NOISE_LABEL,
    Algorithm,
    Cluster,
    ClusterAssignment,
    ClusteringConfig,
    ClusterStatistics,
    DistanceMetric,
    Point,
)

from .dbscan import dbscan_labels
from .distance import pairwise_distances, resolve_metric, similarity_from_distance
from .hierarchy import hdbscan_labels

logger = logging.getLogger(__name__)

PointLike = Union[Point, Tuple[str, Sequence[float]]]


def as_points(items: Iterable[PointLike]) -> List[Point]:
    points = []
    for item in items:
        if isinstance(item, Point):
            points.append(item)
        else:
            point_id, vector = item
            points.append(Point(id=point_id, vector=vector))
    return points


def stack_vectors(points: Sequence[Point]) -> np.ndarray:
    """
    Stack point vectors into an (n, dim) matrix.

    Raises:
        ValidationError: empty or non-1D vectors, mismatched lengths,
            non-finite values or duplicate ids
    """
    if not points:
        return np.zeros((0, 0), dtype=np.float64)

    seen = set()
    dim = None
    for point in points:
        if point.id in seen:
            raise ValidationError(f"Duplicate point id: {point.id!r}")
        seen.add(point.id)

        if point.vector.ndim != 1 or point.vector.shape[0] == 0:
            raise ValidationError(f"Point {point.id!r} has an empty or non-1D vector")
        if dim is None:
            dim = point.vector.shape[0]
        elif point.vector.shape[0] != dim:
            raise ValidationError(
                f"Dimension mismatch: point {point.id!r} has {point.vector.shape[0]} values, expected {dim}"
            )
        if not np.all(np.isfinite(point.vector)):
            raise ValidationError(f"Point {point.id!r} has non-finite values")

    return np.vstack([p.vector for p in points])


def compute_centroid(vectors: np.ndarray) -> np.ndarray:
    return np.asarray(vectors, dtype=np.float64).mean(axis=0)


class ClusterEngine:
    """
    Density-based clustering over in-memory embedding vectors.

    Two algorithms, selected by `ClusteringConfig.algorithm`:
    - HDBSCAN (default): hierarchical, no radius to tune
    - DBSCAN: fixed `epsilon` radius with `min_points` density threshold

    The engine keeps no state between calls; `config` passed to a call
    overrides the one given at construction.
    """

    def __init__(self, config: Optional[ClusteringConfig] = None):
        self.config = config or ClusteringConfig()

    def assignments(self, points: Iterable[PointLike], config: Optional[ClusteringConfig] = None) -> ClusterAssignment:
        """
        Label every point with a dense cluster id (first-discovery order) or -1 for noise.

        Raises:
            ConfigurationError: invalid parameters
            ValidationError: malformed input vectors
        """
        cfg = (config or self.config).validated()
        points = as_points(points)
        data = stack_vectors(points)
        ids = [p.id for p in points]

        if not points:
            return ClusterAssignment(ids=[], labels=np.zeros(0, dtype=int))

        logger.info(f"Clustering {len(points)} points with {cfg.algorithm.value} ({cfg.metric.value})")
        distances = pairwise_distances(data, metric=cfg.metric, n_jobs=cfg.n_jobs)

        if cfg.algorithm == Algorithm.DBSCAN:
            labels = dbscan_labels(distances, epsilon=cfg.epsilon, min_points=cfg.effective_min_points)
        elif cfg.algorithm == Algorithm.HDBSCAN:
            labels = hdbscan_labels(
                distances,
                min_cluster_size=cfg.min_cluster_size,
                min_samples=cfg.min_samples,
                allow_single_cluster=cfg.allow_single_cluster,
            )
        else:
            raise ConfigurationError(f"Unsupported algorithm: {cfg.algorithm!r}")

        result = ClusterAssignment(ids=ids, labels=labels)
        logger.info(
            f"Clustering complete: {result.n_clusters} clusters found, "
            f"{len(result.noise_ids())} noise points"
        )
        return result

    def cluster(self, points: Iterable[PointLike], config: Optional[ClusteringConfig] = None) -> List[Cluster]:
        """Group points by label; noise is left out. Clusters come back in label order."""
        points = as_points(points)
        assignment = self.assignments(points, config)
        return clusters_from_assignment(points, assignment)


def clusters_from_assignment(points: Sequence[Point], assignment: ClusterAssignment) -> List[Cluster]:
    clusters: List[Cluster] = []
    for label in range(assignment.n_clusters):
        members = [points[i] for i in assignment.member_indices(label)]
        centroid = compute_centroid(np.vstack([p.vector for p in members]))
        clusters.append(Cluster(cluster_id=label, points=members, centroid=centroid))
    return clusters


def find_similar(
    query: Union[Point, Sequence[float]],
    points: Iterable[PointLike],
    metric=DistanceMetric.COSINE,
    threshold: float = 0.0,
    limit: Optional[int] = None,
    exclude_id: Optional[str] = None,
) -> List[Tuple[Point, float]]:
    """
    Points with similarity >= `threshold` to `query`, most similar first.

    Cosine similarity for the cosine metric, 1 / (1 + distance) for
    Euclidean. Equal similarities keep input order.

    The query point is recognized by id only: a Point query excludes the
    point with its id, and a raw vector query excludes `exclude_id` when
    given. A point that merely shares the query's vector is returned.
    """
    metric = resolve_metric(metric)
    if limit is not None and limit < 0:
        raise ConfigurationError(f"limit must be >= 0, got {limit}")

    if exclude_id is None and isinstance(query, Point):
        exclude_id = query.id
    query_vec = query.vector if isinstance(query, Point) else np.asarray(query, dtype=np.float64)
    points = as_points(points)
    if not points:
        return []

    data = stack_vectors(points)
    if query_vec.ndim != 1 or query_vec.shape[0] != data.shape[1]:
        raise ValidationError(
            f"Query has {query_vec.size} values, points have {data.shape[1]}"
        )
    if not np.all(np.isfinite(query_vec)):
        raise ValidationError("Query vector has non-finite values")

    if metric == DistanceMetric.COSINE:
        norms = np.linalg.norm(data, axis=1)
        q_norm = np.linalg.norm(query_vec)
        sims = np.zeros(len(points))
        if q_norm > 0:
            valid = norms > 0
            sims[valid] = np.clip(data[valid] @ query_vec / (norms[valid] * q_norm), -1.0, 1.0)
    else:
        sims = similarity_from_distance(np.linalg.norm(data - query_vec, axis=1), metric)

    matches = [
        i for i in range(len(points))
        if sims[i] >= threshold and points[i].id != exclude_id
    ]
    matches.sort(key=lambda i: -sims[i])
    if limit is not None:
        matches = matches[:limit]
    return [(points[i], float(sims[i])) for i in matches]


def pairwise_similarity_matrix(
    points: Iterable[PointLike],
    metric=DistanceMetric.COSINE,
    n_jobs: int = 1,
) -> np.ndarray:
    """Symmetric similarity matrix with an exact 1.0 diagonal."""
    points = as_points(points)
    data = stack_vectors(points)
    if not points:
        return np.zeros((0, 0), dtype=np.float64)
    sims = similarity_from_distance(pairwise_distances(data, metric=metric, n_jobs=n_jobs), metric)
    np.fill_diagonal(sims, 1.0)
    return sims


def cluster_statistics(clusters: Sequence[Cluster]) -> ClusterStatistics:
    sizes = [c.size for c in clusters]
    total = sum(sizes)
    count = len(sizes)
    return ClusterStatistics(
        count=count,
        min_size=min(sizes) if sizes else 0,
        max_size=max(sizes) if sizes else 0,
        avg_size=total / count if count else 0.0,
        total_points=total,
    )


def assign_to_clusters(
    points: Iterable[PointLike],
    clusters: Sequence[Cluster],
    metric=DistanceMetric.COSINE,
    max_distance: Optional[float] = None,
) -> ClusterAssignment:
    """
    Assign new points to the cluster with the nearest centroid.

    Points farther than `max_distance` from every centroid are noise.
    Distance ties go to the lower cluster id.
    """
    metric = resolve_metric(metric)
    points = as_points(points)
    data = stack_vectors(points)
    ids = [p.id for p in points]
    if not points or not clusters:
        return ClusterAssignment(ids=ids, labels=np.full(len(ids), NOISE_LABEL, dtype=int))

    centroids = np.vstack([c.centroid for c in clusters])
    if centroids.shape[1] != data.shape[1]:
        raise ValidationError(
            f"Centroids have {centroids.shape[1]} dimensions, points have {data.shape[1]}"
        )

    distances = pairwise_distances(np.vstack([data, centroids]), metric=metric)[: len(points), len(points):]
    nearest = np.argmin(distances, axis=1)
    labels = np.array([clusters[j].cluster_id for j in nearest], dtype=int)
    if max_distance is not None:
        labels[distances[np.arange(len(points)), nearest] > max_distance] = NOISE_LABEL

    logger.info(f"Assigned {int(np.sum(labels != NOISE_LABEL))}/{len(points)} points to existing clusters")
    return ClusterAssignment(ids=ids, labels=labels)
