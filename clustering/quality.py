from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from common.models import NOISE_LABEL, Cluster, ClusterAssignment, DistanceMetric, Point

from .distance import pairwise_distances
from .engine import stack_vectors


@dataclass
class ClusterQuality:
    cluster_id: int
    size: int
    cohesion: float       # mean member distance to centroid
    max_spread: float     # farthest member distance to centroid


def score_clusters(clusters: Sequence[Cluster], metric=DistanceMetric.EUCLIDEAN) -> List[ClusterQuality]:
    """Per-cluster compactness measured against each cluster's centroid."""
    results: List[ClusterQuality] = []
    for cluster in clusters:
        vectors = np.vstack([p.vector for p in cluster.points])
        dist = pairwise_distances(np.vstack([cluster.centroid, vectors]), metric=metric)[0, 1:]
        results.append(
            ClusterQuality(
                cluster_id=cluster.cluster_id,
                size=cluster.size,
                cohesion=float(dist.mean()),
                max_spread=float(dist.max()),
            )
        )
    return results


def silhouette_score(
    points: Sequence[Point],
    assignment: ClusterAssignment,
    metric=DistanceMetric.EUCLIDEAN,
) -> Optional[float]:
    """
    Mean silhouette coefficient over clustered points, noise excluded.

    `assignment` must be aligned with `points`. Returns None when fewer
    than two clusters exist. Members of singleton clusters score 0.
    """
    if len(points) != len(assignment):
        raise ValueError("points and assignment must share the same length.")
    distances = pairwise_distances(stack_vectors(points), metric=metric)
    labels = np.asarray(assignment.labels)
    mask = labels != NOISE_LABEL
    cluster_ids = np.unique(labels[mask])
    if cluster_ids.size < 2:
        return None

    scores = []
    for i in np.flatnonzero(mask):
        own = labels == labels[i]
        if own.sum() <= 1:
            scores.append(0.0)
            continue
        a = distances[i, own].sum() / (own.sum() - 1)
        b = min(
            distances[i, labels == other].mean()
            for other in cluster_ids
            if other != labels[i]
        )
        denom = max(a, b)
        scores.append(0.0 if denom == 0 else (b - a) / denom)
    return float(np.mean(scores))
