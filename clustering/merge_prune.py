from typing import Dict, List, Sequence, Tuple

import numpy as np

from common.models import Cluster, DistanceMetric

from .distance import pairwise_distances
from .engine import compute_centroid


def prune_clusters(clusters: Sequence[Cluster], min_size: int = 2) -> List[Cluster]:
    """
    Drop clusters smaller than `min_size`.

    Surviving clusters keep their members and are renumbered 0..N-1 in
    their original order.
    """
    kept: List[Cluster] = []
    for cluster in clusters:
        if cluster.size >= min_size:
            kept.append(Cluster(cluster_id=len(kept), points=cluster.points, centroid=cluster.centroid))
    return kept


def split_by_size(clusters: Sequence[Cluster], merge_min_size: int = 3) -> Tuple[List[Cluster], List[Cluster]]:
    """Partition clusters into (size >= merge_min_size, smaller ones), order preserved."""
    large = [c for c in clusters if c.size >= merge_min_size]
    small = [c for c in clusters if c.size < merge_min_size]
    return large, small


def merge_clusters(
    clusters: Sequence[Cluster],
    distance_threshold: float,
    metric=DistanceMetric.COSINE,
) -> Tuple[List[Cluster], Dict[int, int]]:
    """
    Merge clusters whose centroids are within a distance threshold.

    Greedy in cluster order: each unvisited cluster absorbs every later
    unvisited cluster closer than the threshold to its own centroid.
    Returns the merged clusters (centroids recomputed over all members) and
    a mapping from old -> new ids.
    """
    if not clusters:
        return [], {}

    centroids = np.vstack([c.centroid for c in clusters])
    n_clusters = centroids.shape[0]
    dist = pairwise_distances(centroids, metric=metric)

    visited = set()
    groups: List[List[int]] = []
    for i in range(n_clusters):
        if i in visited:
            continue
        group = [i]
        for j in range(i + 1, n_clusters):
            if j in visited:
                continue
            if dist[i, j] < distance_threshold:
                group.append(j)
                visited.add(j)
        visited.add(i)
        groups.append(group)

    mapping: Dict[int, int] = {}
    merged: List[Cluster] = []
    for new_id, group in enumerate(groups):
        members = [p for idx in group for p in clusters[idx].points]
        centroid = compute_centroid(np.vstack([p.vector for p in members]))
        merged.append(Cluster(cluster_id=new_id, points=members, centroid=centroid))
        for idx in group:
            mapping[clusters[idx].cluster_id] = new_id

    return merged, mapping
