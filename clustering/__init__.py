"""Density-based clustering primitives for document embeddings."""

from .dbscan import dbscan_labels
from .distance import cosine_distance, cosine_similarity, euclidean_distance, pairwise_distances
from .engine import (
    ClusterEngine,
    assign_to_clusters,
    cluster_statistics,
    find_similar,
    pairwise_similarity_matrix,
)
from .hierarchy import hdbscan_labels
from .merge_prune import merge_clusters, prune_clusters, split_by_size
from .quality import ClusterQuality, score_clusters, silhouette_score

__all__ = [
    "ClusterEngine",
    "assign_to_clusters",
    "cluster_statistics",
    "find_similar",
    "pairwise_similarity_matrix",
    "dbscan_labels",
    "hdbscan_labels",
    "cosine_distance",
    "cosine_similarity",
    "euclidean_distance",
    "pairwise_distances",
    "merge_clusters",
    "prune_clusters",
    "split_by_size",
    "ClusterQuality",
    "score_clusters",
    "silhouette_score",
]
