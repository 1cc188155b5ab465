"""
Fixed-radius density clustering (DBSCAN).
"""
import logging
from collections import deque
from typing import List

import numpy as np

from common.models import NOISE_LABEL

logger = logging.getLogger(__name__)


def region_query(distances: np.ndarray, epsilon: float) -> List[np.ndarray]:
    """Epsilon-neighborhood of every point (itself included), ascending index order."""
    return [np.flatnonzero(row <= epsilon) for row in distances]


def dbscan_labels(distances: np.ndarray, epsilon: float, min_points: int) -> np.ndarray:
    """
    Label points by density-reachability over a precomputed distance matrix.

    Points are visited in input order and each expansion walks neighbors
    breadth-first in ascending index order, so a border point reachable from
    two clusters joins the one whose expansion reaches it first.
    """
    n_points = distances.shape[0]
    labels = np.full(n_points, NOISE_LABEL, dtype=int)
    if n_points == 0:
        return labels

    neighborhoods = region_query(distances, epsilon)
    is_core = np.array([len(nbrs) >= min_points for nbrs in neighborhoods], dtype=bool)
    logger.debug(f"DBSCAN: {int(is_core.sum())}/{n_points} core points at epsilon={epsilon}")

    next_label = 0
    for i in range(n_points):
        if labels[i] != NOISE_LABEL or not is_core[i]:
            continue

        label = next_label
        next_label += 1
        labels[i] = label
        queue = deque([i])
        while queue:
            p = queue.popleft()
            if not is_core[p]:
                # border points join but do not propagate
                continue
            for q in neighborhoods[p]:
                if labels[q] == NOISE_LABEL:
                    labels[q] = label
                    queue.append(q)

    return labels
