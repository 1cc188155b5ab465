"""
Hierarchical density clustering (HDBSCAN) built from primitives.

Pipeline over a precomputed distance matrix:
core distances -> mutual reachability -> minimum spanning tree (Prim)
-> single-linkage merges (union-find) -> condensed tree -> stability
-> excess-of-mass selection -> flat labels.
"""
import logging
from collections import defaultdict, deque
from typing import Dict, List, NamedTuple, Optional, Set, Tuple

import numpy as np

from common.models import NOISE_LABEL

from .distance import ZERO_TOLERANCE
from .union_find import UnionFind

logger = logging.getLogger(__name__)

# lambda assigned to merges at (numerically) zero distance
LAMBDA_CAP = 1.0 / ZERO_TOLERANCE


class Merge(NamedTuple):
    """Components joined at one distance level; `children` are node ids."""
    children: Tuple[int, ...]
    distance: float
    size: int


class TreeEdge(NamedTuple):
    """Condensed tree row: `child` is a point index (< n) or a cluster id (>= n)."""
    parent: int
    child: int
    lambda_val: float
    child_size: int


def _lambda(distance: float) -> float:
    if distance <= 0:
        return LAMBDA_CAP
    return min(1.0 / distance, LAMBDA_CAP)


def core_distances(distances: np.ndarray, min_samples: int) -> np.ndarray:
    """Distance to the `min_samples`-th nearest neighbor, the point itself counting as the first."""
    n_points = distances.shape[0]
    k = min(min_samples, n_points)
    return np.partition(distances, k - 1, axis=1)[:, k - 1]


def mutual_reachability(distances: np.ndarray, core: np.ndarray) -> np.ndarray:
    mr = np.maximum(distances, np.maximum.outer(core, core))
    np.fill_diagonal(mr, 0.0)
    return mr


def minimum_spanning_tree(weights: np.ndarray) -> np.ndarray:
    """
    Prim's algorithm on a dense symmetric weight matrix.

    Edges are compared by (weight, min index, max index), which makes the
    tree unique. Returns an (n - 1, 3) array of [u, v, weight] rows with
    u < v, sorted by the same key.
    """
    n_points = weights.shape[0]
    if n_points < 2:
        return np.zeros((0, 3), dtype=np.float64)

    idx = np.arange(n_points)
    in_tree = np.zeros(n_points, dtype=bool)
    in_tree[0] = True
    best_w = weights[0].copy()
    best_src = np.zeros(n_points, dtype=int)

    edges = []
    for _ in range(n_points - 1):
        candidates = ~in_tree
        w_min = best_w[candidates].min()
        tied = np.flatnonzero(candidates & (best_w == w_min))
        if len(tied) == 1:
            v = int(tied[0])
        else:
            lo = np.minimum(best_src[tied], tied)
            hi = np.maximum(best_src[tied], tied)
            v = int(tied[np.lexsort((hi, lo))[0]])
        u = int(best_src[v])
        edges.append((min(u, v), max(u, v), float(w_min)))
        in_tree[v] = True

        row = weights[v]
        lo_new, hi_new = np.minimum(idx, v), np.maximum(idx, v)
        lo_old, hi_old = np.minimum(idx, best_src), np.maximum(idx, best_src)
        better = (row < best_w) | (
            (row == best_w) & ((lo_new < lo_old) | ((lo_new == lo_old) & (hi_new < hi_old)))
        )
        better &= ~in_tree
        best_w[better] = row[better]
        best_src[better] = v

    mst = np.array(edges, dtype=np.float64)
    order = np.lexsort((mst[:, 1], mst[:, 0], mst[:, 2]))
    return mst[order]


def single_linkage(mst: np.ndarray, n_points: int) -> List[Merge]:
    """
    Merge components along MST edges in increasing weight order.

    All edges sharing a weight are applied together, so each merge is a
    connected component of the graph at that distance and may join more
    than two children. The components at every level are the same for any
    input order. Merge k creates node `n_points + k`; nodes below
    `n_points` are points. The last merge is the root.
    """
    uf = UnionFind(n_points)
    node_of = list(range(n_points))
    node_size = [1] * n_points
    merges: List[Merge] = []

    n_edges = len(mst)
    start = 0
    while start < n_edges:
        weight = mst[start, 2]
        stop = start
        while stop < n_edges and mst[stop, 2] == weight:
            stop += 1
        level = mst[start:stop]

        endpoints = sorted({int(x) for x in level[:, :2].ravel()})
        before = {x: node_of[uf.find(x)] for x in endpoints}
        for u, v, _ in level:
            uf.union(int(u), int(v))

        groups: Dict[int, Set[int]] = defaultdict(set)
        for x in endpoints:
            groups[uf.find(x)].add(before[x])
        for root, children in sorted(groups.items(), key=lambda item: min(item[1])):
            kids = tuple(sorted(children))
            size = sum(node_size[child] for child in kids)
            node_of[root] = n_points + len(merges)
            node_size.append(size)
            merges.append(Merge(kids, float(weight), size))
        start = stop

    return merges


def _leaves(node: int, merges: List[Merge], n_points: int) -> List[int]:
    points = []
    stack = [node]
    while stack:
        current = stack.pop()
        if current < n_points:
            points.append(current)
        else:
            stack.extend(merges[current - n_points].children)
    return sorted(points)


def condense_tree(merges: List[Merge], n_points: int, min_cluster_size: int) -> List[TreeEdge]:
    """
    Walk the single-linkage tree top-down and keep only splits where at
    least two children reach `min_cluster_size`; each of those becomes a
    new cluster. Smaller children fall out of the parent cluster as
    individual points at the split's lambda. The root cluster is labelled
    `n_points`.
    """
    def size_of(node: int) -> int:
        return 1 if node < n_points else merges[node - n_points].size

    root = n_points + len(merges) - 1
    relabel: Dict[int, int] = {root: n_points}
    next_label = n_points + 1
    tree: List[TreeEdge] = []

    queue = deque([root])
    while queue:
        node = queue.popleft()
        merge = merges[node - n_points]
        lam = _lambda(merge.distance)
        parent = relabel[node]
        sized = [(child, size_of(child)) for child in merge.children]
        splits = sum(1 for _, size in sized if size >= min_cluster_size) >= 2

        for child, child_size in sized:
            if child_size < min_cluster_size:
                for point in _leaves(child, merges, n_points):
                    tree.append(TreeEdge(parent, point, lam, 1))
            elif splits:
                relabel[child] = next_label
                tree.append(TreeEdge(parent, next_label, lam, child_size))
                if child < n_points:
                    # singleton cluster, only possible with min_cluster_size == 1
                    tree.append(TreeEdge(next_label, child, lam, 1))
                else:
                    queue.append(child)
                next_label += 1
            else:
                relabel[child] = parent
                queue.append(child)

    return tree


def compute_stability(tree: List[TreeEdge], n_points: int) -> Dict[int, float]:
    """Sum of (lambda_leave - lambda_birth) * size over everything leaving each cluster."""
    births: Dict[int, float] = {n_points: 0.0}
    for edge in tree:
        if edge.child >= n_points:
            births[edge.child] = edge.lambda_val

    stability = {cluster: 0.0 for cluster in births}
    for edge in tree:
        stability[edge.parent] += (edge.lambda_val - births[edge.parent]) * edge.child_size
    return stability


def _cluster_children(tree: List[TreeEdge], n_points: int) -> Dict[int, List[int]]:
    children: Dict[int, List[int]] = defaultdict(list)
    for edge in tree:
        if edge.child >= n_points:
            children[edge.parent].append(edge.child)
    return children


def _descendants(cluster: int, children: Dict[int, List[int]]) -> List[int]:
    found = []
    stack = list(children.get(cluster, []))
    while stack:
        current = stack.pop()
        found.append(current)
        stack.extend(children.get(current, []))
    return found


def root_never_splits(tree: List[TreeEdge], n_points: int) -> bool:
    """True when nothing leaves the root before zero distance (all points coincide)."""
    root_rows = [edge for edge in tree if edge.parent == n_points]
    return bool(root_rows) and all(edge.lambda_val >= LAMBDA_CAP for edge in root_rows)


def select_clusters(
    tree: List[TreeEdge],
    stability: Dict[int, float],
    n_points: int,
    min_cluster_size: int,
    allow_single_cluster: bool = False,
) -> Set[int]:
    """
    Excess-of-mass selection, leaves first.

    A cluster is kept over its selected descendants unless their summed
    stability is strictly greater; ties keep the parent. The root only takes
    part when `allow_single_cluster` is set or it never splits at any
    positive distance.
    """
    root = n_points
    children = _cluster_children(tree, n_points)
    root_selectable = allow_single_cluster or (
        n_points >= min_cluster_size and root_never_splits(tree, n_points)
    )

    # children always carry larger ids than their parents
    nodes = sorted(stability, reverse=True)
    if not root_selectable:
        nodes = [node for node in nodes if node != root]

    stab = dict(stability)
    is_cluster = {node: True for node in nodes}
    for node in nodes:
        subtree = sum(stab[child] for child in children.get(node, []))
        if subtree > stab[node]:
            is_cluster[node] = False
            stab[node] = subtree
        else:
            for sub in _descendants(node, children):
                is_cluster[sub] = False

    return {node for node, selected in is_cluster.items() if selected}


def label_points(tree: List[TreeEdge], selected: Set[int], n_points: int) -> np.ndarray:
    """
    Map each point to its nearest selected ancestor cluster, then renumber
    labels densely in order of each cluster's first member in input order.
    """
    root = n_points
    parent_of: Dict[int, int] = {edge.child: edge.parent for edge in tree if edge.child >= n_points}
    root_points = [edge.lambda_val for edge in tree if edge.parent == root and edge.child < n_points]
    root_threshold = max(root_points) if root_points else 0.0

    def selected_ancestor(cluster: int) -> Optional[int]:
        current: Optional[int] = cluster
        while current is not None:
            if current in selected:
                return current
            current = parent_of.get(current)
        return None

    raw = np.full(n_points, NOISE_LABEL, dtype=int)
    for edge in tree:
        if edge.child >= n_points:
            continue
        cluster = selected_ancestor(edge.parent)
        if cluster is None:
            continue
        if cluster == root and edge.lambda_val < root_threshold:
            continue
        raw[edge.child] = cluster

    labels = np.full(n_points, NOISE_LABEL, dtype=int)
    renumber: Dict[int, int] = {}
    for i, cluster in enumerate(raw):
        if cluster == NOISE_LABEL:
            continue
        if cluster not in renumber:
            renumber[cluster] = len(renumber)
        labels[i] = renumber[cluster]
    return labels


def hdbscan_labels(
    distances: np.ndarray,
    min_cluster_size: int,
    min_samples: int,
    allow_single_cluster: bool = False,
) -> np.ndarray:
    """Flat HDBSCAN labels over a precomputed distance matrix; -1 is noise."""
    n_points = distances.shape[0]
    if n_points == 0:
        return np.zeros(0, dtype=int)
    if n_points == 1:
        return np.array([0 if min_cluster_size == 1 else NOISE_LABEL], dtype=int)

    core = core_distances(distances, min_samples)
    mr = mutual_reachability(distances, core)
    mst = minimum_spanning_tree(mr)
    merges = single_linkage(mst, n_points)
    tree = condense_tree(merges, n_points, min_cluster_size)
    stability = compute_stability(tree, n_points)
    selected = select_clusters(tree, stability, n_points, min_cluster_size, allow_single_cluster)
    logger.debug(
        f"HDBSCAN: {len(stability)} candidate clusters, {len(selected)} selected "
        f"(min_cluster_size={min_cluster_size}, min_samples={min_samples})"
    )
    return label_points(tree, selected, n_points)
