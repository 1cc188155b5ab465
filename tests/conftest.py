from typing import List

import numpy as np
import pytest

from common.models import Point

CENTERS = [(0.0, 0.0), (10.0, 0.0), (0.0, 10.0), (10.0, 10.0)]


def make_groups(seed: int = 7, per_group: int = 3) -> List[Point]:
    """Four well-separated 2D groups; each offset stays within 0.1 of its center."""
    rng = np.random.default_rng(seed)
    points = []
    for g, (cx, cy) in enumerate(CENTERS):
        for k in range(per_group):
            dx, dy = rng.uniform(-0.07, 0.07, size=2)
            points.append(Point(id=f"g{g}-{k}", vector=[cx + dx, cy + dy]))
    return points


def partition(points, labels) -> set:
    """Clusters as a set of frozensets of ids, independent of label numbering."""
    groups = {}
    for point, label in zip(points, labels):
        if label >= 0:
            groups.setdefault(int(label), set()).add(point.id)
    return {frozenset(g) for g in groups.values()}


@pytest.fixture
def four_groups() -> List[Point]:
    return make_groups()


@pytest.fixture
def four_groups_with_outlier(four_groups) -> List[Point]:
    return four_groups + [Point(id="outlier", vector=[1000.0, 1000.0])]


@pytest.fixture
def partition_of():
    return partition
