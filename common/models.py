"""
Shared data models for the clustering engine and the merge workflow.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict

from .errors import ConfigurationError

NOISE_LABEL = -1


class Algorithm(str, Enum):
    HDBSCAN = "hdbscan"
    DBSCAN = "dbscan"


class DistanceMetric(str, Enum):
    EUCLIDEAN = "euclidean"
    COSINE = "cosine"


@dataclass(frozen=True, eq=False)
class Point:
    """A single input item: opaque id plus its embedding vector."""
    id: str
    vector: np.ndarray
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        vector = np.array(self.vector, dtype=np.float64)
        vector.setflags(write=False)
        object.__setattr__(self, "vector", vector)

    @property
    def dim(self) -> int:
        return int(self.vector.shape[0]) if self.vector.ndim == 1 else 0


@dataclass
class Cluster:
    """Points sharing one label, in input order, with their centroid."""
    cluster_id: int
    points: List[Point]
    centroid: np.ndarray

    @property
    def size(self) -> int:
        return len(self.points)

    @property
    def ids(self) -> List[str]:
        return [p.id for p in self.points]

    def to_model(self) -> "ClusterModel":
        return ClusterModel(
            cluster_id=self.cluster_id,
            size=self.size,
            member_ids=self.ids,
            centroid=self.centroid.tolist(),
        )


@dataclass
class ClusterAssignment:
    """Label per point id; -1 marks noise."""
    ids: List[str]
    labels: np.ndarray

    def __len__(self) -> int:
        return len(self.ids)

    def label_of(self, point_id: str) -> int:
        try:
            return int(self.labels[self.ids.index(point_id)])
        except ValueError:
            raise KeyError(point_id) from None

    def as_dict(self) -> Dict[str, int]:
        return {pid: int(label) for pid, label in zip(self.ids, self.labels)}

    @property
    def n_clusters(self) -> int:
        if self.labels.size == 0:
            return 0
        return int(self.labels.max()) + 1

    def noise_ids(self) -> List[str]:
        return [pid for pid, label in zip(self.ids, self.labels) if label == NOISE_LABEL]

    def member_indices(self, label: int) -> List[int]:
        return [int(i) for i in np.flatnonzero(self.labels == label)]


@dataclass
class ClusterStatistics:
    count: int
    min_size: int
    max_size: int
    avg_size: float
    total_points: int

    def to_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "min_size": self.min_size,
            "max_size": self.max_size,
            "avg_size": self.avg_size,
            "total_points": self.total_points,
        }


@dataclass
class ClusteringConfig:
    """
    Tunable clustering parameters.

    `min_samples` drives core distances for the hierarchical variant,
    `min_points` and `epsilon` drive the fixed-radius variant. When
    `min_points` is unset the fixed-radius variant falls back to `min_samples`.
    """
    algorithm: Algorithm = Algorithm.HDBSCAN
    min_cluster_size: int = 2
    min_samples: int = 2
    min_points: Optional[int] = None
    epsilon: Optional[float] = None
    metric: DistanceMetric = DistanceMetric.EUCLIDEAN
    allow_single_cluster: bool = False
    n_jobs: int = 1

    @property
    def effective_min_points(self) -> int:
        return self.min_points if self.min_points is not None else self.min_samples

    def validated(self) -> "ClusteringConfig":
        """Return a copy with enum fields normalized, or raise ConfigurationError."""
        try:
            algorithm = Algorithm(self.algorithm)
        except ValueError:
            raise ConfigurationError(f"Unsupported algorithm: {self.algorithm!r}") from None
        try:
            metric = DistanceMetric(self.metric)
        except ValueError:
            raise ConfigurationError(f"Unsupported distance metric: {self.metric!r}") from None

        if self.min_cluster_size < 1:
            raise ConfigurationError(f"min_cluster_size must be >= 1, got {self.min_cluster_size}")
        if self.min_samples < 1:
            raise ConfigurationError(f"min_samples must be >= 1, got {self.min_samples}")
        if self.min_points is not None and self.min_points < 1:
            raise ConfigurationError(f"min_points must be >= 1, got {self.min_points}")
        if self.n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be >= 1, got {self.n_jobs}")
        if algorithm == Algorithm.DBSCAN:
            if self.epsilon is None:
                raise ConfigurationError("epsilon is required for the dbscan algorithm")
            if not self.epsilon > 0:
                raise ConfigurationError(f"epsilon must be > 0, got {self.epsilon}")

        return replace(self, algorithm=algorithm, metric=metric)


class ClusteringConfigModel(BaseModel):
    """Pydantic model for config serialization"""
    algorithm: Algorithm = Algorithm.HDBSCAN
    min_cluster_size: int = 2
    min_samples: int = 2
    min_points: Optional[int] = None
    epsilon: Optional[float] = None
    metric: DistanceMetric = DistanceMetric.EUCLIDEAN
    allow_single_cluster: bool = False
    n_jobs: int = 1

    def to_config(self) -> ClusteringConfig:
        return ClusteringConfig(**self.model_dump())

    @classmethod
    def from_config(cls, config: ClusteringConfig) -> "ClusteringConfigModel":
        return cls(
            algorithm=config.algorithm,
            min_cluster_size=config.min_cluster_size,
            min_samples=config.min_samples,
            min_points=config.min_points,
            epsilon=config.epsilon,
            metric=config.metric,
            allow_single_cluster=config.allow_single_cluster,
            n_jobs=config.n_jobs,
        )


class ClusterModel(BaseModel):
    """Pydantic model for a cluster in reports"""
    cluster_id: int
    size: int
    member_ids: List[str]
    centroid: List[float]


class ClusteringReportModel(BaseModel):
    """Pydantic model for a full clustering run"""
    model_config = ConfigDict(use_enum_values=True)

    config: ClusteringConfigModel
    clusters: List[ClusterModel]
    noise_ids: List[str]
    statistics: Dict[str, float]
