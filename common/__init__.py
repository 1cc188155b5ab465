from .errors import ClusteringError, ConfigurationError, ValidationError
from .models import (
    NOISE_LABEL,
    Algorithm,
    Cluster,
    ClusterAssignment,
    ClusteringConfig,
    ClusteringConfigModel,
    ClusteringReportModel,
    ClusterModel,
    ClusterStatistics,
    DistanceMetric,
    Point,
)

__all__ = [
    "ClusteringError",
    "ConfigurationError",
    "ValidationError",
    "NOISE_LABEL",
    "Algorithm",
    "Cluster",
    "ClusterAssignment",
    "ClusteringConfig",
    "ClusteringConfigModel",
    "ClusteringReportModel",
    "ClusterModel",
    "ClusterStatistics",
    "DistanceMetric",
    "Point",
]
