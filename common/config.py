"""
Environment-driven configuration for clustering runs.
"""
import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from .errors import ConfigurationError
from .models import ClusteringConfig

logger = logging.getLogger(__name__)


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def clustering_config_from_env(overrides: Optional[Dict[str, Any]] = None) -> ClusteringConfig:
    """
    Build a ClusteringConfig from environment variables.

    CLUSTER_ALGORITHM (hdbscan), MIN_CLUSTER_SIZE (2), MIN_SAMPLES (2),
    MIN_POINTS, CLUSTER_EPSILON, DISTANCE_METRIC (euclidean),
    ALLOW_SINGLE_CLUSTER (false), CLUSTER_N_JOBS (1).

    Non-None `overrides` (e.g. command line flags) replace the env values
    before the combined config is validated.
    """
    config = ClusteringConfig(
        algorithm=os.getenv("CLUSTER_ALGORITHM", "hdbscan").lower(),
        min_cluster_size=_int_env("MIN_CLUSTER_SIZE", 2),
        min_samples=_int_env("MIN_SAMPLES", 2),
        min_points=_int_env("MIN_POINTS", None),
        epsilon=_float_env("CLUSTER_EPSILON", None),
        metric=os.getenv("DISTANCE_METRIC", "euclidean").lower(),
        allow_single_cluster=os.getenv("ALLOW_SINGLE_CLUSTER", "false").lower() in ("1", "true", "yes"),
        n_jobs=_int_env("CLUSTER_N_JOBS", 1),
    )
    if overrides:
        config = replace(config, **{k: v for k, v in overrides.items() if v is not None})
    config = config.validated()
    logger.info(
        f"Loaded clustering config: algorithm={config.algorithm.value}, "
        f"min_cluster_size={config.min_cluster_size}, min_samples={config.min_samples}, "
        f"metric={config.metric.value}"
    )
    return config


@dataclass
class StoreSettings:
    host: str = "redis"
    port: int = 6379
    db: int = 0
    index_name: str = "embeddings-index"


def store_settings_from_env() -> StoreSettings:
    return StoreSettings(
        host=os.getenv("REDIS_HOST", "redis"),
        port=_int_env("REDIS_PORT", 6379),
        db=_int_env("REDIS_DB", 0),
        index_name=os.getenv("VECTOR_INDEX", "embeddings-index"),
    )


def merge_min_size_from_env() -> int:
    """Smallest cluster handed to the summarizer (MERGE_MIN_SIZE, default 3)."""
    value = _int_env("MERGE_MIN_SIZE", 3)
    if value < 1:
        raise ConfigurationError(f"MERGE_MIN_SIZE must be >= 1, got {value}")
    return value
