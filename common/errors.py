"""
Error types raised by the clustering engine.
"""


class ClusteringError(ValueError):
    """Base class for clustering failures."""


class ValidationError(ClusteringError):
    """Malformed input: dimension mismatch, empty or non-finite vectors, duplicate ids."""


class ConfigurationError(ClusteringError):
    """Invalid or contradictory clustering parameters."""
