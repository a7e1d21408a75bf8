from .exceptions import (
    BootstrapError,
    ExporterBindError,
    MetricsAlreadyInitializedError,
    MetricsNotInitializedError,
    ObservabilityError,
)

__all__ = [
    "BootstrapError",
    "ExporterBindError",
    "MetricsAlreadyInitializedError",
    "MetricsNotInitializedError",
    "ObservabilityError",
]
