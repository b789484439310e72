"""
Error Handling Module

Provides the exception hierarchy for the hierarchical clustering engine:
- Configuration errors (raised before any clustering work starts)
- Clustering errors (insufficient data, cooperative cancellation)
- Storage errors (run persistence)

Nothing in the engine retries; every failure is reported once and propagates.
"""

import functools
import time
from typing import Any, Callable, Optional, Type, TypeVar

import structlog


logger = structlog.get_logger(__name__)


# =============================================================================
# Custom Exception Hierarchy
# =============================================================================


class ClusteringServiceError(Exception):
    """Base exception for all hierclust errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.timestamp = time.time()

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/CLI output."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp,
        }


# Configuration Errors
class ConfigurationError(ClusteringServiceError):
    """Invalid clustering or service configuration."""
    pass


class InvalidLinkageError(ConfigurationError):
    """Unknown linkage policy name."""
    pass


class InvalidDistanceError(ConfigurationError):
    """Unknown distance function name."""
    pass


class InsufficientDataError(ConfigurationError):
    """Not enough rows to build a dendrogram."""
    pass


# Clustering Errors
class ClusteringError(ClusteringServiceError):
    """Base class for clustering run errors."""
    pass


class ClusteringCancelledError(ClusteringError):
    """The run was cancelled between two merge steps."""
    pass


# Storage Errors
class StorageError(ClusteringServiceError):
    """Base class for storage-related errors."""
    pass


class FileStorageError(StorageError):
    """File system storage error."""
    pass


class RunNotFoundError(StorageError):
    """Requested clustering run is not in the store."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================


T = TypeVar("T")


def wrap_errors(
    *exception_types: Type[Exception],
    into: Type[ClusteringServiceError],
    error_code: Optional[str] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator translating low-level exceptions into the hierclust hierarchy.

    The original exception is chained and the failure is logged once.

    Args:
        *exception_types: Exception types to translate
        into: ClusteringServiceError subclass to raise instead
        error_code: Optional error code for the new exception

    Example:
        @wrap_errors(OSError, into=FileStorageError)
        def write_record(path, record):
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return func(*args, **kwargs)
            except exception_types as e:
                logger.error(
                    "exception_translated",
                    function=func.__name__,
                    error=str(e),
                    error_type=type(e).__name__,
                    translated_to=into.__name__,
                )
                raise into(
                    f"{func.__name__} failed: {e}",
                    error_code=error_code,
                    details={"cause": type(e).__name__},
                ) from e

        return wrapper

    return decorator
