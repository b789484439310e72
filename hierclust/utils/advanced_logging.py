"""
Advanced Logging Module

Structured logging for clustering runs:
- structlog over stdlib logging (json or console output, optional rotating file)
- Run ID correlation that follows the current thread or task
- Timing of storage and loading operations
- Merge-loop progress at a fixed interval
- Process memory snapshots (psutil)
"""

import contextlib
import contextvars
import functools
import logging
import logging.handlers
import time
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import psutil
import structlog
from structlog.types import EventDict, Processor


_run_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "hierclust_run_id", default=None
)


# =============================================================================
# Structured Logging Configuration
# =============================================================================


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    service_name: str = "hierclust",
    max_size_mb: int = 100,
    backup_count: int = 5,
) -> None:
    """
    Route structlog through stdlib logging.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (any case)
        log_format: "json" or "console"
        log_file: Also write to this file, rotated at max_size_mb
        service_name: Added to every event as ``service``
        max_size_mb: Rotation size of the log file
        backup_count: Rotated files to keep
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        handler.setLevel(level)
        logging.getLogger().addHandler(handler)

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_run_id,
            add_service_context(service_name),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def add_service_context(service_name: str) -> Processor:
    """Processor stamping every event with the service name."""

    def processor(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict["service"] = service_name
        return event_dict

    return processor


def add_run_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Processor adding the active run ID as ``correlation_id``."""
    run_id = _run_id.get()
    if run_id is not None:
        event_dict.setdefault("correlation_id", run_id)
    return event_dict


# =============================================================================
# Run Correlation
# =============================================================================


class LogContext:
    """
    Run ID of the clustering run executing in the current context.

    Stored in a ContextVar: two runs on different threads never see each
    other's ID.
    """

    @staticmethod
    def get_correlation_id() -> Optional[str]:
        return _run_id.get()

    @staticmethod
    @contextlib.contextmanager
    def correlation_context(correlation_id: str) -> Iterator[None]:
        """
        Tag all events inside the block with the given run ID.

        Example:
            with LogContext.correlation_context(run_id):
                get_logger(__name__).info("merge_done")  # has correlation_id
        """
        token = _run_id.set(correlation_id)
        try:
            yield
        finally:
            _run_id.reset(token)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    structlog logger for ``name``, bound to the active run ID if there is one.

    The binding also covers an unconfigured structlog, where the add_run_id
    processor is not installed.
    """
    logger = structlog.get_logger(name)
    run_id = _run_id.get()
    if run_id is not None:
        logger = logger.bind(correlation_id=run_id)
    return logger


# =============================================================================
# Timing
# =============================================================================


class PerformanceLogger:
    """
    Times a block and logs ``operation_completed`` (or ``operation_failed``).

    Example:
        with PerformanceLogger("save_run", item_count=len(rows)):
            write(rows)
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.BoundLogger] = None,
        log_level: str = "info",
        item_count: Optional[int] = None,
        **extra_context: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger(__name__)
        self.log_level = log_level
        self.item_count = item_count
        self.extra_context = extra_context
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.end_time = time.perf_counter()
        duration = self.end_time - self.start_time
        fields = {"operation": self.operation, "duration_seconds": round(duration, 3)}
        fields.update(self.extra_context)

        if self.item_count and duration > 0:
            fields["item_count"] = self.item_count
            fields["items_per_second"] = round(self.item_count / duration, 2)

        if exc_type is None:
            getattr(self.logger, self.log_level)("operation_completed", **fields)
        else:
            self.logger.error(
                "operation_failed", error=str(exc_val), error_type=exc_type.__name__, **fields
            )

    @property
    def elapsed_time(self) -> float:
        """Seconds since entering the block (final duration once exited)."""
        if self.start_time is None:
            return 0.0
        return (self.end_time or time.perf_counter()) - self.start_time


def timed(operation: Optional[str] = None, log_level: str = "info") -> Callable:
    """Decorator form of PerformanceLogger; operation defaults to the function name."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with PerformanceLogger(operation or func.__name__, log_level=log_level):
                return func(*args, **kwargs)

        return wrapper

    return decorator


# =============================================================================
# Merge Progress
# =============================================================================


class MergeProgressLogger:
    """
    Logs merge-loop progress every ``log_interval`` merges and at the last one.

    A run over n rows performs n - 1 merges; later merges scan fewer
    clusters, so the ETA is an upper bound.
    """

    def __init__(
        self,
        total_merges: int,
        log_interval: int = 100,
        logger: Optional[structlog.BoundLogger] = None,
    ):
        self.total_merges = total_merges
        self.log_interval = max(1, log_interval)
        self.logger = logger or get_logger(__name__)

        self.merges_done = 0
        self.last_logged = 0
        self.start_time = time.perf_counter()

    def update(self, **extra: Any) -> None:
        """Count one merge; extra fields go into the progress event."""
        self.merges_done += 1
        if (
            self.merges_done - self.last_logged >= self.log_interval
            or self.merges_done >= self.total_merges
        ):
            self._log_progress(**extra)
            self.last_logged = self.merges_done

    def _log_progress(self, **extra: Any) -> None:
        elapsed = time.perf_counter() - self.start_time
        rate = self.merges_done / elapsed if elapsed > 0 else 0.0
        remaining = self.total_merges - self.merges_done

        self.logger.info(
            "merge_progress",
            merges_done=self.merges_done,
            merges_total=self.total_merges,
            progress_pct=round(100.0 * self.merges_done / max(1, self.total_merges), 1),
            merges_per_second=round(rate, 2),
            eta_seconds=round(remaining / rate, 1) if rate > 0 else None,
            **extra,
        )

    def complete(self) -> None:
        elapsed = time.perf_counter() - self.start_time
        self.logger.info(
            "merges_completed",
            merges=self.merges_done,
            duration_seconds=round(elapsed, 3),
        )


# =============================================================================
# Process Metrics
# =============================================================================


class MetricsLogger:
    """Snapshots of this process' CPU and memory use."""

    def __init__(self, logger: Optional[structlog.BoundLogger] = None):
        self.logger = logger or get_logger(__name__)
        self.process = psutil.Process()

    def log_cpu_memory(self, context: Optional[str] = None) -> dict[str, Any]:
        """Log and return cpu_percent, rss memory_mb and memory_percent."""
        with self.process.oneshot():
            metrics: dict[str, Any] = {
                "cpu_percent": self.process.cpu_percent(),
                "memory_mb": round(self.process.memory_info().rss / (1024 * 1024), 1),
                "memory_percent": round(self.process.memory_percent(), 2),
            }
        if context:
            metrics["context"] = context

        self.logger.debug("cpu_memory_metrics", **metrics)
        return metrics


@contextlib.contextmanager
def log_exceptions(
    logger: Optional[structlog.BoundLogger] = None,
    operation: Optional[str] = None,
    reraise: bool = True,
) -> Iterator[None]:
    """
    Log any exception leaving the block with its traceback.

    Example:
        with log_exceptions(operation="cluster"):
            run_cluster(args, settings)
    """
    log = logger or get_logger(__name__)
    try:
        yield
    except Exception as e:
        log.error(
            "exception_caught",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        if reraise:
            raise
