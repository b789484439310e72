"""
Execution monitor for clustering runs.

Carries the two signals a caller exchanges with a running engine: progress
reports from the engine and a cooperative cancel request from the caller.
The engine polls for cancellation between merge steps only.
"""

import threading
from typing import Callable, Optional

from hierclust.utils.error_handling import ClusteringCancelledError

ProgressCallback = Callable[[float, str], None]


class ExecutionMonitor:
    """
    Progress sink and cancellation flag for one clustering run.

    ``cancel()`` may be called from any thread (or from the progress callback
    itself); the engine observes it at the start of its next merge step.
    """

    def __init__(self, progress_callback: Optional[ProgressCallback] = None):
        """
        Initialize execution monitor.

        Args:
            progress_callback: Optional callable receiving (fraction, message)
        """
        self._cancelled = threading.Event()
        self._progress_callback = progress_callback
        self.progress = 0.0
        self.message = ""

    def cancel(self) -> None:
        """Request cancellation of the run."""
        self._cancelled.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def check_cancelled(self) -> None:
        """
        Raise if cancellation was requested.

        Raises:
            ClusteringCancelledError: If cancel() has been called
        """
        if self._cancelled.is_set():
            raise ClusteringCancelledError(
                "Clustering run was cancelled",
                details={"progress": self.progress},
            )

    def set_progress(self, fraction: float, message: str = "") -> None:
        """Record progress in [0, 1] and forward it to the callback."""
        self.progress = fraction
        self.message = message
        if self._progress_callback is not None:
            self._progress_callback(fraction, message)
