"""
resource_manager.py

Resource checks for hierclust.
Estimates the memory of the distance cache before a run allocates it and
compares it against available RAM.

Features:
- RAM monitoring (psutil)
- Cache size estimation
- Budget check with a configurable share of available memory
"""

import logging
from typing import Dict, Any

import psutil

logger = logging.getLogger(__name__)


class ResourceManager:
    """
    Guards memory-heavy allocations of a clustering run.

    The cache is a pure performance switch, so exceeding the budget only
    produces a warning; the run still proceeds with the cache enabled.
    """

    def __init__(self, max_cache_memory_fraction: float = 0.5):
        """
        Initialize resource manager.

        Args:
            max_cache_memory_fraction: Share of available RAM the cache may take
        """
        self.max_cache_memory_fraction = max_cache_memory_fraction

    def get_resource_stats(self) -> Dict[str, Any]:
        """
        Get current memory utilization.

        Returns:
            Dictionary with RAM stats
        """
        memory = psutil.virtual_memory()
        return {
            "memory_percent": memory.percent,
            "memory_available_mb": memory.available / (1024**2),
            "memory_total_mb": memory.total / (1024**2),
        }

    def check_cache_budget(self, n_rows: int, required: int) -> bool:
        """
        Check whether a distance cache over n_rows fits the memory budget.

        Args:
            n_rows: Number of input rows
            required: Estimated cache size in bytes

        Returns:
            True if the estimated cache size is within budget
        """
        budget = psutil.virtual_memory().available * self.max_cache_memory_fraction

        if required > budget:
            logger.warning(
                f"Distance cache for {n_rows} rows needs {required / (1024**2):.1f}MB, "
                f"above budget of {budget / (1024**2):.1f}MB "
                f"({self.max_cache_memory_fraction:.0%} of available memory)"
            )
            return False

        logger.debug(
            f"Distance cache for {n_rows} rows needs {required / (1024**2):.1f}MB "
            f"(budget {budget / (1024**2):.1f}MB)"
        )
        return True
