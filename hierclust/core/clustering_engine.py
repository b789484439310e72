"""
Clustering Engine - Orchestrates hierarchical clustering runs.

Main entry point for clustering functionality.
Validates the configuration, materializes the input rows and runs the
agglomerative algorithm with its own cache and working list per call.
"""

import logging
from typing import Dict, Any, List, Optional, Sequence, Union
from uuid import uuid4
import numpy as np

from hierclust.core.base_clustering import ClusteringResult, ClusteringConfig
from hierclust.core.agglomerative_algorithm import AgglomerativeAlgorithm
from hierclust.core.cluster_node import FeatureVector, feature_vectors_from_array
from hierclust.core.distance import DISTANCE_FUNCTIONS, get_distance_function
from hierclust.core.execution import ExecutionMonitor, ProgressCallback
from hierclust.core.linkage import LINKAGES, get_linkage
from hierclust.core.result_builder import FusionStep
from hierclust.utils.error_handling import ConfigurationError, InsufficientDataError

logger = logging.getLogger(__name__)

Rows = Union[np.ndarray, Sequence[FeatureVector]]


class ClusteringEngine:
    """
    Main clustering engine.

    Holds no state between runs, so one engine may serve concurrent callers
    with different linkage settings.
    """

    LINKAGES = LINKAGES
    DISTANCES = DISTANCE_FUNCTIONS

    def __init__(self):
        """Initialize clustering engine."""
        logger.info("Initialized ClusteringEngine")

    def cluster(
        self,
        vectors: Rows,
        linkage: str = "single",
        distance: str = "euclidean",
        target_cluster_count: int = 3,
        use_cache: bool = False,
        row_ids: Optional[Sequence[str]] = None,
        monitor: Optional[ExecutionMonitor] = None,
        progress_callback: Optional[ProgressCallback] = None,
        progress_log_interval: int = 100,
        max_cache_memory_fraction: float = 0.5,
    ) -> ClusteringResult:
        """
        Build the dendrogram and partition snapshot for the given rows.

        Args:
            vectors: FeatureVectors, or a 2-D array (NaN = missing cell)
            linkage: Linkage policy (single/average/complete)
            distance: Distance function (euclidean/manhattan)
            target_cluster_count: Cluster count at which the partition is captured
            use_cache: Memoize leaf-to-leaf distances (never changes results)
            row_ids: Row identifiers when vectors is an array
            monitor: Progress/cancellation monitor
            progress_callback: Shortcut for a fresh monitor with this callback
            progress_log_interval: Log progress every N merges
            max_cache_memory_fraction: Warn when the cache exceeds this share of free RAM

        Returns:
            ClusteringResult with root, fusion trace and partition

        Raises:
            ConfigurationError: If options or input rows are invalid
            ClusteringCancelledError: If the run was cancelled
        """
        config = self.build_config(
            linkage=linkage,
            distance=distance,
            target_cluster_count=target_cluster_count,
            use_cache=use_cache,
            progress_log_interval=progress_log_interval,
            max_cache_memory_fraction=max_cache_memory_fraction,
        )
        return self.cluster_with_config(
            vectors,
            config,
            row_ids=row_ids,
            monitor=monitor,
            progress_callback=progress_callback,
        )

    def cluster_with_config(
        self,
        vectors: Rows,
        config: ClusteringConfig,
        row_ids: Optional[Sequence[str]] = None,
        monitor: Optional[ExecutionMonitor] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ClusteringResult:
        """Run with an already built ClusteringConfig (see build_config)."""
        rows = self.prepare_vectors(vectors, row_ids)

        if monitor is None:
            monitor = ExecutionMonitor(progress_callback)

        run_id = uuid4().hex
        logger.info(
            f"Starting {config.linkage} linkage clustering on {len(rows)} rows (run {run_id})"
        )

        clusterer = AgglomerativeAlgorithm(config)
        result = clusterer.cluster(rows, monitor=monitor, run_id=run_id)

        logger.info(
            f"{config.linkage} linkage clustering complete: {len(result.fusion_trace)} merges, "
            f"{result.n_clusters} clusters in snapshot"
        )

        return result

    def cluster_with_settings(self, vectors: Rows, settings: Any, **kwargs: Any) -> ClusteringResult:
        """
        Run with options taken from loaded Settings.

        Args:
            vectors: Input rows
            settings: hierclust.config.settings_loader.Settings
            **kwargs: Passed to cluster_with_config (row_ids, monitor, progress_callback)
        """
        clustering = settings.clustering
        config = self.build_config(
            linkage=clustering.linkage.value,
            distance=clustering.distance.value,
            target_cluster_count=clustering.target_cluster_count,
            use_cache=clustering.use_cache,
            progress_log_interval=clustering.progress_log_interval,
            max_cache_memory_fraction=settings.resources.max_cache_memory_fraction,
        )
        return self.cluster_with_config(vectors, config, **kwargs)

    def build_config(
        self,
        linkage: str = "single",
        distance: str = "euclidean",
        target_cluster_count: int = 3,
        use_cache: bool = False,
        progress_log_interval: int = 100,
        max_cache_memory_fraction: float = 0.5,
    ) -> ClusteringConfig:
        """
        Validate options and build a ClusteringConfig.

        Raises:
            InvalidLinkageError: Unknown linkage
            InvalidDistanceError: Unknown distance
            ConfigurationError: Any other invalid option
        """
        linkage_name = get_linkage(linkage).name
        get_distance_function(distance)
        distance_name = str(getattr(distance, "value", distance)).lower()

        errors = self.validate_clustering_config(
            linkage_name, distance_name, target_cluster_count, use_cache
        )
        if errors:
            raise ConfigurationError(
                f"Invalid clustering configuration: {errors}",
                details=errors,
            )

        return ClusteringConfig(
            linkage=linkage_name,
            distance=distance_name,
            target_cluster_count=int(target_cluster_count),
            use_cache=bool(use_cache),
            progress_log_interval=progress_log_interval,
            max_cache_memory_fraction=max_cache_memory_fraction,
        )

    def validate_clustering_config(
        self,
        linkage: Any,
        distance: Any,
        target_cluster_count: Any,
        use_cache: Any = False,
    ) -> Dict[str, str]:
        """
        Validate clustering configuration.

        Returns:
            Dictionary of validation errors (empty if valid)
        """
        errors = {}

        if str(getattr(linkage, "value", linkage)).lower() not in self.LINKAGES:
            errors["linkage"] = (
                f"Unsupported linkage '{linkage}'. Supported: {list(self.LINKAGES.keys())}"
            )

        if str(getattr(distance, "value", distance)).lower() not in self.DISTANCES:
            errors["distance"] = (
                f"Unsupported distance '{distance}'. Supported: {list(self.DISTANCES.keys())}"
            )

        if isinstance(target_cluster_count, bool) or not isinstance(
            target_cluster_count, (int, np.integer)
        ):
            errors["target_cluster_count"] = "Must be an integer"
        elif target_cluster_count < 1:
            errors["target_cluster_count"] = "Must be >= 1"

        if not isinstance(use_cache, (bool, np.bool_)):
            errors["use_cache"] = "Must be a boolean"

        return errors

    def prepare_vectors(
        self,
        vectors: Rows,
        row_ids: Optional[Sequence[str]] = None,
    ) -> List[FeatureVector]:
        """
        Materialize the input as FeatureVectors with row_index 0..n-1 in order.

        Raises:
            InsufficientDataError: If there are no rows
            ConfigurationError: If row identifiers are not unique
        """
        if isinstance(vectors, np.ndarray):
            rows = feature_vectors_from_array(vectors, row_ids)
        elif len(vectors) > 0 and not isinstance(vectors[0], FeatureVector):
            # plain nested sequences; None cells become NaN and thus missing
            rows = feature_vectors_from_array(np.array(vectors, dtype=np.float64), row_ids)
        else:
            rows = [
                v if v.row_index == i
                else FeatureVector(row_id=v.row_id, row_index=i, values=v.values, mask=v.mask)
                for i, v in enumerate(vectors)
            ]

        if len(rows) < 1:
            raise InsufficientDataError("Hierarchical clustering needs at least one row")

        seen = set()
        duplicates = []
        for row in rows:
            if row.row_id in seen:
                duplicates.append(row.row_id)
            seen.add(row.row_id)
        if duplicates:
            raise ConfigurationError(
                f"Row identifiers must be unique, duplicates: {duplicates[:10]}",
                details={"duplicates": duplicates[:10]},
            )

        return rows

    def suggest_cluster_count(self, fusion_trace: Sequence[FusionStep]) -> int:
        """
        Suggest a cluster count from the fusion trace (elbow on merge distances).

        Picks the cluster count right before the largest jump between two
        consecutive merge distances.

        Args:
            fusion_trace: Trace of a completed run

        Returns:
            Suggested cluster count (1 if the trace is too short to judge)
        """
        if len(fusion_trace) < 2:
            return 1

        distances = np.array([step.distance for step in fusion_trace], dtype=np.float64)
        jumps = np.diff(distances)
        if not np.isfinite(jumps).any():
            return 1

        jumps[~np.isfinite(jumps)] = -np.inf
        elbow_idx = int(np.argmax(jumps))
        suggested = fusion_trace[elbow_idx].cluster_count

        logger.info(f"Suggested cluster count {suggested} (jump of {jumps[elbow_idx]:.4g})")
        return suggested
