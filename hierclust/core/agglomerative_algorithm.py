"""
Agglomerative Hierarchical Clustering Algorithm Implementation.

Starts from one singleton cluster per row and repeatedly merges the globally
closest pair of clusters until a single root remains. Each step scores all
O(k^2) pairs of the k live clusters under the configured linkage, so a full
run over n rows evaluates O(n^3) leaf distances without the cache.

Run states: RUNNING while more than one cluster is live, DONE once the root
is formed, or cancelled between two steps via the ExecutionMonitor.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple
from uuid import uuid4

from hierclust.core.base_clustering import (
    BaseClusteringAlgorithm,
    ClusteringResult,
    ClusteringConfig,
)
from hierclust.core.cluster_node import ClusterNode, FeatureVector, InternalNode, LeafNode
from hierclust.core.distance import get_distance_function
from hierclust.core.distance_cache import DistanceCache
from hierclust.core.execution import ExecutionMonitor
from hierclust.core.linkage import PairDistance, get_linkage
from hierclust.core.result_builder import FusionStep, labels_for, snapshot
from hierclust.schemas.data_models import RunStatus
from hierclust.utils.advanced_logging import LogContext, MergeProgressLogger, MetricsLogger, get_logger
from hierclust.utils.error_handling import (
    ClusteringCancelledError,
    ConfigurationError,
    InsufficientDataError,
)
from hierclust.utils.resource_manager import ResourceManager

logger = logging.getLogger(__name__)


class AgglomerativeAlgorithm(BaseClusteringAlgorithm):
    """
    Agglomerative hierarchical clustering with single, average or complete linkage.

    Best for: dendrograms over small to medium tables
    Strengths: full merge history, any cluster count can be read off the tree
    Weaknesses: cubic time without the cache, quadratic memory with it
    """

    def __init__(self, config: ClusteringConfig):
        """
        Initialize Agglomerative algorithm.

        Args:
            config: Clustering configuration

        Raises:
            ConfigurationError: On unknown linkage/distance or target count < 1
        """
        super().__init__(config)

        self.linkage = get_linkage(config.linkage)
        self.distance_fn = get_distance_function(config.distance)

        if config.target_cluster_count < 1:
            raise ConfigurationError(
                "Number of output clusters must be greater than 0.",
                details={"target_cluster_count": config.target_cluster_count},
            )

        self.state: Optional[RunStatus] = None

        logger.info(
            f"Initialized Agglomerative: linkage={self.linkage.name}, "
            f"distance={config.distance}, target_cluster_count={config.target_cluster_count}, "
            f"use_cache={config.use_cache}"
        )

    def cluster(
        self,
        vectors: Sequence[FeatureVector],
        monitor: Optional[ExecutionMonitor] = None,
        run_id: Optional[str] = None,
    ) -> ClusteringResult:
        """
        Build the dendrogram over the given rows.

        Args:
            vectors: Input rows; vector i must carry row_index i
            monitor: Optional progress/cancellation monitor
            run_id: Optional run identifier used as log correlation ID

        Returns:
            ClusteringResult with root, fusion trace and (if reached) partition

        Raises:
            InsufficientDataError: If no rows are given
            ClusteringCancelledError: If the monitor was cancelled before the root formed
        """
        n = len(vectors)
        if n < 1:
            raise InsufficientDataError("Hierarchical clustering needs at least one row")

        for i, vector in enumerate(vectors):
            if vector.row_index != i:
                raise ValueError(
                    f"Row {vector.row_id!r} at position {i} has row_index {vector.row_index}"
                )

        monitor = monitor or ExecutionMonitor()
        run_id = run_id or uuid4().hex

        with LogContext.correlation_context(run_id):
            return self._run(vectors, monitor, run_id)

    def _run(
        self,
        vectors: Sequence[FeatureVector],
        monitor: ExecutionMonitor,
        run_id: str,
    ) -> ClusteringResult:
        n = len(vectors)
        target = self.config.target_cluster_count
        logger.info(f"Starting Agglomerative clustering on {n} rows")

        cache = None
        if self.config.use_cache:
            ResourceManager(self.config.max_cache_memory_fraction).check_cache_budget(
                n, DistanceCache.estimate_nbytes(n)
            )
            cache = DistanceCache(n)
        pair_distance = self._pair_distance(cache)

        self.state = RunStatus.RUNNING
        clusters: List[ClusterNode] = [LeafNode(v) for v in vectors]
        fusion_trace: List[FusionStep] = []

        # A target at or above n is met by the initial singletons.
        partition = snapshot(clusters) if target >= n else None

        total_merges = n - 1
        progress = MergeProgressLogger(
            total_merges=total_merges,
            log_interval=self.config.progress_log_interval,
            logger=get_logger(__name__),
        )

        try:
            step = 0
            while len(clusters) > 1:
                monitor.check_cancelled()

                i, j, merge_distance = self._closest_pair(clusters, pair_distance)
                node = InternalNode(clusters[i], clusters[j], merge_distance, node_id=n + step)
                # j > i, so removing j first keeps i valid
                del clusters[j]
                del clusters[i]
                clusters.append(node)
                step += 1

                fusion_trace.append(FusionStep(len(clusters), node.distance))

                if partition is None and len(clusters) == target:
                    partition = snapshot(clusters)
                    logger.debug(f"Captured partition at {target} clusters after merge {step}")

                monitor.set_progress(
                    step / total_merges,
                    f"Iteration {step}, {len(clusters)} clusters remaining",
                )
                progress.update(clusters_remaining=len(clusters), merge_distance=node.distance)
        except ClusteringCancelledError:
            self.state = RunStatus.CANCELLED
            logger.warning(f"Agglomerative clustering cancelled after {len(fusion_trace)} merges")
            raise

        self.state = RunStatus.DONE
        if total_merges > 0:
            progress.complete()

        if cache is not None:
            logger.info(
                f"Distance cache: {cache.filled_count}/{len(cache)} pairs filled, "
                f"{cache.hit_count} hits, {cache.miss_count} misses, {cache.nbytes / 1024:.1f}KB"
            )
        MetricsLogger(get_logger(__name__)).log_cpu_memory(context="agglomerative_done")

        root = clusters[0]
        cluster_labels = labels_for(partition, vectors) if partition is not None else None
        quality_metrics = self._calculate_quality_metrics(vectors, cluster_labels)

        logger.info(
            f"Agglomerative finished: {len(fusion_trace)} merges, "
            f"root distance {root.distance}, snapshot clusters "
            f"{len(set(partition.values())) if partition else 0}"
        )

        return ClusteringResult(
            root=root,
            fusion_trace=fusion_trace,
            vectors=vectors,
            partition=partition,
            cluster_labels=cluster_labels,
            quality_metrics=quality_metrics,
            run_id=run_id,
            config=self.config,
        )

    def _pair_distance(self, cache: Optional[DistanceCache]) -> PairDistance:
        """Leaf-to-leaf distance, memoized through the cache when one is given."""
        distance_fn = self.distance_fn

        if cache is None:
            def direct(a: LeafNode, b: LeafNode) -> float:
                return distance_fn(a.vector, b.vector)

            return direct

        def cached(a: LeafNode, b: LeafNode) -> float:
            return cache.get_or_compute(
                a.row_index, b.row_index, lambda: distance_fn(a.vector, b.vector)
            )

        return cached

    def _closest_pair(
        self,
        clusters: Sequence[ClusterNode],
        pair_distance: PairDistance,
    ) -> Tuple[int, int, float]:
        """
        Find the pair of live clusters with minimal linkage distance.

        Pairs are scanned as (0, 1), (0, 2), ..., (1, 2), ...; the first pair
        reaching the minimum wins. A NaN distance only wins if every pair is NaN.
        """
        best: Optional[Tuple[int, int, float]] = None
        for i in range(len(clusters)):
            node1 = clusters[i]
            for j in range(i + 1, len(clusters)):
                dist = self.linkage.distance(node1, clusters[j], pair_distance)
                if (
                    best is None
                    or dist < best[2]
                    or (math.isnan(best[2]) and not math.isnan(dist))
                ):
                    best = (i, j, dist)
        return best
