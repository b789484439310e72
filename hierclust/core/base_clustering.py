"""
Base Clustering Algorithm Interface.

Defines the configuration, result container and algorithm contract shared by
the hierarchical clustering engine and its facade.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Sequence
import numpy as np
from dataclasses import dataclass, asdict

from hierclust.core.cluster_node import ClusterNode, FeatureVector
from hierclust.core.execution import ExecutionMonitor
from hierclust.core.result_builder import FusionStep, fusion_trace_array


@dataclass(frozen=True)
class ClusteringConfig:
    """Validated options of one clustering run."""

    linkage: str = "single"
    distance: str = "euclidean"
    target_cluster_count: int = 3
    use_cache: bool = False
    progress_log_interval: int = 100
    max_cache_memory_fraction: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ClusteringResult:
    """Results from a completed clustering run."""

    def __init__(
        self,
        root: ClusterNode,
        fusion_trace: List[FusionStep],
        vectors: Sequence[FeatureVector],
        partition: Optional[Dict[str, str]] = None,
        cluster_labels: Optional[np.ndarray] = None,
        quality_metrics: Optional[Dict[str, float]] = None,
        run_id: Optional[str] = None,
        config: Optional[ClusteringConfig] = None,
    ):
        self.root = root
        self.fusion_trace = fusion_trace
        self.vectors = list(vectors)
        self.partition = partition
        self.cluster_labels = cluster_labels
        self.quality_metrics = quality_metrics or {}
        self.run_id = run_id
        self.config = config

    @property
    def labels(self) -> Optional[np.ndarray]:
        """Alias for cluster_labels."""
        return self.cluster_labels

    @property
    def n_clusters(self) -> int:
        """Number of clusters in the partition snapshot (0 without snapshot)."""
        if self.partition is None:
            return 0
        return len(set(self.partition.values()))

    @property
    def n_rows(self) -> int:
        return len(self.vectors)

    @property
    def merges(self) -> np.ndarray:
        """Linkage matrix [left_id, right_id, distance, size] per merge."""
        return self.root.to_linkage_matrix()

    @property
    def merge_distances(self) -> np.ndarray:
        return np.array([step.distance for step in self.fusion_trace], dtype=np.float64)

    def fusion_table(self) -> np.ndarray:
        """Fusion trace as an (n-1) x 2 array of (cluster_count, distance)."""
        return fusion_trace_array(self.fusion_trace)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "run_id": self.run_id,
            "n_clusters": self.n_clusters,
            "total_items": self.n_rows,
            "merges": len(self.fusion_trace),
            "root_distance": self.root.distance,
            "quality_metrics": self.quality_metrics,
            "config": self.config.to_dict() if self.config else None,
        }


class BaseClusteringAlgorithm(ABC):
    """
    Abstract base class for clustering algorithms.

    Subclasses implement cluster(); quality metrics are shared.
    """

    def __init__(self, config: ClusteringConfig):
        """
        Initialize clustering algorithm.

        Args:
            config: Clustering configuration
        """
        self.config = config

    @abstractmethod
    def cluster(
        self,
        vectors: Sequence[FeatureVector],
        monitor: Optional[ExecutionMonitor] = None,
    ) -> ClusteringResult:
        """
        Perform clustering on feature vectors.

        Args:
            vectors: Input rows, row_index 0..n-1 in order
            monitor: Optional progress/cancellation monitor

        Returns:
            ClusteringResult with dendrogram, fusion trace and partition
        """
        pass

    def _calculate_quality_metrics(
        self,
        vectors: Sequence[FeatureVector],
        labels: Optional[np.ndarray],
    ) -> Dict[str, float]:
        """
        Calculate clustering quality metrics for the partition snapshot.

        Only computed when every coordinate is present and the snapshot has
        between 2 and n-1 clusters.

        Args:
            vectors: Input rows
            labels: Integer cluster labels in input order

        Returns:
            Dictionary of quality metrics
        """
        from sklearn.metrics import silhouette_score, davies_bouldin_score

        metrics: Dict[str, float] = {}

        if labels is None or len(vectors) < 3:
            return metrics

        if any(v.has_missing for v in vectors) or len({len(v) for v in vectors}) != 1:
            return metrics

        data = np.vstack([v.values for v in vectors])
        if data.shape[1] == 0 or not np.isfinite(data).all():
            return metrics

        n_labels = len(np.unique(labels))
        if 2 <= n_labels <= len(vectors) - 1:
            # Silhouette score (higher is better, range: -1 to 1)
            metrics["silhouette_score"] = float(
                silhouette_score(data, labels, metric=self.config.distance)
            )
            # Davies-Bouldin Index (lower is better)
            metrics["davies_bouldin_index"] = float(davies_bouldin_score(data, labels))

        return metrics
