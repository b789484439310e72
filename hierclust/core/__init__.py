"""
Core clustering module for hierclust.

Exports:
- ClusteringEngine: Main orchestration class
- AgglomerativeAlgorithm: The merge loop
- BaseClusteringAlgorithm: Base class for algorithms
- ClusteringResult: Result container
- ClusteringConfig: Configuration container
- FeatureVector, ClusterNode, LeafNode, InternalNode: Data model
- DistanceCache, ExecutionMonitor: Run helpers
"""

from hierclust.core.base_clustering import (
    BaseClusteringAlgorithm,
    ClusteringResult,
    ClusteringConfig,
)
from hierclust.core.cluster_node import (
    ClusterNode,
    FeatureVector,
    InternalNode,
    LeafNode,
    build_tree_from_merges,
    feature_vectors_from_array,
)
from hierclust.core.distance_cache import DistanceCache
from hierclust.core.execution import ExecutionMonitor
from hierclust.core.result_builder import FusionStep
from hierclust.core.agglomerative_algorithm import AgglomerativeAlgorithm
from hierclust.core.clustering_engine import ClusteringEngine

__all__ = [
    "ClusteringEngine",
    "AgglomerativeAlgorithm",
    "BaseClusteringAlgorithm",
    "ClusteringResult",
    "ClusteringConfig",
    "ClusterNode",
    "FeatureVector",
    "InternalNode",
    "LeafNode",
    "build_tree_from_merges",
    "feature_vectors_from_array",
    "DistanceCache",
    "ExecutionMonitor",
    "FusionStep",
]
