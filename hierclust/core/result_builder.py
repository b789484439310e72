"""
Result Builder.

Turns the engine's working cluster list into flat outputs: the partition
snapshot (row ID -> cluster label), integer labels in input order, and the
labelled result rows.
"""

from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from hierclust.core.cluster_node import ClusterNode, FeatureVector

LABEL_PREFIX = "cluster_"


class FusionStep(NamedTuple):
    """Working-list size after a merge and the distance of that merge."""

    cluster_count: int
    distance: float


def cluster_label(position: int) -> str:
    return f"{LABEL_PREFIX}{position}"


def snapshot(clusters: Sequence[ClusterNode]) -> Dict[str, str]:
    """
    Assign one label per live cluster to every row it contains.

    Labels follow the cluster's position in the working list
    ("cluster_0", "cluster_1", ...). Each row appears in exactly one
    cluster because the clusters partition the leaves.
    """
    partition: Dict[str, str] = {}
    for position, cluster in enumerate(clusters):
        label = cluster_label(position)
        for row_id in cluster.row_ids():
            partition[row_id] = label
    return partition


def labels_for(partition: Dict[str, str], vectors: Sequence[FeatureVector]) -> np.ndarray:
    """
    Integer cluster labels aligned with the input order.

    Label k corresponds to "cluster_k".
    """
    labels = np.empty(len(vectors), dtype=np.int32)
    for i, vector in enumerate(vectors):
        labels[i] = int(partition[vector.row_id][len(LABEL_PREFIX):])
    return labels


def cluster_members(partition: Dict[str, str]) -> Dict[str, List[str]]:
    """Invert a partition into label -> row IDs (insertion order of the partition)."""
    members: Dict[str, List[str]] = {}
    for row_id, label in partition.items():
        members.setdefault(label, []).append(row_id)
    return members


def result_rows(
    vectors: Sequence[FeatureVector],
    partition: Dict[str, str],
) -> Iterator[Tuple[str, List[Optional[float]], str]]:
    """Input rows with the cluster column appended: (row_id, values, label)."""
    for vector in vectors:
        yield vector.row_id, vector.to_list(), partition[vector.row_id]


def fusion_trace_array(trace: Sequence[FusionStep]) -> np.ndarray:
    """Fusion trace as an (n-1) x 2 float array for plotting."""
    if not trace:
        return np.empty((0, 2), dtype=np.float64)
    return np.asarray(trace, dtype=np.float64)
