"""
Feature vectors and dendrogram nodes.

A dendrogram is a strict binary tree: every InternalNode owns exactly two
children and no node keeps a reference to its parent. Leaves carry the node ID
of their row index; the internal node created by merge step k (0-based) over
n rows gets node ID n + k, which is the numbering of a scipy linkage matrix.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

import numpy as np


@dataclass(frozen=True, eq=False)
class FeatureVector:
    """
    One input row: numeric values, presence mask, row identifier and row index.

    ``values`` may be a sequence containing None for missing cells, or an
    array together with an explicit ``mask`` (True = present). The stored
    buffers are read-only copies.
    """

    row_id: str
    row_index: int
    values: np.ndarray
    mask: Optional[np.ndarray] = None

    def __post_init__(self):
        raw = self.values
        if isinstance(raw, np.ndarray):
            values = np.array(raw, dtype=np.float64)
            default_mask = np.ones(values.shape, dtype=bool)
        else:
            values = np.array([0.0 if v is None else v for v in raw], dtype=np.float64)
            default_mask = np.array([v is not None for v in raw], dtype=bool)

        mask = default_mask if self.mask is None else np.array(self.mask, dtype=bool)

        if values.ndim != 1:
            raise ValueError(f"Feature values must be 1-D, got shape {values.shape}")
        if mask.shape != values.shape:
            raise ValueError(
                f"Mask shape {mask.shape} does not match values shape {values.shape}"
            )
        if self.row_index < 0:
            raise ValueError(f"row_index must be >= 0, got {self.row_index}")

        values[~mask] = 0.0
        values.setflags(write=False)
        mask.setflags(write=False)
        object.__setattr__(self, "row_id", str(self.row_id))
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "mask", mask)

    def __len__(self) -> int:
        return self.values.shape[0]

    def to_list(self) -> List[Optional[float]]:
        """Values as plain floats, None for missing cells."""
        return [float(v) if present else None for v, present in zip(self.values, self.mask)]

    @property
    def has_missing(self) -> bool:
        return not bool(self.mask.all())


def feature_vectors_from_array(
    data: np.ndarray,
    row_ids: Optional[Sequence[str]] = None,
) -> List[FeatureVector]:
    """
    Materialize a 2-D array (rows x features) as FeatureVectors.

    NaN cells are treated as missing. Row IDs default to "Row0", "Row1", ...

    Raises:
        ValueError: If the array is not 2-D or row_ids has the wrong length
    """
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 2:
        raise ValueError("Features must be 2D array of shape (n_samples, n_features)")
    if row_ids is not None and len(row_ids) != data.shape[0]:
        raise ValueError(
            f"Got {len(row_ids)} row IDs for {data.shape[0]} rows"
        )

    vectors = []
    for i, row in enumerate(data):
        row_id = row_ids[i] if row_ids is not None else f"Row{i}"
        vectors.append(FeatureVector(row_id=row_id, row_index=i, values=row, mask=~np.isnan(row)))
    return vectors


class ClusterNode:
    """Common interface of dendrogram leaves and internal nodes."""

    is_leaf: bool = False

    @property
    def node_id(self) -> int:
        raise NotImplementedError

    @property
    def distance(self) -> float:
        raise NotImplementedError

    @property
    def leaf_count(self) -> int:
        raise NotImplementedError

    def leaves(self) -> List["LeafNode"]:
        raise NotImplementedError

    def row_ids(self) -> List[str]:
        """Row identifiers of all leaves, left to right."""
        return [leaf.vector.row_id for leaf in self.leaves()]

    def feature_vectors(self) -> List[FeatureVector]:
        return [leaf.vector for leaf in self.leaves()]

    def iter_nodes(self) -> Iterator["ClusterNode"]:
        """Pre-order traversal without recursion (single-linkage chains can be n deep)."""
        stack: List[ClusterNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            if not node.is_leaf:
                stack.append(node.right)
                stack.append(node.left)

    def to_linkage_matrix(self) -> np.ndarray:
        """
        Export the tree as an (n-1) x 4 array of [left_id, right_id, distance, size].

        Rows are ordered by merge step, so the array can be handed to
        ``scipy.cluster.hierarchy.dendrogram`` for rendering.
        """
        internal = [node for node in self.iter_nodes() if not node.is_leaf]
        internal.sort(key=lambda node: node.node_id)
        matrix = np.empty((len(internal), 4), dtype=np.float64)
        for k, node in enumerate(internal):
            matrix[k] = (node.left.node_id, node.right.node_id, node.distance, node.leaf_count)
        return matrix


class LeafNode(ClusterNode):
    """A dendrogram leaf wrapping exactly one input row."""

    is_leaf = True

    def __init__(self, vector: FeatureVector):
        self._vector = vector

    @property
    def vector(self) -> FeatureVector:
        return self._vector

    @property
    def row_index(self) -> int:
        return self._vector.row_index

    @property
    def node_id(self) -> int:
        return self._vector.row_index

    @property
    def distance(self) -> float:
        return 0.0

    @property
    def leaf_count(self) -> int:
        return 1

    def leaves(self) -> List["LeafNode"]:
        return [self]

    def __repr__(self) -> str:
        return f"LeafNode(row_id={self._vector.row_id!r}, row_index={self.row_index})"


class InternalNode(ClusterNode):
    """A merge of two clusters at a given linkage distance."""

    def __init__(self, left: ClusterNode, right: ClusterNode, distance: float, node_id: int):
        self._left = left
        self._right = right
        self._distance = float(distance)
        self._node_id = node_id
        self._leaf_count = left.leaf_count + right.leaf_count
        self._leaves: Optional[List[LeafNode]] = None

    @property
    def left(self) -> ClusterNode:
        return self._left

    @property
    def right(self) -> ClusterNode:
        return self._right

    @property
    def node_id(self) -> int:
        return self._node_id

    @property
    def distance(self) -> float:
        return self._distance

    @property
    def leaf_count(self) -> int:
        return self._leaf_count

    def leaves(self) -> List[LeafNode]:
        """All leaves under this node, left to right. Computed once."""
        if self._leaves is None:
            collected: List[LeafNode] = []
            stack: List[ClusterNode] = [self]
            while stack:
                node = stack.pop()
                if node.is_leaf:
                    collected.append(node)
                elif node._leaves is not None:
                    collected.extend(node._leaves)
                else:
                    stack.append(node.right)
                    stack.append(node.left)
            self._leaves = collected
        return self._leaves

    def __repr__(self) -> str:
        return (
            f"InternalNode(node_id={self._node_id}, distance={self._distance}, "
            f"leaf_count={self._leaf_count})"
        )


def build_tree_from_merges(
    vectors: Sequence[FeatureVector],
    merges: np.ndarray,
) -> ClusterNode:
    """
    Rebuild a dendrogram from its rows and linkage matrix.

    Args:
        vectors: The input rows, row_index 0..n-1
        merges: (n-1) x 4 array as produced by ``ClusterNode.to_linkage_matrix``

    Returns:
        The root node

    Raises:
        ValueError: If the merges do not describe one tree over the vectors
    """
    n = len(vectors)
    if n == 0:
        raise ValueError("Cannot build a dendrogram without rows")

    merges = np.asarray(merges, dtype=np.float64).reshape(-1, 4)
    if merges.shape[0] != n - 1:
        raise ValueError(f"Expected {n - 1} merges for {n} rows, got {merges.shape[0]}")

    live = {}
    for vector in vectors:
        if vector.row_index in live:
            raise ValueError(f"Duplicate row_index {vector.row_index}")
        live[vector.row_index] = LeafNode(vector)

    for step, (left_id, right_id, distance, size) in enumerate(merges):
        try:
            left = live.pop(int(left_id))
            right = live.pop(int(right_id))
        except KeyError as e:
            raise ValueError(f"Merge {step} references unknown or consumed node {e}") from e
        node = InternalNode(left, right, distance, node_id=n + step)
        if node.leaf_count != int(size):
            raise ValueError(
                f"Merge {step} declares size {int(size)} but joins {node.leaf_count} leaves"
            )
        live[node.node_id] = node

    (root,) = live.values()
    return root
