"""
Linkage strategies.

A linkage turns the pairwise leaf distances between two clusters into one
inter-cluster distance. Leaf pairs are always visited in the same order
(first cluster's leaves left to right, each against the second cluster's
leaves left to right), so sums and extrema do not depend on whether the
distances come from the cache.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Type

from hierclust.core.cluster_node import ClusterNode, LeafNode
from hierclust.schemas.data_models import LinkageType
from hierclust.utils.error_handling import InvalidLinkageError

PairDistance = Callable[[LeafNode, LeafNode], float]


class LinkageStrategy(ABC):
    """Inter-cluster distance policy."""

    name: str = ""

    @abstractmethod
    def distance(self, a: ClusterNode, b: ClusterNode, pair_distance: PairDistance) -> float:
        """
        Distance between clusters a and b.

        Args:
            a: First cluster
            b: Second cluster
            pair_distance: Leaf-to-leaf distance, possibly memoized

        Returns:
            Linkage distance
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class SingleLinkage(LinkageStrategy):
    """Minimal distance between any two leaves of the two clusters."""

    name = LinkageType.SINGLE.value

    def distance(self, a: ClusterNode, b: ClusterNode, pair_distance: PairDistance) -> float:
        b_leaves = b.leaves()
        return min(pair_distance(x, y) for x in a.leaves() for y in b_leaves)


class CompleteLinkage(LinkageStrategy):
    """Maximal distance between any two leaves of the two clusters."""

    name = LinkageType.COMPLETE.value

    def distance(self, a: ClusterNode, b: ClusterNode, pair_distance: PairDistance) -> float:
        b_leaves = b.leaves()
        return max(pair_distance(x, y) for x in a.leaves() for y in b_leaves)


class AverageLinkage(LinkageStrategy):
    """Mean of all pairwise leaf distances (not the distance of centroids)."""

    name = LinkageType.AVERAGE.value

    def distance(self, a: ClusterNode, b: ClusterNode, pair_distance: PairDistance) -> float:
        b_leaves = b.leaves()
        total = 0.0
        for x in a.leaves():
            for y in b_leaves:
                total += pair_distance(x, y)
        return total / (a.leaf_count * b.leaf_count)


# Registry of available linkages
LINKAGES: Dict[str, Type[LinkageStrategy]] = {
    LinkageType.SINGLE.value: SingleLinkage,
    LinkageType.AVERAGE.value: AverageLinkage,
    LinkageType.COMPLETE.value: CompleteLinkage,
}


def get_linkage(name: str) -> LinkageStrategy:
    """
    Instantiate a linkage strategy by name (case-insensitive).

    Raises:
        InvalidLinkageError: If the name is unknown
    """
    key = str(getattr(name, "value", name)).lower()
    if key not in LINKAGES:
        raise InvalidLinkageError(
            f"Unsupported linkage '{name}'. Supported: {list(LINKAGES.keys())}",
            details={"linkage": str(name)},
        )
    return LINKAGES[key]()
