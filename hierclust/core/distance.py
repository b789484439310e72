"""
Leaf-to-leaf distance functions.

Both functions compare two FeatureVectors over the coordinates present in
both of them (common prefix, missing cells skipped pairwise). Non-finite
values are not treated specially and propagate into the result.
"""

from typing import Callable, Dict

import numpy as np

from hierclust.core.cluster_node import FeatureVector
from hierclust.schemas.data_models import DistanceMetric
from hierclust.utils.error_handling import InvalidDistanceError

DistanceFunction = Callable[[FeatureVector, FeatureVector], float]


def _overlap_difference(a: FeatureVector, b: FeatureVector) -> np.ndarray:
    """Coordinate differences over the positions present in both vectors."""
    k = min(len(a), len(b))
    mask = a.mask[:k] & b.mask[:k]
    return a.values[:k][mask] - b.values[:k][mask]


def euclidean_distance(a: FeatureVector, b: FeatureVector) -> float:
    """sqrt(sum((a_i - b_i)^2)); 0.0 when the vectors share no coordinate."""
    diff = _overlap_difference(a, b)
    if diff.size == 0:
        return 0.0
    return float(np.sqrt(np.dot(diff, diff)))


def manhattan_distance(a: FeatureVector, b: FeatureVector) -> float:
    """sum(|a_i - b_i|); 0.0 when the vectors share no coordinate."""
    diff = _overlap_difference(a, b)
    if diff.size == 0:
        return 0.0
    return float(np.sum(np.abs(diff)))


DISTANCE_FUNCTIONS: Dict[str, DistanceFunction] = {
    DistanceMetric.EUCLIDEAN.value: euclidean_distance,
    DistanceMetric.MANHATTAN.value: manhattan_distance,
}


def get_distance_function(name: str) -> DistanceFunction:
    """
    Look up a distance function by name (case-insensitive).

    Raises:
        InvalidDistanceError: If the name is unknown
    """
    key = str(getattr(name, "value", name)).lower()
    if key not in DISTANCE_FUNCTIONS:
        raise InvalidDistanceError(
            f"Unsupported distance '{name}'. Supported: {list(DISTANCE_FUNCTIONS.keys())}",
            details={"distance": str(name)},
        )
    return DISTANCE_FUNCTIONS[key]
