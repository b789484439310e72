"""
Unit tests for leaf-to-leaf distance functions.
"""

import math

import pytest

from hierclust.core.cluster_node import FeatureVector
from hierclust.core.distance import (
    DISTANCE_FUNCTIONS,
    euclidean_distance,
    get_distance_function,
    manhattan_distance,
)
from hierclust.schemas.data_models import DistanceMetric
from hierclust.utils.error_handling import ConfigurationError, InvalidDistanceError


def fv(values, index=0):
    return FeatureVector(row_id=f"r{index}", row_index=index, values=values)


@pytest.mark.unit
class TestDistanceFunctions:
    """Test Euclidean and Manhattan distances."""

    def test_euclidean(self):
        assert euclidean_distance(fv([0.0, 0.0]), fv([3.0, 4.0], 1)) == pytest.approx(5.0)

    def test_manhattan(self):
        assert manhattan_distance(fv([0.0, 0.0]), fv([3.0, -4.0], 1)) == pytest.approx(7.0)

    def test_identical_vectors(self):
        a = fv([1.5, 2.5, -3.0])
        b = fv([1.5, 2.5, -3.0], 1)
        assert euclidean_distance(a, b) == 0.0
        assert manhattan_distance(a, b) == 0.0

    def test_symmetric(self):
        a = fv([1.0, 7.0, 2.0])
        b = fv([4.0, -1.0, 0.5], 1)
        assert euclidean_distance(a, b) == euclidean_distance(b, a)
        assert manhattan_distance(a, b) == manhattan_distance(b, a)

    def test_missing_cells_skipped_pairwise(self):
        """Only coordinates present in both vectors contribute."""
        a = fv([1.0, None, 3.0])
        b = fv([4.0, 5.0, None], 1)

        assert euclidean_distance(a, b) == pytest.approx(3.0)
        assert manhattan_distance(a, b) == pytest.approx(3.0)

    def test_different_lengths_use_common_prefix(self):
        a = fv([1.0, 2.0, 100.0])
        b = fv([2.0, 4.0], 1)

        assert manhattan_distance(a, b) == pytest.approx(3.0)
        assert euclidean_distance(a, b) == pytest.approx(math.sqrt(5.0))

    def test_no_overlap_is_zero(self):
        a = fv([None, 1.0])
        b = fv([2.0, None], 1)

        assert euclidean_distance(a, b) == 0.0
        assert manhattan_distance(a, b) == 0.0
        assert euclidean_distance(fv([]), fv([], 1)) == 0.0

    def test_non_finite_values_propagate(self):
        a = fv([float("nan"), 1.0])
        b = fv([0.0, 1.0], 1)
        assert math.isnan(euclidean_distance(a, b))

        c = fv([float("inf")])
        d = fv([0.0], 1)
        assert manhattan_distance(c, d) == float("inf")


@pytest.mark.unit
class TestDistanceLookup:
    """Test distance function registry."""

    def test_registry_names(self):
        assert set(DISTANCE_FUNCTIONS) == {"euclidean", "manhattan"}

    def test_lookup_case_insensitive(self):
        assert get_distance_function("Euclidean") is euclidean_distance
        assert get_distance_function("MANHATTAN") is manhattan_distance

    def test_lookup_enum(self):
        assert get_distance_function(DistanceMetric.MANHATTAN) is manhattan_distance

    def test_unknown_distance(self):
        with pytest.raises(InvalidDistanceError) as exc_info:
            get_distance_function("cosine")

        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.details["distance"] == "cosine"
