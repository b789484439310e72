"""
Pytest configuration and shared fixtures for hierclust tests.

This module provides:
- Small hand-checkable datasets
- Blob data with clear cluster structure
- CSV and YAML files in a temporary directory
- Isolation of the settings singleton and structlog configuration
"""

import os
import textwrap

import numpy as np
import pytest
import structlog

# Set test environment variables
os.environ["TESTING"] = "true"
os.environ["LOG_LEVEL"] = "DEBUG"


# =============================================================================
# Test Data Generators
# =============================================================================

@pytest.fixture
def four_points():
    """Four 1-D rows forming two obvious pairs: {1, 2} and {9, 10}."""
    return np.array([[1.0], [2.0], [9.0], [10.0]])


@pytest.fixture
def small_vectors():
    """Generate a small random table for quick tests."""
    rng = np.random.default_rng(42)
    return rng.normal(size=(12, 3))


@pytest.fixture
def clustered_vectors():
    """
    Generate rows with clear cluster structure.

    Creates 3 well separated blobs of 10 rows each in 2-D:
    - Cluster 0: centered at (0, 0)
    - Cluster 1: centered at (10, 0)
    - Cluster 2: centered at (0, 10)
    """
    rng = np.random.default_rng(42)
    n_per_cluster = 10
    centers = np.array([[0.0, 0.0], [10.0, 0.0], [0.0, 10.0]])

    vectors = []
    labels = []
    for k, center in enumerate(centers):
        vectors.append(center + rng.normal(scale=0.3, size=(n_per_cluster, 2)))
        labels.extend([k] * n_per_cluster)

    return np.vstack(vectors), np.array(labels)


@pytest.fixture
def feature_csv(tmp_path):
    """CSV with an ID column, two numeric columns, one text column and missing cells."""
    path = tmp_path / "features.csv"
    path.write_text(
        textwrap.dedent(
            """\
            name,x,y,color
            a,1.0,1.0,red
            b,1.5,?,red
            c,9.0,9.5,blue
            d,,10.0,blue
            e,20.0,0.5,green
            """
        )
    )
    return path


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def settings_file(tmp_path):
    """Write a settings.yaml that stores runs under tmp_path."""
    def _write(**clustering):
        options = {
            "linkage": "single",
            "distance": "euclidean",
            "target_cluster_count": 2,
            "use_cache": True,
        }
        options.update(clustering)
        body = "\n".join(f"  {key}: {str(value).lower()}" for key, value in options.items())

        path = tmp_path / "settings.yaml"
        path.write_text(
            "service:\n"
            "  name: hierclust-test\n"
            "clustering:\n"
            f"{body}\n"
            "storage:\n"
            "  enabled: false\n"
            f"  output_dir: {tmp_path / 'runs'}\n"
            "  file_name: runs.jsonl\n"
            "logging:\n"
            "  level: WARNING\n"
            "  format: json\n"
        )
        return path

    return _write


@pytest.fixture
def engine():
    """Clustering engine instance."""
    from hierclust.core.clustering_engine import ClusteringEngine

    return ClusteringEngine()


# =============================================================================
# Isolation
# =============================================================================

@pytest.fixture(autouse=True)
def reset_settings():
    """Drop cached settings so every test loads its own configuration."""
    from hierclust.config.settings_loader import ConfigManager

    ConfigManager._settings = None
    yield
    ConfigManager._settings = None


@pytest.fixture
def restore_structlog():
    """Undo structlog.configure() calls made by a test."""
    yield
    structlog.reset_defaults()


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
