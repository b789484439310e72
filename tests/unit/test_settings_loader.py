"""
Unit tests for YAML settings loading.
"""

import pytest

from hierclust.config.settings_loader import ConfigManager, Settings, get_settings
from hierclust.schemas.data_models import DistanceMetric, LinkageType
from hierclust.utils.error_handling import ConfigurationError


@pytest.mark.unit
class TestSettingsLoader:
    """Test ConfigManager."""

    def test_defaults(self):
        settings = Settings()

        assert settings.clustering.linkage == LinkageType.SINGLE
        assert settings.clustering.distance == DistanceMetric.EUCLIDEAN
        assert settings.clustering.target_cluster_count == 3
        assert settings.storage.file_name == "runs.jsonl"

    def test_load_file(self, settings_file):
        path = settings_file(linkage="complete", distance="manhattan", target_cluster_count=5)
        settings = ConfigManager.load_config(str(path))

        assert settings.service.name == "hierclust-test"
        assert settings.clustering.linkage == LinkageType.COMPLETE
        assert settings.clustering.distance == DistanceMetric.MANHATTAN
        assert settings.clustering.target_cluster_count == 5
        assert settings.clustering.use_cache is True

    def test_settings_are_cached(self, settings_file):
        path = settings_file()
        first = ConfigManager.load_config(str(path))

        assert ConfigManager.get_settings() is first
        assert get_settings() is first

    def test_reload(self, settings_file):
        ConfigManager.load_config(str(settings_file(linkage="single")))
        reloaded = ConfigManager.reload_config(str(settings_file(linkage="average")))

        assert reloaded.clustering.linkage == LinkageType.AVERAGE

    def test_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_LINKAGE", "Average")
        path = tmp_path / "settings.yaml"
        path.write_text(
            "clustering:\n"
            "  linkage: ${TEST_LINKAGE}\n"
            "  distance: ${TEST_UNSET_DISTANCE:manhattan}\n"
        )

        settings = ConfigManager.load_config(str(path))

        assert settings.clustering.linkage == LinkageType.AVERAGE
        assert settings.clustering.distance == DistanceMetric.MANHATTAN

    def test_default_location_env_var(self, settings_file, monkeypatch):
        monkeypatch.setenv("HIERCLUST_CONFIG", str(settings_file(target_cluster_count=7)))

        assert ConfigManager.load_config().clustering.target_cluster_count == 7

    def test_no_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HIERCLUST_CONFIG", str(tmp_path / "absent.yaml"))

        settings = ConfigManager.load_config()

        assert settings.clustering.target_cluster_count == 3

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager.load_config(str(tmp_path / "absent.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("clustering: [unclosed\n")

        with pytest.raises(ConfigurationError):
            ConfigManager.load_config(str(path))

    @pytest.mark.parametrize(
        "clustering",
        [{"linkage": "ward"}, {"distance": "cosine"}, {"target_cluster_count": 0}],
    )
    def test_invalid_values(self, settings_file, clustering):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager.load_config(str(settings_file(**clustering)))

        assert exc_info.value.details["errors"]
