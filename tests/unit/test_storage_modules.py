"""
Unit tests for storage modules.

Tests for the CSV feature table loader and the JSONL run store.
"""

import numpy as np
import pytest

from hierclust.core.clustering_engine import ClusteringEngine
from hierclust.schemas.data_models import LinkageType, RunStatus
from hierclust.storage.result_storage import ResultStorageManager, from_record, to_record
from hierclust.storage.table_loader import load_feature_table
from hierclust.utils.error_handling import (
    FileStorageError,
    InsufficientDataError,
    RunNotFoundError,
    StorageError,
)


@pytest.mark.unit
class TestTableLoader:
    """Test load_feature_table."""

    def test_load_with_id_column(self, feature_csv):
        columns, vectors = load_feature_table(str(feature_csv), id_column="name")

        assert columns == ["x", "y"]
        assert [v.row_id for v in vectors] == ["a", "b", "c", "d", "e"]
        assert [v.row_index for v in vectors] == list(range(5))
        assert vectors[0].to_list() == [1.0, 1.0]
        assert vectors[1].to_list() == [1.5, None]
        assert vectors[3].to_list() == [None, 10.0]

    def test_default_row_ids(self, feature_csv):
        columns, vectors = load_feature_table(str(feature_csv))

        # the name column is not numeric and is dropped like color
        assert columns == ["x", "y"]
        assert [v.row_id for v in vectors] == ["Row0", "Row1", "Row2", "Row3", "Row4"]

    def test_select_columns(self, feature_csv):
        columns, vectors = load_feature_table(str(feature_csv), id_column="name", columns=["y"])

        assert columns == ["y"]
        assert vectors[2].to_list() == [9.5]

    def test_delimiter(self, tmp_path):
        path = tmp_path / "features.tsv"
        path.write_text("id;v\nr1;1\nr2;NA\n")

        columns, vectors = load_feature_table(str(path), id_column="id", delimiter=";")

        assert columns == ["v"]
        assert vectors[1].has_missing

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileStorageError):
            load_feature_table(str(tmp_path / "absent.csv"))

    def test_unknown_columns(self, feature_csv):
        with pytest.raises(FileStorageError):
            load_feature_table(str(feature_csv), id_column="id")
        with pytest.raises(FileStorageError):
            load_feature_table(str(feature_csv), columns=["z"])

    def test_no_numeric_columns(self, tmp_path):
        path = tmp_path / "text.csv"
        path.write_text("name,color\na,red\nb,blue\n")

        with pytest.raises(InsufficientDataError):
            load_feature_table(str(path), id_column="name")


@pytest.fixture
def result(four_points):
    data = four_points.copy()
    data[1, 0] = np.nan
    return ClusteringEngine().cluster(
        data, row_ids=["a", "b", "c", "d"], linkage="average", target_cluster_count=2, use_cache=True
    )


@pytest.mark.unit
class TestResultStorage:
    """Test ResultStorageManager."""

    def test_to_record(self, result):
        record = to_record(result, columns=["value"], processing_time_ms=1.5)

        assert record.run_id == result.run_id
        assert record.status == RunStatus.DONE
        assert record.config.linkage == LinkageType.AVERAGE
        assert record.config.use_cache is True
        assert record.columns == ["value"]
        assert record.rows[1].values == [None]
        assert len(record.merges) == 3
        assert record.merges[-1].size == 4
        assert [s.cluster_count for s in record.fusion_trace] == [3, 2, 1]
        assert record.partition == result.partition

    def test_from_record(self, result):
        rebuilt = from_record(to_record(result))

        np.testing.assert_array_equal(rebuilt.merges, result.merges)
        assert rebuilt.fusion_trace == result.fusion_trace
        assert rebuilt.partition == result.partition
        assert rebuilt.labels.tolist() == result.labels.tolist()
        assert rebuilt.config.linkage == "average"
        assert [v.to_list() for v in rebuilt.vectors] == [v.to_list() for v in result.vectors]

    def test_from_record_invalid_merges(self, result):
        record = to_record(result)
        broken = record.model_copy(update={"merges": record.merges[:1]})

        with pytest.raises(StorageError):
            from_record(broken)

    def test_save_and_load(self, tmp_path, result):
        storage = ResultStorageManager(output_dir=str(tmp_path / "runs"))
        storage.save_run(result, columns=["value"], processing_time_ms=3.0)

        assert storage.path.exists()

        loaded = storage.load_run(result.run_id)
        np.testing.assert_array_equal(loaded.merges, result.merges)
        assert loaded.partition == result.partition
        assert loaded.root.row_ids() == result.root.row_ids()
        assert storage.load_record(result.run_id).processing_time_ms == 3.0

    def test_list_runs(self, tmp_path, result, four_points):
        storage = ResultStorageManager(output_dir=str(tmp_path))
        other = ClusteringEngine().cluster(four_points, target_cluster_count=10)

        storage.save_run(result)
        storage.save_run(other)
        storage.save_run(result)

        runs = storage.list_runs()
        assert [run.run_id for run in runs] == [other.run_id, result.run_id]
        assert runs[0].n_rows == 4
        assert runs[0].n_clusters == 4
        assert runs[1].linkage == "average"

    def test_empty_store(self, tmp_path):
        storage = ResultStorageManager(output_dir=str(tmp_path))

        assert storage.list_runs() == []
        with pytest.raises(RunNotFoundError):
            storage.load_record("missing")

    def test_corrupt_line(self, tmp_path, result):
        storage = ResultStorageManager(output_dir=str(tmp_path))
        storage.save_run(result)
        with open(storage.path, "a", encoding="utf-8") as f:
            f.write("{not json}\n")

        with pytest.raises(StorageError):
            storage.list_runs()

    def test_from_settings(self, tmp_path):
        from hierclust.config.settings_loader import Settings

        settings = Settings(storage={"output_dir": str(tmp_path), "file_name": "x.jsonl"})
        storage = ResultStorageManager.from_settings(settings)

        assert storage.path == tmp_path / "x.jsonl"
