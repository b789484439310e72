"""
Result Storage Manager

Persists clustering runs as JSONL (one ClusteringRunRecord per line):
- Input rows (IDs and values) so leaves can be rebuilt
- Merge list in linkage-matrix layout so the dendrogram can be rebuilt
- Fusion trace, partition snapshot and quality metrics

Features:
- Append-only writes
- Run lookup by ID and listing
- Full ClusteringResult reconstruction
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import structlog
from pydantic import ValidationError

from hierclust.core.base_clustering import ClusteringConfig, ClusteringResult
from hierclust.core.cluster_node import FeatureVector, build_tree_from_merges
from hierclust.core.result_builder import FusionStep, labels_for
from hierclust.schemas.data_models import (
    ClusteringRunRecord,
    FusionStepRecord,
    MergeRecord,
    RowRecord,
    RunConfigRecord,
    RunSummary,
)
from hierclust.utils.error_handling import (
    FileStorageError,
    RunNotFoundError,
    StorageError,
    wrap_errors,
)
from hierclust.utils.advanced_logging import get_logger, PerformanceLogger


logger = get_logger(__name__)


def to_record(
    result: ClusteringResult,
    columns: Optional[Sequence[str]] = None,
    processing_time_ms: float = 0.0,
) -> ClusteringRunRecord:
    """
    Convert a ClusteringResult into its persisted record.

    Args:
        result: Completed clustering result
        columns: Feature column names, if known
        processing_time_ms: Wall time of the run

    Returns:
        ClusteringRunRecord
    """
    config = result.config or ClusteringConfig()
    return ClusteringRunRecord(
        run_id=result.run_id,
        created_at=datetime.now(timezone.utc).isoformat(),
        config=RunConfigRecord(
            linkage=config.linkage,
            distance=config.distance,
            target_cluster_count=config.target_cluster_count,
            use_cache=config.use_cache,
        ),
        columns=list(columns or []),
        rows=[
            RowRecord(row_id=v.row_id, row_index=v.row_index, values=v.to_list())
            for v in result.vectors
        ],
        merges=[
            MergeRecord(left_id=int(left), right_id=int(right), distance=float(dist), size=int(size))
            for left, right, dist, size in result.merges
        ],
        fusion_trace=[
            FusionStepRecord(cluster_count=step.cluster_count, distance=step.distance)
            for step in result.fusion_trace
        ],
        partition=result.partition,
        quality_metrics=result.quality_metrics,
        processing_time_ms=processing_time_ms,
    )


def from_record(record: ClusteringRunRecord) -> ClusteringResult:
    """
    Rebuild a ClusteringResult (including the dendrogram) from a record.

    Raises:
        StorageError: If the stored merges do not form a tree over the rows
    """
    vectors: List[FeatureVector] = [
        FeatureVector(row_id=row.row_id, row_index=row.row_index, values=row.values)
        for row in sorted(record.rows, key=lambda r: r.row_index)
    ]
    merges = np.array(
        [[m.left_id, m.right_id, m.distance, m.size] for m in record.merges],
        dtype=np.float64,
    )

    try:
        root = build_tree_from_merges(vectors, merges)
    except ValueError as e:
        raise StorageError(
            f"Run {record.run_id} holds an invalid dendrogram: {e}",
            details={"run_id": record.run_id},
        ) from e

    partition = record.partition
    return ClusteringResult(
        root=root,
        fusion_trace=[FusionStep(s.cluster_count, s.distance) for s in record.fusion_trace],
        vectors=vectors,
        partition=partition,
        cluster_labels=labels_for(partition, vectors) if partition is not None else None,
        quality_metrics=dict(record.quality_metrics),
        run_id=record.run_id,
        config=ClusteringConfig(
            linkage=record.config.linkage.value,
            distance=record.config.distance.value,
            target_cluster_count=record.config.target_cluster_count,
            use_cache=record.config.use_cache,
        ),
    )


class ResultStorageManager:
    """
    JSONL-backed store of clustering runs.

    Each save appends one line; lookups scan the file, later lines win.
    """

    def __init__(
        self,
        output_dir: str = "data/runs",
        file_name: str = "runs.jsonl",
    ):
        """
        Initialize result storage manager.

        Args:
            output_dir: Directory for the JSONL file
            file_name: JSONL file name
        """
        self.output_dir = Path(output_dir)
        self.path = self.output_dir / file_name

        logger.info("result_storage_initialized", path=str(self.path))

    @classmethod
    def from_settings(cls, settings: Any) -> "ResultStorageManager":
        """Create from hierclust.config.settings_loader.Settings."""
        return cls(
            output_dir=settings.storage.output_dir,
            file_name=settings.storage.file_name,
        )

    @wrap_errors(OSError, into=FileStorageError)
    def save_run(
        self,
        result: ClusteringResult,
        columns: Optional[Sequence[str]] = None,
        processing_time_ms: float = 0.0,
    ) -> ClusteringRunRecord:
        """
        Append a completed run to the store.

        Args:
            result: Completed clustering result
            columns: Feature column names
            processing_time_ms: Wall time of the run

        Returns:
            The stored record
        """
        record = to_record(result, columns=columns, processing_time_ms=processing_time_ms)

        with PerformanceLogger("save_run", logger=logger, item_count=len(record.rows), run_id=record.run_id):
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(record.model_dump_json())
                f.write("\n")

        return record

    @wrap_errors(OSError, into=FileStorageError)
    def _read_records(self) -> List[ClusteringRunRecord]:
        if not self.path.exists():
            return []

        records = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(ClusteringRunRecord.model_validate_json(line))
                except ValidationError as e:
                    raise StorageError(
                        f"Corrupt run record at {self.path}:{line_no}",
                        details={"line": line_no, "errors": e.error_count()},
                    ) from e
        return records

    def load_record(self, run_id: str) -> ClusteringRunRecord:
        """
        Load the stored record of a run.

        Raises:
            RunNotFoundError: If no run with this ID is stored
        """
        found = None
        for record in self._read_records():
            if record.run_id == run_id:
                found = record

        if found is None:
            raise RunNotFoundError(f"Run {run_id} not found in {self.path}", details={"run_id": run_id})
        return found

    def load_run(self, run_id: str) -> ClusteringResult:
        """Load a run and rebuild its ClusteringResult."""
        result = from_record(self.load_record(run_id))
        logger.info("run_loaded", run_id=run_id, rows=result.n_rows)
        return result

    def list_runs(self) -> List[RunSummary]:
        """Summaries of all stored runs, oldest first (one per run ID)."""
        latest: Dict[str, ClusteringRunRecord] = {}
        for record in self._read_records():
            latest.pop(record.run_id, None)
            latest[record.run_id] = record

        return [
            RunSummary(
                run_id=record.run_id,
                created_at=record.created_at,
                linkage=record.config.linkage.value,
                distance=record.config.distance.value,
                n_rows=len(record.rows),
                n_clusters=len(set(record.partition.values())) if record.partition is not None else None,
            )
            for record in latest.values()
        ]
