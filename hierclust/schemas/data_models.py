"""
data_models.py

Pydantic data models for the hierarchical clustering engine.
Defines the policy enums and the persisted/exported shape of a clustering run.

Schema Design:
- Enums: linkage and distance policy names, run lifecycle states
- Records: one ClusteringRunRecord per run (rows, merges, fusion trace, partition)
"""

from typing import List, Dict, Optional
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================


class LinkageType(str, Enum):
    """Inter-cluster distance policies."""

    SINGLE = "single"
    AVERAGE = "average"
    COMPLETE = "complete"


class DistanceMetric(str, Enum):
    """Leaf-to-leaf distance functions."""

    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"


class RunStatus(str, Enum):
    """Clustering run lifecycle states."""

    RUNNING = "running"
    DONE = "done"
    CANCELLED = "cancelled"


# =============================================================================
# RUN RECORD MODELS
# =============================================================================


class RowRecord(BaseModel):
    """One input row as stored with a run. Missing cells are null."""

    model_config = ConfigDict(ser_json_inf_nan="constants")

    row_id: str = Field(..., description="Stable row identifier")
    row_index: int = Field(..., ge=0, description="Position in the input (cache coordinate)")
    values: List[Optional[float]] = Field(default_factory=list, description="Feature values")


class MergeRecord(BaseModel):
    """One merge step in scipy linkage-matrix layout."""

    model_config = ConfigDict(ser_json_inf_nan="constants")

    left_id: int = Field(..., ge=0, description="Node ID of the first merged cluster")
    right_id: int = Field(..., ge=0, description="Node ID of the second merged cluster")
    distance: float = Field(..., description="Linkage distance at which the clusters merged")
    size: int = Field(..., ge=2, description="Leaf count of the new cluster")


class FusionStepRecord(BaseModel):
    """Remaining cluster count and merge distance after one merge."""

    model_config = ConfigDict(ser_json_inf_nan="constants")

    cluster_count: int = Field(..., ge=1)
    distance: float


class RunConfigRecord(BaseModel):
    """Clustering options a run was executed with."""

    linkage: LinkageType
    distance: DistanceMetric
    target_cluster_count: int = Field(..., ge=1)
    use_cache: bool = False


class ClusteringRunRecord(BaseModel):
    """Complete persisted clustering run."""

    model_config = ConfigDict(ser_json_inf_nan="constants")

    run_id: str = Field(..., description="Unique run identifier")
    created_at: str = Field(..., description="ISO timestamp of the run")
    status: RunStatus = Field(default=RunStatus.DONE)
    config: RunConfigRecord
    columns: List[str] = Field(default_factory=list, description="Feature column names")
    rows: List[RowRecord] = Field(default_factory=list)
    merges: List[MergeRecord] = Field(default_factory=list)
    fusion_trace: List[FusionStepRecord] = Field(default_factory=list)
    partition: Optional[Dict[str, str]] = Field(None, description="Row ID to cluster label")
    quality_metrics: Dict[str, float] = Field(default_factory=dict)
    processing_time_ms: float = Field(0.0, ge=0.0)


class RunSummary(BaseModel):
    """Short description of a stored run for listings."""

    run_id: str
    created_at: str
    linkage: str
    distance: str
    n_rows: int
    n_clusters: Optional[int] = None
