"""
Feature Table Loader

Reads a delimited text table into FeatureVectors:
- Keeps numeric columns only (a column is numeric when every non-empty cell parses as float)
- Empty cells and missing-value markers become missing coordinates
- Row identifiers come from an ID column or default to "Row<i>"
"""

import csv
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from hierclust.core.cluster_node import FeatureVector
from hierclust.utils.advanced_logging import get_logger, timed
from hierclust.utils.error_handling import FileStorageError, InsufficientDataError, wrap_errors


logger = get_logger(__name__)

MISSING_MARKERS = frozenset({"", "?", "na", "nan", "null", "none"})


def _parse_cell(cell: Optional[str]) -> Tuple[bool, Optional[float]]:
    """Return (parsed, value); value is None for a missing cell."""
    if cell is None or cell.strip().lower() in MISSING_MARKERS:
        return True, None
    try:
        return True, float(cell)
    except ValueError:
        return False, None


@timed(operation="load_feature_table", log_level="debug")
@wrap_errors(OSError, UnicodeDecodeError, csv.Error, into=FileStorageError)
def load_feature_table(
    path: str,
    id_column: Optional[str] = None,
    columns: Optional[Sequence[str]] = None,
    delimiter: str = ",",
) -> Tuple[List[str], List[FeatureVector]]:
    """
    Load a CSV file with a header row as FeatureVectors.

    Args:
        path: File path
        id_column: Column holding row identifiers (default: row number)
        columns: Feature columns to use (default: every numeric column)
        delimiter: Field delimiter

    Returns:
        Tuple of (feature column names, vectors in file order)

    Raises:
        FileStorageError: If the file cannot be read or a requested column is absent
        InsufficientDataError: If no numeric column remains
    """
    with open(Path(path), "r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f, delimiter=delimiter)
        header = reader.fieldnames or []
        records = list(reader)

    if id_column is not None and id_column not in header:
        raise FileStorageError(
            f"ID column '{id_column}' not found in {path}",
            details={"columns": header},
        )

    candidates = [c for c in header if c != id_column]
    if columns is not None:
        unknown = [c for c in columns if c not in header]
        if unknown:
            raise FileStorageError(
                f"Columns {unknown} not found in {path}",
                details={"columns": header},
            )
        candidates = list(columns)

    numeric_columns = [
        c for c in candidates
        if all(_parse_cell(record.get(c))[0] for record in records)
    ]
    dropped = [c for c in candidates if c not in numeric_columns]
    if dropped:
        logger.info("non_numeric_columns_dropped", path=str(path), columns=dropped)

    if not numeric_columns:
        raise InsufficientDataError(
            f"No numeric feature columns in {path}",
            details={"columns": header},
        )

    vectors = []
    for i, record in enumerate(records):
        row_id = record[id_column] if id_column is not None else f"Row{i}"
        values = [_parse_cell(record.get(c))[1] for c in numeric_columns]
        vectors.append(FeatureVector(row_id=row_id, row_index=i, values=values))

    logger.info(
        "feature_table_loaded",
        path=str(path),
        rows=len(vectors),
        columns=len(numeric_columns),
    )
    return numeric_columns, vectors
