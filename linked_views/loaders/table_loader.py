"""CSV/TSV loading for point tables and matrices."""

import logging
from pathlib import Path
from typing import Any, Iterable, Optional

import pandas as pd

from linked_views.core.errors import DataLoadError
from linked_views.core.state import SessionState

logger = logging.getLogger(__name__)


def _read_table(filepath: str, **kwargs) -> pd.DataFrame:
    sep = "\t" if Path(filepath).suffix.lower() in (".tsv", ".tab", ".txt") else ","
    return pd.read_csv(filepath, sep=sep, **kwargs)


def to_frame(rows: Any, id_field: str = "id") -> pd.DataFrame:
    """Normalise view input (DataFrame or list of dicts) to a DataFrame.

    Args:
        rows: DataFrame, list of row dicts, or None
        id_field: Column that must be present when there are rows

    Returns:
        DataFrame (empty when ``rows`` is None or empty)

    Raises:
        DataLoadError: If rows are present but have no ``id_field`` column
    """
    if rows is None:
        return pd.DataFrame()
    frame = rows if isinstance(rows, pd.DataFrame) else pd.DataFrame(list(rows))
    if not frame.empty and id_field not in frame.columns:
        raise DataLoadError(f"Rows have no {id_field!r} column (columns: {list(frame.columns)})")
    return frame


def numeric_columns(frame: pd.DataFrame, exclude: Iterable[str] = ()) -> list[str]:
    """Names of numeric columns, in frame order."""
    excluded = set(exclude)
    return [c for c in frame.select_dtypes(include="number").columns if c not in excluded]


def categorical_columns(frame: pd.DataFrame, exclude: Iterable[str] = (), max_levels: int = 20) -> list[str]:
    """Names of non-numeric columns with few distinct values."""
    excluded = set(exclude)
    result = []
    for column in frame.select_dtypes(exclude="number").columns:
        if column in excluded:
            continue
        if frame[column].nunique(dropna=True) <= max_levels:
            result.append(column)
    return result


class TableLoader:
    """Loads the per-sample point table and the sample x gene matrix.

    Example:
        state = SessionState()
        loader = TableLoader(state)
        if loader.load_points("samples.csv"):
            print(f"Loaded {len(state.points)} samples")
    """

    def __init__(self, state: SessionState):
        """Initialize loader with state reference.

        Args:
            state: SessionState instance to populate with data
        """
        self.state = state

    def load_points(self, filepath: str, id_field: str = "id") -> bool:
        """Load a point table (one row per sample, with an id column).

        Args:
            filepath: Path to a CSV/TSV file
            id_field: Name of the id column

        Returns:
            True if successful
        """
        try:
            frame = _read_table(filepath)
            frame = to_frame(frame, id_field)
            frame[id_field] = frame[id_field].astype(str)
            frame = frame.drop_duplicates(subset=id_field, keep="first").reset_index(drop=True)
        except (OSError, ValueError, DataLoadError) as e:
            logger.error("Error loading points from %s: %s", filepath, e)
            return False
        self.state.set_points(frame, id_field=id_field)
        logger.info("Loaded %d points from %s", len(frame), filepath)
        return True

    def load_matrix(self, filepath: str, index_col: Optional[int] = 0) -> bool:
        """Load a wide matrix: first column holds sample ids, other columns genes.

        Args:
            filepath: Path to a CSV/TSV file
            index_col: Column to use as the row (sample) index

        Returns:
            True if successful
        """
        try:
            frame = _read_table(filepath, index_col=index_col)
            frame.index = frame.index.astype(str)
            frame.columns = frame.columns.astype(str)
            frame = frame.apply(pd.to_numeric, errors="coerce")
        except (OSError, ValueError) as e:
            logger.error("Error loading matrix from %s: %s", filepath, e)
            return False
        self.state.set_matrix(frame)
        logger.info("Loaded %d x %d matrix from %s", frame.shape[0], frame.shape[1], filepath)
        return True
