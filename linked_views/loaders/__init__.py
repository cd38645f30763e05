"""Data loaders for point tables and matrices."""

from linked_views.loaders.table_loader import (
    TableLoader,
    categorical_columns,
    numeric_columns,
    to_frame,
)

__all__ = [
    "TableLoader",
    "to_frame",
    "numeric_columns",
    "categorical_columns",
]
