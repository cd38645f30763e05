"""Filter record shared by all views.

A FilterState is immutable and always replaced as a whole, so observers never
see a half-updated set of constraints. Each view derives its displayed subset
by applying the current record to its own rows; constraints on fields a view
does not have are ignored by that view.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

import numpy as np
import pandas as pd

from linked_views.core.errors import InvalidFilterError

ALL = "all"

CategoryValue = Union[str, tuple[str, ...]]


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


@dataclass(frozen=True)
class NumericRange:
    """Closed numeric interval. A None bound is open."""

    min: Optional[float] = None
    max: Optional[float] = None

    def __post_init__(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            raise InvalidFilterError(f"Range min {self.min} is greater than max {self.max}")

    def contains(self, value: Any) -> bool:
        """Check a value against the range. Missing values are not constrained."""
        if _is_missing(value):
            return True
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    def mask(self, column: pd.Series) -> pd.Series:
        """Boolean mask of rows inside the range (missing values pass)."""
        result = pd.Series(True, index=column.index)
        if self.min is not None:
            result &= column >= self.min
        if self.max is not None:
            result &= column <= self.max
        return result | column.isna()

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max}


def _normalize_category(value: Any) -> CategoryValue:
    if isinstance(value, str):
        return value
    if isinstance(value, Iterable):
        return tuple(str(v) for v in value)
    raise InvalidFilterError(f"Category constraint must be a string or list of strings, got {value!r}")


@dataclass(frozen=True)
class FilterState:
    """Named numeric ranges and categorical memberships.

    Categorical values are either a single string (``"all"`` means no
    constraint) or a tuple of allowed strings.

    Example:
        filters = FilterState(ranges={"expression": NumericRange(0, 10)})
        filters = filters.with_category("gene_type", "oncogene")
        visible = filters.apply(df)
    """

    ranges: dict[str, NumericRange] = field(default_factory=dict)
    categories: dict[str, CategoryValue] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze the containers so a record cannot be edited in place
        object.__setattr__(self, "ranges", dict(self.ranges))
        object.__setattr__(
            self, "categories", {k: _normalize_category(v) for k, v in self.categories.items()}
        )

    # ========== REPLACEMENT ==========

    def with_range(self, name: str, min_value: Optional[float], max_value: Optional[float]) -> "FilterState":
        """Return a new record with one range replaced."""
        ranges = dict(self.ranges)
        ranges[name] = NumericRange(min_value, max_value)
        return FilterState(ranges=ranges, categories=self.categories)

    def with_category(self, name: str, value: Any) -> "FilterState":
        """Return a new record with one categorical constraint replaced."""
        categories = dict(self.categories)
        categories[name] = _normalize_category(value)
        return FilterState(ranges=self.ranges, categories=categories)

    def without(self, name: str) -> "FilterState":
        """Return a new record with any constraint on ``name`` removed."""
        ranges = {k: v for k, v in self.ranges.items() if k != name}
        categories = {k: v for k, v in self.categories.items() if k != name}
        return FilterState(ranges=ranges, categories=categories)

    # ========== EVALUATION ==========

    def matches(self, row: dict) -> bool:
        """Check a single row (dict) against every constraint it has a field for."""
        for name, value_range in self.ranges.items():
            if name in row and not value_range.contains(row[name]):
                return False
        for name, allowed in self.categories.items():
            if name not in row or allowed == ALL:
                continue
            value = row[name]
            if isinstance(allowed, str):
                if str(value) != allowed:
                    return False
            elif str(value) not in allowed:
                return False
        return True

    def mask(self, frame: pd.DataFrame) -> pd.Series:
        """Boolean mask over ``frame`` rows that pass all applicable constraints."""
        result = pd.Series(True, index=frame.index)
        for name, value_range in self.ranges.items():
            if name in frame.columns:
                result &= value_range.mask(frame[name])
        for name, allowed in self.categories.items():
            if name not in frame.columns or allowed == ALL:
                continue
            column = frame[name].astype(str)
            if isinstance(allowed, str):
                result &= column == allowed
            else:
                result &= column.isin(allowed)
        return result

    def apply(self, frame: pd.DataFrame) -> pd.DataFrame:
        """Return the rows of ``frame`` that pass the filters."""
        if frame is None or frame.empty:
            return frame
        return frame[self.mask(frame)]

    def is_active(self) -> bool:
        """True if any constraint actually narrows the data."""
        if any(r.min is not None or r.max is not None for r in self.ranges.values()):
            return True
        return any(v != ALL for v in self.categories.values())

    def active_labels(self, defaults: Optional["FilterState"] = None) -> list[str]:
        """Short human-readable tags for constraints that differ from defaults.

        Args:
            defaults: Record describing the unfiltered state (data extent and
                unconstrained categories). Without it, every bound counts.

        Returns:
            List of labels like ``"expression >= 2.5"`` or ``"gene_type: oncogene"``
        """
        defaults = defaults or FilterState()
        labels = []
        for name, value_range in self.ranges.items():
            base = defaults.ranges.get(name, NumericRange())
            if value_range.min is not None and (base.min is None or value_range.min > base.min):
                labels.append(f"{name} >= {value_range.min:g}")
            if value_range.max is not None and (base.max is None or value_range.max < base.max):
                labels.append(f"{name} <= {value_range.max:g}")
        for name, allowed in self.categories.items():
            if allowed == defaults.categories.get(name, ALL):
                continue
            if isinstance(allowed, str):
                labels.append(f"{name}: {allowed}")
            else:
                labels.append(f"{name}: {', '.join(allowed) if allowed else 'none'}")
        return labels

    # ========== CONVERSION ==========

    def to_dict(self) -> dict:
        return {
            "ranges": {name: r.to_dict() for name, r in self.ranges.items()},
            "categories": {
                name: (v if isinstance(v, str) else list(v)) for name, v in self.categories.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FilterState":
        ranges = {
            name: NumericRange(bounds.get("min"), bounds.get("max"))
            for name, bounds in data.get("ranges", {}).items()
        }
        return cls(ranges=ranges, categories=data.get("categories", {}))

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        numeric_columns: Iterable[str] = (),
        categorical_columns: Iterable[str] = (),
    ) -> "FilterState":
        """Build the unconstrained record for a table: full extents and "all".

        Args:
            frame: Source data
            numeric_columns: Columns that get a range spanning their extent
            categorical_columns: Columns that get an "all" constraint

        Returns:
            FilterState that every row of ``frame`` passes
        """
        ranges = {}
        for name in numeric_columns:
            if name not in frame.columns:
                continue
            values = pd.to_numeric(frame[name], errors="coerce").to_numpy(dtype=float)
            if values.size == 0 or np.all(np.isnan(values)):
                ranges[name] = NumericRange()
            else:
                ranges[name] = NumericRange(float(np.nanmin(values)), float(np.nanmax(values)))
        categories = {name: ALL for name in categorical_columns if name in frame.columns}
        return cls(ranges=ranges, categories=categories)

    @staticmethod
    def category_options(frame: pd.DataFrame, name: str) -> list[str]:
        """Sorted distinct values of a categorical column, for filter controls."""
        if name not in frame.columns:
            return []
        return sorted(frame[name].dropna().astype(str).unique().tolist())
