from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import numpy as np

from ..models import (
    ColumnProfile,
    ColumnType,
    DataQualityReport,
    NumericStatistics,
    OutlierDetail,
)
from .inference import (
    column_values,
    conforms_to_type,
    hashable_key,
    infer_column_type,
    iqr_bounds,
    non_missing,
    primitive_type,
    row_key,
    to_number,
)

logger = logging.getLogger(__name__)

MIN_OUTLIER_VALUES = 4
SAMPLE_VALUES = 10

REC_IMPUTATION = "Consider data imputation techniques for missing values"
REC_STANDARDIZE = "Review data types and standardize format consistency"
REC_INVESTIGATE_OUTLIERS = "Investigate outliers - they may indicate data quality issues or interesting patterns"
REC_ALL_GOOD = "Data quality looks good! Consider advanced analytics or visualization."
REC_NO_DATA = "No data available for analysis"


class DataQualityAnalyzer:
    """Statistical quality report over a list of row records.

    Percentages are on a 0-100 scale. Column types are inferred per column
    with the same 80% heuristic the context profiler uses, but independently
    of it: this report favors per-column detail over speed.

    Median uses the lower-middle convention for even counts
    (sorted[n // 2]), a deliberate simplification kept for parity with the
    outlier quartiles, which are index-based as well.
    """

    def __init__(self, rows: Sequence[dict[str, Any]], columns: Optional[Sequence[str]] = None) -> None:
        self.rows: list[dict[str, Any]] = list(rows or [])
        if columns:
            self.columns = [str(c) for c in columns]
        else:
            self.columns = list(self.rows[0].keys()) if self.rows else []

        self._values = {c: column_values(self.rows, c) for c in self.columns}
        self._types = {c: infer_column_type(self._values[c]) for c in self.columns}

    @property
    def is_empty(self) -> bool:
        return not self.rows or not self.columns

    def column_type(self, column: str) -> ColumnType:
        return self._types[column]

    # ---- Report ----

    def analyze_data_quality(self) -> DataQualityReport:
        if self.is_empty:
            return DataQualityReport(
                completeness=0.0,
                consistency=0.0,
                accuracy=0.0,
                duplicates=0,
                recommendations=[REC_NO_DATA],
                is_valid=False,
            )

        completeness = self.completeness()
        consistency = self.consistency()
        accuracy = self.accuracy()
        duplicates = self.duplicates()
        details = self.detect_outliers()
        outliers = [f"{d.column}: {d.count} outliers detected" for d in details]

        report = DataQualityReport(
            completeness=completeness,
            consistency=consistency,
            accuracy=accuracy,
            duplicates=duplicates,
            outliers=outliers,
            recommendations=generate_recommendations(completeness, consistency, duplicates, outliers),
            is_valid=True,
            outlier_details=details,
            column_profiles=self.profile_columns(),
        )
        logger.debug(
            "Quality: completeness=%.1f consistency=%.1f accuracy=%.1f duplicates=%d outlier_columns=%d",
            completeness,
            consistency,
            accuracy,
            duplicates,
            len(details),
        )
        return report

    def completeness(self) -> float:
        """Filled cells / (rows x columns) x 100."""
        total = len(self.rows) * len(self.columns)
        if total == 0:
            return 0.0
        filled = sum(len(non_missing(self._values[c])) for c in self.columns)
        return filled / total * 100

    def consistency(self) -> float:
        """Share of columns whose non-null values share one runtime type, x 100."""
        if not self.columns:
            return 0.0
        consistent = 0
        for c in self.columns:
            present = non_missing(self._values[c])
            if present and len({primitive_type(v) for v in present}) == 1:
                consistent += 1
        return consistent / len(self.columns) * 100

    def accuracy(self) -> float:
        """Share of non-null cells that conform to their column type and sit inside the IQR fences, x 100."""
        checked = 0
        accurate = 0
        for c in self.columns:
            present = non_missing(self._values[c])
            col_type = self._types[c]
            bounds = self._fences(c) if col_type == ColumnType.NUMERIC else None
            for v in present:
                checked += 1
                if not conforms_to_type(v, col_type):
                    continue
                if bounds is not None:
                    x = to_number(v)
                    if x is not None and (x < bounds[0] or x > bounds[1]):
                        continue
                accurate += 1
        if checked == 0:
            return 0.0
        return accurate / checked * 100

    def duplicates(self) -> int:
        """Rows minus rows with distinct serialized content."""
        return len(self.rows) - len({row_key(r, self.columns) for r in self.rows})

    def detect_outliers(self) -> list[OutlierDetail]:
        details: list[OutlierDetail] = []
        for c in self.columns:
            if self._types[c] != ColumnType.NUMERIC:
                continue
            bounds = self._fences(c)
            if bounds is None:
                continue
            nums = self._numbers(c)
            count = sum(1 for x in nums if x < bounds[0] or x > bounds[1])
            if count:
                details.append(OutlierDetail(column=c, count=count, lower_bound=bounds[0], upper_bound=bounds[1]))
        return details

    def _numbers(self, column: str) -> list[float]:
        return [x for x in (to_number(v) for v in self._values[column]) if x is not None]

    def _fences(self, column: str) -> Optional[tuple[float, float]]:
        nums = self._numbers(column)
        if len(nums) < MIN_OUTLIER_VALUES:
            return None
        return iqr_bounds(nums)

    # ---- Column profiles ----

    def profile_columns(self) -> list[ColumnProfile]:
        return [self._profile_column(c) for c in self.columns]

    def _profile_column(self, column: str) -> ColumnProfile:
        values = self._values[column]
        present = non_missing(values)

        unique: dict[Any, Any] = {}
        for v in present:
            unique.setdefault(hashable_key(v), v)

        col_type = self._types[column]
        return ColumnProfile(
            name=column,
            type=col_type,
            null_count=len(values) - len(present),
            unique_count=len(unique),
            duplicate_count=len(present) - len(unique),
            sample_values=list(unique.values())[:SAMPLE_VALUES],
            statistics=numeric_statistics(self._numbers(column)) if col_type == ColumnType.NUMERIC else None,
        )


def numeric_statistics(values: Sequence[float]) -> Optional[NumericStatistics]:
    if not values:
        return None
    arr = np.sort(np.asarray(values, dtype=float))
    return NumericStatistics(
        min=float(arr[0]),
        max=float(arr[-1]),
        mean=float(arr.mean()),
        median=float(arr[len(arr) // 2]),
        standard_deviation=float(arr.std()),  # population (ddof=0)
    )


def generate_recommendations(
    completeness: float,
    consistency: float,
    duplicates: int,
    outliers: Sequence[str],
) -> list[str]:
    recommendations: list[str] = []
    if completeness < 90:
        recommendations.append(REC_IMPUTATION)
    if consistency < 95:
        recommendations.append(REC_STANDARDIZE)
    if duplicates > 0:
        recommendations.append(f"Remove {duplicates} duplicate records to improve data quality")
    if outliers:
        recommendations.append(REC_INVESTIGATE_OUTLIERS)
    if not recommendations:
        recommendations.append(REC_ALL_GOOD)
    return recommendations
