from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Sequence

import numpy as np

from ..models import ColumnType, DataInsights, QualityAxes
from ..utils import tokenize
from .inference import (
    column_values,
    conforms_to_type,
    hashable_key,
    infer_column_type,
    iqr_bounds,
    is_missing,
    non_missing,
    primitive_type,
    row_key,
    to_number,
)

logger = logging.getLogger(__name__)

HIGH_MISSING_FRACTION = 0.10
NEAR_UNIQUE_RATIO = 0.95
SKEW_RATIO = 0.1
_NO_DATA_PATTERN = "No data available for analysis"


def analyze_data_context(
    rows: Optional[Sequence[dict[str, Any]]],
    column_names: Optional[Sequence[str]] = None,
    question: str = "",
) -> DataInsights:
    """Build the lightweight DataInsights profile for a dataset.

    Never raises on empty input: no rows or no columns yields a zero-valued
    report with a single "no data" pattern.
    """

    rows = list(rows or [])
    columns = _resolve_columns(rows, column_names)
    if not rows or not columns:
        return DataInsights(patterns=[_NO_DATA_PATTERN])

    values_by_col = {c: column_values(rows, c) for c in columns}
    types = [infer_column_type(values_by_col[c]) for c in columns]

    insights = DataInsights(
        row_count=len(rows),
        column_count=len(columns),
        column_types=types,
        sample_data=[dict(r) for r in rows[:3]],
        patterns=identify_patterns(values_by_col, types, question=question),
        data_quality=assess_quality(rows, columns, values_by_col, types),
    )
    logger.debug(
        "Profiled %d rows x %d columns (%d patterns)",
        insights.row_count,
        insights.column_count,
        len(insights.patterns),
    )
    return insights


def _resolve_columns(rows: Sequence[dict[str, Any]], column_names: Optional[Sequence[str]]) -> list[str]:
    if column_names:
        return [str(c) for c in column_names]
    seen: dict[str, None] = {}
    for row in rows:
        for k in row.keys():
            seen.setdefault(str(k), None)
    return list(seen)


# ---- Patterns ----


def identify_patterns(
    values_by_col: dict[str, list[Any]],
    types: Sequence[ColumnType],
    *,
    question: str = "",
) -> list[str]:
    columns = list(values_by_col)
    patterns: list[str] = []

    patterns.extend(_missing_patterns(values_by_col))

    id_cols = [c for c, t in zip(columns, types) if _is_identifier(c, values_by_col[c], t)]
    if id_cols:
        patterns.append(f"Unique identifier columns detected: {', '.join(id_cols)}")

    temporal = [c for c, t in zip(columns, types) if t == ColumnType.DATETIME]
    if temporal:
        patterns.append(f"Time-series data available in: {', '.join(temporal)}")

    numeric = [c for c, t in zip(columns, types) if t == ColumnType.NUMERIC and c not in id_cols]
    if len(numeric) >= 2:
        patterns.append(f"Correlation analysis possible between {len(numeric)} numeric columns")

    for col in numeric:
        patterns.extend(_distribution_patterns(col, values_by_col[col]))

    focus = _question_columns(question, columns)
    if focus:
        patterns.append(f"Question references columns: {', '.join(focus)}")

    return patterns


def _missing_patterns(values_by_col: dict[str, list[Any]]) -> list[str]:
    high: list[str] = []
    minor: list[str] = []
    for col, values in values_by_col.items():
        if not values:
            continue
        fraction = sum(1 for v in values if is_missing(v)) / len(values)
        if fraction > HIGH_MISSING_FRACTION:
            high.append(f"{col} ({fraction * 100:.1f}%)")
        elif fraction > 0:
            minor.append(col)

    if not high and not minor:
        return ["Complete dataset: No missing values detected"]

    out: list[str] = []
    if high:
        out.append(f"High missing data (>10%) in: {', '.join(high)}")
    if minor:
        out.append(f"Minor missing data in: {', '.join(minor)}")
    return out


def is_id_like_name(name: str) -> bool:
    lower = name.strip().lower()
    if lower in {"id", "key", "uuid", "guid"}:
        return True
    if lower.endswith(("_id", "-id", " id", "_key", "_uuid")) or lower.startswith("id_"):
        return True
    if "identifier" in lower:
        return True
    # CamelCase: CustomerID, OrderId
    return name.endswith(("ID", "Id")) and len(name) > 2


def _is_identifier(name: str, values: Sequence[Any], column_type: ColumnType) -> bool:
    if is_id_like_name(name):
        return True

    present = non_missing(values)
    if len(present) < 5:
        return False
    if column_type == ColumnType.NUMERIC:
        nums = [to_number(v) for v in present]
        if any(x is None or not float(x).is_integer() for x in nums):
            return False
    elif column_type != ColumnType.TEXT:
        return False
    return len({hashable_key(v) for v in present}) / len(present) > NEAR_UNIQUE_RATIO


def _distribution_patterns(col: str, values: Iterable[Any]) -> list[str]:
    nums = [x for x in (to_number(v) for v in values) if x is not None]
    if len(nums) < 5:
        return []

    out: list[str] = []
    lower, upper = iqr_bounds(nums)
    outliers = sum(1 for x in nums if x < lower or x > upper)
    if outliers:
        out.append(f"Potential outliers detected in {col}: {outliers} values")

    s = sorted(nums)
    spread = s[-1] - s[0]
    if spread > 0:
        mean = float(np.mean(nums))
        median = s[len(s) // 2]
        if abs(mean - median) / spread > SKEW_RATIO:
            side = "right" if mean > median else "left"
            out.append(f"{col} shows {side}-skewed distribution")
    return out


def _question_columns(question: str, columns: Sequence[str]) -> list[str]:
    q = tokenize(question or "")
    if not q:
        return []
    return [c for c in columns if tokenize(c) & q]


# ---- Quality axes ----


def assess_quality(
    rows: Sequence[dict[str, Any]],
    columns: Sequence[str],
    values_by_col: dict[str, list[Any]],
    types: Sequence[ColumnType],
) -> QualityAxes:
    total_cells = len(rows) * len(columns)
    if total_cells == 0:
        return QualityAxes()

    filled = 0
    valid = 0
    consistent_columns = 0
    for col, col_type in zip(columns, types):
        present = non_missing(values_by_col[col])
        filled += len(present)
        # Missing cells do not count against validity.
        valid += len(values_by_col[col]) - len(present)
        valid += sum(1 for v in present if conforms_to_type(v, col_type))
        if present and len({primitive_type(v) for v in present}) == 1:
            consistent_columns += 1

    distinct_rows = len({row_key(row, columns) for row in rows})

    return QualityAxes(
        completeness=_unit(filled / total_cells),
        consistency=_unit(consistent_columns / len(columns)),
        uniqueness=_unit(distinct_rows / len(rows)),
        validity=_unit(valid / total_cells),
    )


def _unit(x: float) -> float:
    return min(max(float(x), 0.0), 1.0)
