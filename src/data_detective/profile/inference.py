from __future__ import annotations

import json
import math
from datetime import date, datetime
from typing import Any, Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from ..models import ColumnType

BOOLEAN_TOKENS = frozenset({"true", "false", "yes", "no", "1", "0"})

# Share of non-null values that must agree before a column takes a type.
TYPE_THRESHOLD = 0.8
CATEGORICAL_UNIQUE_RATIO = 0.3


def is_missing(value: Any) -> bool:
    """None, NaN/NaT/NA and the empty string count as missing."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, float):
        return math.isnan(value)
    try:
        return bool(pd.isna(value)) if np.ndim(value) == 0 else False
    except (TypeError, ValueError):
        return False


def is_boolean_like(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return True
    if isinstance(value, (int, np.integer)):
        return int(value) in (0, 1)
    if isinstance(value, str):
        return value.strip().lower() in BOOLEAN_TOKENS
    return False


def to_number(value: Any) -> Optional[float]:
    """Finite float for numbers and numeric strings; booleans are not numbers."""
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        f = float(value)
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            f = float(s)
        except ValueError:
            return None
    else:
        return None
    return f if math.isfinite(f) else None


# pd.Timestamp resolves these against the wall clock.
RELATIVE_DATE_WORDS = frozenset({"now", "today", "tomorrow", "yesterday", "noon", "midnight"})


def to_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Parse a date-like value. Plain numbers never count as dates."""
    if isinstance(value, (bool, np.bool_, int, float, np.integer, np.floating)):
        return None
    if isinstance(value, (pd.Timestamp, datetime, date, np.datetime64)):
        ts = pd.Timestamp(value)
        return None if pd.isna(ts) else ts
    if not isinstance(value, str):
        return None
    s = value.strip()
    # Short tokens ("2021", "Q1") parse as dates far too eagerly.
    if len(s) <= 4 or s.lower() in RELATIVE_DATE_WORDS:
        return None
    try:
        ts = pd.Timestamp(s)
    except (ValueError, TypeError, OverflowError):
        return None
    return None if pd.isna(ts) else ts


def primitive_type(value: Any) -> str:
    """Runtime type family of a value, used for consistency checks."""
    if isinstance(value, (bool, np.bool_)):
        return "boolean"
    if isinstance(value, (int, float, np.integer, np.floating)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (pd.Timestamp, datetime, date, np.datetime64)):
        return "datetime"
    return "object"


def hashable_key(value: Any) -> Any:
    try:
        hash(value)
        return value
    except TypeError:
        return json.dumps(value, sort_keys=True, default=str)


def row_key(row: dict[str, Any], columns: Optional[Sequence[str]] = None) -> str:
    """Serialized full-row content used for duplicate detection.

    With `columns`, values are taken in that order, so rows holding the same
    values under a different key order serialize identically.
    """
    if columns is not None:
        row = {c: row.get(c) for c in columns}
    return json.dumps(row, default=str)


def non_missing(values: Iterable[Any]) -> list[Any]:
    return [v for v in values if not is_missing(v)]


def column_values(rows: Sequence[dict[str, Any]], column: str) -> list[Any]:
    return [row.get(column) for row in rows]


def infer_column_type(values: Sequence[Any]) -> ColumnType:
    """
    Classify a column from its values.

    Order matters: boolean tokens ("1"/"0") would otherwise classify as
    numeric, and numeric strings as dates.
    """
    present = non_missing(values)
    if not present:
        return ColumnType.TEXT

    n = len(present)
    if sum(1 for v in present if is_boolean_like(v)) / n > TYPE_THRESHOLD:
        return ColumnType.BOOLEAN
    if sum(1 for v in present if to_number(v) is not None) / n > TYPE_THRESHOLD:
        return ColumnType.NUMERIC
    if sum(1 for v in present if to_timestamp(v) is not None) / n > TYPE_THRESHOLD:
        return ColumnType.DATETIME

    unique_ratio = len({hashable_key(v) for v in present}) / n
    if unique_ratio < CATEGORICAL_UNIQUE_RATIO:
        return ColumnType.CATEGORICAL
    return ColumnType.TEXT


def conforms_to_type(value: Any, column_type: ColumnType) -> bool:
    if column_type == ColumnType.BOOLEAN:
        return is_boolean_like(value)
    if column_type == ColumnType.NUMERIC:
        return to_number(value) is not None
    if column_type == ColumnType.DATETIME:
        return to_timestamp(value) is not None
    return True


def iqr_bounds(values: Sequence[float]) -> tuple[float, float]:
    """
    Tukey fences using index-based quartiles on the sorted values:
    Q1 = sorted[floor(n*0.25)], Q3 = sorted[floor(n*0.75)].
    """
    s = sorted(values)
    n = len(s)
    q1 = s[math.floor(n * 0.25)]
    q3 = s[math.floor(n * 0.75)]
    iqr = q3 - q1
    return q1 - 1.5 * iqr, q3 + 1.5 * iqr
