from __future__ import annotations

import logging
import re
from pathlib import Path

import pandas as pd

from .models import ColumnType, DataSummary, ParsedData
from .profile.context import is_id_like_name
from .profile.inference import column_values, infer_column_type

logger = logging.getLogger(__name__)

_EVENT_NAME = re.compile(r"event|action|activity|status|type", re.IGNORECASE)
_TIMESTAMP_NAME = re.compile(r"timestamp|date|time|created_at|updated_at", re.IGNORECASE)


def load_csv(csv_path: Path) -> ParsedData:
    """
    Read a CSV into a ParsedData snapshot.

    Summary hints are filled from column names and inferred types:
    id-like names, event-like names, and timestamp columns (by name or by
    a datetime inference).
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Data file not found: {csv_path}")

    df = pd.read_csv(csv_path)
    parsed = ParsedData.from_dataframe(df, file_size=csv_path.stat().st_size)
    summary = summarize_columns(parsed)
    logger.info("Loaded %s: %d rows, %d columns", csv_path.name, parsed.row_count, len(parsed.columns))
    return parsed.model_copy(update={"summary": summary})


def summarize_columns(parsed: ParsedData) -> DataSummary:
    id_columns: list[str] = []
    event_columns: list[str] = []
    timestamp_columns: list[str] = []

    for name in parsed.column_names:
        if is_id_like_name(name):
            id_columns.append(name)
            continue
        if _TIMESTAMP_NAME.search(name) or infer_column_type(column_values(parsed.rows, name)) == ColumnType.DATETIME:
            timestamp_columns.append(name)
        elif _EVENT_NAME.search(name):
            event_columns.append(name)

    return DataSummary(id_columns=id_columns, event_columns=event_columns, timestamp_columns=timestamp_columns)
