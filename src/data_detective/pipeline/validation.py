from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from ..models import ConfidenceLevel, ParsedData
from ..profile.inference import is_missing, row_key

logger = logging.getLogger(__name__)

MIN_ROWS = 10
DUPLICATE_SAMPLE_ROWS = 1000
LARGE_DATASET_ROWS = 100

_GENERIC_NAME = re.compile(r"^(unnamed|column\d+|field\d+)$", re.IGNORECASE)
_TIMESTAMP_NAME = re.compile(r"timestamp|date|time|created_at|updated_at", re.IGNORECASE)
_ID_NAME = re.compile(r"^id$|_id$|identifier", re.IGNORECASE)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    completeness: float = 0.0
    confidence: ConfidenceLevel = ConfidenceLevel.LOW


def validate_parsed_data(parsed: ParsedData) -> ValidationResult:
    """
    Structural and quality gate run before any profiling.

    Errors make the snapshot unusable (zero rows or columns, completeness
    below 50%, duplicate column names, all rows empty); warnings only lower
    the confidence bucket.
    """
    errors: list[str] = []
    warnings: list[str] = []
    names = parsed.column_names
    rows = parsed.rows

    if not names:
        errors.append("No columns found in dataset")
    if not rows:
        errors.append("No rows found in dataset")
    elif len(rows) < 3:
        warnings.append("Dataset has very few rows (< 3), analysis may be limited")
    elif len(rows) < MIN_ROWS:
        warnings.append(f"Dataset has fewer than {MIN_ROWS} rows, analysis may be limited")

    if rows and names:
        inconsistent = sum(1 for r in rows if any(n not in r for n in names))
        if inconsistent:
            warnings.append(f"{inconsistent} rows have inconsistent structure")

    completeness = _check_completeness(parsed, errors, warnings)
    _check_columns(parsed, errors, warnings)
    _check_rows(parsed, errors, warnings)

    confidence = _confidence(errors, warnings)
    if errors or warnings:
        logger.info("Validation finished: %d errors, %d warnings (%s)", len(errors), len(warnings), confidence.value)

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        completeness=completeness,
        confidence=confidence,
    )


def _check_completeness(parsed: ParsedData, errors: list[str], warnings: list[str]) -> float:
    names = parsed.column_names
    if not parsed.rows or not names:
        return 0.0

    total = len(parsed.rows) * len(names)
    empty = sum(1 for r in parsed.rows for n in names if is_missing(r.get(n)))
    completeness = (total - empty) / total * 100.0

    if completeness < 30:
        errors.append(f"Data completeness is critically low: {completeness:.1f}%")
    elif completeness < 50:
        errors.append(f"Data completeness is too low: {completeness:.1f}%")
    elif completeness < 70:
        warnings.append(f"Data completeness could be improved: {completeness:.1f}%")
    elif completeness < 90:
        warnings.append(f"Good data completeness: {completeness:.1f}%")

    empty_columns = [n for n in names if all(is_missing(r.get(n)) for r in parsed.rows)]
    if empty_columns:
        warnings.append(f"{len(empty_columns)} columns are completely empty: {', '.join(empty_columns)}")
    return completeness


def _check_columns(parsed: ParsedData, errors: list[str], warnings: list[str]) -> None:
    names = parsed.column_names
    if not names:
        return

    seen: set[str] = set()
    dupes: list[str] = []
    for n in names:
        if n in seen and n not in dupes:
            dupes.append(n)
        seen.add(n)
    if dupes:
        errors.append(f"Duplicate column names found: {', '.join(dupes)}")

    generic = [n for n in names if _GENERIC_NAME.match(n.strip())]
    if generic:
        warnings.append(f"Found columns with generic names: {', '.join(generic)}")

    hinted = bool(parsed.summary.timestamp_columns)
    if not hinted and not any(_TIMESTAMP_NAME.search(n) for n in names):
        warnings.append("No timestamp column detected, time-based analysis will be limited")

    has_id = bool(parsed.summary.id_columns) or any(_ID_NAME.search(n) for n in names)
    if not has_id and len(parsed.rows) > LARGE_DATASET_ROWS:
        warnings.append("No ID column detected in large dataset, consider adding unique identifiers")


def _check_rows(parsed: ParsedData, errors: list[str], warnings: list[str]) -> None:
    rows = parsed.rows
    if not rows:
        return

    empty_rows = sum(1 for r in rows if all(is_missing(v) for v in r.values()))
    if empty_rows == len(rows):
        errors.append("All rows are empty")
    elif empty_rows:
        warnings.append(f"{empty_rows} completely empty rows found")

    sample = rows[:DUPLICATE_SAMPLE_ROWS]
    names = parsed.column_names or None
    distinct = len({row_key(r, names) for r in sample})
    if distinct < len(sample):
        warnings.append(f"Found {len(sample) - distinct} duplicate rows in sample of {len(sample)} rows")


def _confidence(errors: list[str], warnings: list[str]) -> ConfidenceLevel:
    if errors or len(warnings) > 4:
        return ConfidenceLevel.LOW
    if warnings:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.HIGH
