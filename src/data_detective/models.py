from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field


class ColumnType(str, Enum):
    """Closed set of column types used by profiling and quality reporting."""

    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    DATETIME = "datetime"
    TEXT = "text"
    BOOLEAN = "boolean"


class ColumnDescriptor(BaseModel):
    """Column metadata as delivered by the file-parsing collaborator."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "text"
    samples: list[Any] = Field(default_factory=list)


class DataSummary(BaseModel):
    """Parser hints: candidate id / event / timestamp columns."""

    model_config = ConfigDict(frozen=True)

    id_columns: list[str] = Field(default_factory=list)
    event_columns: list[str] = Field(default_factory=list)
    timestamp_columns: list[str] = Field(default_factory=list)


class ParsedData(BaseModel):
    """
    Normalized in-memory tabular dataset.

    Treated as an immutable snapshot for the duration of a pipeline run.
    row_count / file_size are reported by the parser and may differ from
    len(rows) when the parser truncated the data.
    """

    model_config = ConfigDict(frozen=True)

    columns: list[ColumnDescriptor] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    file_size: int = 0
    summary: DataSummary = Field(default_factory=DataSummary)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, *, file_size: int = 0, sample_size: int = 5) -> "ParsedData":
        """Build a snapshot from a DataFrame (NaN/NaT become None)."""
        records: list[dict[str, Any]] = []
        for rec in df.to_dict(orient="records"):
            records.append({str(k): _none_if_nan(v) for k, v in rec.items()})

        columns = []
        for col in df.columns:
            s = df[col]
            samples = [_none_if_nan(v) for v in s.dropna().head(sample_size).tolist()]
            columns.append(ColumnDescriptor(name=str(col), type=str(s.dtype), samples=samples))

        return cls(columns=columns, rows=records, row_count=len(records), file_size=file_size)


def _none_if_nan(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (list, tuple, dict)):
        return value
    try:
        if value is pd.NaT or bool(pd.isna(value)):
            return None
    except (TypeError, ValueError):
        pass
    return value


class NumericStatistics(BaseModel):
    min: float
    max: float
    mean: float
    median: float
    standard_deviation: float


class ColumnProfile(BaseModel):
    """Per-column profile for human-facing quality summaries."""

    name: str
    type: ColumnType
    null_count: int
    unique_count: int
    duplicate_count: int
    sample_values: list[Any] = Field(default_factory=list)
    statistics: Optional[NumericStatistics] = None


class OutlierDetail(BaseModel):
    column: str
    count: int
    lower_bound: float
    upper_bound: float


class DataQualityReport(BaseModel):
    """
    Deeper statistical report (percentages in [0, 100]).

    outliers holds one human-readable count string per affected column;
    outlier_details carries the same information in structured form.
    """

    completeness: float
    consistency: float
    accuracy: float
    duplicates: int
    outliers: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    is_valid: bool = True
    outlier_details: list[OutlierDetail] = Field(default_factory=list)
    column_profiles: list[ColumnProfile] = Field(default_factory=list)


class QualityAxes(BaseModel):
    """Lightweight quality axes, each in [0, 1]."""

    completeness: float = Field(default=0.0, ge=0.0, le=1.0)
    consistency: float = Field(default=0.0, ge=0.0, le=1.0)
    uniqueness: float = Field(default=0.0, ge=0.0, le=1.0)
    validity: float = Field(default=0.0, ge=0.0, le=1.0)

    def mean(self) -> float:
        return (self.completeness + self.consistency + self.uniqueness + self.validity) / 4.0


class DataInsights(BaseModel):
    """Derived profile feeding provider selection and confidence scoring."""

    row_count: int = 0
    column_count: int = 0
    column_types: list[ColumnType] = Field(default_factory=list)
    sample_data: list[dict[str, Any]] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)
    data_quality: QualityAxes = Field(default_factory=QualityAxes)


class AnalysisContext(BaseModel):
    """The question being asked and where the data came from."""

    question: str
    file_types: list[str] = Field(default_factory=list)
    data_source: str = "file"  # "file" | "database" | "mixed"


class Message(BaseModel):
    role: str  # "system" | "user" | "assistant"
    content: str


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class ProviderResponse(BaseModel):
    """Shape returned by the external provider call."""

    content: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str = ""


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ConfidenceFactors(BaseModel):
    provider_reliability: float
    data_quality: float
    response_depth: float
    context_relevance: float
    analysis_complexity: float


class ConfidenceScore(BaseModel):
    value: float = Field(ge=0.0, le=1.0)
    level: ConfidenceLevel
    description: str
    factors: ConfidenceFactors
    recommendations: list[str] = Field(default_factory=list)


class AnalysisAnswer(BaseModel):
    """Final assembled answer returned to the analyst."""

    question: str
    answer: str
    provider: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[TokenUsage] = None
    confidence: Optional[ConfidenceScore] = None
    sources: list[str] = Field(default_factory=list)
    data_context: dict[str, Any] = Field(default_factory=dict)
