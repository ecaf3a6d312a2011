"""Profile stage.

Two independent views of a dataset: the lightweight DataInsights profile
that feeds provider selection and confidence scoring, and the deeper
DataQualityReport for human-facing summaries.
"""

from .context import analyze_data_context
from .inference import infer_column_type
from .quality import DataQualityAnalyzer

__all__ = ["DataQualityAnalyzer", "analyze_data_context", "infer_column_type"]
