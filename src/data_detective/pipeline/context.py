from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..models import (
    AnalysisAnswer,
    AnalysisContext,
    ConfidenceScore,
    DataInsights,
    DataQualityReport,
    ParsedData,
    ProviderResponse,
)
from ..providers import ProviderCaller, ProviderDescriptor, ProviderManager
from .validation import ValidationResult

if TYPE_CHECKING:
    from .run import PipelineConfig


@dataclass
class RunContext:
    """Inputs of one pipeline run plus the outputs each stage leaves for the next.

    The ParsedData snapshot and the question are never modified; the
    credential scope arrives through the ProviderManager.
    """

    parsed: ParsedData
    analysis: AnalysisContext
    providers: ProviderManager
    caller: ProviderCaller
    config: "PipelineConfig"
    run_id: str

    validation: Optional[ValidationResult] = None
    insights: Optional[DataInsights] = None
    quality_report: Optional[DataQualityReport] = None
    provider: Optional[ProviderDescriptor] = None
    fallback_from: Optional[str] = None
    requires_credentials: bool = False
    response: Optional[ProviderResponse] = None
    confidence: Optional[ConfidenceScore] = None
    answer: Optional[AnalysisAnswer] = None

    @classmethod
    def create(
        cls,
        *,
        parsed: ParsedData,
        analysis: AnalysisContext,
        providers: ProviderManager,
        caller: ProviderCaller,
        config: "PipelineConfig",
        run_id: str | None = None,
    ) -> "RunContext":
        return cls(
            parsed=parsed,
            analysis=analysis,
            providers=providers,
            caller=caller,
            config=config,
            run_id=run_id or str(uuid.uuid4()),
        )

    @property
    def question(self) -> str:
        return self.analysis.question
