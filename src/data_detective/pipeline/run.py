from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ..confidence import ConfidenceCalculator
from ..config import Settings
from ..errors import (
    CredentialsMissingError,
    InvalidDataError,
    ProviderError,
    StageInputError,
    format_error,
    is_retryable,
)
from ..models import (
    AnalysisAnswer,
    AnalysisContext,
    ConfidenceLevel,
    DataInsights,
    DataQualityReport,
    ParsedData,
    ProviderResponse,
)
from ..profile import DataQualityAnalyzer, analyze_data_context
from ..providers import ProviderCaller, ProviderDescriptor, ProviderKind, ProviderManager, SdkProviderCaller
from ..providers.prompts import build_messages
from ..utils import now_iso
from .context import RunContext
from .stages import StageName, StageSpec, StageState, StageStatus
from .validation import validate_parsed_data

logger = logging.getLogger(__name__)

NO_CREDENTIALS_ANSWER = "No AI provider is configured. Add an API key for at least one provider to get an answer."
NO_RESPONSE_ANSWER = "The AI provider did not return an answer. See the failed stages for details."


class PipelineConfig(BaseModel):
    """Run configuration. Negative max_retries is rejected at construction."""

    model_config = ConfigDict(frozen=True)

    enable_error_recovery: bool = True
    max_retries: int = Field(default=3, ge=0)
    backoff_base_seconds: float = Field(default=1.0, ge=0.0)
    provider_timeout_seconds: float = Field(default=30.0, gt=0.0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            enable_error_recovery=settings.enable_error_recovery,
            max_retries=settings.max_retries,
            backoff_base_seconds=settings.backoff_base_seconds,
            provider_timeout_seconds=settings.provider_timeout_seconds,
        )

    def backoff_delay(self, retry: int) -> float:
        """Delay before retry number `retry` (1-based): base * 2**(retry - 1)."""
        return self.backoff_base_seconds * (2 ** (retry - 1))


class RunStatus(str, Enum):
    COMPLETED = "completed"
    DEGRADED = "degraded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PipelineRun(BaseModel):
    run_id: str
    question: str
    status: RunStatus
    stages: list[StageState]
    failed_stage_count: int = 0
    summary: str = ""
    requires_credentials: bool = False
    config: PipelineConfig
    insights: Optional[DataInsights] = None
    quality_report: Optional[DataQualityReport] = None
    answer: Optional[AnalysisAnswer] = None
    validation_warnings: list[str] = Field(default_factory=list)
    started_at: str
    finished_at: str

    def stage(self, name: StageName | str) -> StageState:
        key = StageName(name)
        for s in self.stages:
            if s.name == key:
                return s
        raise KeyError(f"No stage named '{key.value}'")


# ---- Stage handlers ----


def validate_stage(ctx: RunContext) -> str:
    result = validate_parsed_data(ctx.parsed)
    ctx.validation = result
    if not result.is_valid:
        raise InvalidDataError(f"Validation failed: {', '.join(result.errors)}")
    if result.confidence == ConfidenceLevel.LOW:
        logger.warning("Data quality is low, analysis results may be unreliable")
    return f"{result.confidence.value} confidence, {len(result.warnings)} warnings"


def profile_stage(ctx: RunContext) -> str:
    rows = ctx.parsed.rows
    columns = ctx.parsed.column_names or None
    ctx.insights = analyze_data_context(rows, columns, ctx.question)
    ctx.quality_report = DataQualityAnalyzer(rows, columns).analyze_data_quality()
    return f"{ctx.insights.column_count} columns, {len(ctx.insights.patterns)} patterns"


def select_provider_stage(ctx: RunContext) -> str:
    ctx.provider = ctx.providers.get_best_provider(ctx.question)
    if ctx.provider is None:
        ctx.requires_credentials = True
        return "no provider configured"
    ctx.requires_credentials = False
    return f"{ctx.provider.kind.value} ({ctx.provider.default_model})"


def call_provider_stage(ctx: RunContext) -> str:
    if ctx.provider is None:
        raise CredentialsMissingError("No AI provider configured; an API key is required")
    api_key = ctx.providers.get_api_key(ctx.provider.kind)
    if not api_key:
        raise CredentialsMissingError(f"Credential for provider '{ctx.provider.kind.value}' is no longer set")

    insights = ctx.insights or DataInsights(row_count=len(ctx.parsed.rows), column_count=len(ctx.parsed.columns))
    try:
        ctx.response = _call(ctx, ctx.provider, api_key, insights)
    except ProviderError as e:
        if e.retryable:
            raise
        fallback = ctx.providers.get_fallback_provider(ctx.provider.kind)
        fallback_key = ctx.providers.get_api_key(fallback.kind) if fallback is not None else None
        if fallback is None or not fallback_key:
            raise
        logger.warning(
            "Provider '%s' failed with %s; falling back to '%s'",
            ctx.provider.kind.value,
            e.code,
            fallback.kind.value,
        )
        ctx.response = _call(ctx, fallback, fallback_key, insights)
        ctx.fallback_from = ctx.provider.kind.value
        ctx.provider = fallback

    output = f"{len(ctx.response.content)} chars from {ctx.response.model or ctx.provider.default_model}"
    if ctx.fallback_from:
        output += f" (fallback from {ctx.fallback_from})"
    return output


def _call(ctx: RunContext, provider: ProviderDescriptor, api_key: str, insights: DataInsights) -> ProviderResponse:
    messages = build_messages(ctx.analysis, insights, provider.kind)
    return ctx.caller(provider, messages, api_key=api_key, timeout=ctx.config.provider_timeout_seconds)


def score_confidence_stage(ctx: RunContext) -> str:
    if ctx.response is None or ctx.provider is None:
        raise StageInputError("No provider response to score")
    if ctx.insights is None:
        raise StageInputError("No data profile to score against")
    ctx.confidence = ConfidenceCalculator().score(ctx.response, ctx.analysis, ctx.insights, ctx.provider.kind)
    return f"{ctx.confidence.value:.2f} ({ctx.confidence.level.value})"


def assemble_stage(ctx: RunContext) -> str:
    provider = ctx.provider
    response = ctx.response

    sources = ["Uploaded data"]
    if provider is not None and provider.kind == ProviderKind.SEARCH and response is not None:
        sources.append("Real-time data")

    if response is not None:
        text = response.content
    elif ctx.requires_credentials:
        text = NO_CREDENTIALS_ANSWER
    else:
        text = NO_RESPONSE_ANSWER

    data_context: dict[str, object] = {
        "row_count": ctx.parsed.row_count or len(ctx.parsed.rows),
        "column_count": len(ctx.parsed.columns),
    }
    if ctx.insights is not None:
        data_context["patterns"] = list(ctx.insights.patterns)
        data_context["quality_score"] = round(ctx.insights.data_quality.mean(), 4)
    if ctx.fallback_from and response is not None:
        data_context["fallback_from"] = ctx.fallback_from

    ctx.answer = AnalysisAnswer(
        question=ctx.question,
        answer=text,
        provider=provider.kind.value if provider is not None and response is not None else None,
        model=(response.model or provider.default_model) if provider is not None and response is not None else None,
        usage=response.usage if response is not None else None,
        confidence=ctx.confidence,
        sources=sources,
        data_context=data_context,
    )
    return "answer assembled" if response is not None else "fallback answer assembled"


DEFAULT_STAGES: tuple[StageSpec, ...] = (
    StageSpec(StageName.VALIDATE, validate_stage, blocking=True),
    StageSpec(StageName.PROFILE, profile_stage),
    StageSpec(StageName.SELECT_PROVIDER, select_provider_stage),
    StageSpec(StageName.CALL_PROVIDER, call_provider_stage),
    StageSpec(StageName.SCORE_CONFIDENCE, score_confidence_stage),
    StageSpec(StageName.ASSEMBLE, assemble_stage),
)


class PipelineManager:
    """
    Runs the declared stages in order with retry and partial-failure handling.

    A failed stage goes back to pending while error recovery is on, the
    error is retryable, and fewer than max_retries retries have been used;
    the delay before retry k is backoff_base_seconds * 2**(k - 1). A stage
    that stays failed aborts the run when it is blocking (or when recovery
    is off); otherwise the next stage runs. Stage exceptions never escape
    run_pipeline.

    Every run_pipeline call works on a fresh RunContext with its own run
    id, so repeated runs never see each other's outputs. `run_id` names
    the first run only. `should_continue` is polled before each stage;
    when it returns False the run stops as cancelled and the remaining
    stages stay pending.
    """

    def __init__(
        self,
        parsed: ParsedData,
        question: str,
        providers: Optional[ProviderManager] = None,
        *,
        config: Optional[PipelineConfig] = None,
        caller: Optional[ProviderCaller] = None,
        sleep: Callable[[float], None] = time.sleep,
        file_types: Sequence[str] = (),
        stages: Optional[Sequence[StageSpec]] = None,
        run_id: Optional[str] = None,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.stages = tuple(stages) if stages is not None else DEFAULT_STAGES
        self.parsed = parsed
        self.analysis = AnalysisContext(question=question, file_types=list(file_types))
        self.providers = providers if providers is not None else ProviderManager()
        self.caller = caller or SdkProviderCaller()
        self.should_continue = should_continue
        self._sleep = sleep
        self._next_run_id = run_id
        self.context: Optional[RunContext] = None

    def new_context(self) -> RunContext:
        run_id, self._next_run_id = self._next_run_id, None
        return RunContext.create(
            parsed=self.parsed,
            analysis=self.analysis,
            providers=self.providers,
            caller=self.caller,
            config=self.config,
            run_id=run_id,
        )

    def run_pipeline(self) -> PipelineRun:
        ctx = self.context = self.new_context()
        started_at = now_iso()
        states = [spec.new_state() for spec in self.stages]
        aborted = False
        cancelled = False

        logger.info("Pipeline %s started (%d stages)", ctx.run_id, len(states))
        for spec, state in zip(self.stages, states):
            if self.should_continue is not None and not self.should_continue():
                logger.warning("Pipeline %s cancelled before stage '%s'", ctx.run_id, spec.name.value)
                cancelled = True
                break
            self._execute(ctx, spec, state)
            if state.status != StageStatus.FAILED:
                continue
            if spec.blocking:
                logger.error("Blocking stage '%s' failed; aborting run", spec.name.value)
                aborted = True
                break
            if not self.config.enable_error_recovery:
                logger.error("Stage '%s' failed with error recovery disabled; aborting run", spec.name.value)
                aborted = True
                break

        failed = sum(1 for s in states if s.status == StageStatus.FAILED)
        if cancelled:
            status = RunStatus.CANCELLED
        elif aborted:
            status = RunStatus.FAILED
        elif failed == 0 and all(s.status == StageStatus.COMPLETED for s in states):
            status = RunStatus.COMPLETED
        else:
            status = RunStatus.DEGRADED

        summary = f"{status.value}: {failed} of {len(states)} stages failed"
        logger.info("Pipeline %s finished: %s", ctx.run_id, summary)

        return PipelineRun(
            run_id=ctx.run_id,
            question=ctx.question,
            status=status,
            stages=states,
            failed_stage_count=failed,
            summary=summary,
            requires_credentials=ctx.requires_credentials,
            config=self.config,
            insights=ctx.insights,
            quality_report=ctx.quality_report,
            answer=ctx.answer,
            validation_warnings=list(ctx.validation.warnings) if ctx.validation else [],
            started_at=started_at,
            finished_at=now_iso(),
        )

    def _execute(self, ctx: RunContext, spec: StageSpec, state: StageState) -> None:
        while True:
            state.start()
            logger.info("Stage '%s' running (attempt %d)", spec.name.value, state.attempts)
            t0 = time.perf_counter()
            try:
                output = spec.handler(ctx)
            except Exception as e:  # noqa: BLE001
                elapsed = (time.perf_counter() - t0) * 1000.0
                state.fail(format_error(e), retryable=is_retryable(e), duration_ms=elapsed)
                logger.warning("Stage '%s' failed on attempt %d: %s", spec.name.value, state.attempts, state.error)
                if not self._may_retry(state):
                    return
                delay = self.config.backoff_delay(state.attempts)
                state.reset_for_retry(delay)
                logger.info("Retrying stage '%s' in %.2fs", spec.name.value, delay)
                self._sleep(delay)
                continue

            state.complete(output, duration_ms=(time.perf_counter() - t0) * 1000.0)
            logger.info("Stage '%s' completed: %s", spec.name.value, output)
            return

    def _may_retry(self, state: StageState) -> bool:
        return (
            self.config.enable_error_recovery
            and state.retryable
            and state.retries_used < self.config.max_retries
        )


def run_pipeline(
    parsed: ParsedData,
    question: str,
    providers: Optional[ProviderManager] = None,
    *,
    config: Optional[PipelineConfig] = None,
    caller: Optional[ProviderCaller] = None,
    sleep: Callable[[float], None] = time.sleep,
    file_types: Sequence[str] = (),
    should_continue: Optional[Callable[[], bool]] = None,
) -> PipelineRun:
    """Convenience entrypoint: build a PipelineManager and run it once."""
    manager = PipelineManager(
        parsed,
        question,
        providers,
        config=config,
        caller=caller,
        sleep=sleep,
        file_types=file_types,
        should_continue=should_continue,
    )
    return manager.run_pipeline()
