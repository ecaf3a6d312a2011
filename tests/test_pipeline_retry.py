from __future__ import annotations

import pytest

from data_detective.errors import InvalidStageTransition, ProviderError
from data_detective.models import ColumnDescriptor, ParsedData, ProviderResponse, TokenUsage
from data_detective.pipeline import (
    PipelineConfig,
    PipelineManager,
    RunStatus,
    StageName,
    StageSpec,
    StageState,
    StageStatus,
    run_pipeline,
)
from data_detective.providers import ProviderManager


class FlakyCaller:
    """Fails the first `failures` calls, then answers."""

    def __init__(self, failures: int = 0, *, code: str = "RATE_LIMITED", retryable: bool = True) -> None:
        self.failures = failures
        self.code = code
        self.retryable = retryable
        self.calls = 0
        self.timeouts: list[float] = []

    def __call__(self, provider, messages, *, api_key, timeout):
        self.calls += 1
        self.timeouts.append(timeout)
        if self.calls <= self.failures:
            raise ProviderError("provider hiccup", code=self.code, provider=provider.name, retryable=self.retryable)
        return ProviderResponse(
            content="The average amount is 12.0; the North region shows an upward trend.",
            usage=TokenUsage(input_tokens=100, output_tokens=20, total_tokens=120),
            model="fake-model",
        )


def _parsed() -> ParsedData:
    rows = [
        {"order_id": f"O{i}", "order_date": f"2024-03-{i + 1:02d}", "amount": 10.0 + i % 5, "region": ["North", "South"][i % 2]}
        for i in range(20)
    ]
    names = ["order_id", "order_date", "amount", "region"]
    return ParsedData(columns=[ColumnDescriptor(name=n) for n in names], rows=rows, row_count=len(rows))


def _providers() -> ProviderManager:
    pm = ProviderManager()
    pm.set_api_key("general", "sk-test")
    return pm


def test_stage_failing_twice_then_succeeding_completes_with_three_attempts() -> None:
    sleeps: list[float] = []
    caller = FlakyCaller(failures=2)
    run = run_pipeline(
        _parsed(),
        "What is the average amount?",
        _providers(),
        config=PipelineConfig(max_retries=2, backoff_base_seconds=1.0),
        caller=caller,
        sleep=sleeps.append,
    )

    call = run.stage(StageName.CALL_PROVIDER)
    assert call.status == StageStatus.COMPLETED
    assert call.attempts == 3
    assert len(call.errors) == 2
    assert run.status == RunStatus.COMPLETED
    assert run.failed_stage_count == 0

    # Exponential backoff, strictly increasing.
    assert sleeps == [1.0, 2.0]
    assert call.backoff_delays == sleeps


def test_stage_failing_every_attempt_fails_and_run_continues() -> None:
    sleeps: list[float] = []
    run = run_pipeline(
        _parsed(),
        "What is the average amount?",
        _providers(),
        config=PipelineConfig(max_retries=2, backoff_base_seconds=0.5),
        caller=FlakyCaller(failures=99),
        sleep=sleeps.append,
    )

    call = run.stage("call_provider")
    assert call.status == StageStatus.FAILED
    assert call.attempts == 3
    assert call.error.startswith("ProviderError: ")
    assert sleeps == [0.5, 1.0]

    # Later stages still ran.
    assert run.stage("score_confidence").status == StageStatus.FAILED
    assert run.stage("assemble").status == StageStatus.COMPLETED
    assert run.status == RunStatus.DEGRADED
    assert run.failed_stage_count == 2
    assert run.summary == "degraded: 2 of 6 stages failed"
    assert run.answer is not None and run.answer.provider is None


def test_non_retryable_errors_are_not_retried() -> None:
    sleeps: list[float] = []
    caller = FlakyCaller(failures=99, code="INVALID_API_KEY", retryable=False)
    run = run_pipeline(
        _parsed(),
        "q",
        _providers(),
        config=PipelineConfig(max_retries=3),
        caller=caller,
        sleep=sleeps.append,
    )
    assert run.stage("call_provider").attempts == 1
    assert caller.calls == 1
    assert sleeps == []


def test_negative_max_retries_is_rejected() -> None:
    with pytest.raises(ValueError):
        PipelineConfig(max_retries=-1)


def test_recovery_disabled_stops_at_first_failure() -> None:
    sleeps: list[float] = []
    run = run_pipeline(
        _parsed(),
        "q",
        _providers(),
        config=PipelineConfig(enable_error_recovery=False, max_retries=3),
        caller=FlakyCaller(failures=1),
        sleep=sleeps.append,
    )
    assert run.status == RunStatus.FAILED
    assert run.stage("call_provider").attempts == 1
    assert run.stage("score_confidence").status == StageStatus.PENDING
    assert run.stage("assemble").status == StageStatus.PENDING
    assert sleeps == []


def test_missing_credentials_degrade_instead_of_crashing() -> None:
    caller = FlakyCaller()
    run = run_pipeline(_parsed(), "q", ProviderManager(), caller=caller, sleep=lambda s: None)

    assert run.requires_credentials is True
    assert run.stage("select_provider").status == StageStatus.COMPLETED
    call = run.stage("call_provider")
    assert call.status == StageStatus.FAILED
    assert call.attempts == 1
    assert call.error.startswith("CredentialsMissingError")
    assert caller.calls == 0
    assert run.status == RunStatus.DEGRADED
    assert run.answer is not None
    assert "API key" in run.answer.answer


def test_blocking_validation_failure_aborts_run() -> None:
    run = run_pipeline(ParsedData(), "q", _providers(), caller=FlakyCaller(), sleep=lambda s: None)
    assert run.status == RunStatus.FAILED
    assert run.stage("validate").status == StageStatus.FAILED
    assert run.stage("validate").attempts == 1
    assert run.stage("profile").status == StageStatus.PENDING


def test_provider_call_uses_configured_timeout() -> None:
    caller = FlakyCaller()
    run_pipeline(
        _parsed(),
        "q",
        _providers(),
        config=PipelineConfig(provider_timeout_seconds=7.5),
        caller=caller,
        sleep=lambda s: None,
    )
    assert caller.timeouts == [7.5]


def test_unexpected_exceptions_are_recorded_not_raised() -> None:
    def boom(ctx):
        raise ZeroDivisionError("division by zero")

    def ok(ctx):
        return "fine"

    manager = PipelineManager(
        _parsed(),
        "q",
        config=PipelineConfig(max_retries=0),
        stages=[StageSpec(StageName.PROFILE, boom), StageSpec(StageName.ASSEMBLE, ok)],
        sleep=lambda s: None,
    )
    run = manager.run_pipeline()
    assert run.stage("profile").error == "ZeroDivisionError: division by zero"
    assert run.stage("assemble").output == "fine"
    assert run.status == RunStatus.DEGRADED


def test_stage_state_rejects_invalid_transitions() -> None:
    state = StageState(name=StageName.VALIDATE)
    with pytest.raises(InvalidStageTransition):
        state.complete()

    state.start()
    state.fail("x")
    state.reset_for_retry(1.0)
    state.start()
    state.complete("ok")
    assert state.attempts == 2
    with pytest.raises(InvalidStageTransition):
        state.reset_for_retry(2.0)


class ScriptedCaller:
    """Answers or raises per call from a list of outcomes; records provider kinds."""

    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.kinds: list[str] = []

    def __call__(self, provider, messages, *, api_key, timeout):
        self.kinds.append(provider.kind.value)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return ProviderResponse(content=outcome, model="fake-model")


def _invalid_key() -> ProviderError:
    return ProviderError("bad key", code="INVALID_API_KEY", provider="general", retryable=False)


def test_same_manager_run_twice_starts_from_a_clean_context() -> None:
    caller = ScriptedCaller(["FIRST RUN ANSWER", _invalid_key()])
    manager = PipelineManager(_parsed(), "What is the average amount?", _providers(), caller=caller, sleep=lambda s: None)

    first = manager.run_pipeline()
    second = manager.run_pipeline()

    assert first.status == RunStatus.COMPLETED
    assert first.answer is not None and first.answer.answer == "FIRST RUN ANSWER"

    assert second.run_id != first.run_id
    assert second.stage("call_provider").status == StageStatus.FAILED
    assert second.stage("score_confidence").status == StageStatus.FAILED
    assert second.answer is not None
    assert second.answer.answer != "FIRST RUN ANSWER"
    assert second.answer.provider is None
    assert second.answer.confidence is None
    assert manager.context is not None and manager.context.run_id == second.run_id


def test_explicit_run_id_names_only_the_first_run() -> None:
    manager = PipelineManager(_parsed(), "q", _providers(), caller=FlakyCaller(), sleep=lambda s: None, run_id="run-1")
    assert manager.run_pipeline().run_id == "run-1"
    assert manager.run_pipeline().run_id != "run-1"


def test_managers_over_different_datasets_stay_independent() -> None:
    small = ParsedData(
        columns=[ColumnDescriptor(name="amount"), ColumnDescriptor(name="region")],
        rows=[{"amount": float(i), "region": "East"} for i in range(5)],
        row_count=5,
    )
    orders = PipelineManager(_parsed(), "What is the average amount?", _providers(), caller=FlakyCaller(), sleep=lambda s: None)
    regions = PipelineManager(small, "Which region sells most?", _providers(), caller=FlakyCaller(), sleep=lambda s: None)

    a1 = orders.run_pipeline()
    b1 = regions.run_pipeline()
    a2 = orders.run_pipeline()

    assert len({a1.run_id, b1.run_id, a2.run_id}) == 3
    assert a1.insights is not None and a1.insights.row_count == 20 and a1.insights.column_count == 4
    assert b1.insights is not None and b1.insights.row_count == 5 and b1.insights.column_count == 2
    assert a2.insights is not None and a2.insights.row_count == 20
    assert b1.question == "Which region sells most?"
    assert a2.question == "What is the average amount?"
    assert a1.answer is not None and a1.answer.data_context["row_count"] == 20
    assert b1.answer is not None and b1.answer.data_context["row_count"] == 5


def test_non_retryable_provider_failure_falls_back_to_another_provider() -> None:
    pm = _providers()
    pm.set_api_key("search", "pplx-test")
    caller = ScriptedCaller([_invalid_key(), "Answer from the second provider."])

    run = run_pipeline(_parsed(), "What is the average amount?", pm, caller=caller, sleep=lambda s: None)

    call = run.stage("call_provider")
    assert call.status == StageStatus.COMPLETED
    assert call.attempts == 1
    assert len(caller.kinds) == 2 and caller.kinds[0] != caller.kinds[1]
    assert run.status == RunStatus.COMPLETED
    assert run.answer is not None
    assert run.answer.provider == caller.kinds[1]
    assert run.answer.data_context["fallback_from"] == caller.kinds[0]
    assert run.answer.confidence is not None


def test_no_fallback_without_a_second_configured_provider() -> None:
    caller = ScriptedCaller([_invalid_key()])
    run = run_pipeline(_parsed(), "q", _providers(), caller=caller, sleep=lambda s: None)
    assert caller.kinds == ["general"]
    assert run.stage("call_provider").error.startswith("ProviderError: ")


def test_cancellation_stops_between_stages() -> None:
    polls: list[int] = []

    def should_continue() -> bool:
        polls.append(1)
        return len(polls) <= 2

    caller = FlakyCaller()
    run = run_pipeline(_parsed(), "q", _providers(), caller=caller, sleep=lambda s: None, should_continue=should_continue)

    assert run.status == RunStatus.CANCELLED
    assert run.stage("validate").status == StageStatus.COMPLETED
    assert run.stage("profile").status == StageStatus.COMPLETED
    for name in ("select_provider", "call_provider", "score_confidence", "assemble"):
        assert run.stage(name).status == StageStatus.PENDING
    assert caller.calls == 0
    assert run.failed_stage_count == 0


def test_cancelled_before_start_runs_nothing() -> None:
    run = run_pipeline(_parsed(), "q", _providers(), caller=FlakyCaller(), sleep=lambda s: None, should_continue=lambda: False)
    assert run.status == RunStatus.CANCELLED
    assert all(s.status == StageStatus.PENDING for s in run.stages)
    assert run.answer is None
