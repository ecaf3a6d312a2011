from __future__ import annotations

import pytest

from data_detective.confidence import (
    ConfidenceCalculator,
    confidence_level,
    context_relevance_factor,
    describe_confidence,
    response_depth_factor,
)
from data_detective.models import (
    AnalysisContext,
    ConfidenceLevel,
    DataInsights,
    ProviderResponse,
    QualityAxes,
)
from data_detective.providers import ProviderKind

ANSWER = (
    "**Summary**\n"
    "1. The average order amount is 12.4 and the median is 12.\n"
    "2. The data shows a clear upward trend in the North region.\n"
    "- Recommendation: investigate the outlier orders above 500.\n"
)


def _insights(**axes: float) -> DataInsights:
    base = {"completeness": 0.5, "consistency": 0.5, "uniqueness": 0.5, "validity": 0.5}
    base.update(axes)
    return DataInsights(
        row_count=200,
        column_count=4,
        patterns=["Time-series data available in: order_date"],
        data_quality=QualityAxes(**base),
    )


def _context(question: str = "What is the average order amount by region?") -> AnalysisContext:
    return AnalysisContext(question=question, file_types=["csv"])


@pytest.mark.parametrize("axis", ["completeness", "consistency", "uniqueness", "validity"])
def test_score_never_decreases_when_a_quality_axis_improves(axis: str) -> None:
    calc = ConfidenceCalculator()
    response = ProviderResponse(content=ANSWER)
    low = calc.calculate(response, _context(), _insights(**{axis: 0.5}), ProviderKind.GENERAL)
    high = calc.calculate(response, _context(), _insights(**{axis: 1.0}), ProviderKind.GENERAL)
    assert high >= low
    assert high > low


def test_score_is_clamped_to_unit_interval() -> None:
    calc = ConfidenceCalculator()
    perfect = _insights(completeness=1, consistency=1, uniqueness=1, validity=1)
    for kind in (*ProviderKind, None, "unknown"):
        v = calc.calculate(ProviderResponse(content=ANSWER * 20), _context(), perfect, kind)
        assert 0.0 <= v <= 1.0
    v = calc.calculate(ProviderResponse(content=""), _context(""), DataInsights(), ProviderKind.SEARCH)
    assert 0.0 <= v <= 1.0


def test_depth_saturates() -> None:
    short = response_depth_factor("x" * 100)
    long = response_depth_factor("x" * 10_000)
    longer = response_depth_factor("x" * 50_000)
    assert short < long
    assert long == longer
    assert response_depth_factor(ANSWER * 50) <= 1.0


def test_pattern_overlap_raises_relevance() -> None:
    q = "Is revenue trending?"
    without = context_relevance_factor(q, "no idea", [])
    with_overlap = context_relevance_factor(q, "no idea", ["revenue shows right-skewed distribution"])
    assert with_overlap > without


def test_reasoning_provider_is_most_reliable_for_analytical_questions() -> None:
    calc = ConfidenceCalculator()
    question = "Explain why order amounts differ between regions"
    reasoning = calc.provider_reliability(ProviderKind.REASONING, question)
    assert reasoning > calc.provider_reliability(ProviderKind.GENERAL, question)
    assert reasoning > calc.provider_reliability(ProviderKind.SEARCH, question)


def test_score_carries_level_description_and_factors() -> None:
    calc = ConfidenceCalculator()
    score = calc.score(ProviderResponse(content=ANSWER), _context(), _insights(), ProviderKind.GENERAL)
    assert score.value == pytest.approx(
        calc.calculate(ProviderResponse(content=ANSWER), _context(), _insights(), ProviderKind.GENERAL)
    )
    assert score.level == confidence_level(score.value)
    assert score.description == describe_confidence(score.value)
    assert 0.0 <= score.factors.data_quality <= 1.0
    # Mean quality of 0.5 is weak enough to recommend cleaning.
    assert any("cleaning" in r for r in score.recommendations)


def test_buckets_and_descriptions() -> None:
    assert confidence_level(0.75) == ConfidenceLevel.HIGH
    assert confidence_level(0.5) == ConfidenceLevel.MEDIUM
    assert confidence_level(0.49) == ConfidenceLevel.LOW
    assert describe_confidence(0.95) == "Very High"
    assert describe_confidence(0.65) == "Moderate"
    assert describe_confidence(0.1) == "Low"


def test_invalid_weights_are_rejected() -> None:
    with pytest.raises(ValueError):
        ConfidenceCalculator({"data_quality": -1.0})


def test_unknown_weight_names_are_rejected() -> None:
    with pytest.raises(ValueError, match="foo"):
        ConfidenceCalculator({"foo": 1.0})
    # Known names still override.
    calc = ConfidenceCalculator({"provider_reliability": 0.0})
    assert calc.weights["provider_reliability"] == 0.0
