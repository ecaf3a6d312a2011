from __future__ import annotations

import re
from typing import Mapping, Optional, Union

from .models import (
    AnalysisContext,
    ConfidenceFactors,
    ConfidenceLevel,
    ConfidenceScore,
    DataInsights,
    ProviderResponse,
)
from .providers.catalog import ProviderKind, parse_kind
from .providers.intent import KeywordIntentClassifier, QuestionIntent
from .utils import tokenize

DEFAULT_WEIGHTS: dict[str, float] = {
    "provider_reliability": 0.25,
    "data_quality": 0.30,
    "response_depth": 0.20,
    "context_relevance": 0.15,
    "analysis_complexity": 0.10,
}

PROVIDER_RELIABILITY: dict[ProviderKind, float] = {
    ProviderKind.REASONING: 0.85,
    ProviderKind.GENERAL: 0.80,
    ProviderKind.SEARCH: 0.75,
}
UNKNOWN_PROVIDER_RELIABILITY = 0.70
ANALYTICAL_REASONING_BONUS = 0.05

# Characters at which response length stops adding to depth.
DEPTH_LENGTH_CAP = 1500

_STRUCTURE_PATTERNS = [
    re.compile(r"\d+\."),
    re.compile(r"^\s*[-•·*]\s", re.MULTILINE),
    re.compile(r"\*\*.*?\*\*"),
    re.compile(r"analysis|insight|recommendation|conclusion", re.IGNORECASE),
    re.compile(r"data shows|indicates|suggests", re.IGNORECASE),
    re.compile(r"statistical|correlation|trend|pattern", re.IGNORECASE),
]

_ANALYSIS_TERMS = (
    "mean",
    "median",
    "average",
    "percentage",
    "ratio",
    "correlation",
    "trend",
    "pattern",
    "distribution",
    "outlier",
    "variance",
    "standard deviation",
)

_COMPLEX_QUESTION_TERMS = (
    "correlation",
    "regression",
    "predict",
    "forecast",
    "segment",
    "cluster",
    "classify",
    "optimize",
    "recommend",
    "strategy",
)

_ADVANCED_PATTERN_TERMS = ("correlation", "outlier", "skewed", "time-series")

_QUESTION_STOPWORDS = frozenset(
    {"what", "when", "where", "which", "does", "will", "would", "should", "could", "there", "their", "about", "with", "from", "that", "this", "have"}
)


def confidence_level(value: float) -> ConfidenceLevel:
    if value >= 0.75:
        return ConfidenceLevel.HIGH
    if value >= 0.5:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def describe_confidence(value: float) -> str:
    if value >= 0.9:
        return "Very High"
    if value >= 0.8:
        return "High"
    if value >= 0.7:
        return "Good"
    if value >= 0.6:
        return "Moderate"
    if value >= 0.5:
        return "Fair"
    return "Low"


class ConfidenceCalculator:
    """
    Trust estimate for a provider answer.

    The score is a weighted sum of five factors in [0, 1] with weights that
    sum to one, clamped to [0, 1]. The data-quality factor only ever grows
    with the DataInsights quality axes, so a cleaner dataset never lowers the
    score for the same answer and provider.
    """

    def __init__(self, weights: Optional[Mapping[str, float]] = None) -> None:
        unknown = sorted(set(weights or {}) - set(DEFAULT_WEIGHTS))
        if unknown:
            raise ValueError(f"Unknown confidence factor(s): {', '.join(unknown)}")
        w = dict(DEFAULT_WEIGHTS)
        w.update(weights or {})
        if any(v < 0 for v in w.values()):
            raise ValueError("Confidence weights must be non-negative")
        total = sum(w.values())
        if total <= 0:
            raise ValueError("Confidence weights must not all be zero")
        self.weights = {k: v / total for k, v in w.items()}
        self._intent = KeywordIntentClassifier()

    def calculate(
        self,
        response: ProviderResponse,
        context: AnalysisContext,
        insights: DataInsights,
        provider: Union[ProviderKind, str, None],
    ) -> float:
        factors = self.calculate_factors(response, context, insights, provider)
        score = sum(getattr(factors, name) * weight for name, weight in self.weights.items())
        return min(max(score, 0.0), 1.0)

    def score(
        self,
        response: ProviderResponse,
        context: AnalysisContext,
        insights: DataInsights,
        provider: Union[ProviderKind, str, None],
    ) -> ConfidenceScore:
        factors = self.calculate_factors(response, context, insights, provider)
        value = min(max(sum(getattr(factors, n) * w for n, w in self.weights.items()), 0.0), 1.0)
        return ConfidenceScore(
            value=value,
            level=confidence_level(value),
            description=describe_confidence(value),
            factors=factors,
            recommendations=recommendations_for(value, factors),
        )

    def calculate_factors(
        self,
        response: ProviderResponse,
        context: AnalysisContext,
        insights: DataInsights,
        provider: Union[ProviderKind, str, None],
    ) -> ConfidenceFactors:
        return ConfidenceFactors(
            provider_reliability=self.provider_reliability(parse_kind(provider), context.question),
            data_quality=data_quality_factor(insights),
            response_depth=response_depth_factor(response.content),
            context_relevance=context_relevance_factor(context.question, response.content, insights.patterns),
            analysis_complexity=analysis_complexity_factor(context, insights),
        )

    def provider_reliability(self, kind: Optional[ProviderKind], question: str) -> float:
        if kind is None:
            return UNKNOWN_PROVIDER_RELIABILITY
        base = PROVIDER_RELIABILITY[kind]
        if kind == ProviderKind.REASONING and self._intent.classify(question) == QuestionIntent.DEEP_REASONING:
            base += ANALYTICAL_REASONING_BONUS
        return min(base, 1.0)


def data_quality_factor(insights: DataInsights) -> float:
    size_bonus = 0.0
    if insights.row_count > 1000:
        size_bonus = 0.1
    elif insights.row_count > 100:
        size_bonus = 0.05

    width_bonus = 0.0
    if insights.column_count > 10:
        width_bonus = 0.05
    elif insights.column_count > 5:
        width_bonus = 0.02

    return min(insights.data_quality.mean() + size_bonus + width_bonus, 1.0)


def response_depth_factor(content: str) -> float:
    content = content or ""
    length_score = 0.4 * min(len(content) / DEPTH_LENGTH_CAP, 1.0)

    structure = 0.0
    for pattern in _STRUCTURE_PATTERNS:
        matches = len(pattern.findall(content))
        structure += min(matches * 0.02, 0.1)

    lower = content.lower()
    terms = sum(1 for t in _ANALYSIS_TERMS if t in lower)
    analysis_bonus = min(terms * 0.03, 0.15)

    return min(0.3 + length_score + structure + analysis_bonus, 1.0)


def context_relevance_factor(question: str, answer: str, patterns: list[str]) -> float:
    q = (question or "").lower()
    a = (answer or "").lower()
    q_terms = {t for t in tokenize(q, min_len=4) if t not in _QUESTION_STOPWORDS}

    if not q_terms:
        score = 0.6
    else:
        relevant = sum(1 for t in q_terms if t in a)
        score = 0.4 + 0.4 * (relevant / len(q_terms))

    if "trend" in q and "trend" in a:
        score += 0.1
    if "compare" in q and ("compar" in a or "versus" in a):
        score += 0.1
    if "predict" in q and ("predict" in a or "forecast" in a):
        score += 0.1
    if "why" in q and ("because" in a or "due to" in a):
        score += 0.1

    # Detected data patterns that speak to the question.
    if q_terms and any(tokenize(p, min_len=4) & q_terms for p in patterns):
        score += 0.1

    return min(score, 1.0)


def analysis_complexity_factor(context: AnalysisContext, insights: DataInsights) -> float:
    score = 0.5
    if insights.column_count > 20:
        score += 0.2
    elif insights.column_count > 10:
        score += 0.1

    if insights.row_count > 10000:
        score += 0.15
    elif insights.row_count > 1000:
        score += 0.1

    if context.data_source == "mixed":
        score += 0.1
    if len(context.file_types) > 1:
        score += 0.05

    q = context.question.lower()
    score += 0.05 * sum(1 for t in _COMPLEX_QUESTION_TERMS if t in q)
    score += 0.03 * sum(1 for p in insights.patterns if any(t in p.lower() for t in _ADVANCED_PATTERN_TERMS))
    return min(score, 1.0)


def recommendations_for(value: float, factors: ConfidenceFactors) -> list[str]:
    out: list[str] = []
    if factors.data_quality < 0.7:
        out.append("Consider cleaning the data to improve completeness and consistency")
    if factors.response_depth < 0.6:
        out.append("Try rephrasing the question to be more specific for deeper analysis")
    if factors.context_relevance < 0.6:
        out.append("Ensure the question directly relates to the available data columns")
    if factors.analysis_complexity > 0.8 and value < 0.8:
        out.append("Complex analysis detected - consider breaking down into simpler questions")
    if value < 0.6:
        out.append("Low confidence - verify results with additional analysis or data sources")
    return out
