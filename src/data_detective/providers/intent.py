from __future__ import annotations

from enum import Enum
from typing import Protocol

from .catalog import ProviderKind


class QuestionIntent(str, Enum):
    REAL_TIME = "real_time"
    DEEP_REASONING = "deep_reasoning"
    GENERAL = "general"


# Provider that best serves each intent.
PREFERRED_PROVIDER: dict[QuestionIntent, ProviderKind] = {
    QuestionIntent.REAL_TIME: ProviderKind.SEARCH,
    QuestionIntent.DEEP_REASONING: ProviderKind.REASONING,
    QuestionIntent.GENERAL: ProviderKind.GENERAL,
}


class IntentClassifier(Protocol):
    """Anything that maps question text to an intent (keyword rules, a model, ...)."""

    def classify(self, question: str) -> QuestionIntent: ...


class KeywordIntentClassifier:
    """Approximate keyword routing. Real-time signals win over reasoning ones."""

    REAL_TIME_TERMS: tuple[str, ...] = (
        "latest",
        "current",
        "recent",
        "today",
        "news",
        "web",
        "happening",
        "right now",
        "this week",
        "trending",
    )
    REASONING_TERMS: tuple[str, ...] = (
        "analyze",
        "analyse",
        "complex",
        "detailed",
        "reasoning",
        "explain",
        "compare",
        "why",
        "root cause",
    )

    def classify(self, question: str) -> QuestionIntent:
        q = (question or "").lower()
        if any(term in q for term in self.REAL_TIME_TERMS):
            return QuestionIntent.REAL_TIME
        if any(term in q for term in self.REASONING_TERMS):
            return QuestionIntent.DEEP_REASONING
        return QuestionIntent.GENERAL
