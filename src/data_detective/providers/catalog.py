from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ProviderKind(str, Enum):
    """Closed set of completion services the core can route to."""

    GENERAL = "general"  # OpenAI
    REASONING = "reasoning"  # Anthropic Claude
    SEARCH = "search"  # Perplexity


class ProviderDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ProviderKind
    name: str
    models: list[str] = Field(default_factory=list)
    default_model: str
    configured: bool = False
    base_url: Optional[str] = None


PROVIDERS: dict[ProviderKind, ProviderDescriptor] = {
    ProviderKind.GENERAL: ProviderDescriptor(
        kind=ProviderKind.GENERAL,
        name="OpenAI",
        models=["gpt-4o-mini", "gpt-4o"],
        default_model="gpt-4o-mini",
    ),
    ProviderKind.REASONING: ProviderDescriptor(
        kind=ProviderKind.REASONING,
        name="Claude (Anthropic)",
        models=["claude-3-5-sonnet-20241022", "claude-3-haiku-20240307"],
        default_model="claude-3-5-sonnet-20241022",
    ),
    ProviderKind.SEARCH: ProviderDescriptor(
        kind=ProviderKind.SEARCH,
        name="Perplexity",
        models=["llama-3.1-sonar-large-128k-online", "llama-3.1-sonar-small-128k-online"],
        default_model="llama-3.1-sonar-large-128k-online",
        base_url="https://api.perplexity.ai",
    ),
}

# Default preference when the question carries no routing signal.
DEFAULT_ORDER: tuple[ProviderKind, ...] = (ProviderKind.GENERAL, ProviderKind.REASONING, ProviderKind.SEARCH)


def parse_kind(kind: Union[ProviderKind, str, None]) -> Optional[ProviderKind]:
    if isinstance(kind, ProviderKind):
        return kind
    if kind is None:
        return None
    try:
        return ProviderKind(str(kind).strip().lower())
    except ValueError:
        return None


def describe(kind: ProviderKind, *, configured: bool = False, model: Optional[str] = None) -> ProviderDescriptor:
    """Copy of the static descriptor with the configured flag (and model override) applied."""
    base = PROVIDERS[kind]
    update: dict[str, object] = {"configured": configured}
    if model:
        update["default_model"] = model
        if model not in base.models:
            update["models"] = [*base.models, model]
    return base.model_copy(update=update)
