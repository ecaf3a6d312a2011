from __future__ import annotations

import logging
from typing import Mapping, Optional

from .catalog import DEFAULT_ORDER, ProviderDescriptor, ProviderKind, describe, parse_kind
from .credentials import CredentialStore, KindLike
from .intent import PREFERRED_PROVIDER, IntentClassifier, KeywordIntentClassifier, QuestionIntent

logger = logging.getLogger(__name__)


class ProviderManager:
    """
    Credential management and provider selection for one session.

    State is limited to credential presence; selection is a pure function of
    the question text and the configured set.
    """

    def __init__(
        self,
        credentials: Optional[CredentialStore] = None,
        *,
        classifier: Optional[IntentClassifier] = None,
        model_overrides: Optional[Mapping[ProviderKind, str]] = None,
    ) -> None:
        self.credentials = credentials if credentials is not None else CredentialStore()
        self.classifier: IntentClassifier = classifier or KeywordIntentClassifier()
        self._model_overrides = dict(model_overrides or {})

    # ---- Credentials ----

    def set_api_key(self, kind: KindLike, api_key: str) -> None:
        self.credentials.set(kind, api_key)

    def get_api_key(self, kind: KindLike) -> Optional[str]:
        return self.credentials.get(kind)

    def clear_api_key(self, kind: KindLike) -> None:
        self.credentials.clear(kind)

    def clear_all_api_keys(self) -> None:
        self.credentials.clear_all()

    # ---- Catalog ----

    def get_provider(self, kind: KindLike) -> Optional[ProviderDescriptor]:
        parsed = parse_kind(kind)
        if parsed is None:
            return None
        return describe(parsed, configured=self.credentials.has(parsed), model=self._model_overrides.get(parsed))

    def list_providers(self) -> list[ProviderDescriptor]:
        return [p for p in (self.get_provider(k) for k in DEFAULT_ORDER) if p is not None]

    def get_configured_providers(self) -> list[ProviderDescriptor]:
        return [p for p in self.list_providers() if p.configured]

    # ---- Selection ----

    def classify_intent(self, question: str) -> QuestionIntent:
        return self.classifier.classify(question)

    def get_best_provider(self, question: str = "") -> Optional[ProviderDescriptor]:
        """Best configured provider for the question, or None when nothing is configured."""
        configured = {p.kind: p for p in self.get_configured_providers()}
        if not configured:
            logger.info("No provider configured; selection requires credentials")
            return None

        intent = self.classify_intent(question) if question else QuestionIntent.GENERAL
        preferred = PREFERRED_PROVIDER[intent]
        chosen = configured.get(preferred) or next(configured[k] for k in DEFAULT_ORDER if k in configured)
        logger.info("Selected provider '%s' for intent '%s'", chosen.kind.value, intent.value)
        return chosen

    def get_fallback_provider(self, exclude: KindLike) -> Optional[ProviderDescriptor]:
        excluded = parse_kind(exclude)
        for p in self.get_configured_providers():
            if p.kind != excluded:
                return p
        return None
