from __future__ import annotations

import threading

from data_detective.config import Settings
from data_detective.providers import CredentialStore, ProviderKind, ProviderManager, QuestionIntent


class MemoryPersistence:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data = dict(initial or {})

    def load(self) -> dict[str, str]:
        return dict(self.data)

    def save(self, key: str, credential: str) -> None:
        self.data[key] = credential

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


def test_set_then_clear_removes_credential() -> None:
    pm = ProviderManager()
    pm.set_api_key("x", "k")
    assert pm.get_api_key("x") == "k"

    pm.clear_api_key("x")
    assert pm.get_api_key("x") is None
    assert all(p.kind.value != "x" for p in pm.get_configured_providers())

    # Idempotent
    pm.clear_api_key("x")
    assert pm.get_api_key("x") is None


def test_configured_providers_track_credentials() -> None:
    pm = ProviderManager()
    assert pm.get_configured_providers() == []

    pm.set_api_key(ProviderKind.SEARCH, "pplx-key")
    pm.set_api_key("general", "sk-key")
    kinds = [p.kind for p in pm.get_configured_providers()]
    assert kinds == [ProviderKind.GENERAL, ProviderKind.SEARCH]

    pm.clear_all_api_keys()
    assert pm.get_configured_providers() == []


def test_blank_credential_is_not_configured() -> None:
    pm = ProviderManager()
    pm.set_api_key("general", "   ")
    assert pm.get_api_key("general") is None
    assert pm.get_configured_providers() == []


def test_get_provider_unknown_kind_returns_none() -> None:
    pm = ProviderManager()
    assert pm.get_provider("bogus") is None
    p = pm.get_provider("reasoning")
    assert p is not None
    assert p.name == "Claude (Anthropic)"
    assert p.configured is False


def test_best_provider_prefers_search_for_real_time_questions() -> None:
    pm = ProviderManager()
    pm.set_api_key("general", "sk")
    pm.set_api_key("search", "pplx")
    best = pm.get_best_provider("what's happening today")
    assert best is not None and best.kind == ProviderKind.SEARCH


def test_best_provider_falls_back_to_any_configured() -> None:
    pm = ProviderManager()
    pm.set_api_key("general", "sk")
    best = pm.get_best_provider("what's happening today")
    assert best is not None and best.kind == ProviderKind.GENERAL

    pm = ProviderManager()
    pm.set_api_key("reasoning", "ak")
    best = pm.get_best_provider("total sales by region")
    assert best is not None and best.kind == ProviderKind.REASONING


def test_best_provider_routes_reasoning_questions() -> None:
    pm = ProviderManager()
    for kind in ProviderKind:
        pm.set_api_key(kind, f"key-{kind.value}")
    best = pm.get_best_provider("Explain why churn rose in March")
    assert best is not None and best.kind == ProviderKind.REASONING
    assert pm.get_best_provider("total sales by region").kind == ProviderKind.GENERAL


def test_best_provider_is_none_without_credentials() -> None:
    assert ProviderManager().get_best_provider("anything at all") is None


def test_intent_classifier_is_replaceable() -> None:
    class AlwaysRealTime:
        def classify(self, question: str) -> QuestionIntent:
            return QuestionIntent.REAL_TIME

    pm = ProviderManager(classifier=AlwaysRealTime())
    pm.set_api_key("search", "pplx")
    pm.set_api_key("reasoning", "ak")
    assert pm.get_best_provider("Explain the trend").kind == ProviderKind.SEARCH


def test_fallback_provider_excludes_kind() -> None:
    pm = ProviderManager()
    pm.set_api_key("general", "sk")
    pm.set_api_key("search", "pplx")
    fb = pm.get_fallback_provider("general")
    assert fb is not None and fb.kind == ProviderKind.SEARCH
    pm.clear_api_key("search")
    assert pm.get_fallback_provider("general") is None


def test_separate_stores_are_isolated() -> None:
    a = ProviderManager(CredentialStore())
    b = ProviderManager(CredentialStore())
    a.set_api_key("general", "sk-a")
    assert b.get_api_key("general") is None


def test_credential_store_uses_persistence() -> None:
    persistence = MemoryPersistence({"search": "pplx"})
    store = CredentialStore(persistence=persistence)
    assert store.get("search") == "pplx"

    store.set("general", "sk")
    assert persistence.data["general"] == "sk"
    store.clear("search")
    assert "search" not in persistence.data


def test_model_override_changes_default_model() -> None:
    pm = ProviderManager(model_overrides={ProviderKind.GENERAL: "gpt-4.1-mini"})
    p = pm.get_provider("general")
    assert p.default_model == "gpt-4.1-mini"
    assert "gpt-4.1-mini" in p.models


def test_settings_seed_credentials_from_env() -> None:
    env = {
        "OPENAI_API_KEY": "sk-env",
        "DATA_DETECTIVE_MAX_RETRIES": "5",
        "DATA_DETECTIVE_ERROR_RECOVERY": "off",
        "DATA_DETECTIVE_BACKOFF_BASE_SECONDS": "not-a-number",
        "DATA_DETECTIVE_SEARCH_MODEL": "sonar-pro",
    }
    settings = Settings.from_env(env)
    assert settings.max_retries == 5
    assert settings.enable_error_recovery is False
    assert settings.backoff_base_seconds == 1.0
    assert settings.model_overrides == {ProviderKind.SEARCH: "sonar-pro"}
    assert "sk-env" not in repr(settings)

    pm = ProviderManager(CredentialStore(settings.credentials))
    assert [p.kind for p in pm.get_configured_providers()] == [ProviderKind.GENERAL]


def test_zero_provider_timeout_falls_back_to_default() -> None:
    assert Settings.from_env({"DATA_DETECTIVE_PROVIDER_TIMEOUT": "0"}).provider_timeout_seconds == 30.0
    assert Settings.from_env({"DATA_DETECTIVE_PROVIDER_TIMEOUT": "-5"}).provider_timeout_seconds == 30.0
    assert Settings.from_env({"DATA_DETECTIVE_PROVIDER_TIMEOUT": "2.5"}).provider_timeout_seconds == 2.5
    # Zero is still a valid backoff base.
    assert Settings.from_env({"DATA_DETECTIVE_BACKOFF_BASE_SECONDS": "0"}).backoff_base_seconds == 0.0


def test_concurrent_set_and_clear_leave_store_consistent() -> None:
    persistence = MemoryPersistence()
    store = CredentialStore(persistence=persistence)
    seen: list[str | None] = []
    start = threading.Barrier(8)

    def worker(i: int) -> None:
        start.wait()
        for _ in range(200):
            store.set("general", f"sk-worker-{i}")
            seen.append(store.get("general"))
            store.clear("general")

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert all(v is None or v.startswith("sk-worker-") for v in seen)
    assert store.get("general") is None
    assert "general" not in persistence.data

    store.set("general", "sk-final")
    assert store.get("general") == "sk-final"
    assert persistence.data == {"general": "sk-final"}
