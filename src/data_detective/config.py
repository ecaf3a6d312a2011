from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .providers.catalog import ProviderKind

_ENV_PREFIX = "DATA_DETECTIVE_"

# Environment variables that seed the credential scope of a CLI session.
CREDENTIAL_ENV_VARS: dict[ProviderKind, str] = {
    ProviderKind.GENERAL: "OPENAI_API_KEY",
    ProviderKind.REASONING: "ANTHROPIC_API_KEY",
    ProviderKind.SEARCH: "PERPLEXITY_API_KEY",
}


def _get_int_env(name: str, default: int, *, env: Mapping[str, str], minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        v = int(raw)
        return v if v >= minimum else default
    except ValueError:
        return default


def _get_float_env(name: str, default: float, *, env: Mapping[str, str], positive: bool = False) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        v = float(raw)
        ok = v > 0 if positive else v >= 0
        return v if ok else default
    except ValueError:
        return default


def _get_bool_env(name: str, default: bool, *, env: Mapping[str, str]) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    s = raw.strip().lower()
    if s in {"1", "true", "yes", "on"}:
        return True
    if s in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    """Process settings resolved from the environment."""

    max_retries: int = 3
    enable_error_recovery: bool = True
    backoff_base_seconds: float = 1.0
    provider_timeout_seconds: float = 30.0
    model_overrides: dict[ProviderKind, str] = field(default_factory=dict)
    credentials: dict[ProviderKind, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env

        overrides: dict[ProviderKind, str] = {}
        for kind in ProviderKind:
            model = env.get(f"{_ENV_PREFIX}{kind.value.upper()}_MODEL", "").strip()
            if model:
                overrides[kind] = model

        credentials: dict[ProviderKind, str] = {}
        for kind, var in CREDENTIAL_ENV_VARS.items():
            key = env.get(var, "").strip()
            if key:
                credentials[kind] = key

        return cls(
            max_retries=_get_int_env(f"{_ENV_PREFIX}MAX_RETRIES", 3, env=env),
            enable_error_recovery=_get_bool_env(f"{_ENV_PREFIX}ERROR_RECOVERY", True, env=env),
            backoff_base_seconds=_get_float_env(f"{_ENV_PREFIX}BACKOFF_BASE_SECONDS", 1.0, env=env),
            provider_timeout_seconds=_get_float_env(f"{_ENV_PREFIX}PROVIDER_TIMEOUT", 30.0, env=env, positive=True),
            model_overrides=overrides,
            credentials=credentials,
        )
