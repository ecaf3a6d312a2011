from __future__ import annotations

from typing import Optional

from ..errors import ProviderError

NON_RETRYABLE_CODES = frozenset({"INVALID_API_KEY", "QUOTA_EXCEEDED", "MODEL_NOT_FOUND"})

_USER_MESSAGES: dict[str, str] = {
    "INVALID_API_KEY": "Your {name} API key is invalid. Please check and update it.",
    "RATE_LIMITED": "Too many requests to {name}. Please wait a moment and try again.",
    "QUOTA_EXCEEDED": "{name} quota exceeded. Please check your account billing.",
    "MODEL_NOT_FOUND": "The requested {name} model is not available. Please try again later.",
    "TIMEOUT": "{name} did not respond in time. Please try again.",
    "NETWORK_ERROR": "Network error reaching {name}. Please check your connection and try again.",
    "PROVIDER_ERROR": "An error occurred with {name}. Please try again.",
}


def _status_code(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "http_status"):
        v = getattr(exc, attr, None)
        if isinstance(v, int):
            return v
    response = getattr(exc, "response", None)
    v = getattr(response, "status_code", None)
    return v if isinstance(v, int) else None


def _classify_code(exc: BaseException) -> str:
    status = _status_code(exc)
    name = type(exc).__name__.lower()
    message = str(exc).lower()

    if status == 401 or status == 403 or "authentication" in name or "unauthorized" in message or "invalid api key" in message:
        return "INVALID_API_KEY"
    if "quota" in message or "billing" in message or "credit" in message:
        return "QUOTA_EXCEEDED"
    if status == 429 or "ratelimit" in name or "rate limit" in message or "429" in message:
        return "RATE_LIMITED"
    if isinstance(exc, TimeoutError) or "timeout" in name or "timed out" in message:
        return "TIMEOUT"
    if status == 404 or "notfound" in name or "model_not_found" in message:
        return "MODEL_NOT_FOUND"
    if isinstance(exc, ConnectionError) or "connection" in name or "network" in message:
        return "NETWORK_ERROR"
    return "PROVIDER_ERROR"


def classify_provider_error(exc: BaseException, provider: str) -> ProviderError:
    """Map an SDK/transport exception onto the provider error taxonomy."""
    if isinstance(exc, ProviderError):
        return exc

    code = _classify_code(exc)
    return ProviderError(
        f"{provider} {code.lower()}: {exc}",
        code=code,
        provider=provider,
        retryable=code not in NON_RETRYABLE_CODES,
        user_message=_USER_MESSAGES[code].format(name=provider),
    )
