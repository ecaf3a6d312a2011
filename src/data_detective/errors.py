from __future__ import annotations


class DataDetectiveError(Exception):
    """Base class for errors raised by the analysis core."""


class InvalidDataError(DataDetectiveError, ValueError):
    """Raised by the validate stage when a ParsedData snapshot is unusable."""

    retryable = False


class CredentialsMissingError(DataDetectiveError, RuntimeError):
    """No provider holds a credential; the caller must ask for one."""

    retryable = False


class ProviderError(DataDetectiveError, RuntimeError):
    """
    A classified failure of the external provider call.

    code is one of INVALID_API_KEY, RATE_LIMITED, QUOTA_EXCEEDED,
    MODEL_NOT_FOUND, TIMEOUT, NETWORK_ERROR, PROVIDER_ERROR.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str,
        provider: str,
        retryable: bool,
        user_message: str = "",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.provider = provider
        self.retryable = retryable
        self.user_message = user_message or message


class StageInputError(DataDetectiveError, RuntimeError):
    """An upstream stage failed to produce the output this stage consumes."""

    retryable = False


class InvalidStageTransition(DataDetectiveError, RuntimeError):
    """A stage record was moved along an edge its state machine does not allow."""


def is_retryable(exc: BaseException) -> bool:
    """Unknown exceptions are retryable; classified ones say so explicitly."""
    return bool(getattr(exc, "retryable", True))


def format_error(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"
