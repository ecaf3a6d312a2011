from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from ..errors import ProviderError
from ..models import Message, ProviderResponse, TokenUsage
from .catalog import ProviderDescriptor, ProviderKind
from .errors import classify_provider_error
from .prompts import GENERATION_SETTINGS

logger = logging.getLogger(__name__)


class ProviderCaller(Protocol):
    """The external completion call. Transport details live behind this seam."""

    def __call__(
        self,
        provider: ProviderDescriptor,
        messages: Sequence[Message],
        *,
        api_key: str,
        timeout: float,
    ) -> ProviderResponse: ...


class SdkProviderCaller:
    """Default binding: OpenAI-compatible chat completions, Anthropic messages for Claude."""

    def __call__(
        self,
        provider: ProviderDescriptor,
        messages: Sequence[Message],
        *,
        api_key: str,
        timeout: float,
    ) -> ProviderResponse:
        try:
            if provider.kind == ProviderKind.REASONING:
                response = self._call_anthropic(provider, messages, api_key=api_key, timeout=timeout)
            else:
                response = self._call_openai_compatible(provider, messages, api_key=api_key, timeout=timeout)
        except ProviderError:
            raise
        except Exception as e:  # noqa: BLE001
            raise classify_provider_error(e, provider.name) from e

        if not response.content.strip():
            raise ProviderError(
                f"No response content from {provider.name}",
                code="PROVIDER_ERROR",
                provider=provider.name,
                retryable=True,
            )
        logger.info(
            "Provider '%s' answered with model %s (%d tokens)",
            provider.kind.value,
            response.model,
            response.usage.total_tokens,
        )
        return response

    def _call_openai_compatible(
        self,
        provider: ProviderDescriptor,
        messages: Sequence[Message],
        *,
        api_key: str,
        timeout: float,
    ) -> ProviderResponse:
        from openai import OpenAI  # type: ignore

        settings = GENERATION_SETTINGS[provider.kind]
        client = OpenAI(api_key=api_key, base_url=provider.base_url, timeout=timeout, max_retries=0)
        resp = client.chat.completions.create(
            model=provider.default_model,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )
        text = resp.choices[0].message.content if resp.choices else ""
        usage = resp.usage
        return ProviderResponse(
            content=text or "",
            usage=TokenUsage(
                input_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
                output_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
                total_tokens=int(getattr(usage, "total_tokens", 0) or 0),
            ),
            model=str(resp.model or provider.default_model),
        )

    def _call_anthropic(
        self,
        provider: ProviderDescriptor,
        messages: Sequence[Message],
        *,
        api_key: str,
        timeout: float,
    ) -> ProviderResponse:
        import anthropic  # type: ignore

        settings = GENERATION_SETTINGS[provider.kind]
        client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

        system: Optional[str] = "\n\n".join(m.content for m in messages if m.role == "system") or None
        turns = [{"role": m.role, "content": m.content} for m in messages if m.role != "system"]

        kwargs = {
            "model": provider.default_model,
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
            "messages": turns,
        }
        if system:
            kwargs["system"] = system
        resp = client.messages.create(**kwargs)

        text = "".join(block.text for block in resp.content if getattr(block, "type", "") == "text")
        input_tokens = int(resp.usage.input_tokens or 0)
        output_tokens = int(resp.usage.output_tokens or 0)
        return ProviderResponse(
            content=text,
            usage=TokenUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            model=str(resp.model or provider.default_model),
        )
