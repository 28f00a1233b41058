"""OpenAI-compatible chat client used to generate persona segments."""

from __future__ import annotations

import logging
import os
from copy import deepcopy
from typing import Any, Mapping, MutableMapping, Optional, Sequence

from openai import OpenAI

logger = logging.getLogger(__name__)


DEFAULT_EXTRA_BODY: Mapping[str, Any] = {
    "extra_body": {"chat_template_kwargs": {"enable_thinking": False}}
}

PROVIDER_URLS: Mapping[str, str] = {
    "anthropic": "https://api.anthropic.com/v1/",
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "vllm": "http://localhost:1109/v1",
}

PROVIDER_KEY_ENV: Mapping[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "vllm": "OPENAI_API_KEY",
}


class LLMClient:
    """Thin wrapper over :class:`openai.OpenAI` with provider defaults."""

    def __init__(
        self,
        *,
        model: str,
        base_url: str | None = None,
        provider: str = "anthropic",
        api_key: str | None = None,
        api_key_env: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 1,
        default_extra_body: Mapping[str, Any] | None = None,
    ) -> None:
        provider_key = provider.lower()
        if provider_key not in PROVIDER_URLS:
            raise ValueError(f"Unsupported provider '{provider}'")

        if api_key is None:
            env_name = api_key_env or PROVIDER_KEY_ENV[provider_key]
            api_key = os.environ.get(env_name) or ""

        extra = default_extra_body
        if extra is None and provider_key == "vllm":
            extra = DEFAULT_EXTRA_BODY

        self._client = OpenAI(
            base_url=base_url or PROVIDER_URLS[provider_key],
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
        )
        self.model = model
        self.provider = provider_key
        self.default_extra_body = dict(extra or {})

    def chat(
        self,
        messages: Sequence[Mapping[str, object]],
        *,
        max_tokens: Optional[int] = None,
        extra_body: Mapping[str, Any] | None = None,
    ) -> str:
        payload: MutableMapping[str, Any] = {"model": self.model, "messages": list(messages)}
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        merged = self._merge_extra(extra_body)
        if merged:
            payload.update(merged)

        logger.debug("Dispatching chat request: %s", payload)
        response = self._client.chat.completions.create(**payload)
        logger.debug("Chat raw response: %s", response)
        if not response.choices:
            raise ValueError("Chat response carried no choices")
        choice = response.choices[0].message
        return getattr(choice, "content", "") or ""

    def close(self) -> None:
        self._client.close()

    def _merge_extra(
        self, extra_body: Mapping[str, Any] | None
    ) -> MutableMapping[str, Any] | None:
        if not self.default_extra_body and not extra_body:
            return None
        merged: MutableMapping[str, Any] = deepcopy(self.default_extra_body)
        if extra_body:
            for key, value in extra_body.items():
                if (
                    key in merged
                    and isinstance(merged[key], MutableMapping)
                    and isinstance(value, Mapping)
                ):
                    merged[key].update(value)  # type: ignore[arg-type]
                else:
                    merged[key] = deepcopy(value) if isinstance(value, Mapping) else value
        return merged


__all__ = ["LLMClient", "PROVIDER_URLS"]
