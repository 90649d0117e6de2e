"""LiteLLM-based unified LLM provider."""

from __future__ import annotations

import base64
import json
import os
from typing import Any

import httpx
import litellm
from loguru import logger

from ..config.schema import Config
from ..settings.store import SettingsStore
from .base import LLMProvider, LLMResponse, ProviderError, ToolCallRequest
from .registry import PROVIDERS, get_provider_spec, resolve_model_name


class LiteLLMProvider(LLMProvider):
    """Unified LLM provider using litellm for multi-provider support.

    When the settings store names an active provider with a stored key
    (``model use``/``model set``), that provider's default model and key
    win over the configured ``agent.model``.
    """

    def __init__(self, config: Config, settings: SettingsStore | None = None) -> None:
        self._config = config
        self._settings = settings
        self._setup_env()

    def _setup_env(self) -> None:
        """Set environment variables for all configured providers."""
        for name, provider_config in self._config.providers.items():
            spec = PROVIDERS.get(name)
            if not spec:
                logger.warning(f"Unknown provider: {name}")
                continue

            if provider_config.api_key:
                os.environ[spec.env_key] = provider_config.api_key
                logger.debug(f"Set {spec.env_key} for provider {name}")

    def _detect_provider(self, model: str) -> str:
        """Detect which provider to use based on model name."""
        for name, spec in PROVIDERS.items():
            if spec.prefix and spec.prefix != "openai/" and model.startswith(spec.prefix):
                return name

        if model.startswith("claude"):
            return "anthropic"
        if model.startswith(("gpt-", "o1-", "o3-", "dall-e")):
            return "openai"

        # Fall back to first configured provider
        for name in self._config.providers:
            if self._config.providers[name].api_key:
                return name

        return "openrouter"

    def active_selection(self) -> tuple[str, str, str]:
        """Return ``(provider, model, api_key)``; the key may be empty."""
        if self._settings is not None:
            active = self._settings.get_active_provider()
            key = self._settings.get_api_keys().get(active, "")
            spec = get_provider_spec(active) if active else None
            if spec and key:
                return spec.name, spec.default_model, key

        model = self._config.agent.model
        provider = self._detect_provider(model)
        provider_config = self._config.providers.get(provider)
        return provider, model, provider_config.api_key if provider_config else ""

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str = "",
        max_tokens: int = 1024,
        temperature: float = 0.4,
    ) -> LLMResponse:
        """Send a chat completion request via litellm."""
        provider, default_model, api_key = self.active_selection()
        if model:
            provider = self._detect_provider(model)
        else:
            model = default_model
        resolved_model = resolve_model_name(provider, model)

        kwargs: dict[str, Any] = {
            "model": resolved_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        if api_key:
            kwargs["api_key"] = api_key

        spec = PROVIDERS.get(provider)
        provider_config = self._config.providers.get(provider)
        if provider_config and provider_config.api_base:
            kwargs["api_base"] = provider_config.api_base
        elif spec and spec.api_base:
            kwargs["api_base"] = spec.api_base
        if provider_config and provider_config.extra_headers:
            kwargs["extra_headers"] = provider_config.extra_headers

        try:
            logger.debug(f"LLM call: model={resolved_model}, messages={len(messages)}")
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            status = int(getattr(e, "status_code", 0) or 0)
            logger.error(f"LLM call failed: {e}")
            raise ProviderError(f"LLM request failed: {e}", status=status) from e

        parsed = self._parse_response(response)
        parsed.provider = provider
        parsed.model = resolved_model
        return parsed

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse litellm response into our LLMResponse."""
        choice = response.choices[0]
        message = choice.message

        content = message.content or ""
        tool_calls: list[ToolCallRequest] = []

        if message.tool_calls:
            for tc in message.tool_calls:
                try:
                    args = (
                        json.loads(tc.function.arguments)
                        if isinstance(tc.function.arguments, str)
                        else tc.function.arguments
                    )
                except json.JSONDecodeError:
                    args = {"raw": tc.function.arguments}

                tool_calls.append(
                    ToolCallRequest(
                        id=tc.id,
                        name=tc.function.name,
                        arguments=args or {},
                    )
                )

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }

        return LLMResponse(
            content=content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "",
            usage=usage,
        )

    async def generate_image(self, prompt: str, model: str = "", size: str = "") -> bytes:
        """Generate one image via litellm and return its raw bytes.

        Uses ``agent.image_model``; the key comes from the provider config
        or, failing that, from a key stored with ``model set``.
        """
        model = model or self._config.agent.image_model
        size = size or self._config.agent.image_size
        provider = self._detect_provider(model)
        kwargs: dict[str, Any] = {
            "model": resolve_model_name(provider, model),
            "prompt": prompt,
            "n": 1,
            "size": size,
        }
        provider_config = self._config.providers.get(provider)
        api_key = provider_config.api_key if provider_config else ""
        if not api_key and self._settings is not None:
            api_key = self._settings.get_api_keys().get(provider, "")
        if api_key:
            kwargs["api_key"] = api_key

        try:
            logger.debug(f"Image call: model={kwargs['model']}, size={size}")
            response = await litellm.aimage_generation(**kwargs)
            return await self._image_bytes(response)
        except ProviderError:
            raise
        except Exception as e:
            status = int(getattr(e, "status_code", 0) or 0)
            logger.error(f"Image generation failed: {e}")
            raise ProviderError(f"image request failed: {e}", status=status) from e

    @staticmethod
    async def _image_bytes(response: Any) -> bytes:
        """Pull the first image out of an ImageResponse, inline or by URL."""
        data = getattr(response, "data", None) or []
        if not data:
            raise ProviderError("no image returned")
        item = data[0]
        get = item.get if isinstance(item, dict) else lambda k: getattr(item, k, None)
        if get("b64_json"):
            return base64.b64decode(get("b64_json"))
        if get("url"):
            async with httpx.AsyncClient(follow_redirects=True, timeout=60.0) as client:
                r = await client.get(get("url"))
                r.raise_for_status()
                return r.content
        raise ProviderError("no image returned")
