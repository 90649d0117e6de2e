"""LLM provider registry with model name prefixing."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ProviderSpec:
    """Specification for an LLM provider."""

    name: str
    prefix: str  # Model name prefix for litellm routing
    env_key: str  # Environment variable name for API key
    default_model: str  # Used when the provider is picked with "model use"
    api_base: str = ""  # Fixed endpoint for OpenAI-compatible vendors
    description: str = ""


# Provider registry - single source of truth
PROVIDERS: dict[str, ProviderSpec] = {
    "openrouter": ProviderSpec(
        name="openrouter",
        prefix="openrouter/",
        env_key="OPENROUTER_API_KEY",
        default_model="openrouter/openai/gpt-4o-mini",
        description="OpenRouter gateway - access many models with one key",
    ),
    "openai": ProviderSpec(
        name="openai",
        prefix="",
        env_key="OPENAI_API_KEY",
        default_model="gpt-4o-mini",
        description="OpenAI (GPT models)",
    ),
    "anthropic": ProviderSpec(
        name="anthropic",
        prefix="",
        env_key="ANTHROPIC_API_KEY",
        default_model="claude-3-5-haiku-latest",
        description="Anthropic (Claude models)",
    ),
    "gemini": ProviderSpec(
        name="gemini",
        prefix="gemini/",
        env_key="GEMINI_API_KEY",
        default_model="gemini/gemini-2.0-flash",
        description="Google Gemini",
    ),
    "glm": ProviderSpec(
        name="glm",
        prefix="openai/",
        env_key="GLM_API_KEY",
        default_model="openai/glm-4-flash",
        api_base="https://open.bigmodel.cn/api/paas/v4",
        description="Zhipu GLM over its OpenAI-compatible endpoint",
    ),
    "groq": ProviderSpec(
        name="groq",
        prefix="groq/",
        env_key="GROQ_API_KEY",
        default_model="groq/llama-3.1-8b-instant",
        description="Groq (fast inference)",
    ),
}

# Providers offered by the "model use/set" chat commands
SELECTABLE_PROVIDERS = ("openai", "anthropic", "gemini", "glm", "openrouter", "groq")


def get_provider_spec(name: str) -> ProviderSpec | None:
    """Get provider spec by name."""
    return PROVIDERS.get(name.lower())


def resolve_model_name(provider_name: str, model: str) -> str:
    """Resolve a model name with the correct provider prefix.

    If the model already has a known prefix, return as-is.
    Otherwise, prepend the provider's prefix.
    """
    spec = PROVIDERS.get(provider_name)
    if not spec:
        return model

    # Check if model already has a prefix from any known provider
    for p in PROVIDERS.values():
        if p.prefix and model.startswith(p.prefix):
            return model

    # Anthropic and OpenAI models are recognized natively by litellm
    if provider_name in ("anthropic", "openai"):
        return model

    return f"{spec.prefix}{model}"
