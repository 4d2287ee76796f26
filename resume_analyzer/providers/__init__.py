"""Provider factory and defaults."""

from __future__ import annotations

import os
from typing import Dict

from .base import ChatProvider
from .gemini import GeminiProvider
from .openai_compat import OpenAICompatibleProvider
from .stub import StubProvider

PROVIDER_DEFAULTS: Dict[str, Dict[str, str]] = {
    "stub": {"api_base": "", "env_key": "", "model": "stub-model"},
    "openai": {"api_base": "", "env_key": "OPENAI_API_KEY", "model": "gpt-4o-mini"},
    "gemini": {"api_base": "", "env_key": "GEMINI_API_KEY", "model": "gemini-2.5-flash"},
    "glm": {"api_base": "https://open.bigmodel.cn/api/paas/v4", "env_key": "GLM_API_KEY", "model": "glm-4v-plus"},
    "kimi": {"api_base": "https://api.moonshot.cn/v1", "env_key": "KIMI_API_KEY", "model": "kimi-k2-0905-preview"},
    "deepseek": {"api_base": "https://api.deepseek.com", "env_key": "DEEPSEEK_API_KEY", "model": "deepseek-chat"},
    "minimax": {"api_base": "https://api.minimax.chat/v1", "env_key": "MINIMAX_API_KEY", "model": "MiniMax-Text-01"},
}


def create_provider(
    provider: str,
    api_key: str = "",
    model: str = "",
    api_base: str = "",
) -> ChatProvider:
    provider_name = (provider or "stub").lower()
    defaults = PROVIDER_DEFAULTS.get(provider_name, {})
    model = model or defaults.get("model", "")

    if provider_name == "stub":
        return StubProvider(model=model or "stub-model")

    api_key = resolve_api_key(provider_name, api_key)

    if provider_name == "gemini":
        return GeminiProvider(api_key=api_key, model=model, api_base=api_base)

    base = api_base or defaults.get("api_base", "")
    return OpenAICompatibleProvider(
        api_key=api_key,
        model=model,
        api_base=base,
    )


def resolve_api_key(provider: str, api_key: str) -> str:
    defaults = PROVIDER_DEFAULTS.get(provider, {})
    env_key = defaults.get("env_key", "")

    if env_key:
        env_value = os.environ.get(env_key, "")
        if env_value:
            return env_value

    if api_key and not api_key.startswith("${"):
        return api_key

    if api_key.startswith("${") and api_key.endswith("}"):
        env_var = api_key[2:-1]
        resolved = os.environ.get(env_var, "")
        if resolved:
            return resolved

    if env_key:
        raise ValueError(f"{env_key} not set. Please set the env var or RESUME_ANALYZER_API_KEY")

    raise ValueError("API key not set. Please set RESUME_ANALYZER_API_KEY")


__all__ = [
    "ChatProvider",
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "PROVIDER_DEFAULTS",
    "StubProvider",
    "create_provider",
    "resolve_api_key",
]
