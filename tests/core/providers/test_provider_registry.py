from __future__ import annotations

import asyncio

import httpx
import pytest

from llm_gateway.core.providers.anthropic import AnthropicAdapter
from llm_gateway.core.providers.groq import GroqAdapter
from llm_gateway.core.providers.registry import ProviderRegistry, parse_provider_id
from llm_gateway.core.settings import Settings
from llm_gateway.domain.completions import CompletionRequest, ProviderId
from llm_gateway.domain.exceptions import ConfigurationError


def _no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected upstream call to {request.url}")


def _registry(**env: str) -> ProviderRegistry:
    settings = Settings(_env_file=None, **env)
    return ProviderRegistry.from_settings(settings, transport=httpx.MockTransport(_no_network))


@pytest.mark.parametrize("raw", ["openai", "OpenAI", " groq ", ProviderId.GOOGLE])
def test_parse_provider_id_accepts_known_ids(raw) -> None:
    assert isinstance(parse_provider_id(raw), ProviderId)


def test_parse_provider_id_rejects_unknown_ids() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        parse_provider_id("mistral")

    assert exc_info.value.reason == "unknown"
    assert exc_info.value.provider_id == "mistral"
    assert exc_info.value.message == "Unsupported provider: mistral"


def test_registry_builds_adapters_only_for_configured_providers() -> None:
    registry = _registry(GROQ_API_KEY="gsk-test", ANTHROPIC_API_KEY="sk-ant-test")

    assert isinstance(registry.resolve("groq"), GroqAdapter)
    assert isinstance(registry.resolve(ProviderId.ANTHROPIC), AnthropicAdapter)
    assert registry.is_available("groq")
    assert not registry.is_available("openai")
    assert registry.default_model("groq") == "llama-3.1-8b-instant"
    assert registry.supported == ("openai", "anthropic", "groq", "google")


def test_resolve_unconfigured_provider_raises_without_network() -> None:
    registry = _registry(GROQ_API_KEY="gsk-test")

    with pytest.raises(ConfigurationError) as exc_info:
        registry.resolve("openai")

    assert exc_info.value.reason == "unconfigured"
    assert exc_info.value.message == "Provider 'openai' is not configured or API key is missing"


def test_resolve_unknown_provider_raises_unknown() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        _registry().resolve("cohere")
    assert exc_info.value.reason == "unknown"


def test_gemini_api_key_alias_configures_google() -> None:
    registry = _registry(GEMINI_API_KEY="gm-test", GOOGLE_MODEL="gemini-2.0-flash")

    assert registry.is_available("google")
    assert registry.default_model("google") == "gemini-2.0-flash"


def test_adapters_share_the_injected_transport() -> None:
    registry = _registry(OPENAI_API_KEY="sk-test")
    adapter = registry.resolve("openai")
    request = CompletionRequest(prompt="hi", provider_id=ProviderId.OPENAI)

    with pytest.raises(AssertionError, match="unexpected upstream call"):
        asyncio.run(adapter.generate_completion(request))
