from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType

import httpx

from llm_gateway.core.providers.anthropic import AnthropicAdapter
from llm_gateway.core.providers.base import ProviderAdapter
from llm_gateway.core.providers.google import GoogleAIAdapter
from llm_gateway.core.providers.groq import GroqAdapter
from llm_gateway.core.providers.openai import OpenAIAdapter
from llm_gateway.core.settings import ProviderConfig, Settings
from llm_gateway.domain.completions import SUPPORTED_PROVIDERS, ProviderId
from llm_gateway.domain.exceptions import ConfigurationError

logger = logging.getLogger("llm_gateway.providers")

AdapterFactory = Callable[..., ProviderAdapter]

ADAPTER_FACTORIES: Mapping[ProviderId, AdapterFactory] = MappingProxyType(
    {
        ProviderId.OPENAI: OpenAIAdapter,
        ProviderId.ANTHROPIC: AnthropicAdapter,
        ProviderId.GROQ: GroqAdapter,
        ProviderId.GOOGLE: GoogleAIAdapter,
    }
)


def parse_provider_id(provider_id: str | ProviderId) -> ProviderId:
    """Return the ProviderId for `provider_id`, or raise ConfigurationError if unsupported."""

    if isinstance(provider_id, ProviderId):
        return provider_id
    try:
        return ProviderId(str(provider_id).strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"Unsupported provider: {provider_id}",
            provider_id=str(provider_id),
            reason="unknown",
        ) from None


class ProviderRegistry:
    """
    Read-only mapping from provider id to its adapter instance.

    Built once at startup and shared by every request; never mutated afterwards,
    so concurrent reads need no locking. Validation happens here, at construction
    and resolution time, without touching the network.
    """

    def __init__(
        self,
        *,
        adapters: Mapping[ProviderId, ProviderAdapter],
        configs: Mapping[ProviderId, ProviderConfig] | None = None,
    ):
        self._adapters = MappingProxyType(dict(adapters))
        self._configs = MappingProxyType(dict(configs or {}))

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ProviderRegistry:
        adapters: dict[ProviderId, ProviderAdapter] = {}
        configs: dict[ProviderId, ProviderConfig] = {}
        for provider_id in ProviderId:
            config = settings.get_provider_config(provider_id.value)
            if config is None:
                continue
            configs[provider_id] = config
            if not config.available:
                continue
            adapters[provider_id] = ADAPTER_FACTORIES[provider_id](
                config=config,
                timeout_seconds=float(settings.upstream_timeout_seconds),
                transport=transport,
            )

        logger.info(
            "Provider registry initialized",
            extra={"provider": sorted(p.value for p in adapters)},
        )
        return cls(adapters=adapters, configs=configs)

    def resolve(self, provider_id: str | ProviderId) -> ProviderAdapter:
        pid = parse_provider_id(provider_id)
        adapter = self._adapters.get(pid)
        if adapter is None:
            raise ConfigurationError(
                f"Provider '{pid.value}' is not configured or API key is missing",
                provider_id=pid.value,
                reason="unconfigured",
            )
        return adapter

    def is_available(self, provider_id: str | ProviderId) -> bool:
        return parse_provider_id(provider_id) in self._adapters

    def default_model(self, provider_id: str | ProviderId) -> str | None:
        config = self._configs.get(parse_provider_id(provider_id))
        return config.model if config else None

    @property
    def supported(self) -> tuple[str, ...]:
        return SUPPORTED_PROVIDERS
