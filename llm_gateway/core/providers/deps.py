from __future__ import annotations

from fastapi import Request

from llm_gateway.core.providers.registry import ProviderRegistry


def get_provider_registry(request: Request) -> ProviderRegistry:
    """
    Dependency provider for the process-wide ProviderRegistry.

    The registry is built once in the app lifespan and stored on `app.state`;
    tests replace it through `app.dependency_overrides`.
    """

    return request.app.state.provider_registry
