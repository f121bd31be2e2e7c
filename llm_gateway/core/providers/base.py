from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Protocol, runtime_checkable

import httpx

from llm_gateway.core.settings import ProviderConfig
from llm_gateway.domain.completions import CompletionRequest, CompletionResult, ProviderId
from llm_gateway.domain.exceptions import ConfigurationError, UpstreamError, UpstreamErrorKind


@runtime_checkable
class ProviderAdapter(Protocol):
    """
    Provider-neutral completion contract.

    `stream_completion` is an async generator: it yields text fragments in arrival
    order and finishes by returning. Closing it early releases the upstream
    connection.
    """

    provider_id: ProviderId

    async def generate_completion(self, request: CompletionRequest) -> CompletionResult: ...

    def stream_completion(self, request: CompletionRequest) -> AsyncIterator[str]: ...


def require_api_key(*, provider_id: ProviderId, config: ProviderConfig) -> str:
    if not config.api_key:
        raise ConfigurationError(
            f"API key not configured for {provider_id.value}",
            provider_id=provider_id.value,
            reason="unconfigured",
        )
    return config.api_key


def open_client(
    *, timeout_seconds: float, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout_seconds, transport=transport)


def upstream_error_message(resp: httpx.Response, *, default: str) -> str:
    """Best-effort extraction of the provider's own error message from an error response."""

    try:
        data = resp.json()
    except ValueError:
        return default
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(err, str):
            return err
        if isinstance(data.get("message"), str):
            return data["message"]
    # Google wraps errors in a one-element list.
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return upstream_error_message_from_dict(data[0], default=default)
    return default


def upstream_error_message_from_dict(data: dict[str, Any], *, default: str) -> str:
    err = data.get("error")
    if isinstance(err, dict) and isinstance(err.get("message"), str):
        return err["message"]
    return default


def rejected(provider_id: ProviderId, resp: httpx.Response, *, operation: str) -> UpstreamError:
    message = upstream_error_message(resp, default=f"{operation} failed")
    return UpstreamError(
        message,
        provider_id=provider_id.value,
        kind=UpstreamErrorKind.UPSTREAM_REJECTED,
        status_code=resp.status_code,
    )


def protocol_error(provider_id: ProviderId, message: str) -> UpstreamError:
    return UpstreamError(message, provider_id=provider_id.value, kind=UpstreamErrorKind.PROTOCOL)


def network_error(provider_id: ProviderId, operation: str, exc: Exception) -> UpstreamError:
    if isinstance(exc, httpx.TimeoutException):
        message = f"{operation} timed out"
    else:
        message = f"Network error during {operation}: {exc}"
    return UpstreamError(message, provider_id=provider_id.value, kind=UpstreamErrorKind.NETWORK)


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    provider_id: ProviderId,
    operation: str,
    headers: dict[str, str],
    payload: dict[str, Any],
) -> dict[str, Any]:
    """POST a JSON body and return the decoded JSON object, mapping every failure to UpstreamError."""

    try:
        resp = await client.post(url, headers=headers, json=payload)
    except httpx.HTTPError as exc:
        raise network_error(provider_id, operation, exc) from exc

    if not resp.is_success:
        raise rejected(provider_id, resp, operation=operation)

    try:
        data = resp.json()
    except ValueError as exc:
        raise protocol_error(provider_id, f"{operation} returned invalid JSON") from exc
    if not isinstance(data, dict):
        raise protocol_error(provider_id, f"{operation} returned a non-object JSON payload")
    return data


@asynccontextmanager
async def stream_post(
    client: httpx.AsyncClient,
    url: str,
    *,
    provider_id: ProviderId,
    operation: str,
    headers: dict[str, str],
    payload: dict[str, Any],
) -> AsyncIterator[httpx.Response]:
    """Open a streaming POST; transport errors raised while reading the body are mapped too."""

    try:
        async with client.stream("POST", url, headers=headers, json=payload) as resp:
            if not resp.is_success:
                await resp.aread()
                raise rejected(provider_id, resp, operation=operation)
            yield resp
    except httpx.HTTPError as exc:
        raise network_error(provider_id, operation, exc) from exc


async def iter_sse_events(resp: httpx.Response) -> AsyncIterator[tuple[str | None, str]]:
    """
    Yield `(event_name, data)` for each `data:` line of a server-sent event stream.

    `event_name` is the most recent `event:` field of the current event block, or None.
    Comment lines and other fields are ignored.
    """

    event_name: str | None = None
    async for line in resp.aiter_lines():
        if not line.strip():
            event_name = None
            continue
        if line.startswith(":"):
            continue
        if line.startswith("event:"):
            event_name = line[len("event:") :].strip()
            continue
        if line.startswith("data:"):
            yield event_name, line[len("data:") :].strip()


def decode_event(provider_id: ProviderId, data: str) -> dict[str, Any]:
    try:
        parsed = json.loads(data)
    except ValueError as exc:
        raise protocol_error(provider_id, "Malformed streaming event") from exc
    if not isinstance(parsed, dict):
        raise protocol_error(provider_id, "Streaming event is not a JSON object")
    return parsed
