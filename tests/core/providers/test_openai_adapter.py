from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from llm_gateway.core.providers.openai import OpenAIAdapter
from llm_gateway.core.settings import ProviderConfig
from llm_gateway.domain.completions import (
    CompletionParameters,
    CompletionRequest,
    ConversationTurn,
    ProviderId,
)
from llm_gateway.domain.exceptions import ConfigurationError, UpstreamError, UpstreamErrorKind

CONFIG = ProviderConfig(
    available=True, api_key="sk-test", base_url="https://api.openai.test/v1", model="gpt-4o-mini"
)


def _adapter(handler) -> OpenAIAdapter:
    return OpenAIAdapter(config=CONFIG, timeout_seconds=5.0, transport=httpx.MockTransport(handler))


def _request(**kwargs) -> CompletionRequest:
    return CompletionRequest(prompt="What is SSE?", provider_id=ProviderId.OPENAI, **kwargs)


async def _drain(stream) -> list[str]:
    return [fragment async for fragment in stream]


def test_generate_completion_sends_chat_payload_and_parses_result() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "id": "chatcmpl-1",
                "model": "gpt-4o-mini-2024-07-18",
                "choices": [
                    {
                        "message": {"role": "assistant", "content": "Server-Sent Events."},
                        "finish_reason": "stop",
                    }
                ],
                "usage": {"prompt_tokens": 9, "completion_tokens": 4, "total_tokens": 13},
            },
        )

    request = _request(
        parameters=CompletionParameters(temperature=0.5, max_tokens=32, stop_sequences=("\n\n",)),
        conversation_history=(ConversationTurn(role="system", content="Be terse."),),
    )
    result = asyncio.run(_adapter(handler).generate_completion(request))

    assert seen["url"] == "https://api.openai.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {
        "model": "gpt-4o-mini",
        "messages": [
            {"role": "system", "content": "Be terse."},
            {"role": "user", "content": "What is SSE?"},
        ],
        "stream": False,
        "temperature": 0.5,
        "max_tokens": 32,
        "stop": ["\n\n"],
    }
    assert result.content == "Server-Sent Events."
    assert result.model == "gpt-4o-mini-2024-07-18"
    assert result.finish_reason == "stop"
    assert result.usage is not None and result.usage.total_tokens == 13


def test_request_model_overrides_configured_default() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(
            200, json={"choices": [{"message": {"content": body["model"]}, "finish_reason": "stop"}]}
        )

    result = asyncio.run(_adapter(handler).generate_completion(_request(model_id="gpt-4o")))
    assert result.content == "gpt-4o"
    assert result.model == "gpt-4o"


def test_rejected_status_maps_to_upstream_rejected_with_provider_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(_adapter(handler).generate_completion(_request()))

    assert exc_info.value.kind is UpstreamErrorKind.UPSTREAM_REJECTED
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Incorrect API key provided"


def test_transport_failure_maps_to_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(_adapter(handler).generate_completion(_request()))

    assert exc_info.value.kind is UpstreamErrorKind.NETWORK


def test_missing_choices_is_a_protocol_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(_adapter(handler).generate_completion(_request()))

    assert exc_info.value.kind is UpstreamErrorKind.PROTOCOL


def test_stream_completion_yields_deltas_until_done_sentinel() -> None:
    events = [
        {"choices": [{"delta": {"role": "assistant"}}]},
        {"choices": [{"delta": {"content": "Server"}}]},
        {"choices": [{"delta": {"content": "-Sent"}}]},
        {"choices": [{"delta": {"content": " Events"}}]},
        {"choices": [{"delta": {}, "finish_reason": "stop"}]},
    ]
    body = "".join(f"data: {json.dumps(e)}\n\n" for e in events) + "data: [DONE]\n\n"

    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content)["stream"] is True
        return httpx.Response(
            200, content=body.encode(), headers={"content-type": "text/event-stream"}
        )

    fragments = asyncio.run(_drain(_adapter(handler).stream_completion(_request())))
    assert fragments == ["Server", "-Sent", " Events"]


def test_stream_rejected_status_raises_before_any_fragment() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "Rate limit reached"}})

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(_drain(_adapter(handler).stream_completion(_request())))

    assert exc_info.value.kind is UpstreamErrorKind.UPSTREAM_REJECTED
    assert exc_info.value.message == "Rate limit reached"


def test_stream_malformed_event_is_a_protocol_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"data: {not json\n\n")

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(_drain(_adapter(handler).stream_completion(_request())))

    assert exc_info.value.kind is UpstreamErrorKind.PROTOCOL


def test_missing_api_key_is_a_configuration_error() -> None:
    config = ProviderConfig(available=False, api_key=None, base_url=CONFIG.base_url, model="x")
    with pytest.raises(ConfigurationError) as exc_info:
        OpenAIAdapter(config=config, timeout_seconds=5.0)
    assert exc_info.value.reason == "unconfigured"
