from __future__ import annotations

from fastapi import Request

from llm_gateway.completions.gateway import CompletionGateway
from llm_gateway.completions.stream import StreamRelay


def get_completion_gateway(request: Request) -> CompletionGateway:
    return request.app.state.completion_gateway


def get_stream_relay(request: Request) -> StreamRelay:
    return request.app.state.stream_relay
