from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from llm_gateway.moderation.types import ModerationVerdict


class GatewayError(Exception):
    """Base class for errors the gateway surfaces to callers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidCompletionRequest(GatewayError):
    """Raised when a completion request violates a domain rule (e.g. blank prompt)."""


class ConfigurationError(GatewayError):
    """
    Raised when a provider cannot be resolved.

    `reason` is "unknown" for provider ids outside the supported set and
    "unconfigured" when the provider is known but has no credential.
    """

    def __init__(self, message: str, *, provider_id: str, reason: str):
        super().__init__(message)
        self.provider_id = provider_id
        self.reason = reason


class UpstreamErrorKind(str, Enum):
    NETWORK = "network"
    UPSTREAM_REJECTED = "upstream-rejected"
    PROTOCOL = "protocol"


class UpstreamError(GatewayError):
    """Raised by provider adapters for transport, status or payload failures. Never retried."""

    def __init__(
        self,
        message: str,
        *,
        provider_id: str,
        kind: UpstreamErrorKind,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.provider_id = provider_id
        self.kind = kind
        self.status_code = status_code


class ModerationFailure(Exception):
    """Internal classifier failure. Always absorbed as a fail-open verdict."""


class ContentPolicyViolation(GatewayError):
    """Raised when the input classifier rejects a prompt; carries the resolved safe message."""

    def __init__(self, *, verdict: ModerationVerdict, safe_message: str):
        super().__init__(safe_message)
        self.verdict = verdict
        self.safe_message = safe_message
