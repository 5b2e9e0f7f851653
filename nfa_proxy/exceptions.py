from __future__ import annotations

from typing import Any, Dict, Optional


NO_SUPPORTED_MODEL_MESSAGE = "No Supported Model Has Been Registered"


class ProxyError(Exception):
    """
    Base class for errors that the HTTP front knows how to render.

    `error` is the machine-readable type used in the error payload;
    `details` carries optional structured context.
    """

    error = "proxy_error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(ProxyError):
    """Raised when a required setting is missing or malformed."""

    error = "configuration_error"


class InvalidRequestError(ProxyError):
    error = "invalid_request"


class ModelResolutionError(ProxyError):
    """Raised when a model handle cannot be mapped to a marketplace model."""

    error = "model_not_found"


class NoModelRegisteredError(ModelResolutionError):
    """
    The distinguished resolution failure surfaced to chat clients.
    """

    def __init__(self, message: str = NO_SUPPORTED_MODEL_MESSAGE, **kwargs: Any):
        super().__init__(message, **kwargs)


class UpstreamError(ProxyError):
    error = "upstream_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        attempts: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.status_code = status_code
        self.body = body
        self.attempts = attempts


class UpstreamRejectedError(UpstreamError):
    """Explicit 400/401 from the marketplace; never retried."""

    error = "upstream_rejected"


class ModelFetchError(UpstreamError):
    error = "model_fetch_failed"


class SessionCreationError(UpstreamError):
    """Session could not be opened after exhausting retries."""

    error = "session_creation_failed"


class ChatForwardError(UpstreamError):
    """Chat upstream answered with a non-200 status before streaming began."""

    error = "chat_forward_failed"


__all__ = [
    "NO_SUPPORTED_MODEL_MESSAGE",
    "ProxyError",
    "ConfigurationError",
    "InvalidRequestError",
    "ModelResolutionError",
    "NoModelRegisteredError",
    "UpstreamError",
    "UpstreamRejectedError",
    "ModelFetchError",
    "SessionCreationError",
    "ChatForwardError",
]
