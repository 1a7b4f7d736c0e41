"""Exception types shared across tools, providers and agents"""

from typing import Optional


class ProductionError(Exception):
    """Base class for production studio errors"""


class ProviderError(ProductionError):
    """A generative or media provider call failed

    Args:
        message: Human readable error
        status_code: HTTP-style status code when the provider returned one
        body: Raw response body (used for Cloudflare detection)
        provider: Provider name for logs
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 body: Optional[str] = None, provider: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.provider = provider


class CloudflareBlockedError(ProviderError):
    """Provider answered with a Cloudflare challenge page instead of a result"""


class ProviderNotConfiguredError(ProviderError):
    """Required API key or client is missing"""

    def __init__(self, provider: str, setting: str):
        super().__init__(
            f"{provider} is not configured. Set {setting} in the environment.",
            provider=provider
        )


class SessionNotFoundError(ProductionError, KeyError):
    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self):
        return f"Session not found: {self.session_id}"


class DuplicateToolError(ProductionError, ValueError):
    """Raised when a tool name is registered twice"""
