from __future__ import annotations
from typing import Optional


class ProviderError(Exception):
    """Base class for provider-level failures."""


class ProviderClientError(ProviderError):
    """
    Non-retryable: caller/config issue (missing credential, provider not
    initialized, unknown provider). The fix is change input/config, not retry.
    """


class ProviderTransientError(ProviderError):
    """
    Retryable: timeouts, connection resets, DNS hiccups.
    The core never retries; the caller decides.
    """


class ConfigError(ProviderClientError):
    """A mandatory provider setting (usually the API key) is missing."""


class UnavailableError(ProviderClientError):
    """A send was attempted before a successful initialize()."""


class NetworkError(ProviderTransientError):
    """Transport-level failure before a response status was received."""


class StreamInterruptedError(NetworkError):
    """Transport failure after the response stream had already opened."""


class ProtocolError(ProviderError):
    """The backend answered with a non-success status code."""

    def __init__(self, status_code: int, body: str = "", message: Optional[str] = None):
        self.status_code = int(status_code)
        self.body = body or ""
        super().__init__(message or f"HTTP {self.status_code}: {self.body[:200]}")

    @property
    def retryable(self) -> bool:
        return self.status_code == 429 or 500 <= self.status_code <= 599


class ParseError(ProviderError):
    """Response body (or a stream frame) is not valid JSON."""


class SchemaError(ProviderError):
    """Valid JSON, but the expected reply/delta field is absent."""
