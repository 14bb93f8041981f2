"""Error taxonomy for news fetching."""

from __future__ import annotations

from typing import Optional


class NewsError(Exception):
    """Base class for every failure raised while fetching news."""


class CredentialMissingError(NewsError):
    """No API key is stored locally."""

    def __init__(self, message: str = "An API key is required to load news.") -> None:
        super().__init__(message)


class CredentialRejectedError(NewsError):
    """The provider refused the API key (HTTP 401/403 or an explicit message)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class QuotaExceededError(NewsError):
    """The last known quota snapshot has no calls left."""

    def __init__(self, message: str = "API quota exceeded. Please try again later.") -> None:
        super().__init__(message)


class UpstreamError(NewsError):
    """Non-2xx response, transport failure or malformed body."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(UpstreamError):
    """The provider could not be reached (connection, DNS or timeout failure).

    The message names only the failure kind. Request URLs and headers are
    left out because they carry the API key.
    """

    def __init__(self, message: str = "Could not reach the news provider.") -> None:
        super().__init__(message)


_CREDENTIAL_MARKERS = ("api key", "api-key", "apikey", "api_key", "credential")


def mentions_credential(message: str) -> bool:
    """Return True if an upstream error message refers to the API key.

    Only meaningful for messages taken from a response body.
    """
    lowered = (message or "").lower()
    return any(marker in lowered for marker in _CREDENTIAL_MARKERS)
