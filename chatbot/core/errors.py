from __future__ import annotations

from typing import Optional


class ChatbotError(Exception):
    """Base class for errors raised inside the chatbot core."""


class DataLoadError(ChatbotError):
    """Raised when the bundled country dataset is missing or malformed."""


class RemoteFetchError(ChatbotError):
    """Raised when the remote country API fails or returns an unusable body.

    ``transient`` marks failures worth retrying (network errors, timeouts,
    5xx and 429 responses).
    """

    def __init__(
        self,
        message: str,
        *,
        transient: bool = False,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.transient = transient
        self.status_code = status_code


class CountryNotFoundError(RemoteFetchError):
    """The remote API answered 404 for the requested country."""

    def __init__(self, country: str) -> None:
        super().__init__(f"Country not found remotely: {country}", status_code=404)
        self.country = country


class EngineStateError(ChatbotError):
    """Session state is inconsistent with the current conversation step."""


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, RemoteFetchError) and exc.transient
