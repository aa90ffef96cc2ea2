from __future__ import annotations

import httpx

# Network failures and timeouts are surfaced as httpx raises them.
TransportError = httpx.TransportError


class RelayError(RuntimeError):
    pass


class AuthorizationFailure(RelayError):
    def __init__(
        self,
        message: str = "Unauthorized request.",
        *,
        response: httpx.Response | None = None,
    ) -> None:
        super().__init__(message)
        self.response = response
        self.status_code = 401 if response is None else response.status_code


class RetryExhausted(AuthorizationFailure):
    """The request was already replayed with a renewed credential and still got a 401."""


class PendingQueueFull(AuthorizationFailure):
    """Too many requests are waiting on the in-flight credential renewal."""


class RefreshFailure(RelayError):
    """The renewal call failed. Terminal for the current session."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
