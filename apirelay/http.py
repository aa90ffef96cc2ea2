from __future__ import annotations

import logging
from http.cookiejar import CookieJar

import httpx

from .constants import LOGGER, RETRIED_EXTENSION, SKIP_REFRESH_EXTENSION
from .coordinator import RefreshCoordinator
from .errors import RetryExhausted


def _rebuild_request(
    request: httpx.Request,
    *,
    headers: httpx.Headers | None = None,
    extensions: dict | None = None,
) -> httpx.Request:
    return httpx.Request(
        method=request.method,
        url=request.url,
        headers=request.headers if headers is None else headers,
        content=request.content,
        extensions=request.extensions if extensions is None else extensions,
    )


def decorate_request(request: httpx.Request, credential: str | None) -> httpx.Request:
    """Return a copy of ``request`` carrying ``credential`` as a bearer token.

    Anonymous requests (no credential) are returned untouched.
    """
    if not credential:
        return request
    headers = request.headers.copy()
    headers["Authorization"] = f"Bearer {credential}"
    return _rebuild_request(request, headers=headers)


def mark_retried(request: httpx.Request) -> httpx.Request:
    return _rebuild_request(request, extensions={**request.extensions, RETRIED_EXTENSION: True})


def is_retried(request: httpx.Request) -> bool:
    return bool(request.extensions.get(RETRIED_EXTENSION))


def is_authorization_failure(response: httpx.Response) -> bool:
    return response.status_code == httpx.codes.UNAUTHORIZED


class AuthRefreshTransport(httpx.AsyncBaseTransport):
    """Decorates every request and hands 401 responses to the coordinator.

    Only the API client goes through this transport. The renewal call uses a
    client on the bare transport, so its own 401 can never start a renewal.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        coordinator: RefreshCoordinator,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._transport = transport
        self._coordinator = coordinator
        self._logger = logger or LOGGER

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        return await self._send(request, self._coordinator.store.get())

    async def _send(self, request: httpx.Request, credential: str | None) -> httpx.Response:
        outgoing = decorate_request(request, credential)
        response = await self._transport.handle_async_request(outgoing)

        if not is_authorization_failure(response):
            return response
        if request.extensions.get(SKIP_REFRESH_EXTENSION):
            return response

        if is_retried(request):
            await response.aread()
            self._logger.warning(
                "Request still unauthorized after credential renewal (%s %s)",
                request.method,
                request.url,
            )
            raise RetryExhausted(
                f"Request rejected after credential renewal: {request.method} {request.url}",
                response=response,
            )

        await response.aclose()
        credential = await self._coordinator.recover(request)
        return await self._send(mark_retried(request), credential)

    async def aclose(self) -> None:
        await self._transport.aclose()


def build_api_client(
    base_url: str,
    coordinator: RefreshCoordinator,
    *,
    timeout: httpx.Timeout,
    cookies: CookieJar,
    transport: httpx.AsyncBaseTransport | None = None,
    event_hooks: dict | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        cookies=cookies,
        transport=AuthRefreshTransport(
            transport or httpx.AsyncHTTPTransport(),
            coordinator,
        ),
        event_hooks=event_hooks,
    )


def build_refresh_client(
    base_url: str,
    *,
    timeout: httpx.Timeout,
    cookies: CookieJar,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        cookies=cookies,
        transport=transport or httpx.AsyncHTTPTransport(),
    )
