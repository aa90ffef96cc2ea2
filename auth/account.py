from __future__ import annotations

import httpx

from apirelay.constants import (
    LOGGER,
    LOGIN_PATH,
    LOGOUT_PATH,
    REFRESH_PATH,
    REGISTER_PATH,
    SKIP_REFRESH_EXTENSION,
)
from apirelay.errors import AuthorizationFailure, RefreshFailure
from auth.session import SessionTerminator
from auth.token_store import CredentialStore

ANONYMOUS = {SKIP_REFRESH_EXTENSION: True}


def extract_access_token(payload: object) -> str | None:
    """Pull the access token out of the shapes the API answers with.

    Accepts ``{"accessToken": ...}``, ``{"token": ...}`` and the same keys
    nested under ``data``.
    """
    if not isinstance(payload, dict):
        return None

    candidates = [payload]
    nested = payload.get("data")
    if isinstance(nested, dict):
        candidates.append(nested)

    for candidate in candidates:
        for key in ("accessToken", "token"):
            value = candidate.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def is_authenticated(store: CredentialStore) -> bool:
    return bool(store.get())


async def request_new_credential(
    client: httpx.AsyncClient,
    path: str = REFRESH_PATH,
) -> str:
    """Exchange the session cookie for a new access token.

    ``client`` must not be the intercepting API client.
    """
    try:
        response = await client.post(path)
        response.raise_for_status()
    except httpx.HTTPStatusError as error:
        status_code = error.response.status_code
        raise RefreshFailure(
            f"Credential renewal failed with status {status_code}.",
            status_code=status_code,
        ) from error
    except httpx.TransportError as error:
        raise RefreshFailure(f"Credential renewal request failed: {error}") from error

    try:
        payload = response.json()
    except ValueError as error:
        raise RefreshFailure(
            "Credential renewal returned a non-JSON body.",
            status_code=response.status_code,
        ) from error

    credential = extract_access_token(payload)
    if credential is None:
        raise RefreshFailure(
            "Credential renewal response did not include an access token.",
            status_code=response.status_code,
        )
    return credential


async def _authenticate(
    client: httpx.AsyncClient,
    store: CredentialStore,
    path: str,
    body: dict,
    terminator: SessionTerminator | None,
) -> dict:
    response = await client.post(path, json=body, extensions=ANONYMOUS)
    if response.status_code in (401, 403):
        raise AuthorizationFailure(
            f"Authentication rejected with status {response.status_code}.",
            response=response,
        )
    response.raise_for_status()

    payload = response.json()
    credential = extract_access_token(payload)
    if credential:
        store.set(credential)
        if terminator is not None:
            terminator.reset()
    else:
        LOGGER.warning("Authentication response for %s carried no access token", path)
    return payload


async def register_user(
    client: httpx.AsyncClient,
    store: CredentialStore,
    payload: dict,
    *,
    terminator: SessionTerminator | None = None,
) -> dict:
    return await _authenticate(client, store, REGISTER_PATH, payload, terminator)


async def login_user(
    client: httpx.AsyncClient,
    store: CredentialStore,
    email: str,
    password: str,
    *,
    terminator: SessionTerminator | None = None,
) -> dict:
    return await _authenticate(
        client,
        store,
        LOGIN_PATH,
        {"email": email, "password": password},
        terminator,
    )


async def logout_user(client: httpx.AsyncClient, store: CredentialStore) -> dict | None:
    """Tell the server to end the session, then forget the local credential.

    The local credential is cleared even when the server call fails.
    """
    try:
        response = await client.post(LOGOUT_PATH)
        response.raise_for_status()
        return response.json() if response.content else None
    finally:
        store.clear()
