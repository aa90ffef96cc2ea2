import json

import httpx
import pytest

from apirelay.errors import AuthorizationFailure, RefreshFailure
from auth.account import (
    extract_access_token,
    is_authenticated,
    login_user,
    logout_user,
    register_user,
    request_new_credential,
)
from auth.session import SessionTerminator
from auth.token_store import MemoryCredentialStore

BASE_URL = "https://api.example.test/api"
REFRESH_URL = f"{BASE_URL}/user/refresh-token"


@pytest.mark.parametrize(
    "payload",
    [
        {"accessToken": "T1"},
        {"token": "T1"},
        {"data": {"accessToken": "T1"}},
        {"status": True, "data": {"token": "T1"}},
    ],
)
def test_extract_access_token_shapes(payload) -> None:
    assert extract_access_token(payload) == "T1"


@pytest.mark.parametrize("payload", [None, [], {}, {"accessToken": ""}, {"data": "T1"}])
def test_extract_access_token_missing(payload) -> None:
    assert extract_access_token(payload) is None


def test_is_authenticated() -> None:
    assert is_authenticated(MemoryCredentialStore("T1")) is True
    assert is_authenticated(MemoryCredentialStore()) is False


@pytest.mark.asyncio
async def test_request_new_credential_success(httpx_mock) -> None:
    httpx_mock.add_response(url=REFRESH_URL, method="POST", json={"accessToken": "T2"})

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        credential = await request_new_credential(client)

    assert credential == "T2"
    request = httpx_mock.get_request()
    assert request.content == b""
    assert "authorization" not in request.headers


@pytest.mark.asyncio
async def test_request_new_credential_error_status(httpx_mock) -> None:
    httpx_mock.add_response(url=REFRESH_URL, method="POST", status_code=403, text="forbidden")

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(RefreshFailure, match="status 403") as error:
            await request_new_credential(client)

    assert error.value.status_code == 403
    assert isinstance(error.value.__cause__, httpx.HTTPStatusError)


@pytest.mark.asyncio
async def test_request_new_credential_transport_error(httpx_mock) -> None:
    httpx_mock.add_exception(httpx.ConnectError("connection refused"), url=REFRESH_URL)

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(RefreshFailure, match="connection refused") as error:
            await request_new_credential(client)

    assert error.value.status_code is None


@pytest.mark.asyncio
async def test_request_new_credential_missing_token(httpx_mock) -> None:
    httpx_mock.add_response(url=REFRESH_URL, method="POST", json={"status": True})

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(RefreshFailure, match="did not include an access token"):
            await request_new_credential(client)


@pytest.mark.asyncio
async def test_request_new_credential_non_json(httpx_mock) -> None:
    httpx_mock.add_response(url=REFRESH_URL, method="POST", text="<html>oops</html>")

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(RefreshFailure, match="non-JSON"):
            await request_new_credential(client)


@pytest.mark.asyncio
async def test_login_stores_token_and_rearms_terminator(httpx_mock) -> None:
    httpx_mock.add_response(
        url=f"{BASE_URL}/user/login",
        method="POST",
        json={"accessToken": "T1", "user": {"email": "ada@example.com"}},
    )
    store = MemoryCredentialStore()
    terminator = SessionTerminator(store)
    terminator.on_unrecoverable_auth_failure()

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        payload = await login_user(
            client, store, "ada@example.com", "secret", terminator=terminator
        )

    assert payload["user"] == {"email": "ada@example.com"}
    assert store.get() == "T1"
    assert terminator.terminated is False
    assert json.loads(httpx_mock.get_request().content) == {
        "email": "ada@example.com",
        "password": "secret",
    }


@pytest.mark.asyncio
async def test_login_rejected(httpx_mock) -> None:
    httpx_mock.add_response(url=f"{BASE_URL}/user/login", method="POST", status_code=401)
    store = MemoryCredentialStore()

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(AuthorizationFailure):
            await login_user(client, store, "ada@example.com", "wrong")

    assert store.get() is None


@pytest.mark.asyncio
async def test_register_stores_token_when_present(httpx_mock) -> None:
    httpx_mock.add_response(
        url=f"{BASE_URL}/user/register",
        method="POST",
        status_code=201,
        json={"data": {"token": "T1"}},
    )
    store = MemoryCredentialStore()

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        await register_user(
            client,
            store,
            {"name": "Ada", "email": "ada@example.com", "password": "secret", "role": "user"},
        )

    assert store.get() == "T1"


@pytest.mark.asyncio
async def test_register_server_error_raises(httpx_mock) -> None:
    httpx_mock.add_response(url=f"{BASE_URL}/user/register", method="POST", status_code=500)

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await register_user(client, MemoryCredentialStore(), {"email": "ada@example.com"})


@pytest.mark.asyncio
async def test_logout_clears_store(httpx_mock) -> None:
    httpx_mock.add_response(url=f"{BASE_URL}/user/logout", method="POST", json={"status": True})
    store = MemoryCredentialStore("T1")

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        assert await logout_user(client, store) == {"status": True}

    assert store.get() is None


@pytest.mark.asyncio
async def test_logout_clears_store_even_when_server_fails(httpx_mock) -> None:
    httpx_mock.add_response(url=f"{BASE_URL}/user/logout", method="POST", status_code=500)
    store = MemoryCredentialStore("T1")

    async with httpx.AsyncClient(base_url=BASE_URL) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await logout_user(client, store)

    assert store.get() is None
