from __future__ import annotations

import argparse
import asyncio
import functools
import getpass
import json
import os
import sys
from http.cookiejar import CookieJar, LWPCookieJar
from pathlib import Path
from typing import Callable

import httpx

from apirelay.constants import HTTP_METHODS, LOGGER
from apirelay.coordinator import RefreshCoordinator
from apirelay.env import RelaySettings, load_env, load_settings, setup_logging
from apirelay.errors import AuthorizationFailure, RefreshFailure
from apirelay.http import build_api_client, build_refresh_client
from auth import account
from auth.session import SessionTerminator
from auth.token_store import CredentialStore, FileCredentialStore


class RelayClient:
    """Owns the API client, the renewal client and the shared session state."""

    def __init__(
        self,
        *,
        api: httpx.AsyncClient,
        refresh_client: httpx.AsyncClient,
        store: CredentialStore,
        coordinator: RefreshCoordinator,
        terminator: SessionTerminator,
        cookies: CookieJar,
    ) -> None:
        self.api = api
        self.refresh_client = refresh_client
        self.store = store
        self.coordinator = coordinator
        self.terminator = terminator
        self.cookies = cookies

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        return await self.api.request(method, path, **kwargs)

    async def login(self, email: str, password: str) -> dict:
        return await account.login_user(
            self.api, self.store, email, password, terminator=self.terminator
        )

    async def register(self, payload: dict) -> dict:
        return await account.register_user(
            self.api, self.store, payload, terminator=self.terminator
        )

    async def logout(self) -> dict | None:
        return await account.logout_user(self.api, self.store)

    def is_authenticated(self) -> bool:
        return account.is_authenticated(self.store)

    async def aclose(self) -> None:
        try:
            await self.api.aclose()
        finally:
            try:
                await self.refresh_client.aclose()
            finally:
                self._save_cookies()

    def _save_cookies(self) -> None:
        if isinstance(self.cookies, LWPCookieJar) and self.cookies.filename:
            Path(self.cookies.filename).parent.mkdir(parents=True, exist_ok=True)
            self.cookies.save(ignore_discard=True)

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def load_cookie_jar(path: str | None) -> CookieJar:
    if not path:
        return CookieJar()
    jar = LWPCookieJar(path)
    if os.path.exists(path):
        jar.load(ignore_discard=True)
    return jar


def create_client(
    settings: RelaySettings | None = None,
    *,
    store: CredentialStore | None = None,
    on_terminate: Callable[[], None] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RelayClient:
    if settings is None:
        load_env()
        settings = load_settings()
    debug_enabled = setup_logging(settings.debug)

    if store is None:
        store = FileCredentialStore(settings.token_store_path)
    terminator = SessionTerminator(store, on_terminate)
    timeout = httpx.Timeout(settings.timeout)
    cookies = load_cookie_jar(settings.cookie_jar_path)

    refresh_client = build_refresh_client(
        settings.base_url,
        timeout=timeout,
        cookies=cookies,
        transport=transport,
    )
    coordinator = RefreshCoordinator(
        store,
        functools.partial(account.request_new_credential, refresh_client, settings.refresh_path),
        terminator,
        renewal_timeout=settings.renewal_timeout,
        max_pending=settings.max_pending,
        logger=LOGGER,
    )

    async def log_request(request: httpx.Request) -> None:
        if not debug_enabled:
            return
        LOGGER.info("API request %s %s", request.method, request.url)

    async def log_response(response: httpx.Response) -> None:
        if not debug_enabled:
            return
        LOGGER.info(
            "API response %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )
        if response.status_code >= 400:
            body = await response.aread()
            text = body.decode("utf-8", errors="replace")
            if len(text) > 1000:
                text = text[:1000] + "...<truncated>"
            LOGGER.warning("API error body: %s", text)

    api = build_api_client(
        settings.base_url,
        coordinator,
        timeout=timeout,
        cookies=cookies,
        transport=transport,
        event_hooks={"request": [log_request], "response": [log_response]},
    )
    return RelayClient(
        api=api,
        refresh_client=refresh_client,
        store=store,
        coordinator=coordinator,
        terminator=terminator,
        cookies=cookies,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="apirelay", description="Authenticated API client.")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Log in and store the access token.")
    login.add_argument("email")
    login.add_argument("--password", default=None, help="Prompted for when omitted.")

    commands.add_parser("logout", help="End the session and forget the access token.")
    commands.add_parser("status", help="Show whether an access token is stored.")

    request = commands.add_parser("request", help="Send an authenticated request.")
    request.add_argument("method", type=str.lower, choices=sorted(HTTP_METHODS))
    request.add_argument("path")
    request.add_argument("--json", dest="json_body", default=None, help="JSON request body.")
    request.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Query parameter; may be repeated.",
    )
    return parser


def parse_params(items: list[str]) -> list[tuple[str, str]]:
    params: list[tuple[str, str]] = []
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid query parameter {item!r}; expected KEY=VALUE.")
        params.append((key, value))
    return params


def _print_payload(payload) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


async def run_command(args: argparse.Namespace, relay: RelayClient) -> int:
    if args.command == "status":
        print("authenticated" if relay.is_authenticated() else "anonymous")
        return 0

    if args.command == "login":
        password = args.password or getpass.getpass("Password: ")
        _print_payload(await relay.login(args.email, password))
        return 0

    if args.command == "logout":
        _print_payload(await relay.logout())
        return 0

    body = json.loads(args.json_body) if args.json_body else None
    response = await relay.request(
        args.method.upper(),
        args.path,
        json=body,
        params=parse_params(args.param),
    )
    print(f"HTTP {response.status_code}")
    try:
        _print_payload(response.json())
    except ValueError:
        print(response.text)
    return 0 if response.is_success else 1


async def _main(args: argparse.Namespace) -> int:
    async with create_client() as relay:
        try:
            return await run_command(args, relay)
        except RefreshFailure as error:
            print(f"Session expired, please log in again: {error}", file=sys.stderr)
            return 2
        except AuthorizationFailure as error:
            print(f"Unauthorized: {error}", file=sys.stderr)
            return 2
        except httpx.HTTPError as error:
            print(f"Request failed: {error}", file=sys.stderr)
            return 1
        except ValueError as error:
            print(f"Invalid input: {error}", file=sys.stderr)
            return 1


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    raise SystemExit(asyncio.run(_main(args)))


if __name__ == "__main__":
    main()
