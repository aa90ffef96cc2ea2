from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from auth.session import SessionTerminator
from auth.token_store import CredentialStore

from .constants import DEFAULT_MAX_PENDING, LOGGER
from .errors import PendingQueueFull, RefreshFailure


class RefreshState(enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass
class PendingRequest:
    request: httpx.Request
    future: asyncio.Future


class RefreshCoordinator:
    """Single-flight credential renewal shared by every request of one client.

    The first 401 seen while idle starts the renewal; every 401 seen while it
    is in flight joins the same queue. When the renewal settles, each queued
    caller is released with the new credential or rejected with the same
    ``RefreshFailure``.

    The renewal is bounded by ``renewal_timeout`` seconds. ``max_pending``
    caps the queue; ``None`` leaves it unbounded.
    """

    def __init__(
        self,
        store: CredentialStore,
        renew: Callable[[], Awaitable[str]],
        terminator: SessionTerminator,
        *,
        renewal_timeout: float | None = None,
        max_pending: int | None = DEFAULT_MAX_PENDING,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self._renew = renew
        self._terminator = terminator
        self._renewal_timeout = renewal_timeout
        self._max_pending = max_pending
        self._logger = logger or LOGGER

        self._state = RefreshState.IDLE
        self._pending: list[PendingRequest] = []
        self._renewal_task: asyncio.Task | None = None
        self._renewal_count = 0

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def renewal_count(self) -> int:
        return self._renewal_count

    async def recover(self, request: httpx.Request) -> str:
        """Queue ``request`` behind the renewal and return the renewed credential.

        Raises ``RefreshFailure`` when the renewal fails and ``PendingQueueFull``
        when the queue is at capacity.
        """
        if self._max_pending and len(self._pending) >= self._max_pending:
            self._logger.warning(
                "Renewal queue full (%s); rejecting %s %s",
                self._max_pending,
                request.method,
                request.url,
            )
            raise PendingQueueFull(
                f"Too many requests waiting for credential renewal ({self._max_pending})."
            )

        future = asyncio.get_running_loop().create_future()
        self._pending.append(PendingRequest(request=request, future=future))

        # No await between the state check and the transition.
        if self._state is RefreshState.IDLE:
            self._state = RefreshState.REFRESHING
            self._renewal_count += 1
            self._renewal_task = asyncio.create_task(self._run_renewal())

        return await future

    async def _run_renewal(self) -> None:
        self._logger.info("Access credential rejected; renewing")
        credential: str | None = None
        failure: RefreshFailure | None = None
        try:
            if self._renewal_timeout is None:
                credential = await self._renew()
            else:
                credential = await asyncio.wait_for(self._renew(), self._renewal_timeout)
            self.store.set(credential)
            # A renewed credential starts a new session for the terminator.
            self._terminator.reset()
        except RefreshFailure as error:
            failure = error
        except asyncio.TimeoutError as error:
            failure = RefreshFailure(
                f"Credential renewal timed out after {self._renewal_timeout}s."
            )
            failure.__cause__ = error
        except Exception as error:
            failure = RefreshFailure(f"Credential renewal failed: {error}")
            failure.__cause__ = error
        finally:
            pending, self._pending = self._pending, []
            self._state = RefreshState.IDLE
            self._renewal_task = None
            if credential is None and failure is None:
                failure = RefreshFailure("Credential renewal was interrupted.")
            self._settle(pending, credential, failure)

    def _settle(
        self,
        pending: list[PendingRequest],
        credential: str | None,
        failure: RefreshFailure | None,
    ) -> None:
        if failure is None:
            self._logger.info("Credential renewed; replaying %s request(s)", len(pending))
            for entry in pending:
                if not entry.future.done():
                    entry.future.set_result(credential)
            return

        self._logger.warning(
            "Credential renewal failed: %s; rejecting %s request(s)",
            failure,
            len(pending),
        )
        for entry in pending:
            if not entry.future.done():
                entry.future.set_exception(failure)
        self._terminator.on_unrecoverable_auth_failure()
