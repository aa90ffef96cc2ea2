from __future__ import annotations

from typing import Callable

from apirelay.constants import LOGGER
from auth.token_store import CredentialStore


class SessionTerminator:
    """Fail-closed hook run when the credential cannot be renewed.

    Every call clears the credential store. The host callback (typically
    "navigate to the login screen") fires once per session; later calls skip
    it until ``reset()`` is called after a successful login or renewal.
    """

    def __init__(
        self,
        store: CredentialStore,
        on_terminate: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self._on_terminate = on_terminate
        self._terminated = False

    @property
    def terminated(self) -> bool:
        return self._terminated

    def reset(self) -> None:
        self._terminated = False

    def on_unrecoverable_auth_failure(self) -> None:
        try:
            self._store.clear()
        except Exception:
            LOGGER.exception("Failed to clear credential store during session termination")

        if self._terminated:
            return
        self._terminated = True

        LOGGER.warning("Session terminated; re-authentication required.")
        if self._on_terminate is None:
            return
        try:
            self._on_terminate()
        except Exception:
            LOGGER.exception("Session termination callback failed")
