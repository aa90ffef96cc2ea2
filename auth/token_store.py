from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path


class CredentialStore(ABC):
    """Single owner of the current access credential.

    Implementations do not inspect the token; only server responses decide
    whether it is still valid.
    """

    @abstractmethod
    def get(self) -> str | None:
        raise NotImplementedError

    @abstractmethod
    def set(self, credential: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError


class MemoryCredentialStore(CredentialStore):
    def __init__(self, credential: str | None = None) -> None:
        self._credential = credential

    def get(self) -> str | None:
        return self._credential

    def set(self, credential: str) -> None:
        self._credential = credential

    def clear(self) -> None:
        self._credential = None


class FileCredentialStore(CredentialStore):
    def __init__(self, path: str | Path = ".apirelay_token.json") -> None:
        self._path = Path(path)

    def get(self) -> str | None:
        credential = self._read().get("access_token")
        if not isinstance(credential, str) or not credential:
            return None
        return credential

    def set(self, credential: str) -> None:
        self._write({"access_token": credential})

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)

    def _read(self) -> dict:
        if not self._path.exists():
            return {}

        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise RuntimeError("Credential store file is invalid; expected top-level JSON object.")
        return raw

    def _write(self, payload: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
