"""Bearer credential persistence.

The session manager only needs get/set/clear. Hosts plug in whatever
local storage they have; two implementations ship here.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

_logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Key-value capability holding at most one bearer credential."""

    def get(self) -> str | None: ...

    def set(self, credential: str) -> None: ...

    def clear(self) -> None: ...


class MemoryCredentialStore:
    """Process-local storage; nothing survives a restart."""

    def __init__(self, credential: str | None = None) -> None:
        self._credential = credential

    def get(self) -> str | None:
        return self._credential

    def set(self, credential: str) -> None:
        self._credential = credential

    def clear(self) -> None:
        self._credential = None


class FileCredentialStore:
    """JSON file storage, written atomically with owner-only permissions."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> str | None:
        try:
            content = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError):
            _logger.warning("Unreadable credential file %s ignored", self._path, exc_info=True)
            return None
        token = content.get("token") if isinstance(content, dict) else None
        return token if isinstance(token, str) and token else None

    def set(self, credential: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".credential-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump({"token": credential}, handle)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
