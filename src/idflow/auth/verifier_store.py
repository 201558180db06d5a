"""Durable storage for PKCE code verifiers across the login redirect.

The authorization-code branch of a silent login ends the current execution:
the browser navigates away, and whatever completes the code exchange runs
later, in a fresh process or page. The verifier therefore has to be written
outside process memory before navigating and read back afterwards.

:class:`VerifierStore` is the capability the flow orchestrator depends on.
:class:`FileVerifierStore` is the default implementation. It keeps one JSON
file per key under ``~/.local/share/idflow/verifiers/`` (XDG) or the
platform-equivalent directory, written atomically with ``0o600`` permissions
so that verifiers are never world-readable, even momentarily.

See Also:
    :meth:`~idflow.client.api_client.ApiClient.login_from_session` -- writes
    the verifier.
    :meth:`~idflow.client.api_client.ApiClient.exchange_authorization_code`
    -- reads it back once.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from idflow.config import atomic_write, get_data_dir
from idflow.models import PersistedVerifier

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]")


class VerifierStore(Protocol):
    """Keyed storage for in-flight code verifiers.

    One key is one in-flight flow. Writing the same key twice replaces the
    earlier verifier.
    """

    def save(self, key: str, value: str) -> None: ...

    def load(self, key: str) -> Optional[str]: ...

    def remove(self, key: str) -> None: ...


def _verifiers_dir() -> Path:
    """Return the verifiers directory, creating it if needed."""
    path = get_data_dir() / "verifiers"
    path.mkdir(parents=True, exist_ok=True)
    return path


class FileVerifierStore:
    """File-backed :class:`VerifierStore`.

    Args:
        directory: Where verifier files live. Defaults to the
            ``verifiers`` directory under :func:`~idflow.config.get_data_dir`.
        max_age: Seconds after which a stored verifier is treated as absent.
            ``None`` keeps verifiers until they are removed.

    Example::

        store = FileVerifierStore()
        store.save("verifier_key", pair.code_verifier)
        ...
        verifier = store.load("verifier_key")
    """

    def __init__(self, directory: Optional[Path] = None, max_age: Optional[int] = None) -> None:
        self._directory = directory
        self._max_age = max_age

    @property
    def directory(self) -> Path:
        if self._directory is None:
            return _verifiers_dir()
        self._directory.mkdir(parents=True, exist_ok=True)
        return self._directory

    def path_for(self, key: str) -> Path:
        """The filesystem path backing *key*."""
        return self.directory / f"{_SAFE_KEY_RE.sub('_', key)}.json"

    def save(self, key: str, value: str) -> None:
        """Persist *value* under *key* atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        entry = PersistedVerifier(key=key, code_verifier=value)
        text = json.dumps(entry.model_dump(mode="json"), indent=2) + "\n"
        atomic_write(self.path_for(key), text, mode=0o600)

    def load(self, key: str) -> Optional[str]:
        """Return the verifier stored under *key*.

        Returns:
            The verifier, or ``None`` if nothing is stored, the file cannot
            be parsed, or the entry is older than ``max_age``.
        """
        path = self.path_for(key)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            entry = PersistedVerifier.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError):
            return None

        if self._max_age is not None:
            created = entry.created_at
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            age = (datetime.now(timezone.utc) - created).total_seconds()
            if age > self._max_age:
                return None
        return entry.code_verifier

    def remove(self, key: str) -> None:
        """Delete the verifier stored under *key*. No-op when absent."""
        path = self.path_for(key)
        if path.is_file():
            path.unlink()
