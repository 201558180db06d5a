"""Fixtures shared by the idflow test suite.

The tenant constants mirror a local development tenant. ``RecordingNavigator``
and ``MemoryVerifierStore`` replace the browser and the verifier files so the
flows can be driven without side effects outside ``tmp_path``.
"""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any, Optional

import pytest

from idflow.models import Profile, RequestConfig
from idflow.output import reset_output


CLIENT_ID = "zdfuh"
DOMAIN = "local.reach5.net"

ID_TOKEN = (
    "eyJhbGciOiJSUzI1NiIsInR5cCI6IkpXVCJ9"
    ".eyJzdWIiOiIxMjM0NTY3ODkwIiwibmFtZSI6IkpvaG4gRG9lIn0"
    ".Pd6t82tPL3EZdkeYxw_DV2KimE1U2FvuLHmfR_mimJ5US3JFU4J2Gd94O7rwpSTGN1B9h-_lsTebo4ua4xHsT"
    "tmczZ9xa8a_kWKaSkqFjNFaFp6zcoD6ivCu03SlRqsQzSRHXo6TKbnqOt9D6Y2rNa3C4igSwoS0jUE4BgpXbc0"
)
ID_TOKEN_CLAIMS = {"sub": "1234567890", "name": "John Doe"}


def make_id_token(claims: dict[str, Any]) -> str:
    """Build an unsigned compact JWT carrying *claims*."""

    def _segment(data: dict[str, Any]) -> str:
        raw = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return f"{_segment({'alg': 'none', 'typ': 'JWT'})}.{_segment(claims)}.sig"


@pytest.fixture(autouse=True)
def _fresh_output() -> None:
    # A manager binds sys.stdout/sys.stderr when created; CliRunner and the
    # capture fixtures swap those per test.
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Capability stand-ins
# ---------------------------------------------------------------------------


class RecordingNavigator:
    """Navigator that records URLs instead of opening a browser."""

    def __init__(self) -> None:
        self.urls: list[str] = []

    def navigate(self, url: str) -> None:
        self.urls.append(url)

    @property
    def last_url(self) -> str:
        return self.urls[-1]


class MemoryVerifierStore:
    """In-memory verifier store that also records the order of operations."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []

    def save(self, key: str, value: str) -> None:
        self.calls.append(("save", key))
        self.values[key] = value

    def load(self, key: str) -> Optional[str]:
        self.calls.append(("load", key))
        return self.values.get(key)

    def remove(self, key: str) -> None:
        self.calls.append(("remove", key))
        self.values.pop(key, None)


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def verifier_store() -> MemoryVerifierStore:
    return MemoryVerifierStore()


@pytest.fixture
def sample_profile() -> Profile:
    return Profile(
        name="test-idp",
        domain=DOMAIN,
        client_id=CLIENT_ID,
        sso=False,
        request=RequestConfig(timeout=5),
    )


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run with ``tmp_path`` as working directory and as XDG root.

    Profiles end up in ``tmp_path/config/idflow``, verifiers and crash logs
    in ``tmp_path/data/idflow``. ``IDFLOW_*`` overrides from the caller's
    shell are cleared.
    """
    monkeypatch.setattr("idflow.config._is_xdg_platform", lambda: True)
    for var, sub in (("XDG_CONFIG_HOME", "config"), ("XDG_DATA_HOME", "data")):
        monkeypatch.setenv(var, str(tmp_path / sub))
    for var in ("IDFLOW_PROFILE", "IDFLOW_DOMAIN", "IDFLOW_CLIENT_ID"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
