"""Navigation capability used to send the user to the identity provider.

A silent login or a logout is a full page navigation, not a fetch: the
current execution hands the browser a URL and ends. The flow orchestrator
receives that action as an injected :class:`Navigator` so tests can record
URLs instead of opening a browser.
"""

from __future__ import annotations

import webbrowser
from typing import Protocol

from idflow.output import debug


class Navigator(Protocol):
    """Single-method capability that replaces the current location with *url*."""

    def navigate(self, url: str) -> None: ...


class BrowserNavigator:
    """Open URLs in the user's default web browser.

    Args:
        new_tab: Ask the browser for a new tab instead of reusing the
            current window.
    """

    def __init__(self, new_tab: bool = False) -> None:
        self._new = 2 if new_tab else 0

    def navigate(self, url: str) -> None:
        debug(f"Opening browser at {url.split('?', 1)[0]}")
        webbrowser.open(url, new=self._new)
