"""
URL storage abstraction for Chart Orchestrator.

PURPOSE: Injectable stand-in for the browser location/history API.
AI CONTEXT: The URL is the durable source of truth for the dashboard view.

DESIGN:
- UrlStore Protocol defines the interface the ViewController needs
- MemoryUrlStore keeps a history stack in memory (server-side hosts, tests)
- A browser host implements the same two methods over window.location/history

USAGE:
    store = MemoryUrlStore("c=[]&date=7d", path="/dashboard")
    controller = ViewController(store)
    store.back()          # simulate browser back button
    controller.sync()     # re-read and notify
"""

from __future__ import annotations

import logging
from typing import Protocol

__all__ = ["UrlStore", "MemoryUrlStore"]

logger = logging.getLogger(__name__)


class UrlStore(Protocol):
    """
    Protocol for reading and writing the dashboard's query string.

    Business context: Sharing a dashboard means sharing its URL, so every
    state mutation is written here and every read comes from here. The
    abstraction lets non-browser hosts and tests supply their own storage.
    """

    def read(self) -> str:
        """
        Return the current query string without the leading '?'.

        Returns:
            Query string, '' when the URL has no query. Never raises.

        Example:
            >>> store.read()
            'c=[{"t":"bar","m":["prs_opened"]}]&date=7d'
        """
        ...

    def write(self, query: str) -> None:
        """
        Push a new history entry carrying the given query string.

        Args:
            query: Query string without the leading '?'.

        Example:
            >>> store.write('c=[]')
        """
        ...


class MemoryUrlStore:
    """
    In-memory URL history.

    Models the subset of browser history the dashboard relies on: pushes
    truncate any forward entries, back/forward move a cursor, and replace()
    changes the current entry without a push (router-driven navigation).

    THREAD SAFETY:
    Not thread-safe. Single event loop assumed, matching the browser model.
    """

    def __init__(self, initial: str = "", path: str = "/") -> None:
        """
        Initialize history with a single entry.

        Args:
            initial: Initial query string; a leading '?' is stripped.
            path: Path component reported by the url property.
        """
        self.path = path
        self._entries: list[str] = [initial.removeprefix("?")]
        self._cursor = 0

    def read(self) -> str:
        return self._entries[self._cursor]

    def write(self, query: str) -> None:
        del self._entries[self._cursor + 1 :]
        self._entries.append(query.removeprefix("?"))
        self._cursor += 1
        logger.debug("URL pushed: %s", self.url)

    def replace(self, query: str) -> None:
        """Overwrite the current entry without creating history."""
        self._entries[self._cursor] = query.removeprefix("?")

    def back(self) -> bool:
        """
        Move one entry back in history.

        Returns:
            True if the cursor moved, False when already at the oldest entry.
        """
        if self._cursor == 0:
            return False
        self._cursor -= 1
        return True

    def forward(self) -> bool:
        """Move one entry forward. Returns False at the newest entry."""
        if self._cursor >= len(self._entries) - 1:
            return False
        self._cursor += 1
        return True

    @property
    def history(self) -> list[str]:
        """Copy of every history entry, oldest first."""
        return list(self._entries)

    @property
    def url(self) -> str:
        """Path plus current query, as shown in an address bar."""
        query = self.read()
        return f"{self.path}?{query}" if query else self.path
