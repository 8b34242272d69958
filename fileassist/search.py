"""Search session with last-issued-wins result handling."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fileassist.gateway import RemoteGateway
from fileassist.models import Envelope, SearchHit

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SearchView:
    """What the search page currently shows."""

    token: int = 0
    query: str = ""
    semantic: bool = False
    results: tuple[SearchHit, ...] = ()
    error: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "query": self.query,
            "semantic": self.semantic,
            "results": [hit.as_dict() for hit in self.results],
            "error": self.error,
        }


def _parse_hits(data: Any) -> tuple[SearchHit, ...]:
    items = data.get("results") if isinstance(data, dict) else data
    if not isinstance(items, list):
        return ()
    return tuple(SearchHit.from_payload(item) for item in items if isinstance(item, dict))


ViewListener = Callable[[SearchView], Any]


class SearchSession:
    """Issues searches and applies only the newest one's outcome.

    Every non-empty ``issue`` takes the next token. When a response arrives
    for a token lower than the latest issued one, it is dropped: a slow early
    response can never overwrite the answer to a later query.
    """

    def __init__(self, gateway: RemoteGateway) -> None:
        self._gateway = gateway
        self._issued = 0
        self._current = SearchView()
        self._listeners: list[ViewListener] = []

    @property
    def current(self) -> SearchView:
        return self._current

    @property
    def latest_token(self) -> int:
        return self._issued

    @property
    def pending(self) -> bool:
        return self._current.token < self._issued

    def watch(self, listener: ViewListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unwatch() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unwatch

    async def issue(self, query: str, semantic: bool = False) -> Optional[SearchView]:
        """Run a search; returns the applied view, or ``None`` if skipped or superseded."""
        text = (query or "").strip()
        if not text:
            return None

        self._issued += 1
        token = self._issued
        envelope = await self._gateway.search(text, semantic)

        if token < self._issued:
            logger.debug("Discarding stale search #%d (%r); latest is #%d", token, text, self._issued)
            return None

        if envelope.success:
            view = SearchView(token=token, query=text, semantic=bool(semantic), results=_parse_hits(envelope.data))
        else:
            # Keep the previous hits on screen next to the error.
            view = SearchView(
                token=token,
                query=text,
                semantic=bool(semantic),
                results=self._current.results,
                error=envelope.error_message("search failed"),
            )
        self._current = view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Search listener failed")
        return view

    async def history(self, limit: int = 10) -> Envelope:
        return await self._gateway.search_history(limit)

    async def clear_history(self) -> Envelope:
        return await self._gateway.clear_search_history()


__all__ = ["SearchSession", "SearchView"]
