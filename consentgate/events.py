"""Explicit observer registration for consent gate events.

:class:`~consentgate.helper.ConsentHelper` publishes the following events;
listeners receive the payload as keyword arguments:

============== ==========================================================
``create``      ``helper``, ``elements`` (list of tags), ``has_cookie``
``categorize``  ``categories`` (name -> list of tags)
``activate``    ``element``
``deactivate``  ``element``
``decorate``    ``element``, ``decoration``
``undecorate``  ``element``, ``decoration``
``allow``       ``category``, ``elements``
``disallow``    ``category``, ``elements``
``update``      ``helper``
``refresh``     ``elements`` (re-decorated tags)
``evaluate``    ``element``, ``key``, ``success``
``error``       ``element``, ``error``
============== ==========================================================

The :class:`~consentgate.page.Page` uses an unrestricted bus for its
browser-style events (``DOMContentLoaded``, ``load``, ``resize``, CMP update
events, ...).
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]

HELPER_EVENTS: frozenset[str] = frozenset(
    {
        "create",
        "categorize",
        "activate",
        "deactivate",
        "decorate",
        "undecorate",
        "allow",
        "disallow",
        "update",
        "refresh",
        "evaluate",
        "error",
    }
)


class EventBus:
    """Synchronous publish/subscribe registry.

    Listeners run in registration order and each :meth:`emit` call runs all of
    them to completion before returning.
    """

    def __init__(self, names: Iterable[str] | None = None) -> None:
        self._names = frozenset(names) if names is not None else None
        self._listeners: dict[str, list[tuple[Listener, bool]]] = defaultdict(list)

    def _check(self, name: str) -> None:
        if self._names is not None and name not in self._names:
            raise ValueError(f"Unknown event name: {name!r}")

    def subscribe(self, name: str, listener: Listener, *, once: bool = False) -> Listener:
        self._check(name)
        self._listeners[name].append((listener, once))
        return listener

    def unsubscribe(self, name: str, listener: Listener) -> bool:
        entries = self._listeners.get(name, [])
        for index, (registered, _) in enumerate(entries):
            # bound methods are rebuilt on attribute access, so compare with ==
            if registered == listener:
                del entries[index]
                return True
        return False

    def listeners(self, name: str) -> list[Listener]:
        return [listener for listener, _ in self._listeners.get(name, [])]

    def emit(self, name: str, **payload: Any) -> int:
        """Call every listener of ``name`` and return how many ran."""

        self._check(name)
        entries = list(self._listeners.get(name, []))
        if not entries:
            return 0

        # one-shot listeners are dropped before running so re-entrant emits skip them
        self._listeners[name] = [entry for entry in self._listeners[name] if not entry[1]]
        for listener, _ in entries:
            listener(**payload)
        logger.debug("Dispatched %s to %d listener(s)", name, len(entries))
        return len(entries)
