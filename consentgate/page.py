"""BeautifulSoup backed document model the consent helper runs against."""
from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from bs4 import BeautifulSoup, Tag

from .events import EventBus, Listener

logger = logging.getLogger(__name__)

READY_STATES = ("loading", "interactive", "complete")

_DISPLAY_NONE = re.compile(r"display\s*:\s*none", re.IGNORECASE)
_STYLE_SIZE = r"(?:^|;)\s*{name}\s*:\s*(\d+(?:\.\d+)?)px"


class Page:
    """A parsed document plus the browser surface used by the consent helper.

    Holds the document tree, the ready state, window-level events, element
    click listeners, the cookie string and the set of global objects a CMP
    script would expose. Every dispatch runs its listeners to completion.
    """

    def __init__(
        self,
        html: str,
        *,
        cookie: str = "",
        globals: Mapping[str, Any] | None = None,
        ready_state: str = "loading",
        parser: str = "html.parser",
    ) -> None:
        if ready_state not in READY_STATES:
            raise ValueError(f"Unknown ready state: {ready_state!r}")
        self.soup = BeautifulSoup(html, parser)
        self.cookie = cookie
        self.globals: dict[str, Any] = dict(globals or {})
        self.ready_state = ready_state
        self.events = EventBus()
        self._element_listeners: list[tuple[Tag, str, Listener]] = []

    @property
    def html(self) -> str:
        return str(self.soup)

    # events --------------------------------------------------------------

    def add_event_listener(self, name: str, listener: Listener, *, once: bool = False) -> Listener:
        return self.events.subscribe(name, listener, once=once)

    def remove_event_listener(self, name: str, listener: Listener) -> bool:
        return self.events.unsubscribe(name, listener)

    def dispatch(self, name: str, **detail: Any) -> int:
        return self.events.emit(name, **detail)

    def set_ready_state(self, state: str) -> bool:
        """Advance the ready state, firing the events a browser would fire.

        Returns ``False`` when ``state`` is not ahead of the current state.
        """

        if state not in READY_STATES:
            raise ValueError(f"Unknown ready state: {state!r}")
        current = READY_STATES.index(self.ready_state)
        target = READY_STATES.index(state)
        if target <= current:
            return False

        for next_state in READY_STATES[current + 1 : target + 1]:
            self.ready_state = next_state
            logger.debug("Document ready state is now %s", next_state)
            self.dispatch("readystatechange", ready_state=next_state)
            if next_state == "interactive":
                self.dispatch("DOMContentLoaded")
            else:
                self.dispatch("load")
        return True

    def resize(self) -> int:
        return self.dispatch("resize")

    def add_element_listener(self, element: Tag, name: str, listener: Listener) -> Listener:
        self._element_listeners.append((element, name, listener))
        return listener

    def remove_element_listeners(self, element: Tag) -> int:
        kept = [entry for entry in self._element_listeners if entry[0] is not element]
        removed = len(self._element_listeners) - len(kept)
        self._element_listeners = kept
        return removed

    def click(self, element: Tag) -> int:
        """Run the click listeners registered on ``element``."""

        listeners = [
            listener
            for target, name, listener in self._element_listeners
            if target is element and name == "click"
        ]
        for listener in listeners:
            listener(element)
        return len(listeners)

    # environment ---------------------------------------------------------

    def has_global(self, name: str) -> bool:
        return name in self.globals

    def get_cookie(self, name: str) -> str | None:
        for chunk in self.cookie.split(";"):
            key, _, value = chunk.strip().partition("=")
            if key.strip() == name and value.strip():
                return value.strip()
        return None

    # tree ----------------------------------------------------------------

    def query(self, selector: str) -> Tag | None:
        return self.soup.select_one(selector)

    def query_all(self, selector: str) -> list[Tag]:
        return self.soup.select(selector)

    def get_element_by_id(self, identifier: str) -> Tag | None:
        return self.soup.find(id=identifier)

    def fragment(self, markup: str) -> BeautifulSoup:
        return BeautifulSoup(markup, "html.parser")

    def is_attached(self, element: Tag) -> bool:
        node = element
        while node is not None:
            if node is self.soup:
                return True
            node = node.parent
        return False

    def is_visible(self, element: Tag) -> bool:
        """Whether ``element`` is in the document and not hidden by itself or an ancestor."""

        if not self.is_attached(element):
            return False
        node = element
        while node is not None and node is not self.soup:
            if node.has_attr("hidden"):
                return False
            if _DISPLAY_NONE.search(node.get("style", "")):
                return False
            node = node.parent
        return True

    def measure(self, element: Tag) -> tuple[int, int]:
        """Return the rendered ``(width, height)`` as declared by the markup."""

        return self._dimension(element, "width"), self._dimension(element, "height")

    @staticmethod
    def _dimension(element: Tag, name: str) -> int:
        style = element.get("style", "")
        match = re.search(_STYLE_SIZE.format(name=name), style, re.IGNORECASE)
        if match:
            return int(float(match.group(1)))
        value = str(element.get(name, "")).strip().removesuffix("px")
        if value.isdigit():
            return int(value)
        return 0
