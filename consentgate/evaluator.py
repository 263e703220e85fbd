"""Run blocked inline scripts once consent is given.

Captured script text is never executed as code. Sites register a Python
callable per inline script (keyed by the script element's ``id``), or a
fallback handler, and the evaluator calls it exactly once after the document
is ready.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from bs4 import Tag

from .elements import ATTRIBUTES
from .errors import ScriptEvaluationError
from .events import EventBus
from .page import Page

logger = logging.getLogger(__name__)

ScriptHandler = Callable[[Tag, str], Any]

READY = ("interactive", "complete")


class DeferredScriptEvaluator:
    def __init__(
        self,
        page: Page,
        handlers: dict[str, ScriptHandler] | None = None,
        *,
        fallback: ScriptHandler | None = None,
        attribute: str = ATTRIBUTES["data-consent-evaluated"],
        events: EventBus | None = None,
    ) -> None:
        self.page = page
        self.handlers: dict[str, ScriptHandler] = dict(handlers or {})
        self.fallback = fallback
        self.attribute = attribute
        self.events = events
        self.failures: list[ScriptEvaluationError] = []
        self._scheduled: list[Tag] = []

    def register(self, key: str, handler: ScriptHandler) -> ScriptHandler:
        self.handlers[key] = handler
        return handler

    def is_scheduled(self, element: Tag) -> bool:
        return any(scheduled is element for scheduled in self._scheduled)

    def schedule(self, element: Tag) -> bool:
        """Evaluate ``element`` once the document is ready.

        Returns ``False`` for scripts that already ran (or failed) or are queued.
        """

        if element.has_attr(self.attribute) or self.is_scheduled(element):
            return False
        self._scheduled.append(element)

        if self.page.ready_state in READY:
            self._evaluate(element)
            return True

        done = False

        def on_ready(**_: Any) -> None:
            nonlocal done
            if done or self.page.ready_state not in READY:
                return
            done = True
            self.page.remove_event_listener("DOMContentLoaded", on_ready)
            self.page.remove_event_listener("readystatechange", on_ready)
            self._evaluate(element)

        self.page.add_event_listener("DOMContentLoaded", on_ready)
        self.page.add_event_listener("readystatechange", on_ready)
        logger.debug("Deferred inline script until the document is ready")
        return True

    def _handler_for(self, element: Tag) -> tuple[str | None, ScriptHandler | None]:
        key = element.get("id")
        if key and key in self.handlers:
            return key, self.handlers[key]
        return key, self.fallback

    def _evaluate(self, element: Tag) -> bool:
        key, handler = self._handler_for(element)
        try:
            if handler is None:
                raise ScriptEvaluationError(key, f"No handler registered for inline script {key!r}")
            handler(element, element.get_text())
        except Exception as exc:
            error = exc if isinstance(exc, ScriptEvaluationError) else ScriptEvaluationError(key, str(exc))
            if error is not exc:
                error.__cause__ = exc
            logger.exception("Inline script %r failed to evaluate", key)
            element[self.attribute] = "false"
            self.failures.append(error)
            if self.events is not None:
                self.events.emit("error", element=element, error=error)
                self.events.emit("evaluate", element=element, key=key, success=False)
            return False

        element[self.attribute] = "true"
        logger.debug("Evaluated inline script %r", key)
        if self.events is not None:
            self.events.emit("evaluate", element=element, key=key, success=True)
        return True
