"""Client-side consent state machine.

:class:`ConsentHelper` is built once per :class:`~consentgate.page.Page`. It
collects every element the sanitizer encoded, sorts them into the configured
consent categories and, whenever the CMP reports a change, restores the
elements of consented categories and keeps the others blocked behind an
overlay.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterable, Mapping

from bs4 import Tag
from soupsieve import SelectorSyntaxError

from .adapter import CmpAdapter, require_capabilities
from .config import FrontendConfig
from .decoration import DecorationEngine
from .elements import DEFAULT_DECORATIONS, resolve_attributes
from .evaluator import DeferredScriptEvaluator
from .events import HELPER_EVENTS, EventBus, Listener
from .page import Page
from .schemas import Decoration

logger = logging.getLogger(__name__)


class CategoryState(str, Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"


class ConsentHelper:
    """Drive activation of encoded elements from the CMP's consent state.

    ``adapter`` must provide every :class:`~consentgate.adapter.CmpAdapter`
    operation; construction fails with :class:`~consentgate.errors.AdapterError`
    otherwise. ``listeners`` maps event names (see :mod:`consentgate.events`)
    to callables subscribed before the initial categorize/update run.
    """

    def __init__(
        self,
        page: Page,
        adapter: CmpAdapter,
        config: FrontendConfig | None = None,
        *,
        evaluator: DeferredScriptEvaluator | None = None,
        listeners: Mapping[str, Listener | Iterable[Listener]] | None = None,
    ) -> None:
        self.adapter = require_capabilities(adapter)
        self.page = page
        self.config = config or FrontendConfig()
        self.attributes = resolve_attributes(self.config.attributes)
        self.events = EventBus(HELPER_EVENTS)

        for name, registered in (listeners or {}).items():
            for listener in [registered] if callable(registered) else registered:
                self.events.subscribe(name, listener)

        self.decorations: list[str] = []
        for name in (*DEFAULT_DECORATIONS, *self.config.decorations):
            if name not in self.decorations:
                self.decorations.append(name)

        self.decorator = DecorationEngine(page, self.config.messages, self.config.classes)
        if evaluator is None:
            evaluator = DeferredScriptEvaluator(page, attribute=self._attr("data-consent-evaluated"))
        if evaluator.events is None:
            evaluator.events = self.events
        self.evaluator = evaluator

        self.selector = f"[{self._attr('data-consent-element')}]"
        self.elements: list[Tag] = page.query_all(self.selector)
        self._handles = {id(element): index for index, element in enumerate(self.elements)}
        self.categorization = {
            name: [domain for domain in self.config.categorization.get(name, []) if domain]
            for name in self.config.categories
        }
        self.categories: dict[str, list[Tag]] = {name: [] for name in self.config.categories}
        self.states: dict[str, CategoryState] = {}

        self.events.emit(
            "create", helper=self, elements=list(self.elements), has_cookie=self.has_cmp_cookie()
        )
        logger.info("Consent helper found %d encoded element(s)", len(self.elements))

        self.categorize()
        self.update()

        self._update_event = self.adapter.update_event_name()
        page.add_event_listener(self._update_event, self._on_update)
        page.add_event_listener("load", self._on_update, once=True)
        page.add_event_listener("resize", self._on_resize)

    # helpers -------------------------------------------------------------

    def _attr(self, name: str) -> str:
        return self.attributes.get(name, name)

    def _on_update(self, **_: Any) -> None:
        self.update()

    def _on_resize(self, **_: Any) -> None:
        self.refresh()

    def handle(self, element: Tag) -> int | None:
        """Return the stable index of ``element`` or ``None`` for unknown elements."""

        index = self._handles.get(id(element))
        if index is None or self.elements[index] is not element:
            return None
        return index

    def has_cmp_cookie(self) -> bool:
        return self.page.get_cookie(self.adapter.cookie_name()) is not None

    def loading_attribute(self, element: Tag) -> str | None:
        return element.get(self._attr("data-consent-attribute")) or None

    @staticmethod
    def is_inline_script(element: Tag) -> bool:
        return element.name == "script" and not element.has_attr("src")

    def is_decoratable(self, element: Tag) -> bool:
        return element.name in self.decorations or element.has_attr(self._attr("data-consent-decorates"))

    def is_decorated(self, element: Tag) -> bool:
        return element.has_attr(self._attr("data-consent-decorator"))

    def decoration_target(self, element: Tag) -> Tag | None:
        selector = element.get(self._attr("data-consent-decorates"))
        if not selector:
            return element
        try:
            return self.page.query(selector)
        except SelectorSyntaxError:
            logger.warning("Invalid decoration selector %r", selector)
            return None

    def is_active(self, element: Tag) -> bool:
        attribute = self.loading_attribute(element)
        if attribute:
            return element.get(attribute) == element.get(self._attr("data-consent-value"))
        if self.is_inline_script(element):
            return element.has_attr(self._attr("data-consent-evaluated")) or self.evaluator.is_scheduled(element)
        return False

    def _is_deactivated(self, element: Tag) -> bool:
        attribute = self.loading_attribute(element)
        alternative = element.get(self._attr("data-consent-alternative"), "")
        if attribute and element.get(attribute) != alternative:
            return False
        if not self.is_decoratable(element) or self.is_decorated(element):
            return True
        target = self.decoration_target(element)
        return target is None or not self.page.is_visible(target)

    # operations ----------------------------------------------------------

    def categorize(self) -> ConsentHelper:
        """Assign every element to the first category whose rules match its value."""

        value_name = self._attr("data-consent-value")
        category_name = self._attr("data-consent-category")
        alternative_name = self._attr("data-consent-alternative")
        catch_all = self.config.categories[-1] if self.config.categories else "unclassified"

        self.categories = {name: [] for name in self.config.categories}
        self.categories.setdefault(catch_all, [])

        for element in self.elements:
            attribute = self.loading_attribute(element)
            value = element.get(value_name, "")
            # an active element holds the real value; keep the recorded placeholder
            if attribute and element.get(attribute) != value:
                element[alternative_name] = element.get(attribute, "")

            category = next(
                (
                    name
                    for name in self.config.categories
                    if value and any(domain in value for domain in self.categorization[name])
                ),
                None,
            )

            if category is None and self.is_inline_script(element):
                authored = element.get(category_name)
                if authored in self.categories:
                    self.categories[authored].append(element)
                else:
                    logger.debug("Inline script without a known category is left untouched")
                continue

            category = category or catch_all
            element[category_name] = category
            self.categories[category].append(element)

        logger.debug(
            "Categorized elements: %s",
            {name: len(elements) for name, elements in self.categories.items()},
        )
        self.events.emit("categorize", categories=self.categories)
        return self

    def activate(self, element: Tag) -> bool:
        """Restore the original resource of ``element``."""

        handle = self.handle(element)
        if handle is None:
            return False

        decorated = self.is_decorated(element)
        inline = self.is_inline_script(element)
        attribute = self.loading_attribute(element)
        if attribute is None and not inline and not decorated:
            return False
        if self.is_active(element) and not decorated:
            return False

        value = element.get(self._attr("data-consent-value"))
        if attribute and value is not None:
            element[attribute] = value
        if inline:
            self.evaluator.schedule(element)

        logger.debug("Activated <%s> %s", element.name, value or "")
        self.events.emit("activate", element=element)

        if decorated:
            return self.undecorate(element)
        return True

    def deactivate(self, element: Tag) -> bool:
        """Put the placeholder back into ``element`` and decorate it if applicable."""

        handle = self.handle(element)
        if handle is None:
            return False

        attribute = self.loading_attribute(element)
        decoratable = self.is_decoratable(element)
        if attribute is None and not decoratable:
            return False
        if self._is_deactivated(element):
            return False

        if attribute:
            element[attribute] = element.get(self._attr("data-consent-alternative"), "")

        logger.debug("Deactivated <%s>", element.name)
        self.events.emit("deactivate", element=element)

        if decoratable:
            return self.decorate(element)
        return True

    def decorate(self, element: Tag) -> bool:
        """Show the consent overlay in place of ``element`` (or its decoration target)."""

        handle = self.handle(element)
        if handle is None or not self.is_decoratable(element) or self.is_decorated(element):
            return False

        target = self.decoration_target(element)
        if target is None or not self.page.is_visible(target):
            return False

        decoration, created = self.decorator.obtain(handle, target)
        if created or not decoration.wired:
            self._wire(element, decoration)

        self.decorator.render(
            decoration,
            element.get(self._attr("data-consent-category"), ""),
            element.get(self._attr("data-consent-value")),
        )
        element[self._attr("data-consent-decorator")] = decoration.identifier
        self.decorator.attach(decoration)

        self.events.emit("decorate", element=element, decoration=decoration)
        return True

    def undecorate(self, element: Tag, *, evict: bool = False) -> bool:
        """Remove the overlay of ``element``; ``evict`` also drops the cached overlay."""

        handle = self.handle(element)
        if handle is None or not self.is_decorated(element):
            return False

        decoration = self.decorator.get(handle)
        if decoration is None or not self.page.is_visible(decoration.wrapper):
            return False

        self.decorator.detach(decoration)
        del element[self._attr("data-consent-decorator")]
        if evict:
            self._evict(handle)

        self.events.emit("undecorate", element=element, decoration=decoration)
        return True

    def _evict(self, handle: int) -> None:
        decoration = self.decorator.evict(handle)
        if decoration is not None:
            self.page.remove_element_listeners(decoration.overlay_accept_button)
            self.page.remove_element_listeners(decoration.overlay_info_button)

    def _wire(self, element: Tag, decoration: Decoration) -> None:
        def accept(_: Tag) -> None:
            self.activate(element)
            self.adapter.consent_to(element.get(self._attr("data-consent-category"), ""))

        def info(_: Tag) -> None:
            self.adapter.show_dialog()

        self.page.add_element_listener(decoration.overlay_accept_button, "click", accept)
        self.page.add_element_listener(decoration.overlay_info_button, "click", info)
        decoration.wired = True

    def allow(self, category: str) -> bool:
        if category not in self.categories:
            return False

        elements = self.categories[category]
        for element in elements:
            self.activate(element)

        self.events.emit("allow", category=category, elements=elements)
        return True

    def disallow(self, category: str) -> bool:
        if category not in self.categories:
            return False

        elements = self.categories[category]
        for element in elements:
            self.deactivate(element)

        self.events.emit("disallow", category=category, elements=elements)
        return True

    def update(self) -> ConsentHelper:
        """Re-read consent from the CMP and (dis)allow every category accordingly."""

        available = self.page.has_global(self.adapter.object_name())
        for category in self.categories:
            if available and self.adapter.is_consented_to(category):
                self.allow(category)
                self.states[category] = CategoryState.ALLOWED
            else:
                self.disallow(category)
                self.states[category] = CategoryState.BLOCKED

        logger.info(
            "Consent updated; allowed categories: %s",
            [name for name, state in self.states.items() if state is CategoryState.ALLOWED],
        )
        self.events.emit("update", helper=self)
        return self

    def refresh(self) -> ConsentHelper:
        """Rebuild visible overlays so their size follows the current layout.

        Cached overlays of elements that left the document are dropped.
        """

        refreshed: list[Tag] = []
        for index, element in enumerate(self.elements):
            if not self.page.is_attached(element):
                self._evict(index)
                continue
            if not self.is_decorated(element):
                continue
            decoration = self.decorator.get(index)
            if decoration is None or not self.page.is_visible(decoration.wrapper):
                continue
            if self.undecorate(element) and self.decorate(element):
                refreshed.append(element)

        self.events.emit("refresh", elements=refreshed)
        return self

    def close(self) -> None:
        """Detach from the page; the helper is not used after navigation."""

        self.page.remove_event_listener(self._update_event, self._on_update)
        self.page.remove_event_listener("load", self._on_update)
        self.page.remove_event_listener("resize", self._on_resize)
