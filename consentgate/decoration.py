"""Placeholder overlays for blocked visual elements."""
from __future__ import annotations

import logging
from urllib.parse import urlparse
from uuid import uuid4

import tldextract
from bs4 import Tag

from .config import Classes, Messages
from .page import Page
from .schemas import Decoration

logger = logging.getLogger(__name__)

# bundled public suffix snapshot only; no network access, no cache directory
_EXTRACT = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())

_TEMPLATE = (
    '<div id="{identifier}" class="consent-gate-wrapper consent-gate-{tag}-wrapper">'
    '<div class="consent-gate-container">'
    '<div class="consent-gate-element" hidden></div>'
    '<div class="consent-gate-overlay">'
    '<div class="consent-gate-overlay-title"></div>'
    '<div class="consent-gate-overlay-description"></div>'
    '<div class="consent-gate-overlay-buttons">'
    '<a class="consent-gate-overlay-accept-button" href="javascript:void(0);"></a>'
    " "
    '<a class="consent-gate-overlay-info-button" href="javascript:void(0);"></a>'
    "</div>"
    "</div>"
    "</div>"
    "</div>"
)

_PARTS = {
    "container": "consent-gate-container",
    "element": "consent-gate-element",
    "overlay": "consent-gate-overlay",
    "overlay_title": "consent-gate-overlay-title",
    "overlay_description": "consent-gate-overlay-description",
    "overlay_buttons": "consent-gate-overlay-buttons",
    "overlay_accept_button": "consent-gate-overlay-accept-button",
    "overlay_info_button": "consent-gate-overlay-info-button",
}

UNKNOWN_SERVICE = "this service"


def service_name(url: str | None) -> str:
    """Return a readable name for the service behind ``url``.

    ``https://www.youtube-nocookie.com/embed/x`` becomes ``Youtube Nocookie``.
    """

    if not url:
        return UNKNOWN_SERVICE
    host = urlparse(url).hostname or ""
    if not host:
        return UNKNOWN_SERVICE
    domain = _EXTRACT(host).domain or host
    return domain.replace("-", " ").replace("_", " ").title()


def _add_classes(tag: Tag, classes: str) -> None:
    names = [name for name in classes.split() if name]
    if not names:
        return
    current = tag.get("class", [])
    if isinstance(current, str):
        current = current.split()
    tag["class"] = current + [name for name in names if name not in current]


class DecorationEngine:
    """Builds overlays and keeps one per element handle for reuse.

    Cached overlays hold references to the decorated target but never own it;
    callers evict entries once an element no longer needs an overlay.
    """

    def __init__(self, page: Page, messages: Messages | None = None, classes: Classes | None = None) -> None:
        self.page = page
        self.messages = messages or Messages()
        self.classes = classes or Classes()
        self._cache: dict[int, Decoration] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, handle: int) -> Decoration | None:
        return self._cache.get(handle)

    def evict(self, handle: int) -> Decoration | None:
        return self._cache.pop(handle, None)

    def obtain(self, handle: int, target: Tag) -> tuple[Decoration, bool]:
        """Return the cached overlay for ``handle`` or build one; the flag tells which."""

        decoration = self._cache.get(handle)
        if decoration is not None and decoration.target is target:
            return decoration, False

        decoration = self._build(target)
        self._cache[handle] = decoration
        logger.debug("Built decoration %s for <%s>", decoration.identifier, target.name)
        return decoration, True

    def _build(self, target: Tag) -> Decoration:
        identifier = f"consent-gate-decoration-{uuid4().hex[:12]}"
        fragment = self.page.fragment(_TEMPLATE.format(identifier=identifier, tag=target.name))
        wrapper = fragment.find(id=identifier).extract()

        parts = {name: wrapper.select_one(f".{css}") for name, css in _PARTS.items()}
        decoration = Decoration(identifier=identifier, target=target, wrapper=wrapper, **parts)

        for name, classes in self.classes.model_dump().items():
            _add_classes(getattr(decoration, name), classes)
        return decoration

    def render(self, decoration: Decoration, category: str, url: str | None) -> None:
        """Recompute the overlay size and texts for the current target state."""

        width, height = self.page.measure(decoration.target)
        styles = {
            "width": f"{width}px" if width > 1 else "auto",
            "height": f"{height}px" if height > 1 else "auto",
            "display": "block",
            "overflow": "hidden",
            "position": "relative",
            "padding": "0 0 16px 0",
        }
        decoration.wrapper["style"] = "; ".join(f"{key}: {value}" for key, value in styles.items())

        label = category[:1].upper() + category[1:].lower()
        description = self.messages.overlay_description.replace("{type}", label).replace(
            "{service}", service_name(url)
        )
        decoration.overlay_title.string = self.messages.overlay_title
        decoration.overlay_description.string = description
        decoration.overlay_accept_button.string = self.messages.overlay_accept_button
        decoration.overlay_info_button.string = self.messages.overlay_info_button

    def attach(self, decoration: Decoration) -> None:
        """Put the overlay where the target is and park the target inside it."""

        target = decoration.target
        target.insert_before(decoration.wrapper)
        decoration.element.append(target.extract())

    def detach(self, decoration: Decoration) -> None:
        """Move the target back in front of the overlay and drop the overlay."""

        target = decoration.target.extract()
        decoration.wrapper.insert_before(target)
        decoration.wrapper.extract()
