"""CMP adapter capability interface."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from .errors import AdapterError

logger = logging.getLogger(__name__)

CAPABILITIES: tuple[str, ...] = (
    "cookie_name",
    "object_name",
    "update_event_name",
    "show_dialog",
    "consent_to",
    "is_consented_to",
)

FUNCTIONS: tuple[str, ...] = ("show_dialog", "consent_to", "is_consented_to")


@runtime_checkable
class CmpAdapter(Protocol):
    """Operations the consent helper needs from a Consent Management Platform."""

    def cookie_name(self) -> str: ...

    def object_name(self) -> str: ...

    def update_event_name(self) -> str: ...

    def show_dialog(self) -> None: ...

    def consent_to(self, category: str) -> None: ...

    def is_consented_to(self, category: str) -> bool: ...


def require_capabilities(adapter: Any) -> CmpAdapter:
    """Return ``adapter`` unchanged or raise :class:`AdapterError` naming what is missing."""

    missing = [name for name in CAPABILITIES if not callable(getattr(adapter, name, None))]
    if missing:
        raise AdapterError(missing)
    return adapter


@dataclass
class CallbackAdapter:
    """Adapter assembled from the CMP's identifying names and three callables.

    ``functions`` maps ``show_dialog``, ``consent_to`` and ``is_consented_to``
    to callables proxying the CMP's JavaScript SDK (or any stand-in).
    """

    cookie: str
    object: str
    update_event: str
    functions: Mapping[str, Callable[..., Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        missing = [name for name in FUNCTIONS if not callable(self.functions.get(name))]
        for name, value in (
            ("cookie_name", self.cookie),
            ("object_name", self.object),
            ("update_event_name", self.update_event),
        ):
            if not value:
                missing.append(name)
        if missing:
            raise AdapterError(missing)

    def cookie_name(self) -> str:
        return self.cookie

    def object_name(self) -> str:
        return self.object

    def update_event_name(self) -> str:
        return self.update_event

    def show_dialog(self) -> None:
        self.functions["show_dialog"]()

    def consent_to(self, category: str) -> None:
        logger.debug("Forwarding consent for %s to the CMP", category)
        self.functions["consent_to"](category)

    def is_consented_to(self, category: str) -> bool:
        return bool(self.functions["is_consented_to"](category))
