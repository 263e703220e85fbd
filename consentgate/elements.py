"""Element table and attribute vocabulary shared by the encoder and the client."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

# element => attributes that trigger an external load
ELEMENTS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "link": ("href",),
        "script": ("src",),
        "iframe": ("src",),
        "embed": ("src",),
        "img": ("src", "srcset"),
        "audio": ("src",),
        "video": ("src", "poster"),
        "source": ("src", "srcset"),
        "track": ("src",),
        "object": ("data",),
    }
)

# Generic inert value used when no placeholder is configured for an element.
DEFAULT_URI = "data:text/plain;base64,IA=="

DEFAULT_URIS: Mapping[str, str] = MappingProxyType(
    {
        "link": "data:text/css;charset=UTF-8;base64,",
        "script": "data:text/javascript;charset=UTF-8;base64,",
        "iframe": "data:text/html;charset=UTF-8;base64,",
        "embed": "data:image/gif;charset=UTF-8;base64,",
        "img": "data:image/png;charset=UTF-8;base64,",
        "audio": "data:audio/mp3;charset=UTF-8;base64,",
        "video": "data:video/mp4;charset=UTF-8;base64,",
        "source": "data:audio/mpeg;charset=UTF-8;base64,",
        "track": "data:video/webm;charset=UTF-8;base64,",
        "object": "data:img/jpg;charset=UTF-8;base64,",
    }
)


def _attribute_names() -> tuple[str, ...]:
    seen: list[str] = []
    for attributes in ELEMENTS.values():
        for attribute in attributes:
            if attribute not in seen:
                seen.append(attribute)
    return tuple(seen)


LOADING_ATTRIBUTES: tuple[str, ...] = _attribute_names()

ATTRIBUTES: Mapping[str, str] = MappingProxyType(
    {
        # written by the encoder
        "data-consent-element": "data-consent-element",
        "data-consent-attribute": "data-consent-attribute",
        "data-consent-value": "data-consent-value",
        "data-consent-alternative": "data-consent-alternative",
        **{
            f"data-consent-original-{name}": f"data-consent-original-{name}"
            for name in LOADING_ATTRIBUTES
        },
        # written or read by the client
        "data-consent-category": "data-consent-category",
        "data-consent-decorator": "data-consent-decorator",
        "data-consent-decorates": "data-consent-decorates",
        "data-consent-evaluated": "data-consent-evaluated",
    }
)

DEFAULT_DECORATIONS: tuple[str, ...] = ("iframe", "img")


def resolve_attributes(overrides: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return the attribute vocabulary with ``overrides`` applied.

    Unknown keys are kept so collaborators can rename the per-attribute
    ``data-consent-original-*`` names of custom element tables too.
    """

    resolved = dict(ATTRIBUTES)
    for name, override in (overrides or {}).items():
        if override:
            resolved[name] = override
    return resolved
