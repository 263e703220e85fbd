"""Markup encoder that neutralises elements loading third-party resources.

The sanitizer rewrites every element that would request an external resource
as soon as the browser parses it (``<img src="https://...">`` and friends) so
that the loading attribute points to an inert placeholder. The original value
is kept in ``data-consent-*`` attributes which the client-side
:class:`~consentgate.helper.ConsentHelper` uses to restore the element once
the visitor consents.

Example::

    html = (
        Sanitizer()
        .set_data(markup)
        .set_origin("shop.example")
        .set_whitelist(["unpkg.com"])
        .sanitize()
        .append('<script defer src="/static/consent.js"></script>', "body")
        .get()
    )

The encoder is a textual, single-pass transform over a known element grammar.
It keeps per-call state and resets itself on :meth:`Sanitizer.get`, so
concurrent requests must use separate instances.
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Callable, Iterable, Mapping

from .elements import DEFAULT_URI, ELEMENTS, resolve_attributes

logger = logging.getLogger(__name__)

Condition = Callable[[str], bool]
Payload = str | Iterable[str]
Injections = Mapping[str, Payload]

DEFAULT_ORIGIN = "localhost"


class InjectionMode(str, Enum):
    PREPEND = "PREPEND"
    APPEND = "APPEND"
    BEFORE = "BEFORE"
    AFTER = "AFTER"

    @classmethod
    def coerce(cls, value: str | InjectionMode) -> InjectionMode:
        """Return the matching mode, falling back to ``APPEND``."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            logger.debug("Unknown injection mode %r; falling back to APPEND", value)
            return cls.APPEND


_OPENING_TAG = r"(<\s*{target}(?:\s[^>]*)?/?>)"
_CLOSING_TAG = r"(</\s*{target}\s*>)"


def _always(_: str) -> bool:
    return True


def _payload(data: Payload | None) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return " ".join(str(item) for item in data)


def _as_list(data: Payload | None) -> list[str]:
    if data is None:
        return []
    if isinstance(data, str):
        return [data]
    return list(data)


class Sanitizer:
    """Encodes external resource elements and injects markup fragments."""

    # class-wide attribute renames; set_attributes() overrides them per instance
    ATTRIBUTES: dict[str, str] = {}

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._data = ""
        self._result: str | None = None
        self._condition: Condition = _always
        self._uris: dict[str, str] = {}
        self._whitelist: list[str] = []
        self._origin = DEFAULT_ORIGIN
        self._attributes: dict[str, str] = {}
        self._appends: dict[str, Payload] = {}
        self._prepends: dict[str, Payload] = {}

    # configuration -------------------------------------------------------

    def set_data(self, data: str) -> Sanitizer:
        self._data = data
        return self

    def set_condition(self, condition: Condition) -> Sanitizer:
        """Set the predicate deciding whether :meth:`sanitize` rewrites anything.

        The predicate receives the markup and should check it (or a cookie
        captured in its closure) to decide whether encoding is needed.
        """

        self._condition = condition
        return self

    def set_uris(self, uris: Mapping[str, str]) -> Sanitizer:
        """Set the placeholder value per element name."""

        self._uris = dict(uris)
        return self

    def set_whitelist(self, whitelist: Iterable[str]) -> Sanitizer:
        """Set domains that are never encoded. Sub-domains must be listed separately."""

        self._whitelist = list(whitelist)
        return self

    def set_origin(self, origin: str | None) -> Sanitizer:
        self._origin = origin or ""
        return self

    def set_attributes(self, attributes: Mapping[str, str]) -> Sanitizer:
        """Rename the emitted ``data-consent-*`` attributes."""

        self._attributes = dict(attributes)
        return self

    def set_appends(self, appends: Mapping[str, Payload]) -> Sanitizer:
        self._appends = dict(appends)
        return self

    def set_prepends(self, prepends: Mapping[str, Payload]) -> Sanitizer:
        self._prepends = dict(prepends)
        return self

    # injection -----------------------------------------------------------

    def append(self, data: Payload, target: str = "body") -> Sanitizer:
        """Insert ``data`` right before the first closing ``target`` tag."""

        return self.inject(data, target, InjectionMode.APPEND)

    def prepend(self, data: Payload, target: str = "head") -> Sanitizer:
        """Insert ``data`` right after the first opening ``target`` tag."""

        return self.inject(data, target, InjectionMode.PREPEND)

    def inject(
        self,
        data: Payload,
        target: str,
        mode: str | InjectionMode = InjectionMode.APPEND,
    ) -> Sanitizer:
        """Inject ``data`` in or around the first ``target`` element.

        Works on the result if :meth:`sanitize` already produced one and on the
        raw data otherwise. A missing target leaves the buffer untouched.
        """

        mode = InjectionMode.coerce(mode)
        name = target.strip("< />")
        if not name:
            return self

        template = _OPENING_TAG if mode in (InjectionMode.PREPEND, InjectionMode.BEFORE) else _CLOSING_TAG
        pattern = re.compile(template.format(target=re.escape(name)), re.IGNORECASE)
        payload = _payload(data)

        if mode in (InjectionMode.PREPEND, InjectionMode.AFTER):
            replace = lambda match: match.group(1) + payload  # noqa: E731
        else:
            replace = lambda match: payload + match.group(1)  # noqa: E731

        if self._result:
            self._result, count = pattern.subn(replace, self._result, count=1)
        else:
            self._data, count = pattern.subn(replace, self._data, count=1)

        if not count:
            logger.debug("Injection target <%s> not found (mode %s)", name, mode.value)
        return self

    # encoding ------------------------------------------------------------

    def _domains(self) -> list[str]:
        return [domain for domain in [self._origin, *self._whitelist] if domain]

    def _tag_pattern(self) -> re.Pattern[str]:
        elements = "|".join(re.escape(element) for element in ELEMENTS)
        return re.compile(
            rf"(?P<head><\s*(?P<element>{elements}))(?=[\s/>])(?P<body>[^>]*)>",
            re.IGNORECASE,
        )

    def _attribute_patterns(self) -> dict[str, re.Pattern[str]]:
        domains = self._domains()
        guard = ""
        if domains:
            guard = "(?![^\"]*(?:{}))".format("|".join(re.escape(domain) for domain in domains))

        patterns = {}
        for element, attributes in ELEMENTS.items():
            names = "|".join(re.escape(attribute) for attribute in attributes)
            # attribute names must start after whitespace so data-consent-* values never match
            patterns[element] = re.compile(
                rf'(?P<lead>\s)(?P<attribute>{names})\s*=\s*"(?P<value>https?://{guard}[^"]+?)"',
                re.IGNORECASE,
            )
        return patterns

    def _encode(self, element: str, attribute: str, value: str, names: Mapping[str, str]) -> str:
        uri = self._uris.get(element, DEFAULT_URI)
        original = f"data-consent-original-{attribute}"
        # with several sanitizable attributes the summary attributes repeat;
        # parsers keeping the last duplicate see the last attribute processed
        return (
            f'{attribute}="{uri}" '
            f'{names["data-consent-element"]}="{element}" '
            f'{names["data-consent-attribute"]}="{attribute}" '
            f'{names["data-consent-value"]}="{value}" '
            f'{names["data-consent-alternative"]}="{uri}" '
            f'{names.get(original, original)}="{value}"'
        )

    def sanitize(self) -> Sanitizer:
        """Encode the current data into the result buffer."""

        data = self._data
        if not self._condition(data):
            logger.debug("Sanitization condition not met; leaving markup untouched")
            self._result = data
            return self

        names = resolve_attributes({**self.ATTRIBUTES, **self._attributes})
        attribute_patterns = self._attribute_patterns()
        encoded = 0

        def replace_tag(match: re.Match[str]) -> str:
            nonlocal encoded
            element = match.group("element").lower()

            def replace_attribute(inner: re.Match[str]) -> str:
                nonlocal encoded
                encoded += 1
                attribute = inner.group("attribute").lower()
                return inner.group("lead") + self._encode(element, attribute, inner.group("value"), names)

            body = attribute_patterns[element].sub(replace_attribute, match.group("body"))
            return f"{match.group('head')}{body}>"

        self._result = self._tag_pattern().sub(replace_tag, data)
        logger.debug("Encoded %d external resource attributes", encoded)
        return self

    def get(self) -> str:
        """Return the current result and reset the sanitizer to its initial state."""

        result = self._result if self._result is not None else self._data
        self._reset()
        return result

    def sanitize_data(
        self,
        data: str,
        condition: Condition | None = None,
        uris: Mapping[str, str] | None = None,
        whitelist: Iterable[str] | None = None,
        appends: Mapping[str, Payload] | None = None,
        prepends: Mapping[str, Payload] | None = None,
        injections: Mapping[str | InjectionMode, Injections] | None = None,
    ) -> str:
        """Sanitize ``data``, apply all injections and return the result."""

        self.set_data(data)
        if condition is not None:
            self.set_condition(condition)
        if uris:
            self.set_uris(uris)
        if whitelist:
            self.set_whitelist(whitelist)
        if appends:
            self.set_appends(appends)
        if prepends:
            self.set_prepends(prepends)

        self.sanitize()

        merged: dict[InjectionMode, dict[str, Payload]] = {
            InjectionMode.PREPEND: dict(self._prepends),
            InjectionMode.APPEND: dict(self._appends),
            InjectionMode.BEFORE: {},
            InjectionMode.AFTER: {},
        }
        for mode, targets in (injections or {}).items():
            bucket = merged.setdefault(InjectionMode.coerce(mode), {})
            for target, payload in targets.items():
                if target in bucket:
                    bucket[target] = _as_list(bucket[target]) + _as_list(payload)
                else:
                    bucket[target] = payload

        for mode, targets in merged.items():
            for target, payload in targets.items():
                self.inject(payload, target, mode)

        return self.get()
