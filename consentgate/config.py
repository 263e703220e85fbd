"""Typed configuration for the encoder, the middleware and the consent helper."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .elements import DEFAULT_URIS
from .errors import ConfigError
from .sanitizer import InjectionMode

if TYPE_CHECKING:  # pragma: no cover
    from .page import Page

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CONSENT_GATE_CONFIG"
CONFIG_SCRIPT_ID = "consent-gate-config"

DEFAULT_CATEGORIES = ("necessary", "preferences", "statistics", "marketing", "unclassified")
DEFAULT_DECORATIONS = ("iframe", "img", "embed", "audio", "video", "track", "object")
DEFAULT_CATEGORIZATION: Dict[str, List[str]] = {
    "necessary": ["google.com/recaptcha"],
    "preferences": ["cdn.jsdelivr.net"],
    "statistics": ["google-analytics.com"],
    "marketing": ["facebook.com", "twitter.com", "google.com", "youtube.com", "youtube-nocookie.com"],
    "unclassified": [],
}

Payload = Union[str, List[str]]


class Messages(BaseModel):
    """Overlay texts. ``{type}`` is the category, ``{service}`` the blocked service."""

    overlay_title: str = "Content is being blocked due to insufficient Cookies configuration!"
    overlay_description: str = 'This {service} content requires consent to the "{type}" cookies, to be viewed.'
    overlay_accept_button: str = "Allow this category"
    overlay_info_button: str = "More info"


class Classes(BaseModel):
    """Extra CSS classes added to the overlay nodes (space separated)."""

    wrapper: str = ""
    container: str = ""
    element: str = ""
    overlay: str = ""
    overlay_title: str = ""
    overlay_description: str = ""
    overlay_buttons: str = ""
    overlay_accept_button: str = ""
    overlay_info_button: str = ""


class FrontendConfig(BaseModel):
    cookie_name: str = Field(default="CookieConsent", min_length=1)
    object_name: str = Field(default="CookieConsent", min_length=1)
    update_event_name: str = Field(default="CookieConsentUpdate", min_length=1)
    attributes: Dict[str, str] = Field(default_factory=dict)
    categories: List[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES), min_length=1)
    categorization: Dict[str, List[str]] = Field(
        default_factory=lambda: {name: list(domains) for name, domains in DEFAULT_CATEGORIZATION.items()}
    )
    decorations: List[str] = Field(default_factory=lambda: list(DEFAULT_DECORATIONS))
    messages: Messages = Field(default_factory=Messages)
    classes: Classes = Field(default_factory=Classes)

    @field_validator("categories")
    @classmethod
    def categories_unique(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("categories must be unique")
        if any(not name for name in value):
            raise ValueError("category names cannot be empty")
        return value

    @field_validator("decorations")
    @classmethod
    def normalise_decorations(cls, value: List[str]) -> List[str]:
        return [name.strip().lower() for name in value if name.strip()]

    @model_validator(mode="after")
    def categorization_uses_known_categories(self) -> FrontendConfig:
        if "categorization" not in self.model_fields_set:
            # built-in rules only apply to the categories actually configured
            self.categorization = {
                name: domains for name, domains in self.categorization.items() if name in self.categories
            }
            return self
        unknown = [name for name in self.categorization if name not in self.categories]
        if unknown:
            raise ValueError(f"categorization references unknown categories: {', '.join(unknown)}")
        return self

    def to_script(self) -> str:
        """Render the config as a JSON ``<script>`` block for the delivered page."""

        payload = self.model_dump_json().replace("</", "<\\/")
        return f'<script id="{CONFIG_SCRIPT_ID}" type="application/json">{payload}</script>'

    @classmethod
    def from_page(cls, page: Page) -> FrontendConfig | None:
        """Read the config embedded by the middleware, if the page carries one."""

        tag = page.get_element_by_id(CONFIG_SCRIPT_ID)
        if tag is None:
            return None
        try:
            return cls.model_validate_json(tag.get_text() or "{}")
        except ValidationError as exc:
            raise ConfigError(f"Embedded consent config is invalid: {exc}") from exc


class BackendConfig(BaseModel):
    whitelist: List[str] = Field(default_factory=list)
    uris: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_URIS))
    appends: Dict[str, Payload] = Field(default_factory=dict)
    prepends: Dict[str, Payload] = Field(default_factory=dict)
    injections: Dict[InjectionMode, Dict[str, Payload]] = Field(default_factory=dict)
    embed_frontend_config: bool = True

    @field_validator("whitelist")
    @classmethod
    def drop_empty_domains(cls, value: List[str]) -> List[str]:
        return [domain.strip() for domain in value if domain and domain.strip()]

    @field_validator("injections", mode="before")
    @classmethod
    def normalise_modes(cls, value: object) -> object:
        if isinstance(value, dict):
            return {str(mode).strip().upper(): targets for mode, targets in value.items()}
        return value


class GateConfig(BaseModel):
    frontend: FrontendConfig = Field(default_factory=FrontendConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)


def load_config(path: str | os.PathLike[str] | None = None) -> GateConfig:
    """Load the JSON config from ``path`` or ``$CONSENT_GATE_CONFIG``.

    Without either, the documented defaults are used.
    """

    location = path or os.getenv(CONFIG_ENV_VAR)
    if not location:
        logger.info("No consent gate config given; using defaults")
        return GateConfig()

    config_path = Path(location)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Consent gate config '{config_path}' cannot be read: {exc}") from exc

    try:
        config = GateConfig.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigError(f"Consent gate config '{config_path}' is invalid: {exc}") from exc

    logger.info("Loaded consent gate config from %s", config_path)
    return config
