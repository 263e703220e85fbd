"""Consent gating for server-rendered markup."""
from __future__ import annotations

from .adapter import CallbackAdapter, CmpAdapter, require_capabilities
from .config import FrontendConfig, GateConfig, load_config
from .helper import ConsentHelper
from .page import Page
from .sanitizer import InjectionMode, Sanitizer

__all__ = [
    "CallbackAdapter",
    "CmpAdapter",
    "ConsentHelper",
    "FrontendConfig",
    "GateConfig",
    "InjectionMode",
    "Page",
    "Sanitizer",
    "load_config",
    "require_capabilities",
]
