"""Shared data structures used across modules."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from bs4 import Tag
from pydantic import BaseModel


@dataclass(slots=True)
class Decoration:
    """Overlay nodes shown in place of a blocked element."""

    identifier: str
    target: Tag
    wrapper: Tag
    container: Tag
    element: Tag
    overlay: Tag
    overlay_title: Tag
    overlay_description: Tag
    overlay_buttons: Tag
    overlay_accept_button: Tag
    overlay_info_button: Tag
    wired: bool = False


class PreviewReport(BaseModel):
    url: str
    consented: list[str]
    categories: Dict[str, int]
    activated: int
    decorated: int
    html: str
