"""Logging configuration helpers for the consent gate service."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

DEFAULT_LOG_DIR = Path(os.getenv("CONSENT_GATE_LOG_DIR", "logs"))
DEFAULT_LOG_FILE = os.getenv("CONSENT_GATE_LOG_FILENAME", "consent-gate.log")
LEVEL_ENV_VAR = "CONSENT_GATE_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def _normalise_level(level: Optional[str | int]) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        value = level.strip().upper()
        if value.isdigit():
            return int(value)
        mapped = logging.getLevelName(value)
        if isinstance(mapped, int):
            return mapped
    return logging.INFO


def configure_logging(level: Optional[str | int] = None, log_dir: Path | None = None) -> Path:
    """Send consent gate logs to the console and a fresh file.

    ``level`` falls back to ``$CONSENT_GATE_LOG_LEVEL`` and applies to the
    ``consentgate`` package; third-party loggers stay at WARNING or above so
    per-element debug output is readable. Returns the log file path.
    """

    package_level = _normalise_level(level if level is not None else os.getenv(LEVEL_ENV_VAR))
    directory = log_dir or DEFAULT_LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / DEFAULT_LOG_FILE

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
        handler.close()

    logging.basicConfig(
        level=max(package_level, logging.WARNING),
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_path, mode="w", encoding="utf-8"),
        ],
    )
    # tldextract, filelock and urllib3 are chatty at DEBUG; only this package follows ``level``
    logging.getLogger("consentgate").setLevel(package_level)

    logging.getLogger(__name__).info("Consent gate logs initialised at %s", log_path)
    return log_path
