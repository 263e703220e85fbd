"""Remote page fetching used by the preview endpoint."""
from __future__ import annotations

import logging
from typing import Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

USER_AGENT = "ConsentGatePreview/1.0"
REQUEST_TIMEOUT = 5


def _fetch_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    )


@_fetch_retry()
def _get(url: str) -> requests.Response:
    return requests.get(
        url,
        headers={"User-Agent": USER_AGENT},
        timeout=REQUEST_TIMEOUT,
        allow_redirects=True,
    )


def fetch_page(url: str) -> Optional[tuple[str, str]]:
    """Fetch ``url`` and return ``(final_url, html)``, or ``None`` on failure."""

    try:
        response = _get(url)
    except requests.RequestException as exc:
        logger.warning("Failed to fetch %s: %s", url, exc)
        return None

    if response.status_code != 200:
        logger.info("Skipping %s due to status %s", url, response.status_code)
        return None

    content_type = response.headers.get("Content-Type", "")
    if content_type and "html" not in content_type.lower():
        logger.info("Skipping %s due to content type %s", url, content_type)
        return None

    return str(response.url), response.text
