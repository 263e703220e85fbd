"""ASGI integration: sanitize HTML responses before they leave the server."""
from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from .config import GateConfig
from .sanitizer import DEFAULT_ORIGIN, Condition, InjectionMode, Sanitizer

logger = logging.getLogger(__name__)


def is_html_document(data: str) -> bool:
    """Default condition: only full HTML documents are sanitized."""

    return "<!doctype html" in data.lower()


def sanitize_markup(
    html: str,
    config: GateConfig,
    *,
    origin: str | None = None,
    condition: Condition | None = None,
) -> str:
    """Run a fresh :class:`Sanitizer` over ``html`` with the configured injections."""

    backend = config.backend
    injections = {InjectionMode.coerce(mode): dict(targets) for mode, targets in backend.injections.items()}
    if backend.embed_frontend_config:
        # right after <title> so the config precedes any script the CMP may block
        after = injections.setdefault(InjectionMode.AFTER, {})
        existing = after.get("title", [])
        existing = [existing] if isinstance(existing, str) else list(existing)
        after["title"] = [config.frontend.to_script(), *existing]

    return (
        Sanitizer()
        .set_origin(origin or DEFAULT_ORIGIN)
        .set_attributes(config.frontend.attributes)
        .sanitize_data(
            html,
            condition=condition,
            uris=backend.uris,
            whitelist=backend.whitelist,
            appends=backend.appends,
            prepends=backend.prepends,
            injections=injections,
        )
    )


class ConsentGateMiddleware(BaseHTTPMiddleware):
    """Buffer ``text/html`` responses and encode their external resources."""

    def __init__(
        self,
        app: ASGIApp,
        config: GateConfig | None = None,
        condition: Condition | None = None,
    ) -> None:
        super().__init__(app)
        self.config = config or GateConfig()
        self.condition = condition or is_html_document

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type.lower() or "content-encoding" in response.headers:
            return response

        body = b""
        async for chunk in response.body_iterator:
            body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")

        charset = "utf-8"
        if "charset=" in content_type:
            charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or charset

        start = time.perf_counter()
        html = body.decode(charset, errors="replace")
        sanitized = sanitize_markup(
            html,
            self.config,
            origin=request.headers.get("host"),
            condition=self.condition,
        )
        logger.debug(
            "Sanitized %s %s in %.2f ms",
            request.method,
            request.url.path,
            (time.perf_counter() - start) * 1000,
        )

        payload = sanitized.encode(charset, errors="xmlcharrefreplace")
        sanitized_response = Response(content=payload, status_code=response.status_code)
        sanitized_response.raw_headers = [
            (key, value) for key, value in response.raw_headers if key.lower() != b"content-length"
        ] + [(b"content-length", str(len(payload)).encode("latin-1"))]
        return sanitized_response
