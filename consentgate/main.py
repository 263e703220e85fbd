"""FastAPI application entrypoint."""
from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from urllib.parse import urlparse

from bs4 import Tag
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates

from .adapter import CallbackAdapter
from .config import FrontendConfig, load_config
from .elements import resolve_attributes
from .evaluator import DeferredScriptEvaluator
from .helper import ConsentHelper
from .logging_setup import configure_logging
from .middleware import ConsentGateMiddleware, sanitize_markup
from .page import Page
from .schemas import PreviewReport
from .scrape import fetch_page

LOG_FILE_PATH = configure_logging(os.getenv("LOG_LEVEL"))
logger = logging.getLogger(__name__)
logger.info("Logging configured. File output: %s", LOG_FILE_PATH)

CONFIG = load_config()

app = FastAPI(title="Consent Gate")
app.add_middleware(ConsentGateMiddleware, config=CONFIG)

TEMPLATES = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))


def _always(_: str) -> bool:
    return True


def parse_categories(value: str | None, known: list[str]) -> list[str]:
    """Split a comma separated category list, keeping known names in config order."""

    requested = {part.strip() for part in (value or "").split(",") if part.strip()}
    unknown = sorted(requested.difference(known))
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown categories: {', '.join(unknown)}")
    return [name for name in known if name in requested]


def _skip_script(element: Tag, text: str) -> None:
    logger.debug("Preview does not run inline scripts (%d characters skipped)", len(text))


def build_preview_helper(page: Page, frontend: FrontendConfig, consented: list[str]) -> ConsentHelper:
    """Run the consent state machine as a visitor who consented to ``consented``."""

    granted = set(consented)
    adapter = CallbackAdapter(
        cookie=frontend.cookie_name,
        object=frontend.object_name,
        update_event=frontend.update_event_name,
        functions={
            "show_dialog": lambda: None,
            "consent_to": granted.add,
            "is_consented_to": lambda category: category in granted,
        },
    )
    evaluator = DeferredScriptEvaluator(
        page,
        fallback=_skip_script,
        attribute=resolve_attributes(frontend.attributes)["data-consent-evaluated"],
    )
    return ConsentHelper(page, adapter, frontend, evaluator=evaluator)


@app.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    return TEMPLATES.TemplateResponse(
        request,
        "index.html",
        {"categories": CONFIG.frontend.categories},
    )


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/sanitize", response_class=PlainTextResponse)
async def sanitize(request: Request, origin: str | None = None) -> PlainTextResponse:
    body = await request.body()
    if not body:
        raise HTTPException(status_code=400, detail="Request body must contain HTML")

    html = body.decode("utf-8", errors="replace")
    sanitized = sanitize_markup(
        html,
        CONFIG,
        origin=origin or request.headers.get("host"),
        condition=_always,
    )
    return PlainTextResponse(sanitized)


@app.get("/preview", response_model=PreviewReport)
def preview(url: str, consent: str | None = None) -> PreviewReport:
    if urlparse(url).scheme not in ("http", "https"):
        raise HTTPException(status_code=400, detail="Only http(s) URLs can be previewed")

    consented = parse_categories(consent, CONFIG.frontend.categories)

    start = time.perf_counter()
    fetched = fetch_page(url)
    if fetched is None:
        raise HTTPException(status_code=502, detail=f"Could not fetch {url}")
    final_url, html = fetched

    sanitized = sanitize_markup(html, CONFIG, origin=urlparse(final_url).netloc, condition=_always)
    page = Page(
        sanitized,
        globals={CONFIG.frontend.object_name: True},
        ready_state="complete",
    )
    frontend = FrontendConfig.from_page(page) or CONFIG.frontend
    helper = build_preview_helper(page, frontend, consented)

    report = PreviewReport(
        url=final_url,
        consented=consented,
        categories={name: len(elements) for name, elements in helper.categories.items()},
        activated=sum(1 for element in helper.elements if helper.is_active(element)),
        decorated=sum(1 for element in helper.elements if helper.is_decorated(element)),
        html=page.html,
    )
    logger.info(
        "Previewed %s with %d encoded element(s) in %.2fs",
        final_url,
        len(helper.elements),
        time.perf_counter() - start,
    )
    return report
