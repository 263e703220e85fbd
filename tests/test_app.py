"""HTTP level tests for the FastAPI app and the response middleware."""

import pytest
from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from fastapi.testclient import TestClient

import consentgate.main as main_module
from consentgate.config import GateConfig
from consentgate.middleware import ConsentGateMiddleware

REMOTE_PAGE = """<!DOCTYPE html>
<html>
<head><title>Shop</title></head>
<body>
  <iframe width="560" height="315" src="https://www.youtube.com/embed/abc"></iframe>
  <img src="https://www.google-analytics.com/collect.gif">
  <img src="https://shop.example/logo.png">
</body>
</html>
"""


@pytest.fixture
def client():
    return TestClient(main_module.app)


def test_index_is_sanitized_on_the_way_out(client):
    response = client.get("/")

    assert response.status_code == 200
    assert 'data-consent-value="https://www.youtube-nocookie.com/embed/dQw4w9WgXcQ"' in response.text
    assert 'id="consent-gate-config"' in response.text
    assert response.text.index("</title>") < response.text.index('id="consent-gate-config"')
    assert int(response.headers["content-length"]) == len(response.content)


def test_sanitize_endpoint_encodes_the_body(client):
    response = client.post("/sanitize", content='<img src="https://cdn.example/a.png">')

    assert response.status_code == 200
    assert 'data-consent-element="img"' in response.text
    assert 'data-consent-original-src="https://cdn.example/a.png"' in response.text


def test_sanitize_endpoint_rejects_an_empty_body(client):
    assert client.post("/sanitize", content="").status_code == 400


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_preview_reports_blocked_elements(client, monkeypatch):
    monkeypatch.setattr(main_module, "fetch_page", lambda url: ("https://shop.example/", REMOTE_PAGE))

    report = client.get("/preview", params={"url": "https://shop.example"}).json()

    assert report["url"] == "https://shop.example/"
    assert report["consented"] == []
    assert report["categories"]["statistics"] == 1
    assert report["categories"]["marketing"] == 1
    assert report["categories"]["unclassified"] == 0
    assert report["activated"] == 0
    assert report["decorated"] == 2
    assert "consent-gate-wrapper" in report["html"]
    assert '<img src="https://shop.example/logo.png"/>' in report["html"]


def test_preview_with_consent_restores_elements(client, monkeypatch):
    monkeypatch.setattr(main_module, "fetch_page", lambda url: ("https://shop.example/", REMOTE_PAGE))

    report = client.get("/preview", params={"url": "https://shop.example", "consent": "marketing,statistics"}).json()

    assert report["consented"] == ["statistics", "marketing"]
    assert report["activated"] == 2
    assert report["decorated"] == 0
    assert "consent-gate-wrapper" not in report["html"]


def test_preview_rejects_bad_input(client, monkeypatch):
    monkeypatch.setattr(main_module, "fetch_page", lambda url: None)

    assert client.get("/preview", params={"url": "ftp://shop.example"}).status_code == 400
    assert client.get("/preview", params={"url": "https://shop.example", "consent": "bogus"}).status_code == 400
    assert client.get("/preview", params={"url": "https://shop.example"}).status_code == 502


def test_middleware_only_touches_html_documents():
    app = FastAPI()
    app.add_middleware(ConsentGateMiddleware, config=GateConfig.model_validate({"backend": {"whitelist": ["cdn.ok"]}}))

    @app.get("/page", response_class=HTMLResponse)
    def page():
        return '<!doctype html><img src="https://cdn.ok/a.png"><img src="https://ads.example/p.gif">'

    @app.get("/fragment", response_class=HTMLResponse)
    def fragment():
        return '<img src="https://ads.example/p.gif">'

    @app.get("/data")
    def data():
        return {"html": '<img src="https://ads.example/p.gif">'}

    client = TestClient(app)

    html = client.get("/page").text
    assert '<img src="https://cdn.ok/a.png">' in html
    assert 'data-consent-value="https://ads.example/p.gif"' in html
    assert client.get("/fragment").text == '<img src="https://ads.example/p.gif">'
    assert client.get("/data").json() == {"html": '<img src="https://ads.example/p.gif">'}
