from types import SimpleNamespace

import requests

from consentgate import scrape


def _response(status_code=200, content_type="text/html; charset=utf-8", url="https://example.com/", text="<p>x</p>"):
    return SimpleNamespace(status_code=status_code, headers={"Content-Type": content_type}, url=url, text=text)


def test_fetch_page_returns_final_url_and_markup(monkeypatch):
    calls = []

    def fake_get(url, **kwargs):
        calls.append((url, kwargs))
        return _response(url="https://example.com/landing")

    monkeypatch.setattr(scrape.requests, "get", fake_get)

    assert scrape.fetch_page("https://example.com") == ("https://example.com/landing", "<p>x</p>")
    assert calls[0][1]["headers"]["User-Agent"] == scrape.USER_AGENT
    assert calls[0][1]["timeout"] == scrape.REQUEST_TIMEOUT


def test_fetch_page_skips_errors_and_non_html(monkeypatch):
    monkeypatch.setattr(scrape.requests, "get", lambda url, **kwargs: _response(status_code=404))
    assert scrape.fetch_page("https://example.com") is None

    monkeypatch.setattr(scrape.requests, "get", lambda url, **kwargs: _response(content_type="application/pdf"))
    assert scrape.fetch_page("https://example.com") is None


def test_fetch_page_swallows_request_errors(monkeypatch):
    def fake_get(url, **kwargs):
        raise requests.TooManyRedirects("loop")

    monkeypatch.setattr(scrape.requests, "get", fake_get)
    assert scrape.fetch_page("https://example.com") is None
