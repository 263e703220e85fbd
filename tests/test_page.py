import pytest

from consentgate.page import Page

HTML = """
<body>
  <div id="shown" style="width: 300px; height:200px"></div>
  <div hidden><iframe id="in-hidden" src="x"></iframe></div>
  <div style="display: none"><img id="in-none" src="x"></div>
  <img id="sized" width="64" height="32" src="x">
</body>
"""


def test_ready_state_fires_browser_events_in_order():
    page = Page(HTML)
    seen = []
    page.add_event_listener("readystatechange", lambda ready_state: seen.append(ready_state))
    page.add_event_listener("DOMContentLoaded", lambda: seen.append("DOMContentLoaded"))
    page.add_event_listener("load", lambda: seen.append("load"))

    assert page.set_ready_state("complete") is True
    assert seen == ["interactive", "DOMContentLoaded", "complete", "load"]
    assert page.set_ready_state("interactive") is False


def test_unknown_ready_state_is_rejected():
    with pytest.raises(ValueError):
        Page(HTML, ready_state="done")


def test_visibility_follows_hidden_ancestors_and_display_none():
    page = Page(HTML)
    assert page.is_visible(page.get_element_by_id("shown"))
    assert not page.is_visible(page.get_element_by_id("in-hidden"))
    assert not page.is_visible(page.get_element_by_id("in-none"))

    detached = page.get_element_by_id("sized").extract()
    assert not page.is_attached(detached)
    assert not page.is_visible(detached)


def test_measure_reads_style_then_attributes():
    page = Page(HTML)
    assert page.measure(page.get_element_by_id("shown")) == (300, 200)
    assert page.measure(page.get_element_by_id("sized")) == (64, 32)
    assert page.measure(page.get_element_by_id("in-hidden")) == (0, 0)


def test_cookie_lookup():
    page = Page(HTML, cookie="theme=dark; CookieConsent=stats%2Cads; empty=")
    assert page.get_cookie("CookieConsent") == "stats%2Cads"
    assert page.get_cookie("empty") is None
    assert page.get_cookie("missing") is None


def test_click_runs_only_listeners_of_that_element():
    page = Page(HTML)
    shown = page.get_element_by_id("shown")
    sized = page.get_element_by_id("sized")
    clicks = []
    page.add_element_listener(shown, "click", lambda element: clicks.append(element["id"]))

    assert page.click(sized) == 0
    assert page.click(shown) == 1
    assert clicks == ["shown"]

    assert page.remove_element_listeners(shown) == 1
    assert page.click(shown) == 0
