from consentgate.config import Classes, Messages
from consentgate.decoration import UNKNOWN_SERVICE, DecorationEngine, service_name
from consentgate.page import Page


def test_service_name_uses_the_registrable_domain():
    assert service_name("https://www.youtube-nocookie.com/embed/abc") == "Youtube Nocookie"
    assert service_name("https://maps.google.co.uk/maps?q=x") == "Google"
    assert service_name("//cdn.example/a.png") == "Example"


def test_service_name_without_a_host():
    assert service_name(None) == UNKNOWN_SERVICE
    assert service_name("") == UNKNOWN_SERVICE
    assert service_name("data:text/plain;base64,IA==") == UNKNOWN_SERVICE


def test_attach_and_detach_move_the_target():
    page = Page('<body><p id="before"></p><img id="target" width="1" src="x"></body>')
    target = page.get_element_by_id("target")
    engine = DecorationEngine(page, classes=Classes(wrapper="ratio ratio-16x9", overlay_accept_button="btn"))

    decoration, created = engine.obtain(0, target)
    assert created is True
    assert engine.obtain(0, target) == (decoration, False)
    assert "ratio-16x9" in decoration.wrapper["class"]
    assert "btn" in decoration.overlay_accept_button["class"]

    engine.render(decoration, "marketing", None)
    assert "width: auto" in decoration.wrapper["style"]
    assert UNKNOWN_SERVICE in decoration.overlay_description.get_text()

    engine.attach(decoration)
    assert target.parent is decoration.element
    assert page.get_element_by_id("before").next_sibling is decoration.wrapper
    assert not page.is_visible(target)

    engine.detach(decoration)
    assert page.get_element_by_id("before").next_sibling is target
    assert not page.is_attached(decoration.wrapper)

    assert engine.evict(0) is decoration
    assert len(engine) == 0


def test_custom_messages_are_rendered():
    page = Page('<iframe src="x"></iframe>')
    messages = Messages(overlay_title="Blocked", overlay_description="{type} / {service}")
    engine = DecorationEngine(page, messages)
    decoration, _ = engine.obtain(3, page.query("iframe"))

    engine.render(decoration, "STATISTICS", "https://www.google-analytics.com/collect")
    assert decoration.overlay_title.get_text() == "Blocked"
    assert decoration.overlay_description.get_text() == "Statistics / Google Analytics"
