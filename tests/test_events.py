import pytest

from consentgate.events import HELPER_EVENTS, EventBus


class Recorder:
    def __init__(self) -> None:
        self.calls = []

    def on_update(self, **payload):
        self.calls.append(payload)


def test_unknown_event_names_are_rejected():
    bus = EventBus(HELPER_EVENTS)
    with pytest.raises(ValueError):
        bus.subscribe("activated", lambda **_: None)
    with pytest.raises(ValueError):
        bus.emit("nope")


def test_once_listeners_run_a_single_time():
    bus = EventBus()
    calls = []
    bus.subscribe("load", lambda: calls.append("once"), once=True)
    bus.subscribe("load", lambda: calls.append("always"))

    assert bus.emit("load") == 2
    assert bus.emit("load") == 1
    assert calls == ["once", "always", "always"]


def test_bound_methods_can_be_unsubscribed():
    bus = EventBus(HELPER_EVENTS)
    recorder = Recorder()
    bus.subscribe("update", recorder.on_update)
    bus.emit("update", helper=None)

    assert bus.unsubscribe("update", recorder.on_update) is True
    bus.emit("update", helper=None)
    assert recorder.calls == [{"helper": None}]
    assert bus.unsubscribe("update", recorder.on_update) is False
