"""Test event bus and dispatcher."""

from mirror.events import ConfigReload, Dispatcher, config_reload, message_in
from mirror.gateway.bus import Bus


class _Collector:
    def __init__(self, accept=True):
        self.accept = accept
        self.events = []

    def accept_event(self, source, evt):
        return self.accept

    def push_event(self, source, evt):
        self.events.append((source, evt))


class _Broken:
    def accept_event(self, source, evt):
        return True

    def push_event(self, source, evt):
        raise RuntimeError("boom")


class TestBus:
    def test_publish_to_accepting_targets(self):
        bus = Bus()
        yes, no = _Collector(), _Collector(accept=False)
        bus.register(yes)
        bus.register(no)

        _, evt = message_in("S1", "m1", "42", "Alice", "hi")
        bus.publish("discord", evt)

        assert yes.events == [("discord", evt)]
        assert no.events == []

    def test_failing_target_does_not_stop_others(self):
        bus = Bus()
        collector = _Collector()
        bus.register(_Broken())
        bus.register(collector)

        _, evt = config_reload()
        bus.publish("main", evt)

        assert isinstance(collector.events[0][1], ConfigReload)

    def test_unregister(self):
        bus = Bus()
        collector = _Collector()
        bus.register(collector)
        bus.unregister(collector)
        bus.unregister(collector)
        assert bus.targets == []

    def test_event_factory_type_name(self):
        kind, evt = message_in("S1", "m1", "42", "Alice", None, attachments=["u"])
        assert kind == "message_in"
        assert message_in.TYPE == "message_in"
        assert evt.attachments == ["u"]
        assert evt.content is None

    def test_register_twice_delivers_once(self):
        bus = Bus()
        collector = _Collector()
        bus.register(collector)
        bus.register(collector)

        _, evt = config_reload()

        assert bus.publish("main", evt) == 1
        assert len(collector.events) == 1

    def test_publish_counts_accepting_targets(self):
        bus = Bus()
        bus.register(_Collector())
        bus.register(_Collector(accept=False))
        _, evt = config_reload()
        assert bus.publish("main", evt) == 1

    def test_targets_is_a_copy(self):
        bus = Bus()
        collector = _Collector()
        bus.register(collector)
        bus.targets.clear()
        assert bus.targets == [collector]


class TestDispatcher:
    def test_targets_accessor(self):
        dispatcher = Dispatcher()
        collector = _Collector()
        dispatcher.register(collector)
        assert dispatcher.targets == [collector]
        assert dispatcher.targets is not dispatcher.targets
