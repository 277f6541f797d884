"""Tests for the client event buffer and notifier."""

from lockwatch.rpc.notifications import ClientEventKind, ClientNotifier, EventBuffer


class TestEventBuffer:

    def test_ids_increase(self):
        buffer = EventBuffer()

        assert buffer.push("a") == 1
        assert buffer.push("b") == 2
        assert buffer.last_event_id == 2

    def test_get_since_cursor(self):
        buffer = EventBuffer()
        for kind in ("a", "b", "c"):
            buffer.push(kind)

        assert [e["type"] for e in buffer.get_since(1)] == ["b", "c"]
        assert buffer.get_since(3) == []

    def test_drops_oldest_when_full(self):
        buffer = EventBuffer(max_size=2)
        for kind in ("a", "b", "c"):
            buffer.push(kind)

        assert [e["id"] for e in buffer.get_since(0)] == [2, 3]


class TestClientNotifier:

    def test_emit_buffers_event(self):
        notifier = ClientNotifier()

        event_id = notifier.emit(ClientEventKind.INSTALLED_PACKAGES_CHANGED)

        assert event_id == 1
        assert notifier.emitted == 1
        assert notifier.events_since(0)[0]["type"] == "installed_packages_changed"

    def test_listeners_receive_events(self):
        notifier = ClientNotifier()
        received = []
        notifier.add_listener(received.append)

        notifier.emit(ClientEventKind.INSTALLED_PACKAGES_CHANGED)
        notifier.remove_listener(received.append)
        notifier.emit(ClientEventKind.INSTALLED_PACKAGES_CHANGED)

        assert received == [{"id": 1, "type": "installed_packages_changed"}]

    def test_listener_failure_does_not_propagate(self, caplog):
        notifier = ClientNotifier()
        received = []

        def broken(event):
            raise BrokenPipeError("client went away")

        notifier.add_listener(broken)
        notifier.add_listener(received.append)

        notifier.emit(ClientEventKind.INSTALLED_PACKAGES_CHANGED)

        assert len(received) == 1
        assert "listener failed" in caplog.text

    def test_remove_unknown_listener(self):
        ClientNotifier().remove_listener(print)
