"""
Tests for the blinker-backed event manager.
"""

from mlinstaller.services.events import EventManager, Events


class TestEventManager:
    """Tests for subscribing and emitting."""

    def test_emit_reaches_subscriber(self):
        manager = EventManager()
        received = []

        def on_refreshed(sender, **kwargs):
            received.append((sender, kwargs))

        assert manager.subscribe(Events.VERSIONS_REFRESHED, on_refreshed)
        count = manager.emit(Events.VERSIONS_REFRESHED, success=True, count=1)

        assert count == 1
        assert received == [(manager, {"success": True, "count": 1})]

    def test_unsubscribe(self):
        manager = EventManager()
        received = []

        def on_status(sender, **kwargs):
            received.append(kwargs)

        manager.subscribe(Events.STATUS_MESSAGE, on_status)

        assert manager.unsubscribe(Events.STATUS_MESSAGE, on_status)
        assert manager.emit(Events.STATUS_MESSAGE, message="hi") == 0
        assert received == []

    def test_failing_subscriber_is_contained(self):
        manager = EventManager()

        def broken(sender, **kwargs):
            raise RuntimeError("bad")

        manager.subscribe(Events.APP_SHUTDOWN, broken)

        assert manager.emit(Events.APP_SHUTDOWN) == 0
