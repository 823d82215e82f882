"""
Unit tests for the producer path (game chat -> platform adapter)
"""

import uuid

import pytest

from chatrelay.core.bridge import Bridge, DeliveryMode
from chatrelay.core.channel import SendError
from chatrelay.core.producer import ProducerPath
from chatrelay.models.events import ChatNotification, Identity


def drain(bridge):
    return list(bridge.plugin.rx.try_iter())


class TestIdentityResolution:
    """Test found / unknown / server resolution"""

    def test_known_sender(self, bridge, directory, alice):
        producer = ProducerPath(bridge.client, directory)
        event = producer.handle(ChatNotification(text="hi", sender_id=alice.id))

        assert event.identity == alice
        assert event.display_name == "Alice"
        assert drain(bridge) == [event]

    def test_unknown_sender(self, bridge, directory):
        stranger = uuid.uuid4()
        producer = ProducerPath(bridge.client, directory)
        producer.handle(ChatNotification(text="hi", sender_id=stranger))

        [event] = drain(bridge)
        assert event.identity == Identity(name="Unknown", id=stranger)
        assert event.display_name == "Unknown"

    def test_server_message(self, bridge, directory):
        producer = ProducerPath(bridge.client, directory)
        producer.handle(ChatNotification(text="Server restarting"))

        [event] = drain(bridge)
        assert event.identity is None
        assert event.is_server_message
        assert event.display_name == "Server"

    def test_display_name_hint_wins(self, bridge, directory, alice):
        producer = ProducerPath(bridge.client, directory)
        producer.handle(ChatNotification(text="hi", sender_id=alice.id, sender_name="[VIP] Alice"))

        [event] = drain(bridge)
        assert event.identity == alice
        assert event.display_name == "[VIP] Alice"

    def test_text_forwarded_unmodified(self, bridge, directory, alice):
        text = "x" * 1000 + " <b>@everyone</b>"
        producer = ProducerPath(bridge.client, directory)
        producer.handle(ChatNotification(text=text, sender_id=alice.id))
        assert drain(bridge)[0].text == text


class TestIgnoreList:
    """Test sender filtering"""

    def test_ignored_sender_dropped(self, directory, alice):
        bridge = Bridge(ignore_list=["Alice"])
        producer = ProducerPath(bridge.client, directory)

        assert producer.handle(ChatNotification(text="hi", sender_id=alice.id)) is None
        assert drain(bridge) == []
        assert producer.stats['ignored'] == 1

    def test_unknown_sender_never_filtered(self, directory):
        bridge = Bridge(ignore_list=["Unknown"])
        producer = ProducerPath(bridge.client, directory)

        producer.handle(ChatNotification(text="hi", sender_id=uuid.uuid4()))
        assert len(drain(bridge)) == 1

    def test_server_never_filtered(self, directory):
        bridge = Bridge(ignore_list=["Server"])
        producer = ProducerPath(bridge.client, directory)

        producer.handle(ChatNotification(text="notice"))
        assert len(drain(bridge)) == 1


class TestSingleMode:
    """Test observer filtering in single-target mode"""

    def test_other_observer_skipped(self, directory, alice):
        relay = Identity(name="RelayBot", id=uuid.uuid4())
        other = Identity(name="OtherBot", id=uuid.uuid4())
        bridge = Bridge(mode=DeliveryMode.single("RelayBot"))
        producer = ProducerPath(bridge.client, directory)

        producer.handle(ChatNotification(text="hi", sender_id=alice.id, observer=other))
        producer.handle(ChatNotification(text="hi", sender_id=alice.id, observer=relay))

        assert len(drain(bridge)) == 1
        assert producer.stats['other_observer'] == 1

    def test_notification_without_observer_passes(self, directory, alice):
        bridge = Bridge(mode=DeliveryMode.single("RelayBot"))
        producer = ProducerPath(bridge.client, directory)
        producer.handle(ChatNotification(text="hi", sender_id=alice.id))
        assert len(drain(bridge)) == 1

    def test_all_mode_ignores_observer(self, bridge, directory, alice):
        producer = ProducerPath(bridge.client, directory)
        for name in ("BotA", "BotB"):
            observer = Identity(name=name, id=uuid.uuid4())
            producer.handle(ChatNotification(text="hi", sender_id=alice.id, observer=observer))
        assert len(drain(bridge)) == 2


class TestDedupe:
    """Test the opt-in duplicate filter"""

    def test_handle_never_dedupes(self, bridge, directory, alice):
        producer = ProducerPath(bridge.client, directory, dedupe=True)
        for _ in range(3):
            producer.handle(ChatNotification(text="same", sender_id=alice.id))
        assert len(drain(bridge)) == 3

    def test_step_without_dedupe_keeps_copies(self, bridge, directory, alice):
        producer = ProducerPath(bridge.client, directory)
        batch = [ChatNotification(text="same", sender_id=alice.id) for _ in range(3)]
        assert producer.run_step(batch) == 3

    def test_step_with_dedupe(self, bridge, directory, alice):
        producer = ProducerPath(bridge.client, directory, dedupe=True)
        batch = [ChatNotification(text="same", sender_id=alice.id) for _ in range(3)]

        assert producer.run_step(batch) == 1
        assert producer.stats['duplicates'] == 2

        # A new step starts with a clean filter
        assert producer.run_step(batch) == 1

    def test_dedupe_after_observer_check(self, directory, alice):
        relay = Identity(name="RelayBot", id=uuid.uuid4())
        other = Identity(name="OtherBot", id=uuid.uuid4())
        bridge = Bridge(mode=DeliveryMode.single("RelayBot"))
        producer = ProducerPath(bridge.client, directory, dedupe=True)

        batch = [
            ChatNotification(text="same", sender_id=alice.id, observer=other),
            ChatNotification(text="same", sender_id=alice.id, observer=relay),
        ]
        assert producer.run_step(batch) == 1


class TestClosedChannel:
    """Test producer failure on a torn-down adapter"""

    def test_send_error_propagates(self, bridge, directory, alice):
        bridge.plugin.close()
        producer = ProducerPath(bridge.client, directory)

        with pytest.raises(SendError):
            producer.handle(ChatNotification(text="hi", sender_id=alice.id))
        assert producer.stats['events_forwarded'] == 0
