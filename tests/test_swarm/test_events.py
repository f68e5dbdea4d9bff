"""Tests for EventBus and SwarmEvent."""

from __future__ import annotations

import threading

import pytest

from swarmcraft.swarm.events import EventBus, SwarmEvent, Topic


class TestSwarmEvent:
    def test_round_trip(self):
        ev = SwarmEvent(topic=Topic.TASK_ASSIGNED, source="coordinator", payload={"botId": "b"})
        restored = SwarmEvent.from_dict(ev.to_dict())
        assert restored.topic is Topic.TASK_ASSIGNED
        assert restored.payload == {"botId": "b"}
        assert restored.source == "coordinator"

    def test_unknown_topic(self):
        with pytest.raises(ValueError):
            SwarmEvent.from_dict({"topic": "bot.dance"})


class TestEventBus:
    def test_subscribe_and_publish(self):
        bus = EventBus()
        received = []
        bus.subscribe(Topic.BOT_REGISTER, received.append)
        ev = bus.publish(Topic.BOT_REGISTER, {"id": "bot1"}, source="bot1")
        assert received == [ev]
        assert ev.source == "bot1"

    def test_string_topic(self):
        bus = EventBus()
        received = []
        bus.subscribe("task.submit", received.append)
        bus.publish(Topic.TASK_SUBMIT)
        assert len(received) == 1

    def test_topics_isolated(self):
        bus = EventBus()
        received = []
        bus.subscribe(Topic.TASK_SUBMIT, received.append)
        bus.publish(Topic.TASK_COMPLETE)
        assert received == []

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        sub_id = bus.subscribe(Topic.TASK_SUBMIT, received.append)
        assert bus.subscriber_count(Topic.TASK_SUBMIT) == 1
        bus.unsubscribe(sub_id)
        bus.unsubscribe("not-a-subscription")
        bus.publish(Topic.TASK_SUBMIT)
        assert received == []
        assert bus.subscriber_count(Topic.TASK_SUBMIT) == 0

    def test_payload_copied(self):
        bus = EventBus()
        payload = {"task": "mine"}
        ev = bus.publish(Topic.TASK_SUBMIT, payload)
        payload["task"] = "changed"
        assert ev.payload == {"task": "mine"}

    def test_callback_error_does_not_break_others(self):
        bus = EventBus()
        received = []

        def broken(ev):
            raise RuntimeError("boom")

        bus.subscribe(Topic.TASK_SUBMIT, broken)
        bus.subscribe(Topic.TASK_SUBMIT, received.append)
        bus.publish(Topic.TASK_SUBMIT)
        assert len(received) == 1

    def test_nested_publish_is_queued(self):
        bus = EventBus()
        order = []

        def on_submit(ev):
            order.append("submit-start")
            bus.publish(Topic.TASK_ASSIGNED)
            order.append("submit-end")

        bus.subscribe(Topic.TASK_SUBMIT, on_submit)
        bus.subscribe(Topic.TASK_ASSIGNED, lambda ev: order.append("assigned"))
        bus.publish(Topic.TASK_SUBMIT)
        assert order == ["submit-start", "submit-end", "assigned"]

    def test_publish_from_other_thread_after_drain(self):
        class _TrailingBus(EventBus):
            fired = False

            def _drain(self):
                super()._drain()
                if not self.fired:
                    self.fired = True
                    worker = threading.Thread(
                        target=self.publish, args=(Topic.BOT_FAILOVER, {"botId": "b1"})
                    )
                    worker.start()
                    worker.join(timeout=2)

        bus = _TrailingBus()
        received = []
        bus.subscribe(Topic.BOT_FAILOVER, lambda ev: received.append(ev.payload))
        bus.publish(Topic.BOT_HEARTBEAT)
        assert received == [{"botId": "b1"}]
        assert not bus._pending

    def test_history(self):
        bus = EventBus(history_size=3)
        for _ in range(4):
            bus.publish(Topic.BOT_HEARTBEAT)
        bus.publish(Topic.TASK_SUBMIT)
        assert len(bus.history()) == 3
        assert len(bus.history(Topic.TASK_SUBMIT)) == 1
        bus.clear_history()
        assert bus.history() == []
