"""Unit tests for the publish/subscribe topic."""

from __future__ import annotations

from discovery_agent.channels import Topic


class TestTopic:

    def test_fan_out_in_order(self):
        topic: Topic[int] = Topic("t")
        a = topic.subscribe()
        b = topic.subscribe()
        for i in range(3):
            topic.publish(i)
        assert [a.get_nowait() for _ in range(3)] == [0, 1, 2]
        assert [b.get_nowait() for _ in range(3)] == [0, 1, 2]

    def test_full_queue_drops_oldest(self):
        topic: Topic[int] = Topic("t")
        q = topic.subscribe(maxsize=2)
        for i in range(4):
            topic.publish(i)
        assert [q.get_nowait(), q.get_nowait()] == [2, 3]
        assert topic.dropped == 2

    def test_unbounded_subscriber(self):
        topic: Topic[int] = Topic("t", default_maxsize=1)
        q = topic.subscribe(maxsize=0)
        for i in range(50):
            topic.publish(i)
        assert q.qsize() == 50
        assert topic.dropped == 0

    def test_default_maxsize(self):
        topic: Topic[int] = Topic("t", default_maxsize=3)
        assert topic.subscribe().maxsize == 3

    def test_unsubscribe(self):
        topic: Topic[int] = Topic("t")
        q = topic.subscribe()
        topic.unsubscribe(q)
        topic.unsubscribe(q)  # unknown queue is ignored
        topic.publish(1)
        assert q.empty()
        assert topic.subscriber_count == 0

    def test_publish_without_subscribers(self):
        Topic("t").publish("nobody listens")
