import asyncio

from lawsphere.realtime import (
    CLOSED,
    NEW_REPLY,
    NEW_TOPIC,
    BroadcastNotifier,
    NoopNotifier,
    Notifier,
    topic_room,
)


def test_global_events_reach_everyone_room_events_only_members():
    async def scenario():
        hub = BroadcastNotifier()
        member = await hub.register()
        outsider = await hub.register()
        await hub.join(member, topic_room(7))

        await hub.publish(NEW_TOPIC, {"id": 8})
        await hub.publish(NEW_REPLY, {"topicId": 7}, room=topic_room(7))

        assert member.get_nowait() == {"event": NEW_TOPIC, "data": {"id": 8}}
        assert member.get_nowait() == {"event": NEW_REPLY, "data": {"topicId": 7}}
        assert outsider.get_nowait()["event"] == NEW_TOPIC
        assert outsider.empty()

    asyncio.run(scenario())


def test_leave_and_unregister_stop_delivery():
    async def scenario():
        hub = BroadcastNotifier()
        q = await hub.register()
        await hub.join(q, topic_room(1))
        await hub.leave(q, topic_room(1))
        await hub.publish(NEW_REPLY, {}, room=topic_room(1))
        assert q.empty()

        await hub.unregister(q)
        await hub.publish(NEW_TOPIC, {})
        assert q.empty()

    asyncio.run(scenario())


def test_full_queue_drops_slow_subscriber():
    async def scenario():
        hub = BroadcastNotifier(queue_size=1)
        slow = await hub.register()
        fast = await hub.register()
        await hub.publish(NEW_TOPIC, {"n": 1})
        fast.get_nowait()
        await hub.publish(NEW_TOPIC, {"n": 2})

        # The slow subscriber only holds the close marker now
        assert slow.qsize() == 1
        assert slow.get_nowait() is CLOSED
        assert fast.get_nowait()["data"] == {"n": 2}

        await hub.publish(NEW_TOPIC, {"n": 3})
        assert slow.empty()
        assert fast.get_nowait()["data"] == {"n": 3}

    asyncio.run(scenario())


def test_publish_failures_are_swallowed():
    class Broken(Notifier):
        async def _publish(self, event, data, room):
            raise ConnectionError("socket gone")

    asyncio.run(Broken().publish(NEW_TOPIC, {}))
    asyncio.run(NoopNotifier().publish(NEW_TOPIC, {}))
