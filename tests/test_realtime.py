"""
Tests for the realtime Broadcaster, SSE framing and the /realtime routes.
"""
import asyncio
import json

from taskwatch.core.realtime import Broadcaster, RealtimeEvent
from taskwatch.routers.realtime import event_stream, format_sse


class FakeRequest:
    """Stands in for a Starlette Request; reports a disconnect after `alive` checks."""

    def __init__(self, alive: int = 0):
        self.alive = alive

    async def is_disconnected(self) -> bool:
        if self.alive > 0:
            self.alive -= 1
            return False
        return True


class TestBroadcaster:
    def test_publish_reaches_every_listener(self):
        hub = Broadcaster()
        first, second = [], []
        hub.subscribe(first.append)
        hub.subscribe(second.append)

        event = RealtimeEvent.timeline_deleted(3)
        hub.publish(event)
        assert first == [event]
        assert second == [event]

    def test_unsubscribe(self):
        hub = Broadcaster()
        seen = []
        unsubscribe = hub.subscribe(seen.append)
        unsubscribe()
        hub.publish(RealtimeEvent.ready())
        assert seen == []
        assert hub.listener_count == 0

    def test_failing_listener_does_not_block_others(self):
        hub = Broadcaster()
        seen = []

        def broken(event):
            raise RuntimeError("socket closed")

        hub.subscribe(broken)
        hub.subscribe(seen.append)
        hub.publish(RealtimeEvent.ready())
        assert len(seen) == 1

    def test_event_payloads(self):
        reacted = RealtimeEvent.timeline_reacted(9, likes=2, bads=1)
        assert reacted.to_dict() == {
            "type": "timeline.reacted",
            "payload": {"post_id": 9, "reactions": {"likes": 2, "bads": 1}},
        }
        assert RealtimeEvent.ready().to_dict() == {"type": "ready", "payload": None}


class TestSseFraming:
    def test_format(self):
        frame = format_sse(RealtimeEvent.timeline_deleted(3))
        assert frame.startswith("event: message\ndata: ")
        assert frame.endswith("\n\n")
        data = json.loads(frame[len("event: message\ndata: "):].strip())
        assert data == {"type": "timeline.deleted", "payload": {"post_id": 3}}

    def test_stream_sends_ready_then_events(self):
        hub = Broadcaster()

        async def run():
            stream = event_stream(FakeRequest(), hub, keepalive_seconds=5)
            frames = [await stream.__anext__(), await stream.__anext__()]
            assert hub.listener_count == 1
            hub.publish(RealtimeEvent.timeline_deleted(4))
            frames.append(await stream.__anext__())
            await stream.aclose()
            return frames

        frames = asyncio.run(run())
        assert frames[0] == ": stream-start\n\n"
        assert '"type": "ready"' in frames[1]
        assert '"post_id": 4' in frames[2]
        assert hub.listener_count == 0

    def test_keepalive_until_disconnect(self):
        hub = Broadcaster()

        async def run():
            frames = []
            async for frame in event_stream(FakeRequest(alive=1), hub, keepalive_seconds=0.01):
                frames.append(frame)
            return frames

        frames = asyncio.run(run())
        assert len(frames) == 3
        assert frames[2].startswith(": keep-alive ")
        assert hub.listener_count == 0


class TestRealtimeRoutes:
    def test_ready_broadcast(self, client, published):
        r = client.post("/realtime/ready")
        assert r.status_code == 204
        assert [e.type.value for e in published] == ["ready"]
