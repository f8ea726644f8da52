"""Presence events from the /ws endpoint, driven with a fake socket."""

import asyncio
import json

import pytest
import pytest_asyncio
from fastapi import WebSocketDisconnect

from conftest import RecordingSink
from tabletop.game_server import server


class FakeWebSocket:
    """Feeds scripted frames to the endpoint and records what it sends."""

    def __init__(self, frames, *, hang_after=False):
        self._frames = list(frames)
        self._hang_after = hang_after
        self.sent: list[dict] = []
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def receive_text(self):
        if self._frames:
            return json.dumps(self._frames.pop(0))
        if self._hang_after:
            await asyncio.Event().wait()
        raise WebSocketDisconnect(code=1000)

    async def send_json(self, data):
        self.sent.append(data)


def _identify(name):
    return {"id": f"id-{name}", "type": "identify", "name": name}


@pytest_asyncio.fixture
async def watcher():
    sink = RecordingSink("watcher")
    await server.world.dispatcher.register(sink)
    yield sink
    await server.world.dispatcher.unregister(sink)


async def _wait_for(sink, event_type, attempts=50):
    for _ in range(attempts):
        if event_type in sink.types():
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"{event_type} never delivered; got {sink.types()}")


@pytest.mark.asyncio
class TestPresenceEvents:
    async def test_disconnect_announces_viewer_left(self, watcher):
        socket = FakeWebSocket([_identify("leaver")])

        await server.websocket_endpoint(socket)

        assert socket.accepted
        assert watcher.types() == ["user_joined", "user_left"]
        assert watcher.envelopes[-1]["data"]["name"] == "leaver"

    async def test_cancelled_socket_still_announces_viewer_left(self, watcher):
        socket = FakeWebSocket([_identify("dropped")], hang_after=True)
        task = asyncio.create_task(server.websocket_endpoint(socket))
        await _wait_for(watcher, "user_joined")

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        await _wait_for(watcher, "user_left")
        assert watcher.envelopes[-1]["data"]["name"] == "dropped"

    async def test_anonymous_socket_leaves_silently(self, watcher):
        socket = FakeWebSocket([{"id": "1", "type": "rpc", "endpoint": "server_status"}])

        await server.websocket_endpoint(socket)

        assert watcher.types() == []
        assert socket.sent[0]["ok"] is True

    async def test_closed_socket_is_unregistered(self, watcher):
        before = server.world.dispatcher.sink_count

        await server.websocket_endpoint(FakeWebSocket([_identify("brief")]))

        assert server.world.dispatcher.sink_count == before

    async def test_non_string_endpoint_is_rejected(self, watcher):
        socket = FakeWebSocket(
            [
                {"id": "bad", "type": "rpc", "endpoint": ["session.list"]},
                {"id": "num", "type": "rpc", "endpoint": 7, "payload": {}},
                {"id": "ok", "type": "rpc", "endpoint": "server_status"},
            ]
        )

        await server.websocket_endpoint(socket)

        replies = {frame["id"]: frame for frame in socket.sent}
        assert replies["bad"]["error"] == {
            "status": 400,
            "detail": "Missing or invalid endpoint",
        }
        assert replies["num"]["error"]["status"] == 400
        assert replies["ok"]["ok"] is True
