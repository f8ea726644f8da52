"""Tests for rpc.events.EventDispatcher fan-out."""

from unittest.mock import AsyncMock

import pytest

from conftest import FailingSink, RecordingSink
from tabletop.game_server.core.models import Combatant, GameSession
from tabletop.game_server.events import (
    CombatantAdded,
    EventType,
    TurnChanged,
    UserJoined,
    to_message,
)


def _ogre(session_id: str = "s1") -> Combatant:
    return Combatant(id="c-ogre", session_id=session_id, name="Ogre")


@pytest.mark.asyncio
class TestEventDispatcher:
    async def test_every_viewer_receives_event_once(self, dispatcher):
        first, second = RecordingSink("alice"), RecordingSink("bob")
        await dispatcher.register(first)
        await dispatcher.register(second)

        delivered = await dispatcher.publish(CombatantAdded(_ogre()))

        assert delivered == 2
        assert first.types() == ["combatant_added"]
        assert second.types() == ["combatant_added"]

    async def test_late_viewer_gets_no_replay(self, dispatcher):
        early = RecordingSink("alice")
        await dispatcher.register(early)
        await dispatcher.publish(CombatantAdded(_ogre()))

        late = RecordingSink("carol")
        await dispatcher.register(late)

        assert late.envelopes == []
        assert len(early.envelopes) == 1

    async def test_failed_sink_is_dropped_and_others_still_receive(self, dispatcher):
        broken, healthy = FailingSink("broken"), RecordingSink("healthy")
        await dispatcher.register(broken)
        await dispatcher.register(healthy)

        delivered = await dispatcher.publish(CombatantAdded(_ogre()))

        assert delivered == 1
        assert healthy.types() == ["combatant_added"]
        assert dispatcher.sink_count == 1

        await dispatcher.publish(CombatantAdded(_ogre()))
        assert len(healthy.envelopes) == 2

    async def test_session_filter(self, dispatcher):
        watching = RecordingSink("alice", session_id="s1")
        elsewhere = RecordingSink("bob", session_id="s2")
        everywhere = RecordingSink("dm")
        for sink in (watching, elsewhere, everywhere):
            await dispatcher.register(sink)

        await dispatcher.publish(CombatantAdded(_ogre("s1")))

        assert watching.types() == ["combatant_added"]
        assert elsewhere.envelopes == []
        assert everywhere.types() == ["combatant_added"]

    async def test_unscoped_event_reaches_all(self, dispatcher):
        bound = RecordingSink("alice", session_id="s2")
        await dispatcher.register(bound)

        await dispatcher.emit("user_joined", {"name": "zed"})

        assert bound.types() == ["user_joined"]

    async def test_unregister(self, dispatcher):
        sink = RecordingSink("alice")
        await dispatcher.register(sink)
        await dispatcher.unregister(sink)

        assert await dispatcher.publish(CombatantAdded(_ogre())) == 0
        assert sink.envelopes == []

    async def test_no_viewers_is_fine(self, dispatcher):
        assert await dispatcher.publish(UserJoined("alice")) == 0

    async def test_envelope_shape(self, dispatcher):
        sink = AsyncMock()
        sink.match_session = lambda session_id: True
        await dispatcher.register(sink)

        session = GameSession(id="s1", name="Crypt", in_combat=True, current_turn=1)
        await dispatcher.publish(TurnChanged(session, _ogre()))

        envelope = sink.send_event.await_args.args[0]
        assert envelope["frame_type"] == "event"
        assert envelope["type"] == "turn_changed"
        assert envelope["data"]["session"]["currentTurn"] == 1
        assert envelope["data"]["activeCombatant"]["name"] == "Ogre"


def test_event_type_names_are_fixed():
    assert {t.value for t in EventType} == {
        "character_updated",
        "combatant_added",
        "combatant_updated",
        "combatant_removed",
        "combat_started",
        "combat_ended",
        "turn_changed",
        "session_updated",
        "user_joined",
        "user_left",
        "dice_rolled",
    }


def test_to_message():
    message = to_message(UserJoined("alice", "s1"))
    assert message == {
        "type": "user_joined",
        "data": {"name": "alice", "sessionId": "s1"},
    }
