"""Shared fixtures for the tabletop server tests."""

from __future__ import annotations

from typing import Optional

import pytest
import pytest_asyncio

from tabletop.game_server.core.store import MemoryStore
from tabletop.game_server.core.world import TableWorld
from tabletop.game_server.dice import DiceRoller
from tabletop.game_server.rpc.events import EventDispatcher


class RecordingSink:
    """Event sink that keeps every envelope it is sent."""

    def __init__(self, name: str, session_id: Optional[str] = None) -> None:
        self.name = name
        self.session_id = session_id
        self.connection_id = f"conn-{name}"
        self.envelopes: list[dict] = []

    async def send_event(self, envelope: dict) -> None:
        self.envelopes.append(envelope)

    def match_session(self, session_id: str) -> bool:
        return self.session_id is None or self.session_id == session_id

    def types(self) -> list[str]:
        return [envelope["type"] for envelope in self.envelopes]


class FailingSink(RecordingSink):
    async def send_event(self, envelope: dict) -> None:
        raise ConnectionError("socket closed")


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def dispatcher() -> EventDispatcher:
    return EventDispatcher()


@pytest.fixture
def table(store, dispatcher) -> TableWorld:
    return TableWorld(store, dispatcher, DiceRoller(seed=7))


@pytest_asyncio.fixture
async def viewer(dispatcher):
    """A registered viewer watching every session."""
    sink = RecordingSink("dm")
    await dispatcher.register(sink)
    return sink


@pytest_asyncio.fixture
async def session(store):
    return await store.create_session({"name": "Goblin Ambush", "is_active": True})
