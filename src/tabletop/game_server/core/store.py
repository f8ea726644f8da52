"""Persistence gateway used by the roster and turn-order operations.

The core only talks to storage through :class:`PersistenceGateway`. The
bundled :class:`MemoryStore` keeps everything in process memory so the server
runs without an external database; records are copied on the way in and out
so callers never mutate stored state directly.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from dataclasses import fields, replace
from typing import Any, Dict, List, Optional, Protocol

from tabletop.game_server.core.models import Combatant, DiceRoll, GameSession


class PersistenceGateway(Protocol):
    """Storage operations consumed by the session server."""

    async def get_combatants(self, session_id: str) -> List[Combatant]:
        """Return the session's combatants ordered by initiative, highest first."""
        ...

    async def get_combatant(self, combatant_id: str) -> Optional[Combatant]:
        ...

    async def create_combatant(self, data: Dict[str, Any]) -> Combatant:
        ...

    async def update_combatant(
        self, combatant_id: str, updates: Dict[str, Any]
    ) -> Optional[Combatant]:
        ...

    async def delete_combatant(self, combatant_id: str) -> bool:
        ...

    async def get_session(self, session_id: str) -> Optional[GameSession]:
        ...

    async def get_sessions(self) -> List[GameSession]:
        ...

    async def create_session(self, data: Dict[str, Any]) -> GameSession:
        ...

    async def update_session(
        self, session_id: str, updates: Dict[str, Any]
    ) -> Optional[GameSession]:
        ...

    async def get_active_session(self) -> Optional[GameSession]:
        ...

    async def create_dice_roll(self, data: Dict[str, Any]) -> DiceRoll:
        ...

    async def get_dice_rolls(self, session_id: str, limit: int = 10) -> List[DiceRoll]:
        """Return the most recent rolls for a session, newest first."""
        ...

    async def get_character(self, character_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def create_character(self, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def update_character(
        self, character_id: str, updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        ...


def _new_id() -> str:
    return str(uuid.uuid4())


def _field_names(record_type: type) -> set[str]:
    return {f.name for f in fields(record_type)}


_IMMUTABLE_FIELDS = {"id", "created_at"}


class MemoryStore:
    """In-process implementation of :class:`PersistenceGateway`."""

    def __init__(self) -> None:
        # dicts keep insertion order, which is the tie-break for initiative
        self._combatants: Dict[str, Combatant] = {}
        self._sessions: Dict[str, GameSession] = {}
        self._dice_rolls: List[DiceRoll] = []
        self._characters: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Combatants
    # ------------------------------------------------------------------ #

    async def get_combatants(self, session_id: str) -> List[Combatant]:
        async with self._lock:
            roster = [
                copy.deepcopy(c)
                for c in self._combatants.values()
                if c.session_id == session_id
            ]
        return sorted(roster, key=lambda c: c.initiative, reverse=True)

    async def get_combatant(self, combatant_id: str) -> Optional[Combatant]:
        async with self._lock:
            combatant = self._combatants.get(combatant_id)
            return copy.deepcopy(combatant) if combatant else None

    async def create_combatant(self, data: Dict[str, Any]) -> Combatant:
        allowed = _field_names(Combatant) - _IMMUTABLE_FIELDS
        values = {k: copy.deepcopy(v) for k, v in data.items() if k in allowed}
        combatant = Combatant(id=_new_id(), **values)
        async with self._lock:
            self._combatants[combatant.id] = combatant
            return copy.deepcopy(combatant)

    async def update_combatant(
        self, combatant_id: str, updates: Dict[str, Any]
    ) -> Optional[Combatant]:
        allowed = _field_names(Combatant) - _IMMUTABLE_FIELDS - {"session_id"}
        values = {k: copy.deepcopy(v) for k, v in updates.items() if k in allowed}
        async with self._lock:
            current = self._combatants.get(combatant_id)
            if current is None:
                return None
            updated = replace(current, **values)
            self._combatants[combatant_id] = updated
            return copy.deepcopy(updated)

    async def delete_combatant(self, combatant_id: str) -> bool:
        async with self._lock:
            return self._combatants.pop(combatant_id, None) is not None

    # ------------------------------------------------------------------ #
    # Sessions
    # ------------------------------------------------------------------ #

    async def get_session(self, session_id: str) -> Optional[GameSession]:
        async with self._lock:
            session = self._sessions.get(session_id)
            return copy.deepcopy(session) if session else None

    async def get_sessions(self) -> List[GameSession]:
        async with self._lock:
            return [copy.deepcopy(s) for s in self._sessions.values()]

    async def create_session(self, data: Dict[str, Any]) -> GameSession:
        allowed = _field_names(GameSession) - _IMMUTABLE_FIELDS
        values = {k: v for k, v in data.items() if k in allowed}
        session = GameSession(id=_new_id(), **values)
        async with self._lock:
            self._sessions[session.id] = session
            return copy.deepcopy(session)

    async def update_session(
        self, session_id: str, updates: Dict[str, Any]
    ) -> Optional[GameSession]:
        allowed = _field_names(GameSession) - _IMMUTABLE_FIELDS
        values = {k: v for k, v in updates.items() if k in allowed}
        async with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                return None
            updated = replace(current, **values)
            self._sessions[session_id] = updated
            return copy.deepcopy(updated)

    async def get_active_session(self) -> Optional[GameSession]:
        async with self._lock:
            for session in self._sessions.values():
                if session.is_active:
                    return copy.deepcopy(session)
        return None

    # ------------------------------------------------------------------ #
    # Dice rolls
    # ------------------------------------------------------------------ #

    async def create_dice_roll(self, data: Dict[str, Any]) -> DiceRoll:
        allowed = _field_names(DiceRoll) - {"id", "timestamp"}
        values = {k: copy.deepcopy(v) for k, v in data.items() if k in allowed}
        roll = DiceRoll(id=_new_id(), **values)
        async with self._lock:
            self._dice_rolls.append(roll)
            return copy.deepcopy(roll)

    async def get_dice_rolls(self, session_id: str, limit: int = 10) -> List[DiceRoll]:
        if limit <= 0:
            return []
        async with self._lock:
            matching = [r for r in self._dice_rolls if r.session_id == session_id]
        return [copy.deepcopy(r) for r in reversed(matching[-limit:])]

    # ------------------------------------------------------------------ #
    # Characters (opaque documents)
    # ------------------------------------------------------------------ #

    async def get_character(self, character_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            record = self._characters.get(character_id)
            return copy.deepcopy(record) if record else None

    async def create_character(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record = copy.deepcopy(data)
        record["id"] = _new_id()
        async with self._lock:
            self._characters[record["id"]] = record
            return copy.deepcopy(record)

    async def update_character(
        self, character_id: str, updates: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        async with self._lock:
            record = self._characters.get(character_id)
            if record is None:
                return None
            for key, value in updates.items():
                if key == "id":
                    continue
                record[key] = copy.deepcopy(value)
            return copy.deepcopy(record)


__all__ = ["PersistenceGateway", "MemoryStore"]
