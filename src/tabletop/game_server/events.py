"""Closed set of events pushed to connected viewers.

Every event serializes to ``{"type": <EventType value>, "data": {...}}``.
The type strings are shared with browser clients and must not change.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union

from tabletop.game_server.core.models import Combatant, DiceRoll, GameSession
from tabletop.game_server.core.serialization import (
    serialize_combatant,
    serialize_dice_roll,
    serialize_session,
)


class EventType(str, Enum):
    """Event names understood by viewers."""

    CHARACTER_UPDATED = "character_updated"
    COMBATANT_ADDED = "combatant_added"
    COMBATANT_UPDATED = "combatant_updated"
    COMBATANT_REMOVED = "combatant_removed"
    COMBAT_STARTED = "combat_started"
    COMBAT_ENDED = "combat_ended"
    TURN_CHANGED = "turn_changed"
    SESSION_UPDATED = "session_updated"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    DICE_ROLLED = "dice_rolled"


@dataclass(frozen=True)
class CharacterUpdated:
    character: Dict[str, Any]

    type: ClassVar[EventType] = EventType.CHARACTER_UPDATED

    @property
    def session_id(self) -> Optional[str]:
        return None

    def data(self) -> Dict[str, Any]:
        return dict(self.character)


@dataclass(frozen=True)
class CombatantAdded:
    combatant: Combatant

    type: ClassVar[EventType] = EventType.COMBATANT_ADDED

    @property
    def session_id(self) -> Optional[str]:
        return self.combatant.session_id

    def data(self) -> Dict[str, Any]:
        return serialize_combatant(self.combatant)


@dataclass(frozen=True)
class CombatantUpdated:
    combatant: Combatant

    type: ClassVar[EventType] = EventType.COMBATANT_UPDATED

    @property
    def session_id(self) -> Optional[str]:
        return self.combatant.session_id

    def data(self) -> Dict[str, Any]:
        return serialize_combatant(self.combatant)


@dataclass(frozen=True)
class CombatantRemoved:
    combatant_id: str
    combatant_session_id: str

    type: ClassVar[EventType] = EventType.COMBATANT_REMOVED

    @property
    def session_id(self) -> Optional[str]:
        return self.combatant_session_id

    def data(self) -> Dict[str, Any]:
        return {"id": self.combatant_id, "sessionId": self.combatant_session_id}


@dataclass(frozen=True)
class CombatStarted:
    session: GameSession
    active_combatant: Optional[Combatant]

    type: ClassVar[EventType] = EventType.COMBAT_STARTED

    @property
    def session_id(self) -> Optional[str]:
        return self.session.id

    def data(self) -> Dict[str, Any]:
        return {
            "session": serialize_session(self.session),
            "activeCombatant": serialize_combatant(self.active_combatant),
        }


@dataclass(frozen=True)
class CombatEnded:
    session: GameSession

    type: ClassVar[EventType] = EventType.COMBAT_ENDED

    @property
    def session_id(self) -> Optional[str]:
        return self.session.id

    def data(self) -> Dict[str, Any]:
        return {"session": serialize_session(self.session)}


@dataclass(frozen=True)
class TurnChanged:
    session: GameSession
    active_combatant: Optional[Combatant]

    type: ClassVar[EventType] = EventType.TURN_CHANGED

    @property
    def session_id(self) -> Optional[str]:
        return self.session.id

    def data(self) -> Dict[str, Any]:
        return {
            "session": serialize_session(self.session),
            "activeCombatant": serialize_combatant(self.active_combatant),
        }


@dataclass(frozen=True)
class SessionUpdated:
    session: GameSession

    type: ClassVar[EventType] = EventType.SESSION_UPDATED

    @property
    def session_id(self) -> Optional[str]:
        return self.session.id

    def data(self) -> Dict[str, Any]:
        return serialize_session(self.session)


@dataclass(frozen=True)
class UserJoined:
    name: str
    joined_session_id: Optional[str] = None

    type: ClassVar[EventType] = EventType.USER_JOINED

    @property
    def session_id(self) -> Optional[str]:
        return self.joined_session_id

    def data(self) -> Dict[str, Any]:
        return {"name": self.name, "sessionId": self.joined_session_id}


@dataclass(frozen=True)
class UserLeft:
    name: str
    left_session_id: Optional[str] = None

    type: ClassVar[EventType] = EventType.USER_LEFT

    @property
    def session_id(self) -> Optional[str]:
        return self.left_session_id

    def data(self) -> Dict[str, Any]:
        return {"name": self.name, "sessionId": self.left_session_id}


@dataclass(frozen=True)
class DiceRolled:
    roll: DiceRoll

    type: ClassVar[EventType] = EventType.DICE_ROLLED

    @property
    def session_id(self) -> Optional[str]:
        return self.roll.session_id

    def data(self) -> Dict[str, Any]:
        return serialize_dice_roll(self.roll)


SessionEvent = Union[
    CharacterUpdated,
    CombatantAdded,
    CombatantUpdated,
    CombatantRemoved,
    CombatStarted,
    CombatEnded,
    TurnChanged,
    SessionUpdated,
    UserJoined,
    UserLeft,
    DiceRolled,
]


def to_message(event: SessionEvent) -> Dict[str, Any]:
    """Return the ``{type, data}`` record sent on the wire."""
    return {"type": event.type.value, "data": event.data()}


__all__ = [
    "EventType",
    "CharacterUpdated",
    "CombatantAdded",
    "CombatantUpdated",
    "CombatantRemoved",
    "CombatStarted",
    "CombatEnded",
    "TurnChanged",
    "SessionUpdated",
    "UserJoined",
    "UserLeft",
    "DiceRolled",
    "SessionEvent",
    "to_message",
]
