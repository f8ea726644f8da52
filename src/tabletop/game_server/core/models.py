"""Records stored behind the persistence gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tabletop.game_server.errors import ValidationError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StatusEffect:
    """Named, optionally timed condition attached to a combatant."""

    name: str
    description: Optional[str] = None
    duration: Optional[int] = None
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "StatusEffect":
        if isinstance(data, StatusEffect):
            return data
        if not isinstance(data, dict):
            raise ValidationError("Status effect must be an object")
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Status effect name is required")
        description = data.get("description")
        if description is not None and not isinstance(description, str):
            raise ValidationError("Status effect description must be a string")
        duration = data.get("duration")
        if duration is not None and (
            isinstance(duration, bool) or not isinstance(duration, int)
        ):
            raise ValidationError("Status effect duration must be an integer")
        source = data.get("source")
        if source is not None and not isinstance(source, str):
            raise ValidationError("Status effect source must be a string")
        return cls(
            name=name.strip(),
            description=description,
            duration=duration,
            source=source,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name}
        if self.description is not None:
            payload["description"] = self.description
        if self.duration is not None:
            payload["duration"] = self.duration
        if self.source is not None:
            payload["source"] = self.source
        return payload


@dataclass
class Combatant:
    """Participant tracked in a session's initiative order."""

    id: str
    session_id: str
    name: str
    initiative: int = 0
    armor_class: int = 10
    current_hp: int = 1
    max_hp: int = 1
    status_effects: List[StatusEffect] = field(default_factory=list)
    # Mirrors "is the current turn's combatant"; the turn index is authoritative.
    is_active: bool = False
    character_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class GameSession:
    """Per-session combat flags mutated by the turn-order engine."""

    id: str
    name: str
    current_round: int = 1
    current_turn: int = 0
    in_combat: bool = False
    is_active: bool = False
    dm_user_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class DiceRoll:
    """A resolved roll shared with everyone in the session."""

    id: str
    session_id: str
    player_name: str
    formula: str
    result: int
    details: Optional[str] = None
    rolls: List[int] = field(default_factory=list)
    timestamp: datetime = field(default_factory=_utcnow)


__all__ = ["StatusEffect", "Combatant", "GameSession", "DiceRoll"]
