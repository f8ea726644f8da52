"""Roster mutations for a session's combatants.

Every write goes through the persistence gateway under the session lock and
is followed by a broadcast, so viewers can re-derive their view from events.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from tabletop.game_server.combat.turn_order import active_at, compute_order
from tabletop.game_server.core.locks import SessionLockManager
from tabletop.game_server.core.models import Combatant, StatusEffect
from tabletop.game_server.core.store import PersistenceGateway
from tabletop.game_server.errors import ValidationError
from tabletop.game_server.events import (
    CombatantAdded,
    CombatantRemoved,
    CombatantUpdated,
)
from tabletop.game_server.rpc.events import EventDispatcher, EventLogContext

logger = logging.getLogger("tabletop.combat.roster")

DEFAULT_INITIATIVE = 0
DEFAULT_ARMOR_CLASS = 10
DEFAULT_HP = 1

EDITABLE_FIELDS = {
    "name",
    "initiative",
    "armor_class",
    "current_hp",
    "max_hp",
    "status_effects",
    "character_id",
}


def clamp_hp(value: int, max_hp: int) -> int:
    """Clamp hit points into ``[0, max_hp]``."""
    return max(0, min(max_hp, value))


def clamp_armor_class(value: int) -> int:
    return max(1, value)


def _optional_int(data: Mapping[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


def _validate_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("name is required")
    return value.strip()


def _validate_effects(value: Any) -> List[StatusEffect]:
    if not isinstance(value, list):
        raise ValidationError("status_effects must be a list")
    return [StatusEffect.from_dict(item) for item in value]


def _validate_character_id(value: Any) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ValidationError("character_id must be a string")
    return value


def build_new_combatant(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate create input and fill in defaults.

    Unsupplied fields default to initiative 0, AC 10 and 1/1 HP. A lone
    ``max_hp`` also sets ``current_hp`` and vice versa.
    """
    unknown = set(data) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown combatant field(s): {', '.join(sorted(unknown))}")

    name = _validate_name(data.get("name"))
    initiative = _optional_int(data, "initiative")
    armor_class = _optional_int(data, "armor_class")
    current_hp = _optional_int(data, "current_hp")
    max_hp = _optional_int(data, "max_hp")

    if max_hp is None:
        max_hp = current_hp if current_hp is not None else DEFAULT_HP
    max_hp = max(0, max_hp)
    if current_hp is None:
        current_hp = max_hp

    fields: Dict[str, Any] = {
        "name": name,
        "initiative": DEFAULT_INITIATIVE if initiative is None else initiative,
        "armor_class": clamp_armor_class(
            DEFAULT_ARMOR_CLASS if armor_class is None else armor_class
        ),
        "current_hp": clamp_hp(current_hp, max_hp),
        "max_hp": max_hp,
        "status_effects": _validate_effects(data.get("status_effects") or []),
    }
    character_id = _validate_character_id(data.get("character_id"))
    if character_id is not None:
        fields["character_id"] = character_id
    return fields


def build_combatant_updates(
    combatant: Combatant, data: Mapping[str, Any]
) -> Dict[str, Any]:
    """Validate a partial update against the current record, clamping HP/AC."""
    unknown = set(data) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown combatant field(s): {', '.join(sorted(unknown))}")

    updates: Dict[str, Any] = {}
    if "name" in data:
        updates["name"] = _validate_name(data["name"])
    if "initiative" in data:
        updates["initiative"] = _optional_int(data, "initiative")
        if updates["initiative"] is None:
            raise ValidationError("initiative must be an integer")
    if "armor_class" in data:
        armor_class = _optional_int(data, "armor_class")
        if armor_class is None:
            raise ValidationError("armor_class must be an integer")
        updates["armor_class"] = clamp_armor_class(armor_class)

    max_hp = combatant.max_hp
    if "max_hp" in data:
        requested = _optional_int(data, "max_hp")
        if requested is None:
            raise ValidationError("max_hp must be an integer")
        max_hp = max(0, requested)
        updates["max_hp"] = max_hp
    if "current_hp" in data:
        current_hp = _optional_int(data, "current_hp")
        if current_hp is None:
            raise ValidationError("current_hp must be an integer")
        updates["current_hp"] = clamp_hp(current_hp, max_hp)
    elif "max_hp" in updates:
        updates["current_hp"] = clamp_hp(combatant.current_hp, max_hp)

    if "status_effects" in data:
        updates["status_effects"] = _validate_effects(data["status_effects"])
    if "character_id" in data:
        updates["character_id"] = _validate_character_id(data["character_id"])
    return updates


async def sync_active_flags(
    store: PersistenceGateway,
    order: List[Combatant],
    active: Optional[Combatant],
) -> List[Combatant]:
    """Keep the legacy ``is_active`` flag in step with the turn pointer."""
    active_id = active.id if active else None
    synced: List[Combatant] = []
    for combatant in order:
        wanted = combatant.id == active_id
        if combatant.is_active != wanted:
            updated = await store.update_combatant(combatant.id, {"is_active": wanted})
            synced.append(updated if updated is not None else combatant)
        else:
            synced.append(combatant)
    return synced


Mutation = Callable[[Combatant], Optional[Dict[str, Any]]]


class RosterManager:
    """Adds, edits and removes combatants and broadcasts each change."""

    def __init__(
        self,
        store: PersistenceGateway,
        session_locks: SessionLockManager,
        dispatcher: EventDispatcher,
    ) -> None:
        self._store = store
        self._locks = session_locks
        self._dispatcher = dispatcher

    async def list_combatants(self, session_id: str) -> Optional[List[Combatant]]:
        """Return the initiative-ordered roster, or None for an unknown session."""
        if await self._store.get_session(session_id) is None:
            return None
        return compute_order(await self._store.get_combatants(session_id))

    async def add_combatant(
        self,
        session_id: str,
        data: Mapping[str, Any],
        *,
        actor: Optional[str] = None,
    ) -> Optional[Combatant]:
        fields = build_new_combatant(data)
        async with self._locks.lock(session_id, actor):
            if await self._store.get_session(session_id) is None:
                return None
            combatant = await self._store.create_combatant(
                {**fields, "session_id": session_id}
            )
            logger.info(
                "Combatant added session=%s id=%s name=%s initiative=%s",
                session_id,
                combatant.id,
                combatant.name,
                combatant.initiative,
            )
            await self._dispatcher.publish(
                CombatantAdded(combatant), log_context=EventLogContext(actor=actor)
            )
        return combatant

    async def update_combatant(
        self,
        combatant_id: str,
        data: Mapping[str, Any],
        *,
        actor: Optional[str] = None,
    ) -> Optional[Combatant]:
        return await self._mutate(
            combatant_id,
            lambda current: build_combatant_updates(current, data),
            actor=actor,
        )

    async def update_hp(
        self,
        combatant_id: str,
        *,
        delta: Optional[int] = None,
        current: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Optional[Combatant]:
        """Apply damage/healing (``delta``) or set HP outright (``current``).

        The result is always clamped to ``[0, max_hp]``.
        """
        if (delta is None) == (current is None):
            raise ValidationError("Provide exactly one of delta or current")
        value = delta if delta is not None else current
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("HP value must be an integer")

        def _apply(combatant: Combatant) -> Dict[str, Any]:
            target = combatant.current_hp + delta if delta is not None else current
            return {"current_hp": clamp_hp(target, combatant.max_hp)}

        return await self._mutate(combatant_id, _apply, actor=actor)

    async def update_ac(
        self,
        combatant_id: str,
        armor_class: int,
        *,
        actor: Optional[str] = None,
    ) -> Optional[Combatant]:
        if isinstance(armor_class, bool) or not isinstance(armor_class, int):
            raise ValidationError("armor_class must be an integer")
        return await self._mutate(
            combatant_id,
            lambda _: {"armor_class": clamp_armor_class(armor_class)},
            actor=actor,
        )

    async def add_status_effect(
        self,
        combatant_id: str,
        effect: Any,
        *,
        actor: Optional[str] = None,
    ) -> Optional[Combatant]:
        status_effect = StatusEffect.from_dict(effect)
        return await self._mutate(
            combatant_id,
            lambda current: {
                "status_effects": [*current.status_effects, status_effect]
            },
            actor=actor,
        )

    async def remove_status_effect(
        self,
        combatant_id: str,
        index: int,
        *,
        actor: Optional[str] = None,
    ) -> Optional[Combatant]:
        """Drop the effect at ``index``; an out-of-range index changes nothing."""
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationError("index must be an integer")

        def _apply(combatant: Combatant) -> Optional[Dict[str, Any]]:
            remaining = [
                effect
                for position, effect in enumerate(combatant.status_effects)
                if position != index
            ]
            if len(remaining) == len(combatant.status_effects):
                return None
            return {"status_effects": remaining}

        return await self._mutate(combatant_id, _apply, actor=actor)

    async def remove_combatant(
        self,
        combatant_id: str,
        *,
        actor: Optional[str] = None,
    ) -> Optional[Combatant]:
        """Delete a combatant and return the removed record.

        ``current_turn`` is left untouched, so removing a combatant at or
        before the active slot shifts which combatant the index points at.
        During combat the ``is_active`` flags are re-synced to whichever
        combatant now sits at that index.
        """
        existing = await self._store.get_combatant(combatant_id)
        if existing is None:
            return None
        async with self._locks.lock(existing.session_id, actor):
            existing = await self._store.get_combatant(combatant_id)
            if existing is None or not await self._store.delete_combatant(combatant_id):
                return None
            session = await self._store.get_session(existing.session_id)
            if session is not None and session.in_combat:
                order = compute_order(await self._store.get_combatants(session.id))
                await sync_active_flags(
                    self._store, order, active_at(order, session.current_turn)
                )
            logger.info(
                "Combatant removed session=%s id=%s name=%s",
                existing.session_id,
                existing.id,
                existing.name,
            )
            await self._dispatcher.publish(
                CombatantRemoved(existing.id, existing.session_id),
                log_context=EventLogContext(actor=actor),
            )
        return existing

    async def _mutate(
        self,
        combatant_id: str,
        mutation: Mutation,
        *,
        actor: Optional[str],
    ) -> Optional[Combatant]:
        """Apply ``mutation`` under the owning session's lock.

        ``mutation`` returns the fields to write, or None for a no-op, in which
        case nothing is written or broadcast.
        """
        existing = await self._store.get_combatant(combatant_id)
        if existing is None:
            return None
        async with self._locks.lock(existing.session_id, actor):
            current = await self._store.get_combatant(combatant_id)
            if current is None:
                return None
            updates = mutation(current)
            if not updates:
                return current
            updated = await self._store.update_combatant(combatant_id, updates)
            if updated is None:
                return None
            await self._dispatcher.publish(
                CombatantUpdated(updated), log_context=EventLogContext(actor=actor)
            )
        return updated


__all__ = [
    "RosterManager",
    "build_new_combatant",
    "build_combatant_updates",
    "clamp_hp",
    "clamp_armor_class",
    "sync_active_flags",
]
