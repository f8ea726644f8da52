"""Serialization helpers for records pushed to viewers.

Payload keys are camelCase because browser clients consume them directly.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from tabletop.game_server.core.models import (
    Combatant,
    DiceRoll,
    GameSession,
    StatusEffect,
)


def serialize_status_effects(effects: Iterable[StatusEffect]) -> List[Dict[str, Any]]:
    return [effect.to_dict() for effect in effects]


def serialize_combatant(combatant: Optional[Combatant]) -> Optional[Dict[str, Any]]:
    if combatant is None:
        return None
    return {
        "id": combatant.id,
        "sessionId": combatant.session_id,
        "name": combatant.name,
        "initiative": combatant.initiative,
        "armorClass": combatant.armor_class,
        "currentHP": combatant.current_hp,
        "maxHP": combatant.max_hp,
        "isActive": combatant.is_active,
        "characterId": combatant.character_id,
        "statusEffects": serialize_status_effects(combatant.status_effects),
        "createdAt": combatant.created_at.isoformat(),
    }


def serialize_session(session: GameSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "name": session.name,
        "currentRound": session.current_round,
        "currentTurn": session.current_turn,
        "inCombat": session.in_combat,
        "isActive": session.is_active,
        "dmUserId": session.dm_user_id,
        "createdAt": session.created_at.isoformat(),
    }


def serialize_dice_roll(roll: DiceRoll) -> Dict[str, Any]:
    return {
        "id": roll.id,
        "sessionId": roll.session_id,
        "playerName": roll.player_name,
        "formula": roll.formula,
        "result": roll.result,
        "details": roll.details,
        "rolls": list(roll.rolls),
        "timestamp": roll.timestamp.isoformat(),
    }


def serialize_order(order: Iterable[Combatant]) -> List[Dict[str, Any]]:
    return [serialize_combatant(c) for c in order]


def serialize_combat_state(state) -> Dict[str, Any]:
    """Serialize a CombatState (session, order, active combatant)."""
    return {
        "session": serialize_session(state.session),
        "combatants": serialize_order(state.order),
        "activeCombatant": serialize_combatant(state.active_combatant),
    }
