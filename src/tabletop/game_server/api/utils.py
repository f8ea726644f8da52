from typing import Any, Dict, Optional

from fastapi import HTTPException

# Browser clients send camelCase keys; handlers work in snake_case.
FIELD_ALIASES = {
    "sessionId": "session_id",
    "combatantId": "combatant_id",
    "characterId": "character_id",
    "armorClass": "armor_class",
    "currentHP": "current_hp",
    "currentHp": "current_hp",
    "maxHP": "max_hp",
    "maxHp": "max_hp",
    "statusEffects": "status_effects",
    "playerName": "player_name",
    "isActive": "is_active",
    "dmUserId": "dm_user_id",
    "currentTurn": "current_turn",
    "currentRound": "current_round",
    "inCombat": "in_combat",
    "effectIndex": "index",
}

# Routing/meta keys that are never record fields
RESERVED_KEYS = {"session_id", "combatant_id", "actor", "request_id"}


def rpc_success(data: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Return standardized success response for RPC handlers."""
    response: Dict[str, Any] = {"success": True}
    if data:
        response.update(data)
    return response


def normalize_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {FIELD_ALIASES.get(key, key): value for key, value in payload.items()}


def record_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Strip routing keys, leaving only the fields to write."""
    return {k: v for k, v in payload.items() if k not in RESERVED_KEYS}


def require_id(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise HTTPException(status_code=400, detail=f"{key} is required")
    return value.strip()


def actor_of(payload: Dict[str, Any]) -> Optional[str]:
    actor = payload.get("actor")
    return actor if isinstance(actor, str) and actor else None


def not_found(kind: str, identifier: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{kind} not found: {identifier}")
