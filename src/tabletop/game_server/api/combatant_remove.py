from typing import Any, Dict

from tabletop.game_server.api.utils import actor_of, normalize_fields, not_found, require_id, rpc_success


async def handle(payload: Dict[str, Any], world) -> dict:
    payload = normalize_fields(payload)
    combatant_id = require_id(payload, "combatant_id")
    removed = await world.roster.remove_combatant(combatant_id, actor=actor_of(payload))
    if removed is None:
        raise not_found("Combatant", combatant_id)
    return rpc_success({"id": removed.id, "sessionId": removed.session_id})
