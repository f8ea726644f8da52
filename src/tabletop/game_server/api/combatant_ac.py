from typing import Any, Dict

from tabletop.game_server.api.utils import actor_of, normalize_fields, not_found, require_id, rpc_success
from tabletop.game_server.core.serialization import serialize_combatant


async def handle(payload: Dict[str, Any], world) -> dict:
    payload = normalize_fields(payload)
    combatant_id = require_id(payload, "combatant_id")
    combatant = await world.roster.update_ac(
        combatant_id, payload.get("armor_class"), actor=actor_of(payload)
    )
    if combatant is None:
        raise not_found("Combatant", combatant_id)
    return rpc_success({"combatant": serialize_combatant(combatant)})
