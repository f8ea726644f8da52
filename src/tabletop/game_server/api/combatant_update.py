from typing import Any, Dict

from fastapi import HTTPException

from tabletop.game_server.api.utils import (
    actor_of,
    normalize_fields,
    not_found,
    record_fields,
    require_id,
    rpc_success,
)
from tabletop.game_server.core.serialization import serialize_combatant


async def handle(payload: Dict[str, Any], world) -> dict:
    payload = normalize_fields(payload)
    combatant_id = require_id(payload, "combatant_id")
    fields = record_fields(payload)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    combatant = await world.roster.update_combatant(
        combatant_id, fields, actor=actor_of(payload)
    )
    if combatant is None:
        raise not_found("Combatant", combatant_id)
    return rpc_success({"combatant": serialize_combatant(combatant)})
