from typing import Any, Dict

from tabletop.game_server.api.utils import normalize_fields, not_found, require_id, rpc_success
from tabletop.game_server.core.serialization import serialize_order


async def handle(payload: Dict[str, Any], world) -> dict:
    payload = normalize_fields(payload)
    session_id = require_id(payload, "session_id")
    roster = await world.roster.list_combatants(session_id)
    if roster is None:
        raise not_found("Session", session_id)
    return rpc_success({"combatants": serialize_order(roster)})
