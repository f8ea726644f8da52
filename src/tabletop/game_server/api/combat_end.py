from typing import Any, Dict

from tabletop.game_server.api.utils import actor_of, normalize_fields, not_found, require_id, rpc_success
from tabletop.game_server.core.serialization import serialize_combat_state


async def handle(payload: Dict[str, Any], world) -> dict:
    """Leave combat; the round counter keeps its value."""
    payload = normalize_fields(payload)
    session_id = require_id(payload, "session_id")
    state = await world.combat.end_combat(session_id, actor=actor_of(payload))
    if state is None:
        raise not_found("Session", session_id)
    return rpc_success(serialize_combat_state(state))
