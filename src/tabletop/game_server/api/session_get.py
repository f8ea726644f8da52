"""Current session state for viewers that (re)connect.

Events are live deltas only, so a viewer that reconnects calls this to
rebuild its view from scratch.
"""

from typing import Any, Dict

from tabletop.game_server.api.utils import normalize_fields, not_found, require_id, rpc_success
from tabletop.game_server.core.serialization import serialize_combat_state


async def handle(payload: Dict[str, Any], world) -> dict:
    payload = normalize_fields(payload)
    session_id = require_id(payload, "session_id")
    state = await world.combat.get_state(session_id)
    if state is None:
        raise not_found("Session", session_id)
    return rpc_success(serialize_combat_state(state))
