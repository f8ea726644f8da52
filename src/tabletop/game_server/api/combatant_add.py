from typing import Any, Dict

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
    """Append a combatant to a session's roster.

    Args:
        payload: ``session_id`` plus the combatant fields; only ``name`` is
            required
        world: TableWorld instance

    Returns:
        The stored combatant with defaults applied
    """
    payload = normalize_fields(payload)
    session_id = require_id(payload, "session_id")
    combatant = await world.roster.add_combatant(
        session_id, record_fields(payload), actor=actor_of(payload)
    )
    if combatant is None:
        raise not_found("Session", session_id)
    return rpc_success({"combatant": serialize_combatant(combatant)})
