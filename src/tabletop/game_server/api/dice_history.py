from typing import Any, Dict

from fastapi import HTTPException

from tabletop.game_server.api.utils import normalize_fields, not_found, require_id, rpc_success
from tabletop.game_server.core.serialization import serialize_dice_roll

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


async def handle(payload: Dict[str, Any], world) -> dict:
    payload = normalize_fields(payload)
    session_id = require_id(payload, "session_id")
    limit = payload.get("limit", DEFAULT_LIMIT)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise HTTPException(status_code=400, detail="limit must be a positive integer")
    limit = min(limit, MAX_LIMIT)

    if await world.store.get_session(session_id) is None:
        raise not_found("Session", session_id)
    rolls = await world.store.get_dice_rolls(session_id, limit)
    return rpc_success({"rolls": [serialize_dice_roll(r) for r in rolls]})
