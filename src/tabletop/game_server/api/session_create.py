from typing import Any, Dict

from fastapi import HTTPException

from tabletop.game_server.api.utils import normalize_fields, rpc_success
from tabletop.game_server.core.serialization import serialize_session


async def handle(payload: Dict[str, Any], world) -> dict:
    payload = normalize_fields(payload)
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise HTTPException(status_code=400, detail="name is required")
    is_active = payload.get("is_active", False)
    if not isinstance(is_active, bool):
        raise HTTPException(status_code=400, detail="is_active must be a boolean")
    dm_user_id = payload.get("dm_user_id")
    if dm_user_id is not None and not isinstance(dm_user_id, str):
        raise HTTPException(status_code=400, detail="dm_user_id must be a string")

    session = await world.store.create_session(
        {"name": name.strip(), "is_active": is_active, "dm_user_id": dm_user_id}
    )
    return rpc_success({"session": serialize_session(session)})
