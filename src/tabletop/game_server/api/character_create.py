"""Character records are stored as opaque documents; only ``name`` is checked."""

from typing import Any, Dict

from fastapi import HTTPException

from tabletop.game_server.api.utils import record_fields, rpc_success


async def handle(payload: Dict[str, Any], world) -> dict:
    fields = record_fields(payload)
    fields.pop("id", None)
    name = fields.get("name")
    if not isinstance(name, str) or not name.strip():
        raise HTTPException(status_code=400, detail="name is required")
    character = await world.store.create_character(fields)
    return rpc_success({"character": character})
