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
from tabletop.game_server.core.serialization import serialize_session
from tabletop.game_server.events import SessionUpdated
from tabletop.game_server.rpc.events import EventLogContext

EDITABLE_FIELDS = {"name", "is_active", "dm_user_id"}
# Only the combat controls may move these
COMBAT_FIELDS = {"current_round", "current_turn", "in_combat"}


def _validate(fields: Dict[str, Any]) -> Dict[str, Any]:
    combat = set(fields) & COMBAT_FIELDS
    if combat:
        raise HTTPException(
            status_code=400,
            detail=f"Use the combat controls to change: {', '.join(sorted(combat))}",
        )
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise HTTPException(
            status_code=400, detail=f"Unknown session field(s): {', '.join(sorted(unknown))}"
        )
    if "name" in fields:
        name = fields["name"]
        if not isinstance(name, str) or not name.strip():
            raise HTTPException(status_code=400, detail="name must be a non-empty string")
        fields["name"] = name.strip()
    if "is_active" in fields and not isinstance(fields["is_active"], bool):
        raise HTTPException(status_code=400, detail="is_active must be a boolean")
    if "dm_user_id" in fields and fields["dm_user_id"] is not None and not isinstance(
        fields["dm_user_id"], str
    ):
        raise HTTPException(status_code=400, detail="dm_user_id must be a string")
    return fields


async def handle(payload: Dict[str, Any], world) -> dict:
    payload = normalize_fields(payload)
    session_id = require_id(payload, "session_id")
    fields = _validate(record_fields(payload))
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    actor = actor_of(payload)

    async with world.session_locks.lock(session_id, actor):
        session = await world.store.update_session(session_id, fields)
        if session is None:
            raise not_found("Session", session_id)
        await world.dispatcher.publish(
            SessionUpdated(session), log_context=EventLogContext(actor=actor)
        )
    return rpc_success({"session": serialize_session(session)})
