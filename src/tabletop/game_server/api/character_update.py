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
from tabletop.game_server.events import CharacterUpdated
from tabletop.game_server.rpc.events import EventLogContext


async def handle(payload: Dict[str, Any], world) -> dict:
    # Sheet keys are stored verbatim; only the id may arrive camelCased
    character_id = require_id(normalize_fields(payload), "character_id")
    fields = {
        key: value
        for key, value in record_fields(payload).items()
        if key not in {"character_id", "characterId", "id"}
    }
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "name" in fields and (
        not isinstance(fields["name"], str) or not fields["name"].strip()
    ):
        raise HTTPException(status_code=400, detail="name must be a non-empty string")

    character = await world.store.update_character(character_id, fields)
    if character is None:
        raise not_found("Character", character_id)
    await world.dispatcher.publish(
        CharacterUpdated(character), log_context=EventLogContext(actor=actor_of(payload))
    )
    return rpc_success({"character": character})
