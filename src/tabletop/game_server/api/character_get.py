from typing import Any, Dict

from tabletop.game_server.api.utils import normalize_fields, not_found, require_id, rpc_success


async def handle(payload: Dict[str, Any], world) -> dict:
    character_id = require_id(normalize_fields(payload), "character_id")
    character = await world.store.get_character(character_id)
    if character is None:
        raise not_found("Character", character_id)
    return rpc_success({"character": character})
