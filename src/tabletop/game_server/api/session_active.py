from typing import Any, Dict

from tabletop.game_server.api.utils import rpc_success
from tabletop.game_server.core.serialization import serialize_session


async def handle(payload: Dict[str, Any], world) -> dict:
    session = await world.store.get_active_session()
    return rpc_success({"session": serialize_session(session) if session else None})
