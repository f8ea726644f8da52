from typing import Any, Dict

from tabletop.game_server.api.utils import rpc_success
from tabletop.game_server.core.serialization import serialize_session


async def handle(payload: Dict[str, Any], world) -> dict:
    sessions = await world.store.get_sessions()
    return rpc_success({"sessions": [serialize_session(s) for s in sessions]})
