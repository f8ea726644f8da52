from typing import Any, Dict

from fastapi import HTTPException

from tabletop.game_server.api.utils import actor_of, normalize_fields, not_found, require_id, rpc_success
from tabletop.game_server.core.serialization import serialize_dice_roll
from tabletop.game_server.events import DiceRolled
from tabletop.game_server.rpc.events import EventLogContext


async def handle(payload: Dict[str, Any], world) -> dict:
    """Roll dice server-side and share the result with the session.

    Args:
        payload: ``session_id``, ``formula`` (e.g. "2d6+3"), optional
            ``advantage``/``disadvantage`` flags and ``player_name``
            (defaults to the identified viewer)
        world: TableWorld instance
    """
    payload = normalize_fields(payload)
    session_id = require_id(payload, "session_id")
    player_name = payload.get("player_name") or actor_of(payload)
    if not isinstance(player_name, str) or not player_name.strip():
        raise HTTPException(status_code=400, detail="player_name is required")
    advantage = payload.get("advantage", False)
    disadvantage = payload.get("disadvantage", False)
    if not isinstance(advantage, bool) or not isinstance(disadvantage, bool):
        raise HTTPException(
            status_code=400, detail="advantage and disadvantage must be booleans"
        )

    if await world.store.get_session(session_id) is None:
        raise not_found("Session", session_id)

    result = world.dice.roll(
        payload.get("formula"), advantage=advantage, disadvantage=disadvantage
    )
    roll = await world.store.create_dice_roll(
        {
            "session_id": session_id,
            "player_name": player_name.strip(),
            "formula": result.formula,
            "result": result.total,
            "details": result.details,
            "rolls": result.rolls,
        }
    )
    await world.dispatcher.publish(
        DiceRolled(roll), log_context=EventLogContext(actor=actor_of(payload))
    )
    return rpc_success({"roll": serialize_dice_roll(roll)})
