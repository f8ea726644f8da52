#!/usr/bin/env python3
"""Tabletop session WebSocket server with unified event dispatch."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from tabletop.game_server.core.world import lifespan as world_lifespan, world
from tabletop.game_server.api import (
    character_create as api_character_create,
    character_get as api_character_get,
    character_update as api_character_update,
    combat_end as api_combat_end,
    combat_next_turn as api_combat_next_turn,
    combat_start as api_combat_start,
    combatant_ac as api_combatant_ac,
    combatant_add as api_combatant_add,
    combatant_effect_add as api_combatant_effect_add,
    combatant_effect_remove as api_combatant_effect_remove,
    combatant_hp as api_combatant_hp,
    combatant_list as api_combatant_list,
    combatant_remove as api_combatant_remove,
    combatant_update as api_combatant_update,
    dice_history as api_dice_history,
    dice_roll as api_dice_roll,
    session_active as api_session_active,
    session_create as api_session_create,
    session_get as api_session_get,
    session_list as api_session_list,
    session_update as api_session_update,
)
from tabletop.game_server.errors import TabletopError
from tabletop.game_server.events import UserJoined, UserLeft
from tabletop.game_server.rpc import (
    EventLogContext,
    RateLimiter,
    RPCHandler,
    rpc_error,
    rpc_success,
)
from tabletop.game_server.rpc.connection import Connection
from tabletop.game_server.server_logging.event_log import EventLogger
from tabletop.utils.config import get_config_dir, get_cors_origins, get_data_path

logger = logging.getLogger("tabletop.server")
logging.basicConfig(level=logging.INFO)

SERVER_NAME = "Tabletop Companion"
SERVER_VERSION = "0.1.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    async with world_lifespan(app):
        log_path = get_data_path() / "event-log.jsonl"
        world.dispatcher.set_event_logger(EventLogger(log_path))
        try:
            yield
        finally:
            await rate_limiter.shutdown()
            world.dispatcher.set_event_logger(None)


app = FastAPI(title=SERVER_NAME, version=SERVER_VERSION, lifespan=app_lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

rate_limiter = RateLimiter(get_config_dir() / "rate_limits.yaml")


def _server_status() -> Dict[str, Any]:
    return {
        "name": SERVER_NAME,
        "version": SERVER_VERSION,
        "status": "running",
        "viewers": world.dispatcher.sink_count,
    }


async def _rpc_server_status(_: Dict[str, Any]) -> Dict[str, Any]:
    return _server_status()


def _with_rate_limit(endpoint: str, handler: RPCHandler) -> RPCHandler:
    """Wrap an RPC handler with rate limiting.

    Requests are queued per viewer name; frames from viewers that have not
    identified carry no actor and run unthrottled.
    """

    async def wrapped(payload: Dict[str, Any]) -> Dict[str, Any]:
        actor = payload.get("actor")
        if not actor:
            return await handler(payload)
        return await rate_limiter.enqueue_request(
            endpoint=endpoint,
            viewer=actor,
            handler=lambda: handler(payload),
        )

    return wrapped


RPC_HANDLERS: Dict[str, RPCHandler] = {
    "session.create": _with_rate_limit(
        "session.create", lambda payload: api_session_create.handle(payload, world)
    ),
    "session.list": _with_rate_limit(
        "session.list", lambda payload: api_session_list.handle(payload, world)
    ),
    "session.get": _with_rate_limit(
        "session.get", lambda payload: api_session_get.handle(payload, world)
    ),
    "session.active": _with_rate_limit(
        "session.active", lambda payload: api_session_active.handle(payload, world)
    ),
    "session.update": _with_rate_limit(
        "session.update", lambda payload: api_session_update.handle(payload, world)
    ),
    "combatant.list": _with_rate_limit(
        "combatant.list", lambda payload: api_combatant_list.handle(payload, world)
    ),
    "combatant.add": _with_rate_limit(
        "combatant.add", lambda payload: api_combatant_add.handle(payload, world)
    ),
    "combatant.update": _with_rate_limit(
        "combatant.update",
        lambda payload: api_combatant_update.handle(payload, world),
    ),
    "combatant.hp": _with_rate_limit(
        "combatant.hp", lambda payload: api_combatant_hp.handle(payload, world)
    ),
    "combatant.ac": _with_rate_limit(
        "combatant.ac", lambda payload: api_combatant_ac.handle(payload, world)
    ),
    "combatant.effect.add": _with_rate_limit(
        "combatant.effect.add",
        lambda payload: api_combatant_effect_add.handle(payload, world),
    ),
    "combatant.effect.remove": _with_rate_limit(
        "combatant.effect.remove",
        lambda payload: api_combatant_effect_remove.handle(payload, world),
    ),
    "combatant.remove": _with_rate_limit(
        "combatant.remove",
        lambda payload: api_combatant_remove.handle(payload, world),
    ),
    "combat.start": _with_rate_limit(
        "combat.start", lambda payload: api_combat_start.handle(payload, world)
    ),
    "combat.next_turn": _with_rate_limit(
        "combat.next_turn",
        lambda payload: api_combat_next_turn.handle(payload, world),
    ),
    "combat.end": _with_rate_limit(
        "combat.end", lambda payload: api_combat_end.handle(payload, world)
    ),
    "dice.roll": _with_rate_limit(
        "dice.roll", lambda payload: api_dice_roll.handle(payload, world)
    ),
    "dice.history": _with_rate_limit(
        "dice.history", lambda payload: api_dice_history.handle(payload, world)
    ),
    "character.create": _with_rate_limit(
        "character.create",
        lambda payload: api_character_create.handle(payload, world),
    ),
    "character.get": _with_rate_limit(
        "character.get", lambda payload: api_character_get.handle(payload, world)
    ),
    "character.update": _with_rate_limit(
        "character.update",
        lambda payload: api_character_update.handle(payload, world),
    ),
    "server_status": _with_rate_limit("server_status", _rpc_server_status),
}


@app.get("/")
async def root() -> Dict[str, Any]:
    return _server_status()


async def _handle_identify(connection: Connection, frame_id: str, frame: dict) -> None:
    name = frame.get("name")
    if not name:
        await connection.send_frame(
            rpc_error(
                frame_id,
                "identify",
                HTTPException(status_code=400, detail="Missing name"),
            )
        )
        return
    first_identify = connection.name is None
    try:
        connection.set_identity(name, frame.get("session_id") or frame.get("sessionId"))
    except ValueError as e:
        await connection.send_frame(
            rpc_error(frame_id, "identify", HTTPException(status_code=400, detail=str(e)))
        )
        return
    await connection.send_frame(
        rpc_success(
            frame_id,
            "identify",
            {
                "identified": True,
                "name": connection.name,
                "session_id": connection.session_id,
            },
        )
    )
    if first_identify:
        await world.dispatcher.publish(
            UserJoined(connection.name, connection.session_id),
            log_context=EventLogContext(actor=connection.name),
        )


async def _handle_disconnect(connection: Connection) -> None:
    await world.dispatcher.unregister(connection)
    if connection.name:
        await world.dispatcher.publish(
            UserLeft(connection.name, connection.session_id),
            log_context=EventLogContext(actor=connection.name),
        )


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    connection = Connection(websocket)
    await world.dispatcher.register(connection)
    logger.info("WebSocket connected id=%s", connection.connection_id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await connection.send_frame(
                    rpc_error(
                        str(uuid.uuid4()),
                        "unknown",
                        HTTPException(status_code=400, detail="Invalid JSON"),
                    )
                )
                continue
            if not isinstance(frame, dict):
                await connection.send_frame(
                    rpc_error(
                        str(uuid.uuid4()),
                        "unknown",
                        HTTPException(status_code=400, detail="Frame must be an object"),
                    )
                )
                continue

            frame_id = str(frame.get("id") or uuid.uuid4())
            message_type = frame.get("type", "rpc")

            if message_type == "identify":
                await _handle_identify(connection, frame_id, frame)
                continue

            if message_type != "rpc":
                await connection.send_frame(
                    rpc_error(
                        frame_id,
                        str(message_type),
                        HTTPException(
                            status_code=400,
                            detail=f"Unknown frame type: {message_type}",
                        ),
                    )
                )
                continue

            endpoint = frame.get("endpoint")
            if not isinstance(endpoint, str) or not endpoint:
                await connection.send_frame(
                    rpc_error(
                        frame_id,
                        "unknown",
                        HTTPException(
                            status_code=400, detail="Missing or invalid endpoint"
                        ),
                    )
                )
                continue

            raw_payload = frame.get("payload")
            if raw_payload is None:
                payload: Dict[str, Any] = {}
            elif isinstance(raw_payload, dict):
                payload = dict(raw_payload)
            else:
                await connection.send_frame(
                    rpc_error(
                        frame_id,
                        endpoint,
                        HTTPException(
                            status_code=400,
                            detail="Invalid payload type; expected object",
                        ),
                    )
                )
                continue

            handler = RPC_HANDLERS.get(endpoint)
            if not handler:
                await connection.send_frame(
                    rpc_error(
                        frame_id,
                        endpoint,
                        HTTPException(
                            status_code=404, detail=f"Unknown endpoint: {endpoint}"
                        ),
                    )
                )
                continue

            payload["request_id"] = frame_id
            # The acting viewer comes from the socket, never from the payload
            payload["actor"] = connection.name

            try:
                result = await handler(payload)
                await connection.send_frame(rpc_success(frame_id, endpoint, result))
            except (HTTPException, TabletopError) as exc:
                await connection.send_frame(rpc_error(frame_id, endpoint, exc))
            except TimeoutError as exc:
                await connection.send_frame(
                    rpc_error(
                        frame_id,
                        endpoint,
                        HTTPException(status_code=429, detail=str(exc)),
                    )
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception("RPC handler error endpoint=%s", endpoint)
                await connection.send_frame(rpc_error(frame_id, endpoint, exc))
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected id=%s", connection.connection_id)
    finally:
        # Runs to completion even when the socket task itself is cancelled
        await asyncio.shield(asyncio.ensure_future(_handle_disconnect(connection)))
