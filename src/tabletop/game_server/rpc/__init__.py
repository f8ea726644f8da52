"""Server infrastructure for the tabletop WebSocket server."""

from tabletop.game_server.rpc.rpc import rpc_success, rpc_error, RPCHandler
from tabletop.game_server.rpc.events import (
    event_dispatcher,
    EventSink,
    EventDispatcher,
    EventLogContext,
)
from tabletop.game_server.rpc.rate_limit import RateLimiter, RateLimitConfig

__all__ = [
    "rpc_success",
    "rpc_error",
    "RPCHandler",
    "event_dispatcher",
    "EventSink",
    "EventDispatcher",
    "EventLogContext",
    "RateLimiter",
    "RateLimitConfig",
]
