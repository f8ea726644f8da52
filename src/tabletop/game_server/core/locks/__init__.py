"""Lock implementations for preventing races between concurrent viewers."""

from tabletop.game_server.core.locks.session_locks import SessionLockManager

__all__ = ["SessionLockManager"]
