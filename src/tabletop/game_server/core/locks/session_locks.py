"""Per-session locking for roster and combat-state mutations."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

logger = logging.getLogger("tabletop.locks.session")


class SessionLockManager:
    """Serializes mutations against a single game session.

    Two viewers pressing "next turn" at the same moment would otherwise both
    read ``current_turn`` and write the same successor. Each session gets its
    own asyncio.Lock, so waiters are served in FIFO order while independent
    sessions proceed concurrently.

    A session's lock only lives while someone holds or waits on it, so ids
    that never name a real session do not accumulate.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def locked(self, session_id: str) -> bool:
        """Return True while a mutation holds the session's lock."""
        lock = self._locks.get(session_id)
        return lock.locked() if lock else False

    def _checkout(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        self._users[session_id] = self._users.get(session_id, 0) + 1
        return lock

    def _checkin(self, session_id: str) -> None:
        remaining = self._users.get(session_id, 1) - 1
        if remaining > 0:
            self._users[session_id] = remaining
            return
        self._users.pop(session_id, None)
        self._locks.pop(session_id, None)

    @asynccontextmanager
    async def lock(self, session_id: str, actor: Optional[str] = None):
        """Hold the session lock for the duration of the block.

        Usage:
            async with session_locks.lock(session_id, actor):
                session = await store.get_session(session_id)
                ...
                await store.update_session(session_id, {...})

        Args:
            session_id: Session whose state is being mutated
            actor: Viewer name performing the mutation (for logging)
        """
        lock = self._checkout(session_id)
        try:
            logger.debug("Acquiring session lock: session=%s actor=%s", session_id, actor)
            async with lock:
                logger.debug(
                    "Session lock acquired: session=%s actor=%s", session_id, actor
                )
                yield
            logger.debug("Session lock released: session=%s actor=%s", session_id, actor)
        finally:
            self._checkin(session_id)
