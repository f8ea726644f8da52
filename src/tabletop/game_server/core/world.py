from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from loguru import logger

from tabletop.game_server.combat import CombatManager, RosterManager
from tabletop.game_server.core.locks import SessionLockManager
from tabletop.game_server.core.models import GameSession
from tabletop.game_server.core.store import MemoryStore, PersistenceGateway
from tabletop.game_server.dice import DiceRoller
from tabletop.game_server.rpc.events import EventDispatcher, event_dispatcher

DEFAULT_SESSION_NAME = "Main Session"


class TableWorld:
    """Wires the persistence gateway, locks and managers together."""

    def __init__(
        self,
        store: Optional[PersistenceGateway] = None,
        dispatcher: Optional[EventDispatcher] = None,
        dice: Optional[DiceRoller] = None,
    ) -> None:
        self.store: PersistenceGateway = store if store is not None else MemoryStore()
        self.dispatcher = dispatcher if dispatcher is not None else event_dispatcher
        self.session_locks = SessionLockManager()
        self.roster = RosterManager(self.store, self.session_locks, self.dispatcher)
        self.combat = CombatManager(self.store, self.session_locks, self.dispatcher)
        self.dice = dice if dice is not None else DiceRoller()

    async def ensure_active_session(self) -> GameSession:
        """Return the active session, creating a default one on first start."""
        session = await self.store.get_active_session()
        if session is not None:
            return session
        sessions = await self.store.get_sessions()
        if sessions:
            session = await self.store.update_session(sessions[0].id, {"is_active": True})
            if session is not None:
                return session
        return await self.store.create_session(
            {"name": DEFAULT_SESSION_NAME, "is_active": True}
        )


world = TableWorld()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Make sure an active session exists before viewers connect."""
    try:
        session = await world.ensure_active_session()
        logger.info("Active session ready: {} ({})", session.name, session.id)
    except Exception as e:
        logger.error("Failed to prepare active session: {}", e)
    yield
