"""Runtime manager for a session's combat state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from tabletop.game_server.combat.roster import sync_active_flags
from tabletop.game_server.combat.turn_order import (
    active_at,
    compute_order,
    next_position,
)
from tabletop.game_server.core.locks import SessionLockManager
from tabletop.game_server.core.models import Combatant, GameSession
from tabletop.game_server.core.store import PersistenceGateway
from tabletop.game_server.errors import CombatStateError, EmptyRosterError
from tabletop.game_server.events import CombatEnded, CombatStarted, TurnChanged
from tabletop.game_server.rpc.events import EventDispatcher, EventLogContext

logger = logging.getLogger("tabletop.combat.manager")


@dataclass
class CombatState:
    """Session flags together with the order they index into."""

    session: GameSession
    order: List[Combatant] = field(default_factory=list)
    active_combatant: Optional[Combatant] = None


class CombatManager:
    """Starts, advances and ends combat for a session.

    Each operation holds the session lock for its whole read-modify-write, so
    concurrent "next turn" requests are applied one after the other. A
    missing session yields None rather than an exception.
    """

    def __init__(
        self,
        store: PersistenceGateway,
        session_locks: SessionLockManager,
        dispatcher: EventDispatcher,
    ) -> None:
        self._store = store
        self._locks = session_locks
        self._dispatcher = dispatcher

    async def get_state(self, session_id: str) -> Optional[CombatState]:
        session = await self._store.get_session(session_id)
        if session is None:
            return None
        order = compute_order(await self._store.get_combatants(session_id))
        active = active_at(order, session.current_turn) if session.in_combat else None
        return CombatState(session=session, order=order, active_combatant=active)

    async def start_combat(
        self, session_id: str, *, actor: Optional[str] = None
    ) -> Optional[CombatState]:
        """Enter combat at round 1 with the highest initiative acting first.

        Raises:
            CombatStateError: If the session is already in combat
            EmptyRosterError: If the session has no combatants
        """
        async with self._locks.lock(session_id, actor):
            session = await self._store.get_session(session_id)
            if session is None:
                return None
            if session.in_combat:
                raise CombatStateError(f"Session '{session_id}' is already in combat")

            order = compute_order(await self._store.get_combatants(session_id))
            if not order:
                raise EmptyRosterError(session_id)

            session = await self._store.update_session(
                session_id,
                {"in_combat": True, "current_turn": 0, "current_round": 1},
            )
            if session is None:
                return None
            order = await sync_active_flags(self._store, order, active_at(order, 0))
            active = active_at(order, 0)
            logger.info(
                "Combat started session=%s combatants=%s first=%s",
                session_id,
                len(order),
                active.name if active else None,
            )
            await self._dispatcher.publish(
                CombatStarted(session, active), log_context=EventLogContext(actor=actor)
            )
        return CombatState(session=session, order=order, active_combatant=active)

    async def advance_turn(
        self, session_id: str, *, actor: Optional[str] = None
    ) -> Optional[CombatState]:
        """Move to the next slot in initiative order.

        Passing the end of the order wraps to slot 0 and increments the round.
        The order is recomputed from the live roster, so edits made between
        turns are honoured.

        Raises:
            CombatStateError: If the session is not in combat
            EmptyRosterError: If the roster became empty
        """
        async with self._locks.lock(session_id, actor):
            session = await self._store.get_session(session_id)
            if session is None:
                return None
            if not session.in_combat:
                raise CombatStateError(f"Session '{session_id}' is not in combat")

            order = compute_order(await self._store.get_combatants(session_id))
            position = next_position(
                session.current_turn,
                session.current_round,
                len(order),
                session_id=session_id,
            )
            session = await self._store.update_session(
                session_id,
                {"current_turn": position.turn, "current_round": position.round},
            )
            if session is None:
                return None
            order = await sync_active_flags(
                self._store, order, active_at(order, position.turn)
            )
            active = active_at(order, position.turn)
            logger.info(
                "Turn changed session=%s round=%s turn=%s active=%s",
                session_id,
                session.current_round,
                session.current_turn,
                active.name if active else None,
            )
            await self._dispatcher.publish(
                TurnChanged(session, active), log_context=EventLogContext(actor=actor)
            )
        return CombatState(session=session, order=order, active_combatant=active)

    async def end_combat(
        self, session_id: str, *, actor: Optional[str] = None
    ) -> Optional[CombatState]:
        """Leave combat. The round counter keeps its last value."""
        async with self._locks.lock(session_id, actor):
            session = await self._store.get_session(session_id)
            if session is None:
                return None
            session = await self._store.update_session(
                session_id, {"in_combat": False, "current_turn": 0}
            )
            if session is None:
                return None
            order = compute_order(await self._store.get_combatants(session_id))
            order = await sync_active_flags(self._store, order, None)
            logger.info(
                "Combat ended session=%s rounds=%s", session_id, session.current_round
            )
            await self._dispatcher.publish(
                CombatEnded(session), log_context=EventLogContext(actor=actor)
            )
        return CombatState(session=session, order=order, active_combatant=None)


__all__ = ["CombatManager", "CombatState"]
