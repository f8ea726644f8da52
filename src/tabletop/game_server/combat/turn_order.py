"""Pure turn-order rules.

``current_turn`` is an index into the initiative-sorted roster, not a stored
rank, so the order is recomputed from the live roster at every decision
point. Nothing here touches storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from tabletop.game_server.core.models import Combatant
from tabletop.game_server.errors import EmptyRosterError


@dataclass(frozen=True)
class TurnPosition:
    """Round/turn pair describing whose slot is active."""

    turn: int
    round: int
    wrapped: bool = False


def compute_order(roster: Iterable[Combatant]) -> List[Combatant]:
    """Return the roster sorted by initiative, highest first.

    ``sorted`` is stable with ``reverse=True`` as well, so combatants with
    equal initiative keep their insertion order.
    """
    return sorted(roster, key=lambda combatant: combatant.initiative, reverse=True)


def next_position(
    current_turn: int,
    current_round: int,
    roster_size: int,
    *,
    session_id: str = "",
) -> TurnPosition:
    """Step one slot forward, wrapping into the next round past the end."""
    if roster_size <= 0:
        raise EmptyRosterError(session_id)
    next_turn = current_turn + 1
    if next_turn >= roster_size:
        return TurnPosition(turn=0, round=current_round + 1, wrapped=True)
    return TurnPosition(turn=next_turn, round=current_round)


def active_at(order: Sequence[Combatant], turn: int) -> Optional[Combatant]:
    """Return the combatant at ``turn`` or None when the index is out of range."""
    if 0 <= turn < len(order):
        return order[turn]
    return None


__all__ = ["TurnPosition", "compute_order", "next_position", "active_at"]
