"""Combat subsystem: roster mutations and initiative turn order."""

from tabletop.game_server.combat.turn_order import (
    TurnPosition,
    active_at,
    compute_order,
    next_position,
)
from tabletop.game_server.combat.roster import (
    RosterManager,
    clamp_armor_class,
    clamp_hp,
)
from tabletop.game_server.combat.manager import CombatManager, CombatState

__all__ = [
    "TurnPosition",
    "active_at",
    "compute_order",
    "next_position",
    "RosterManager",
    "clamp_armor_class",
    "clamp_hp",
    "CombatManager",
    "CombatState",
]
