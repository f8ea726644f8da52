"""Domain errors raised by the roster and turn-order operations.

Missing sessions and combatants are not errors: operations return ``None``
and the API layer turns that into a 404.
"""

from __future__ import annotations


class TabletopError(Exception):
    """Base class for recoverable domain errors."""

    status_code = 400
    code = "tabletop_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(TabletopError):
    """A required field is missing or a field has the wrong shape."""

    code = "validation_error"


class CombatStateError(ValidationError):
    """The operation does not apply to the session's current combat state."""

    status_code = 409
    code = "combat_state"


class EmptyRosterError(TabletopError):
    """Combat cannot start or advance without combatants."""

    status_code = 409
    code = "empty_roster"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' has no combatants")
        self.session_id = session_id


__all__ = [
    "TabletopError",
    "ValidationError",
    "CombatStateError",
    "EmptyRosterError",
]
