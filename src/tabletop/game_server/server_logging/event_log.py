"""Structured audit log of events pushed to viewers.

The log is append-only and never replayed to viewers; a reconnecting viewer
re-fetches current state through the RPC endpoints instead.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
import json
from pathlib import Path
from typing import Any

from loguru import logger


def _json_default(value: Any) -> Any:
    """Fallback serializer for objects that json cannot handle."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, set):
        return sorted(value)
    if hasattr(value, "__dict__"):
        return value.__dict__
    return str(value)


@dataclass(slots=True)
class EventRecord:
    """Serializable representation of a dispatched or delivered event."""

    timestamp: str
    direction: str
    event: str
    payload: dict[str, Any] | None
    actor: str | None
    receiver: str | None
    session_id: str | None
    meta: dict[str, Any] | None

    def to_json(self) -> str:
        """Serialize record to a JSON string."""
        try:
            return json.dumps(asdict(self), separators=(",", ":"), default=_json_default)
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to serialize event log record: {}", exc)
            serialized = {
                "timestamp": self.timestamp,
                "direction": self.direction,
                "event": self.event,
                "actor": self.actor,
                "receiver": self.receiver,
                "session_id": self.session_id,
                "meta": self.meta,
                "payload": str(self.payload),
            }
            return json.dumps(serialized, separators=(",", ":"))


class EventLogger:
    """Append-only JSON Lines logger for session events."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: EventRecord) -> None:
        """Append a record to the log file."""
        line = record.to_json()
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
            handle.flush()
