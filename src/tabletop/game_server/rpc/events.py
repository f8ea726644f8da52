"""Runtime event dispatcher for the tabletop session server."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Protocol

from tabletop.game_server.events import SessionEvent
from tabletop.game_server.server_logging.event_log import EventLogger, EventRecord


class EventSink(Protocol):
    """Protocol implemented by WebSocket connections that can receive events.

    Each EventSink represents a single connected viewer.
    """

    async def send_event(self, envelope: dict) -> None:
        """Send an event to this connection."""
        ...

    def match_session(self, session_id: str) -> bool:
        """Check if this connection should see events for the session."""
        ...


logger = logging.getLogger("tabletop.events")


@dataclass(slots=True)
class EventLogContext:
    """Optional metadata describing an emitted event for logging."""

    actor: str | None = None
    meta: dict | None = None
    timestamp: datetime | None = None


class EventDispatcher:
    """Fans events out to every registered viewer.

    Delivery is best-effort and at-most-once: nothing is queued for viewers
    that connect later, and a viewer whose send fails is dropped from the
    active set. ``emit`` never raises to the caller.
    """

    def __init__(self) -> None:
        self._sinks: set[EventSink] = set()
        self._lock = asyncio.Lock()
        self._event_logger: EventLogger | None = None

    def set_event_logger(self, event_logger: EventLogger | None) -> None:
        """Attach an EventLogger instance for structured logging."""
        self._event_logger = event_logger

    @property
    def sink_count(self) -> int:
        return len(self._sinks)

    async def register(self, sink: EventSink) -> None:
        async with self._lock:
            self._sinks.add(sink)

    async def unregister(self, sink: EventSink) -> None:
        async with self._lock:
            self._sinks.discard(sink)

    async def publish(
        self,
        event: SessionEvent,
        *,
        log_context: EventLogContext | None = None,
    ) -> int:
        """Broadcast a typed event; returns the number of successful deliveries."""
        return await self.emit(
            event.type.value,
            event.data(),
            session_id=event.session_id,
            log_context=log_context,
        )

    async def emit(
        self,
        event: str,
        data: dict | None,
        *,
        session_id: str | None = None,
        log_context: EventLogContext | None = None,
    ) -> int:
        """Send ``{"type": event, "data": data}`` to every matching sink.

        Args:
            event: Event type (e.g., "combatant_added", "turn_changed")
            data: Event payload
            session_id: Only deliver to viewers watching this session (viewers
                not bound to a session see everything). None broadcasts to all.
        """
        envelope: dict = {
            "frame_type": "event",
            "type": event,
            "data": data,
        }

        async with self._lock:
            sinks_snapshot = list(self._sinks)

        targets: list[EventSink] = []
        coros: list[Awaitable[None]] = []
        for sink in sinks_snapshot:
            if session_id is not None and not sink.match_session(session_id):
                continue
            logger.debug(
                "Dispatch event=%s to connection=%s",
                event,
                getattr(sink, "connection_id", "<unknown>"),
            )
            targets.append(sink)
            coros.append(sink.send_event(envelope))

        logger.debug("Event %s queued for %s sink(s)", event, len(coros))

        outcomes: list[dict] = []
        success_count = 0
        if coros:
            # One slow viewer must not hold up delivery to the others
            results = await asyncio.gather(*coros, return_exceptions=True)
            dropped: list[EventSink] = []
            for sink, result in zip(targets, results):
                if isinstance(result, BaseException):
                    logger.warning(
                        "Dropping connection=%s after failed delivery of event=%s: %r",
                        getattr(sink, "connection_id", "<unknown>"),
                        event,
                        result,
                    )
                    dropped.append(sink)
                    outcomes.append({"status": "error", "error": repr(result)})
                else:
                    success_count += 1
                    outcomes.append({"status": "ok"})

            if dropped:
                async with self._lock:
                    for sink in dropped:
                        self._sinks.discard(sink)

            logger.info(
                "DISPATCHER: Completed event=%s (%s/%s sinks succeeded)",
                event,
                success_count,
                len(results),
            )

        self._log_event_records(
            event=event,
            data=data,
            session_id=session_id,
            receivers=[getattr(sink, "name", None) for sink in targets],
            outcomes=outcomes,
            log_context=log_context,
        )
        return success_count

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _log_event_records(
        self,
        *,
        event: str,
        data: dict | None,
        session_id: str | None,
        receivers: list[str | None],
        outcomes: list[dict],
        log_context: EventLogContext | None,
    ) -> None:
        """Write one ``sent`` record plus one ``received`` record per viewer."""
        if self._event_logger is None:
            return

        timestamp = log_context.timestamp if log_context else None
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        timestamp_str = timestamp.isoformat()
        actor = log_context.actor if log_context else None
        meta = dict(log_context.meta) if log_context and log_context.meta else None

        try:
            self._event_logger.append(
                EventRecord(
                    timestamp=timestamp_str,
                    direction="sent",
                    event=event,
                    payload=data,
                    actor=actor,
                    receiver=None,
                    session_id=session_id,
                    meta=meta,
                )
            )
            for receiver, outcome in zip(receivers, outcomes):
                delivery_meta = dict(meta) if meta else {}
                delivery_meta.update(outcome)
                self._event_logger.append(
                    EventRecord(
                        timestamp=timestamp_str,
                        direction="received",
                        event=event,
                        payload=data,
                        actor=actor,
                        receiver=receiver,
                        session_id=session_id,
                        meta=delivery_meta,
                    )
                )
        except OSError:
            logger.exception("Failed to append event log record for event=%s", event)


event_dispatcher = EventDispatcher()

__all__ = ["event_dispatcher", "EventDispatcher", "EventSink", "EventLogContext"]
