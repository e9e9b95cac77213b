"""Relay of crisis-simulation decisions between live participants."""

from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocketDisconnect

from sentinelsim.backend.protocol import DecisionEvent, MalformedMessage, decode_frame, parse_decision_event
from sentinelsim.backend.registry import ConnectionRegistry, is_open
from sentinelsim.backend.store import InteractionStore

logger = logging.getLogger(__name__)


class CrisisBroadcaster:
    """Records each participant decision and relays it to every other open connection.

    Persistence is submitted as a detached task and never awaited by the relay
    path; its failures are logged and go no further.
    """

    def __init__(self, registry: ConnectionRegistry, store: InteractionStore) -> None:
        self.registry = registry
        self._store = store
        self._pending_writes: set[asyncio.Task] = set()

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    async def handle_message(self, connection_id: str, raw: str | bytes) -> DecisionEvent | None:
        """Process one inbound frame from ``connection_id``.

        Returns the accepted decision, or ``None`` when the frame was dropped or ignored.
        """
        try:
            payload = decode_frame(raw)
            event = parse_decision_event(payload)
        except MalformedMessage as exc:
            logger.warning("dropping message from connection %s: %s", connection_id, exc)
            return None

        if event is None:
            logger.debug("ignoring message of type %r from connection %s", payload.get("type"), connection_id)
            return None

        self.submit_interaction(event)
        await self.relay(sender_id=connection_id, event=event)
        return event

    def submit_interaction(self, event: DecisionEvent) -> asyncio.Task:
        entry = event.to_interaction()
        task = asyncio.create_task(asyncio.to_thread(self._store.record_interaction, entry))
        self._pending_writes.add(task)
        task.add_done_callback(self._on_write_done)
        return task

    def _on_write_done(self, task: asyncio.Task) -> None:
        self._pending_writes.discard(task)
        if task.cancelled():
            logger.warning("crisis decision write was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error("failed to record crisis decision", exc_info=exc)

    async def relay(self, sender_id: str, event: DecisionEvent) -> int:
        """Send the decision update to all open peers except the sender; return the delivery count."""
        message = event.to_update().model_dump()
        delivered = 0
        for connection_id, websocket in self.registry.snapshot():
            if connection_id == sender_id:
                continue
            if not is_open(websocket):
                continue
            try:
                await websocket.send_json(message)
            except (RuntimeError, OSError, WebSocketDisconnect) as exc:
                logger.debug("relay to connection %s failed: %s", connection_id, exc)
                continue
            delivered += 1
        return delivered

    async def drain(self) -> None:
        """Wait for every submitted write to finish."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)
