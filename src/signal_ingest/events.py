"""Realtime signal events and the WebSocket connection manager."""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime

from fastapi import WebSocket

from signal_ingest.models import SignalRecord

logger = logging.getLogger(__name__)

SIGNAL_INSERTED = "signal_inserted"
RESULT_UPDATED = "result_updated"


class EventSink(ABC):
    """Receives signal inserts and result updates from the ingestion loop."""

    @abstractmethod
    async def publish(self, event_type: str, record: SignalRecord) -> None:
        pass


class ConnectionManager(EventSink):
    """Manages WebSocket connections and fans signal events out to them."""

    def __init__(self):
        """Initialize the connection manager."""
        self.active_connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept and register a new WebSocket connection.

        Args:
            websocket: The WebSocket connection to accept.
        """
        await websocket.accept()
        self.active_connections.add(websocket)
        logger.info("WebSocket connected. Total connections: %d", len(self.active_connections))

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection.

        Args:
            websocket: The WebSocket connection to remove.
        """
        self.active_connections.discard(websocket)
        logger.info("WebSocket disconnected. Total connections: %d", len(self.active_connections))

    async def broadcast(self, message: dict) -> None:
        """Broadcast a message to all connected clients.

        Args:
            message: The message dict to broadcast.
        """
        data = json.dumps(message, default=self._json_serializer)
        disconnected: set[WebSocket] = set()

        for connection in self.active_connections:
            try:
                await connection.send_text(data)
            except Exception as e:
                logger.warning("Error broadcasting to client: %s", e)
                disconnected.add(connection)

        # Clean up disconnected clients
        for conn in disconnected:
            self.active_connections.discard(conn)

    async def publish(self, event_type: str, record: SignalRecord) -> None:
        await self.broadcast({"type": event_type, "signal": record.to_dict()})

    @staticmethod
    def _json_serializer(obj):
        """Custom JSON serializer for objects not serializable by default."""
        if isinstance(obj, datetime):
            return obj.isoformat()
        raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self.active_connections)


# Global connection manager instance
manager = ConnectionManager()
