"""Message bus connectors.

Outbound messages go to named queues or topics. A message carries a body,
a content type, the correlation id of the invocation and an optional
session id that keeps related messages in order.

Two backends are provided:
- InMemoryBus: keeps sent messages in a list, for tests and dry runs
- OutboxBus: writes one JSON file per message into a directory per destination
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass
class BusMessage:
    """A message sent to a queue or topic."""
    body: Any
    content_type: str = "application/json"
    correlation_id: Optional[str] = None
    session_id: Optional[str] = None
    message_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def body_text(self) -> str:
        """Body as text: bytes are decoded, objects serialized as JSON."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        if isinstance(self.body, str):
            return self.body
        return json.dumps(self.body)

    def to_dict(self) -> Dict[str, Any]:
        body = self.body
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        return {
            "message_id": self.message_id,
            "content_type": self.content_type,
            "correlation_id": self.correlation_id,
            "session_id": self.session_id,
            "body": body,
        }


class BusError(Exception):
    """Raised when a message cannot be handed to the bus."""

    def __init__(self, message: str, destination: Optional[str] = None):
        super().__init__(message)
        self.destination = destination


class MessageBus(ABC):
    """Abstract base class for bus backends."""

    @abstractmethod
    async def send(self, destination: str, message: BusMessage) -> None:
        """Send a message to a queue or topic."""
        pass

    async def close(self) -> None:
        """Release connections held by the backend."""
        pass


class InMemoryBus(MessageBus):
    """Bus backend that keeps sent messages in memory."""

    def __init__(self):
        self.sent: List[Tuple[str, BusMessage]] = []

    async def send(self, destination: str, message: BusMessage) -> None:
        self.sent.append((destination, message))

    def messages_for(self, destination: str) -> List[BusMessage]:
        """Messages sent to one destination, oldest first."""
        return [m for d, m in self.sent if d == destination]

    def destinations(self) -> List[str]:
        return [d for d, _ in self.sent]

    def clear(self) -> None:
        """Clear all messages (for testing)."""
        self.sent.clear()


class OutboxBus(MessageBus):
    """Bus backend that writes messages to an outbox directory.

    Stores one file per message in ``{destination}/{timestamp}-{message_id}.json``.
    """

    def __init__(self, base_path: Union[str, Path]):
        """Initialize with base directory for the outbox."""
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, destination: str, message: BusMessage) -> Path:
        timestamp = datetime.utcnow().strftime("%Y%m%dT%H%M%S%f")
        return self.base_path / destination / f"{timestamp}-{message.message_id}.json"

    async def send(self, destination: str, message: BusMessage) -> None:
        file_path = self._get_file_path(destination, message)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(message.to_dict(), f, indent=2)
        except OSError as e:
            raise BusError(f"Failed to write message to {destination}: {e}", destination) from e
        logger.debug(f"Wrote message {message.message_id} to outbox {file_path}")

    def read(self, destination: str) -> List[Dict[str, Any]]:
        """Messages written to one destination, oldest first."""
        folder = self.base_path / destination
        if not folder.exists():
            return []
        messages = []
        for file_path in sorted(folder.glob("*.json")):
            with open(file_path, "r", encoding="utf-8") as f:
                messages.append(json.load(f))
        return messages
