import itertools
import logging
from dataclasses import replace
from typing import Iterable

from raftconfig import MESSAGE_SPEED
from raftconfig import NodeID
from rpc import Message
from rpc import Payload

logger = logging.getLogger(__name__)


class MessageTransit:
    """Messages on their way between nodes.

    Nothing is ever lost: every message moves `speed` progress units per tick and is
    delivered once it reaches 100. Messages keep the order they were sent in, which
    is also the order in which arrivals of the same tick are delivered.
    """

    def __init__(self, speed: float = MESSAGE_SPEED):
        self.speed = speed
        self.in_flight: list[Message] = []
        self._ids = itertools.count(1)

    def __len__(self):
        return len(self.in_flight)

    def __repr__(self):
        return f"MessageTransit(in_flight={len(self.in_flight)}, speed={self.speed})"

    def send(self, source: NodeID, dest: NodeID, data: Payload) -> Message:
        message = Message(id=f"m{next(self._ids)}", source=source, dest=dest, data=data, speed=self.speed)
        self.in_flight.append(message)
        logger.debug("sent %s %s -> %s (term %s)", message.type, source, dest, message.term)
        return message

    def broadcast(self, source: NodeID, data: Payload, recipients: Iterable[NodeID]) -> list[Message]:
        """One message per recipient, the sender excluded.

        The caller decides who is reachable (every node that is not stopped).
        """
        return [self.send(source, dest, data) for dest in recipients if dest != source]

    def advance(self) -> list[Message]:
        """Move every message forward one tick. Returns the arrived ones, removed from the in-flight set."""
        arrived = []
        remaining = []
        for message in self.in_flight:
            moved = replace(message, progress=message.progress + message.speed)
            if moved.arrived:
                arrived.append(moved)
            else:
                remaining.append(moved)
        self.in_flight = remaining
        return arrived

    def messages(self) -> tuple[Message, ...]:
        return tuple(self.in_flight)

    def clear(self):
        self.in_flight = []
