import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable
from typing import Literal

from raftconfig import EVENT_LOG_SIZE

logger = logging.getLogger(__name__)

Severity = Literal["info", "success", "warning", "error"]

LOG_LEVELS: dict[Severity, int] = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class EventLogEntry:
    tick: int
    # wall clock, for display only; ordering goes by tick
    timestamp: str
    message: str
    severity: Severity

    def as_dict(self):
        return {
            "tick": self.tick,
            "timestamp": self.timestamp,
            "message": self.message,
            "severity": self.severity,
        }


class EventLog:
    """Bounded, most-recent-first record of what happened in the cluster, meant for humans.

    Everything added here is also sent to the standard logging machinery.
    """

    def __init__(self, max_entries: int = EVENT_LOG_SIZE, clock: Callable[[], int] | None = None):
        # appendleft + maxlen: newest first, oldest evicted.
        self._entries: deque[EventLogEntry] = deque(maxlen=max_entries)
        self.clock = clock or (lambda: 0)

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def add(self, message: str, severity: Severity = "info") -> EventLogEntry:
        if severity not in LOG_LEVELS:
            raise ValueError(f"unknown severity: {severity}")
        entry = EventLogEntry(
            tick=self.clock(),
            timestamp=time.strftime("%H:%M:%S"),
            message=message,
            severity=severity,
        )
        self._entries.appendleft(entry)
        logger.log(LOG_LEVELS[severity], "[tick %s] %s", entry.tick, message)
        return entry

    def info(self, message: str) -> EventLogEntry:
        return self.add(message, "info")

    def success(self, message: str) -> EventLogEntry:
        return self.add(message, "success")

    def warning(self, message: str) -> EventLogEntry:
        return self.add(message, "warning")

    def error(self, message: str) -> EventLogEntry:
        return self.add(message, "error")

    def entries(self) -> tuple[EventLogEntry, ...]:
        return tuple(self._entries)

    def clear(self):
        self._entries.clear()
