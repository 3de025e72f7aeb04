from dataclasses import dataclass
from typing import Literal
from typing import Union

from raftconfig import NodeID
from raftlog import LogEntry

MessageType = Literal["RequestVote", "VoteResponse", "AppendEntries", "AppendEntriesResponse", "Heartbeat"]


@dataclass(frozen=True)
class RequestVote:
    term: int
    candidate_id: NodeID

    def as_dict(self):
        return {
            "term": self.term,
            "candidate_id": self.candidate_id,
        }


@dataclass(frozen=True)
class VoteResponse:
    term: int
    granted: bool

    def as_dict(self):
        return {
            "term": self.term,
            "granted": self.granted,
        }


@dataclass(frozen=True)
class AppendEntries:
    term: int
    leader_id: NodeID
    # the whole leader log: replication here is "adopt the longer log", not index matching.
    log: tuple[LogEntry, ...]
    commit_index: int

    def as_dict(self):
        return {
            "term": self.term,
            "leader_id": self.leader_id,
            "log": [entry.as_dict() for entry in self.log],
            "commit_index": self.commit_index,
        }


@dataclass(frozen=True)
class Heartbeat(AppendEntries):
    """Periodic AppendEntries with nothing new since the previous broadcast. Handled the same way."""


@dataclass(frozen=True)
class AppendEntriesResponse:
    term: int
    success: bool
    match_index: int

    def as_dict(self):
        return {
            "term": self.term,
            "success": self.success,
            "match_index": self.match_index,
        }


Payload = Union[RequestVote, VoteResponse, AppendEntries, Heartbeat, AppendEntriesResponse]


@dataclass(frozen=True)
class Outgoing:
    """What a node wants sent. dest=None means every other node that is not stopped."""

    data: Payload
    dest: NodeID | None = None


@dataclass(frozen=True)
class Message:
    id: str
    source: NodeID
    dest: NodeID
    data: Payload
    speed: float
    # 0 when sent, delivered once it reaches 100
    progress: float = 0.0

    @property
    def type(self) -> MessageType:
        return self.data.__class__.__name__

    @property
    def term(self) -> int:
        return self.data.term

    @property
    def arrived(self) -> bool:
        return self.progress >= 100

    def as_dict(self):
        return {
            "id": self.id,
            "source": self.source,
            "dest": self.dest,
            "type": self.type,
            "term": self.term,
            "data": self.data.as_dict(),
            "progress": min(self.progress, 100.0),
            "speed": self.speed,
        }
