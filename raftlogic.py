import logging
import random
from dataclasses import dataclass
from typing import Iterable
from typing import Literal

from eventlog import EventLog
from raftconfig import NodeID
from raftconfig import NodeRole
from raftconfig import SimulationConfig
from raftlog import LogEntry
from raftlog import last_log_index
from raftlog import log_to_str
from raftlog import mark_committed
from rpc import AppendEntries
from rpc import AppendEntriesResponse
from rpc import Heartbeat
from rpc import Message
from rpc import Outgoing
from rpc import RequestVote
from rpc import VoteResponse

logger = logging.getLogger(__name__)

RoleEvent = Literal["election_timeout", "won_election", "higher_term", "leader_contact", "power_off", "power_on"]

# Every role change goes through this table. A missing (role, event) pair is a bug.
TRANSITIONS: dict[tuple[NodeRole, RoleEvent], NodeRole] = {
    ("follower", "election_timeout"): "candidate",
    # split vote: start over with a new term
    ("candidate", "election_timeout"): "candidate",
    ("candidate", "won_election"): "leader",
    ("follower", "higher_term"): "follower",
    ("candidate", "higher_term"): "follower",
    ("leader", "higher_term"): "follower",
    # an AppendEntries/Heartbeat of at least our term
    ("follower", "leader_contact"): "follower",
    ("candidate", "leader_contact"): "follower",
    ("leader", "leader_contact"): "follower",
    ("follower", "power_off"): "stopped",
    ("candidate", "power_off"): "stopped",
    ("leader", "power_off"): "stopped",
    ("stopped", "power_on"): "follower",
}


@dataclass(frozen=True)
class NodeSnapshot:
    id: NodeID
    role: NodeRole
    current_term: int
    voted_for: NodeID | None
    log: tuple[LogEntry, ...]
    commit_index: int
    vote_count: int
    election_timer: int
    election_timeout: int
    heartbeat_timer: int

    def as_dict(self):
        return {
            "id": self.id,
            "role": self.role,
            "current_term": self.current_term,
            "voted_for": self.voted_for,
            "log": [entry.as_dict() for entry in self.log],
            "commit_index": self.commit_index,
            "vote_count": self.vote_count,
            "election_timer": self.election_timer,
            "election_timeout": self.election_timeout,
            "heartbeat_timer": self.heartbeat_timer,
        }


class RaftLogic:
    """One simulated node. forbidden: threads, timers, reaching into other nodes.

    Input is a delivered Message or a clock tick, output is a list of Outgoing messages.
    Which nodes are alive is passed in by the caller since majorities are counted over them.
    """

    def __init__(
        self,
        node_id: NodeID,
        role: NodeRole,
        config: SimulationConfig | None = None,
        rng: random.Random | None = None,
        events: EventLog | None = None,
        current_term: int = 1,
    ):
        self.node_id = node_id
        self.role = role
        self.config = config if config is not None else SimulationConfig()
        self.random = rng if rng is not None else random.Random(node_id)
        self.events = events if events is not None else EventLog(self.config.event_log_size)

        self.current_term = current_term
        self.voted_for: NodeID | None = None
        self.log: list[LogEntry] = []
        self.commit_index = -1
        # only meaningful while candidate
        self.vote_count = 0

        self.election_timer = 0
        self.election_timeout = self.draw_election_timeout()
        self.heartbeat_timer = 0

        # leader only: highest log index each follower acknowledged
        self.match_index: dict[NodeID, int] = {}
        # leader only: a client write is waiting for the next broadcast
        self.pending_replication = False

    def __repr__(self):
        return (
            f"RaftLogic(node_id={self.node_id}, role='{self.role}', term={self.current_term}, "
            f"log={log_to_str(self.log)})"
        )

    @property
    def label(self) -> str:
        return f"S{self.node_id + 1}"

    def handle_message(self, message: Message, active_ids: frozenset[NodeID]) -> list[Outgoing]:
        if self.role == "stopped":
            logger.debug("node %s is stopped, dropping %s", self.node_id, message.type)
            return []

        prev_term = self.current_term
        prev_voted_for = self.voted_for
        prev_commit_index = self.commit_index

        outgoing = self._handle_message(message, active_ids)

        assert self.current_term >= prev_term
        assert self.commit_index >= prev_commit_index
        assert self.commit_index < len(self.log)
        assert all(entry.committed for entry in self.log[: self.commit_index + 1])
        if self.current_term == prev_term and prev_voted_for is not None:
            assert self.voted_for == prev_voted_for, "voted for two candidates in the same term"

        return outgoing

    def _handle_message(self, message: Message, active_ids: frozenset[NodeID]) -> list[Outgoing]:
        self.rule_check_message_term(message)

        match message.type:
            case "Heartbeat" | "AppendEntries":
                return self.handle_append_entries(message)
            case "RequestVote":
                return self.handle_request_vote(message)
            case "VoteResponse":
                return self.handle_vote_response(message, active_ids)
            case "AppendEntriesResponse":
                return self.handle_append_entries_response(message, active_ids)
            case _:
                raise ValueError(f"unknown message type: {message.type}")

    def rule_check_message_term(self, message: Message):
        # "If RPC request or response contains term T > currentTerm, set currentTerm = T, convert to follower"
        if message.term > self.current_term:
            self.current_term = message.term
            self.voted_for = None
            self.convert_to("higher_term")

    def convert_to(self, event: RoleEvent):
        new_role = TRANSITIONS.get((self.role, event))
        if new_role is None:
            raise ValueError(f"forbidden transition: no '{event}' from {self.role} (node {self.node_id})")
        if new_role != self.role:
            logger.info("Node %s converting to %s on %s", self, new_role, event)

        if new_role == "candidate":
            self.current_term += 1
            self.voted_for = self.node_id
            self.vote_count = 1
            self.reset_election_timer()
            self.election_timeout = self.draw_election_timeout()
        elif new_role == "leader":
            self.become_leader()
        elif new_role == "follower":
            self.reset_election_timer()
            if event == "power_on":
                self.election_timeout = self.draw_election_timeout()
        elif new_role == "stopped":
            self.pending_replication = False

        self.role = new_role

    def become_leader(self):
        self.heartbeat_timer = 0
        self.match_index = {}

    def handle_append_entries(self, message: Message) -> list[Outgoing]:
        msg: AppendEntries = message.data
        if msg.term < self.current_term:
            logger.info(
                "ignoring stale %s from %s (term %s < %s)", message.type, message.source, msg.term, self.current_term
            )
            return []

        self.convert_to("leader_contact")

        # No index/term matching: the longer log wins wholesale.
        if len(msg.log) > len(self.log):
            self.log = list(msg.log)

        if msg.commit_index > self.commit_index:
            self.commit_index = min(msg.commit_index, last_log_index(self.log))
        # an adopted log may carry uncommitted copies of entries we already committed
        self.log = mark_committed(self.log, self.commit_index)

        response = AppendEntriesResponse(term=self.current_term, success=True, match_index=last_log_index(self.log))
        return [Outgoing(response, dest=message.source)]

    def handle_request_vote(self, message: Message) -> list[Outgoing]:
        msg: RequestVote = message.data
        vote_granted = msg.term >= self.current_term and (
            self.voted_for is None or self.voted_for == msg.candidate_id
        )

        if vote_granted:
            self.voted_for = msg.candidate_id
            self.reset_election_timer()

        return [Outgoing(VoteResponse(term=self.current_term, granted=vote_granted), dest=message.source)]

    def handle_vote_response(self, message: Message, active_ids: frozenset[NodeID]) -> list[Outgoing]:
        msg: VoteResponse = message.data
        # the term check keeps old, delayed votes out
        if self.role != "candidate" or msg.term != self.current_term or not msg.granted:
            return []

        self.vote_count += 1
        if self.vote_count >= self.quorum_size(active_ids):
            return self.win_election()
        return []

    def handle_append_entries_response(self, message: Message, active_ids: frozenset[NodeID]) -> list[Outgoing]:
        msg: AppendEntriesResponse = message.data
        if not self.config.leader_commit:
            return []
        if self.role != "leader" or msg.term != self.current_term or not msg.success:
            # not leader anymore = not this node's problem
            return []

        # max: responses to older broadcasts may arrive after newer ones
        self.match_index[message.source] = max(self.match_index.get(message.source, -1), msg.match_index)
        self.advance_commit_index(active_ids)
        return []

    def advance_commit_index(self, active_ids: frozenset[NodeID]):
        own_last_index = last_log_index(self.log)
        acks = [
            own_last_index if n_id == self.node_id else min(self.match_index.get(n_id, -1), own_last_index)
            for n_id in self.voters(active_ids)
        ]
        new_commit_index = compute_commit_index(acks, self.quorum_size(active_ids))
        # entries from older terms are only committed along with one of ours (section 5.4.2 of the paper)
        if new_commit_index > self.commit_index and self.log[new_commit_index].term == self.current_term:
            self.commit_index = new_commit_index
            self.log = mark_committed(self.log, new_commit_index)
            self.events.success(
                f"Leader {self.label} committed up to index {new_commit_index} (Term {self.current_term})"
            )

    def win_election(self) -> list[Outgoing]:
        self.convert_to("won_election")
        self.events.success(f"Node {self.label} becomes LEADER (Term {self.current_term})")
        # assert authority right away instead of waiting for the heartbeat interval
        return [self.broadcast_log()]

    def broadcast_log(self) -> Outgoing:
        message_class = AppendEntries if self.pending_replication else Heartbeat
        self.pending_replication = False
        return Outgoing(
            message_class(
                term=self.current_term,
                leader_id=self.node_id,
                log=tuple(self.log),
                commit_index=self.commit_index,
            )
        )

    def handle_clock_tick(self, active_ids: frozenset[NodeID]) -> list[Outgoing]:
        if self.role == "stopped":
            return []

        if self.role == "leader":
            self.heartbeat_timer += 1
            if self.heartbeat_timer >= self.config.heartbeat_interval:
                self.heartbeat_timer = 0
                if self.config.leader_commit:
                    # a leader alone in its quorum has nobody to acknowledge its entries
                    self.advance_commit_index(active_ids)
                return [self.broadcast_log()]
            return []

        self.election_timer += 1
        if self.election_timer >= self.election_timeout:
            # start a new election \o/
            self.events.warning(f"{self.label} timed out. Starting Election (Term {self.current_term + 1})")
            self.convert_to("election_timeout")
            if self.vote_count >= self.quorum_size(active_ids):
                return self.win_election()
            return [Outgoing(RequestVote(term=self.current_term, candidate_id=self.node_id))]

        return []

    def add_command(self, value: str):
        assert self.role == "leader"
        self.log.append(LogEntry(term=self.current_term, value=value))
        self.pending_replication = True
        # replicate on the very next tick
        self.heartbeat_timer = self.config.heartbeat_interval

    def power_off(self):
        self.convert_to("power_off")

    def power_on(self):
        self.convert_to("power_on")

    def quorum_size(self, active_ids: frozenset[NodeID]) -> int:
        if self.config.quorum == "cluster":
            return majority(self.config.cluster_size)
        return majority(len(active_ids))

    def voters(self, active_ids: frozenset[NodeID]) -> Iterable[NodeID]:
        if self.config.quorum == "cluster":
            return range(self.config.cluster_size)
        return sorted(active_ids)

    def reset_election_timer(self):
        self.election_timer = 0

    def draw_election_timeout(self) -> int:
        return self.random.randint(self.config.election_timeout_min, self.config.election_timeout_max)

    def snapshot(self) -> NodeSnapshot:
        return NodeSnapshot(
            id=self.node_id,
            role=self.role,
            current_term=self.current_term,
            voted_for=self.voted_for,
            log=tuple(self.log),
            commit_index=self.commit_index,
            vote_count=self.vote_count,
            election_timer=self.election_timer,
            election_timeout=self.election_timeout,
            heartbeat_timer=self.heartbeat_timer,
        )


def majority(voter_count: int) -> int:
    return voter_count // 2 + 1


def compute_commit_index(acks: list[int], quorum: int) -> int:
    """Highest index acknowledged by at least `quorum` of the given voters, -1 if none."""
    if len(acks) < quorum:
        return -1
    return sorted(acks, reverse=True)[quorum - 1]
