"""The simulated cluster: nodes, messages in flight, the event log and the clock driving them.

All mutation goes through `Simulation`, one step or one control command at a time, under a
single lock. Readers get frozen snapshots, never the live objects.
"""
import logging
import random
import threading
from dataclasses import dataclass
from dataclasses import replace

from eventlog import EventLog
from eventlog import EventLogEntry
from raftconfig import NodeID
from raftconfig import NodeRole
from raftconfig import SimulationConfig
from raftlogic import NodeSnapshot
from raftlogic import RaftLogic
from rpc import Message
from rpc import Outgoing
from scheduler import TickScheduler
from transit import MessageTransit

logger = logging.getLogger(__name__)


def current_leader(nodes):
    """The leader with the highest term, None if there is none.

    Works on live nodes and on snapshots alike. A deposed leader may not know it yet: the highest term wins.
    """
    leaders = [n for n in nodes if n.role == "leader"]
    if not leaders:
        return None
    return max(leaders, key=lambda n: n.current_term)


@dataclass(frozen=True)
class Snapshot:
    tick: int
    running: bool
    nodes: tuple[NodeSnapshot, ...]
    messages: tuple[Message, ...]
    events: tuple[EventLogEntry, ...]

    @property
    def leader(self) -> NodeSnapshot | None:
        return current_leader(self.nodes)

    def as_dict(self):
        return {
            "tick": self.tick,
            "running": self.running,
            "nodes": [node.as_dict() for node in self.nodes],
            "messages": [message.as_dict() for message in self.messages],
            "events": [event.as_dict() for event in self.events],
        }


class Simulation:
    def __init__(self, config: SimulationConfig | None = None, rng: random.Random | None = None):
        self.config = config if config is not None else SimulationConfig()
        # election timeouts come from here: pass a seeded or scripted Random to replay elections.
        self.random = rng if rng is not None else random.Random(self.config.seed)
        # reentrant: control commands call each other
        self._lock = threading.RLock()
        self.tick = 0
        self.events = EventLog(self.config.event_log_size, clock=lambda: self.tick)
        self.scheduler = TickScheduler(self.step, self.config.tick_interval_s)
        self.transit = MessageTransit(self.config.message_speed)
        self.nodes: list[RaftLogic] = []
        self.initialize()

    def __repr__(self):
        return f"Simulation(tick={self.tick}, nodes={self.nodes}, transit={self.transit})"

    # --- control ---

    def initialize(self, cluster_size: int | None = None):
        """Fresh cluster: node 0 leads term 1, everyone else follows. Stops the clock."""
        self.scheduler.stop()
        with self._lock:
            if cluster_size is not None:
                self.config = replace(self.config, cluster_size=cluster_size)
            self.tick = 0
            self.transit = MessageTransit(self.config.message_speed)
            self.events.clear()
            self.nodes = [
                RaftLogic(
                    node_id=node_id,
                    role="leader" if node_id == 0 else "follower",
                    config=self.config,
                    rng=self.random,
                    events=self.events,
                )
                for node_id in range(self.config.cluster_size)
            ]
            self.events.info(f"Cluster initialized. Node {self.nodes[0].label} started as Leader.")

    reset = initialize

    def start(self):
        self.scheduler.start()

    def pause(self):
        self.scheduler.stop()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def submit_client_command(self, value: str) -> bool:
        """Append `value` to the leader's log. Refused (and logged) when there is no leader."""
        if not value:
            return False
        with self._lock:
            leader = self.leader()
            if leader is None:
                self.events.error("Write Failed: No Leader.")
                return False
            leader.add_command(value)
            self.events.info(f'Client sent "{value}" to Leader {leader.label}.')
            return True

    def toggle_power(self, node_id: NodeID) -> NodeRole:
        with self._lock:
            node = self.node(node_id)
            if node.role == "stopped":
                node.power_on()
                self.events.warning(f"Node {node.label} powered on.")
            else:
                node.power_off()
                self.events.warning(f"Node {node.label} powered off.")
            return node.role

    # --- stepping ---

    def step(self):
        with self._lock:
            self._step()

    def run(self, ticks: int):
        for _ in range(ticks):
            self.step()

    def _step(self):
        self.tick += 1

        for message in self.transit.advance():
            node = self.node(message.dest)
            self.dispatch(node, node.handle_message(message, self.active_ids()))

        for node in self.nodes:
            self.dispatch(node, node.handle_clock_tick(self.active_ids()))

    def dispatch(self, node: RaftLogic, outgoing: list[Outgoing]):
        for out in outgoing:
            if out.dest is None:
                self.transit.broadcast(node.node_id, out.data, recipients=sorted(self.active_ids()))
            else:
                self.transit.send(node.node_id, out.dest, out.data)

    # --- reading ---

    def node(self, node_id: NodeID) -> RaftLogic:
        if not 0 <= node_id < len(self.nodes):
            raise KeyError(f"no node {node_id} in a cluster of {len(self.nodes)}")
        return self.nodes[node_id]

    def active_ids(self) -> frozenset[NodeID]:
        return frozenset(n.node_id for n in self.nodes if n.role != "stopped")

    def leader(self) -> RaftLogic | None:
        return current_leader(self.nodes)

    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(
                tick=self.tick,
                running=self.running,
                nodes=tuple(node.snapshot() for node in self.nodes),
                messages=self.transit.messages(),
                events=self.events.entries(),
            )
