# Defaults for the simulated cluster. All timing in the engine is counted in
# ticks: one tick is one synchronous simulation step, fired every
# TICK_INTERVAL_S seconds while the simulation is running.
from dataclasses import dataclass
from typing import Literal

NodeID = int
NodeRole = Literal["leader", "candidate", "follower", "stopped"]
# "active": majority of the nodes that are not stopped.
# "cluster": majority of the whole configured cluster, as real Raft does.
QuorumPolicy = Literal["active", "cluster"]

CLUSTER_SIZE = 5
TICK_INTERVAL_S = 0.03
# progress units (out of 100) a message covers per tick: 40 ticks from sender to receiver.
MESSAGE_SPEED = 2.5

ELECTION_TIMEOUT_TICKS_MIN = 100
ELECTION_TIMEOUT_TICKS_MAX = 200
HEARTBEAT_INTERVAL_TICKS = 50

EVENT_LOG_SIZE = 50

# slow things down when watching the simulation in a console
# TICK_INTERVAL_S *= 10


@dataclass(frozen=True)
class SimulationConfig:
    cluster_size: int = CLUSTER_SIZE
    tick_interval_s: float = TICK_INTERVAL_S
    message_speed: float = MESSAGE_SPEED
    election_timeout_min: int = ELECTION_TIMEOUT_TICKS_MIN
    election_timeout_max: int = ELECTION_TIMEOUT_TICKS_MAX
    heartbeat_interval: int = HEARTBEAT_INTERVAL_TICKS
    event_log_size: int = EVENT_LOG_SIZE
    seed: int | None = None
    quorum: QuorumPolicy = "active"
    # advance the leader commit index from follower acknowledgements
    leader_commit: bool = True

    def __post_init__(self):
        if self.cluster_size < 1:
            raise ValueError(f"cluster size should be at least 1, got {self.cluster_size}")
        if self.tick_interval_s <= 0:
            raise ValueError("tick interval should be positive")
        if self.message_speed <= 0:
            raise ValueError("message speed should be positive")
        if not 1 <= self.election_timeout_min <= self.election_timeout_max:
            raise ValueError(
                f"invalid election timeout bounds: {self.election_timeout_min}..{self.election_timeout_max}"
            )
        if self.heartbeat_interval < 1:
            raise ValueError("heartbeat interval should be at least one tick")
        if self.event_log_size < 1:
            raise ValueError("event log should keep at least one entry")
        if self.quorum not in ("active", "cluster"):
            raise ValueError(f"unknown quorum policy: {self.quorum}")
