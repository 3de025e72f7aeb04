import logging
import traceback

from raftconfig import CLUSTER_SIZE
from raftconfig import SimulationConfig
from raftlog import log_to_str
from simulation import Simulation

HELP = """commands:
  start | pause          run/stop the clock
  step [n]               advance n ticks by hand (default 1)
  reset [size]           fresh cluster, optionally resized
  write <value>          client write to the current leader
  toggle <n>             power node S<n> off/on
  nodes | messages | events
  logging on | logging off
  help"""


def format_nodes(sim: Simulation) -> str:
    snapshot = sim.snapshot()
    lines = [f"tick {snapshot.tick} ({'running' if snapshot.running else 'paused'})"]
    for node in snapshot.nodes:
        voted_for = "-" if node.voted_for is None else f"S{node.voted_for + 1}"
        lines.append(
            f"S{node.id + 1} {node.role:<9} term={node.current_term} voted_for={voted_for} "
            f"commit={node.commit_index} timer={node.election_timer}/{node.election_timeout} "
            f"log='{log_to_str(node.log)}'"
        )
    return "\n".join(lines)


def format_messages(sim: Simulation) -> str:
    messages = sim.snapshot().messages
    if not messages:
        return "no messages in flight"
    return "\n".join(
        f"{m.id} {m.type} S{m.source + 1} -> S{m.dest + 1} term={m.term} {m.progress:.0f}%" for m in messages
    )


def format_events(sim: Simulation) -> str:
    return "\n".join(f"{e.timestamp} [{e.severity}] {e.message}" for e in sim.snapshot().events)


def handle_command(sim: Simulation, cmd: str) -> str:
    """Run one console command, return what to print."""
    name, _, arg = cmd.strip().partition(" ")
    arg = arg.strip()
    match name:
        case "start":
            sim.start()
            return "running"
        case "pause":
            sim.pause()
            return "paused"
        case "step":
            sim.run(int(arg) if arg else 1)
            return format_nodes(sim)
        case "reset":
            sim.reset(int(arg) if arg else None)
            return format_nodes(sim)
        case "write":
            if not arg:
                return "usage: write <value>"
            return "ok" if sim.submit_client_command(arg) else "rejected: no leader"
        case "toggle":
            # 1-based, like the S<n> labels
            role = sim.toggle_power(int(arg) - 1)
            return f"S{arg} is now {role}"
        case "nodes":
            return format_nodes(sim)
        case "messages":
            return format_messages(sim)
        case "events":
            return format_events(sim)
        case "logging":
            if arg == "on":
                logging.disable(level=logging.NOTSET)
            elif arg == "off":
                logging.disable(level=logging.INFO)
            else:
                return "usage: logging on|off"
            return f"logging {arg}"
        case "help":
            return HELP
        case _:
            return "unknown command, try 'help'"


def console(cluster_size: int):
    logging.basicConfig(level=logging.INFO)
    sim = Simulation(SimulationConfig(cluster_size=cluster_size))
    while True:
        try:
            cmd = input(f"raft ({'running' if sim.running else 'paused'})> ").strip()
        except EOFError:
            break
        if cmd in ("quit", "exit"):
            break
        if not cmd:
            continue
        # noinspection PyBroadException
        try:
            print(handle_command(sim, cmd))
        except Exception:
            print(traceback.format_exc())
            continue
    sim.pause()


if __name__ == "__main__":
    import sys

    if len(sys.argv) > 2:
        print("usage: python console.py [cluster_size]\n" "you might want to use rlwrap as well for nicer input.")
        sys.exit(1)
    console(int(sys.argv[1]) if len(sys.argv) == 2 else CLUSTER_SIZE)
