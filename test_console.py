import logging

from console import handle_command
from simulation import Simulation
from test_raftlogic import ScriptedTimeouts


def make_sim() -> Simulation:
    return Simulation(rng=ScriptedTimeouts())


def test_write_and_step():
    sim = make_sim()
    assert handle_command(sim, "write x=1") == "ok"

    output = handle_command(sim, "step 3")
    assert output.splitlines()[0] == "tick 3 (paused)"
    assert "S1 leader    term=1 voted_for=- commit=-1" in output
    assert "log='1'" in output


def test_toggle_is_one_based():
    sim = make_sim()
    assert handle_command(sim, "toggle 1") == "S1 is now stopped"
    assert sim.nodes[0].role == "stopped"
    assert handle_command(sim, "write x=1") == "rejected: no leader"
    assert handle_command(sim, "toggle 1") == "S1 is now follower"


def test_messages_and_events():
    sim = make_sim()
    assert handle_command(sim, "messages") == "no messages in flight"

    handle_command(sim, "write x=1")
    handle_command(sim, "step")
    assert handle_command(sim, "messages").splitlines()[0] == "m1 AppendEntries S1 -> S2 term=1 2%"

    events = handle_command(sim, "events").splitlines()
    assert events[0].endswith('[info] Client sent "x=1" to Leader S1.')


def test_reset():
    sim = make_sim()
    handle_command(sim, "step 10")
    output = handle_command(sim, "reset 3")
    assert output.splitlines()[0] == "tick 0 (paused)"
    assert len(output.splitlines()) == 4


def test_start_pause():
    sim = make_sim()
    assert handle_command(sim, "start") == "running"
    assert sim.running
    assert handle_command(sim, "pause") == "paused"
    assert not sim.running


def test_logging_toggle():
    sim = make_sim()
    try:
        assert handle_command(sim, "logging off") == "logging off"
        assert logging.root.manager.disable == logging.INFO
        assert handle_command(sim, "logging on") == "logging on"
        assert logging.root.manager.disable == logging.NOTSET
    finally:
        logging.disable(logging.NOTSET)


def test_usage_and_unknown():
    sim = make_sim()
    assert handle_command(sim, "write") == "usage: write <value>"
    assert handle_command(sim, "logging maybe") == "usage: logging on|off"
    assert handle_command(sim, "frobnicate") == "unknown command, try 'help'"
    assert handle_command(sim, "help").startswith("commands:")
