import logging

import pytest

from eventlog import EventLog


def test_most_recent_first():
    events = EventLog()
    events.info("first")
    events.warning("second")

    assert [e.message for e in events.entries()] == ["second", "first"]
    assert [e.severity for e in events] == ["warning", "info"]


def test_bounded():
    events = EventLog(max_entries=50)
    for i in range(60):
        events.info(f"event {i}")

    assert len(events) == 50
    assert events.entries()[0].message == "event 59"
    assert events.entries()[-1].message == "event 10"


def test_entries_carry_the_tick():
    tick = 0
    events = EventLog(clock=lambda: tick)
    events.info("at zero")
    tick = 12
    events.success("at twelve")

    assert [e.tick for e in events] == [12, 0]
    assert len(events.entries()[0].timestamp) == len("12:34:56")
    assert events.entries()[0].as_dict()["timestamp"] == events.entries()[0].timestamp


def test_unknown_severity():
    with pytest.raises(ValueError):
        EventLog().add("boom", severity="critical")


def test_mirrored_to_logging(caplog):
    caplog.set_level(logging.INFO, logger="eventlog")
    events = EventLog()
    events.success("Node S2 becomes LEADER (Term 2)")
    events.error("Write Failed: No Leader.")

    levels = [(r.levelno, r.getMessage()) for r in caplog.records if r.name == "eventlog"]
    assert levels == [
        (logging.INFO, "[tick 0] Node S2 becomes LEADER (Term 2)"),
        (logging.ERROR, "[tick 0] Write Failed: No Leader."),
    ]


def test_clear():
    events = EventLog()
    events.info("something")
    events.clear()
    assert events.entries() == ()
