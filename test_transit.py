from rpc import Heartbeat
from rpc import RequestVote
from rpc import VoteResponse
from transit import MessageTransit


def test_send():
    transit = MessageTransit(speed=2.5)
    message = transit.send(0, 1, RequestVote(term=2, candidate_id=0))

    assert message.progress == 0
    assert message.speed == 2.5
    assert message.type == "RequestVote"
    assert message.term == 2
    assert transit.messages() == (message,)


def test_message_arrives_after_forty_ticks():
    transit = MessageTransit(speed=2.5)
    transit.send(0, 1, VoteResponse(term=1, granted=True))

    for tick in range(1, 40):
        assert transit.advance() == []
        assert transit.messages()[0].progress == 2.5 * tick

    (arrived,) = transit.advance()
    assert arrived.progress == 100
    assert arrived.arrived
    assert transit.messages() == ()


def test_overshoot_still_arrives():
    transit = MessageTransit(speed=3)
    transit.send(0, 1, VoteResponse(term=1, granted=True))
    arrivals = [transit.advance() for _ in range(34)]

    assert all(a == [] for a in arrivals[:33])
    assert arrivals[33][0].progress == 102
    assert len(transit) == 0


def test_arrivals_keep_send_order():
    transit = MessageTransit(speed=50)
    first = transit.send(2, 0, VoteResponse(term=1, granted=True))
    second = transit.send(1, 0, VoteResponse(term=1, granted=False))
    transit.advance()
    late = transit.send(3, 0, VoteResponse(term=1, granted=True))

    arrived = transit.advance()
    assert [m.id for m in arrived] == [first.id, second.id]
    assert [m.id for m in transit.messages()] == [late.id]


def test_broadcast_skips_sender():
    transit = MessageTransit()
    data = Heartbeat(term=1, leader_id=0, log=(), commit_index=-1)
    messages = transit.broadcast(0, data, recipients=[0, 1, 3])

    assert [(m.source, m.dest) for m in messages] == [(0, 1), (0, 3)]
    assert all(m.data is data for m in messages)
    assert len({m.id for m in messages}) == 2


def test_clear():
    transit = MessageTransit()
    transit.send(0, 1, RequestVote(term=2, candidate_id=0))
    transit.clear()
    assert transit.advance() == []
    assert len(transit) == 0


def test_as_dict_caps_progress():
    transit = MessageTransit(speed=60)
    transit.send(0, 1, VoteResponse(term=1, granted=True))
    transit.advance()
    (arrived,) = transit.advance()
    assert arrived.as_dict() == {
        "id": arrived.id,
        "source": 0,
        "dest": 1,
        "type": "VoteResponse",
        "term": 1,
        "data": {"term": 1, "granted": True},
        "progress": 100.0,
        "speed": 60,
    }
