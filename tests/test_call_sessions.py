# tests/test_call_sessions.py

import pytest

from agent_registry import AgentRegistry
from call_sessions import CallSessionManager
from queue_registry import QueueRegistry
from relay import MessageRelay
from shared_types import CallSession, Rejected

from conftest import RecordingTransport


@pytest.fixture
def setup():
    queue = QueueRegistry()
    agents = AgentRegistry()
    calls = CallSessionManager(queue, agents)
    queue.enroll("A", "Asha", "hi", "cust-a", joined_at=0)
    queue.enroll("B", "Bina", "hi", "cust-b", joined_at=1000)
    agents.upsert("agent-1", ["hi"])
    agents.upsert("agent-2", ["hi"])
    return queue, agents, calls


# --------------------------
# connect()
# --------------------------

def test_connect_claims_ticket(setup):
    queue, agents, calls = setup
    session = calls.connect("agent-1", "A", now=5)

    assert isinstance(session, CallSession)
    assert session.is_active
    assert session.agent_id == agents.get("agent-1").agent_id
    assert "A" not in queue
    assert agents.get("agent-1").active_call is session
    assert calls.active_for_customer("A") is session
    assert calls.active_for_agent("agent-1") is session
    assert calls.active_count() == 1


def test_connect_rejects_busy_agent(setup):
    queue, agents, calls = setup
    first = calls.connect("agent-1", "A", now=0)
    result = calls.connect("agent-1", "B", now=0)

    assert result == Rejected('agent-busy')
    assert "B" in queue
    assert agents.get("agent-1").active_call is first


def test_connect_rejects_claimed_customer(setup):
    _, _, calls = setup
    calls.connect("agent-1", "A", now=0)
    assert calls.connect("agent-2", "A", now=0) == Rejected('customer-unavailable')
    assert calls.active_for_agent("agent-2") is None


def test_connect_rejects_unknown_agent(setup):
    queue, _, calls = setup
    assert calls.connect("ghost", "A", now=0) == Rejected('agent-unknown')
    assert "A" in queue


def test_exclusive_ownership(setup):
    _, _, calls = setup
    calls.connect("agent-1", "A", now=0)
    calls.connect("agent-2", "B", now=0)
    calls.connect("agent-2", "A", now=0)
    calls.connect("agent-1", "B", now=0)

    assert calls.active_for_customer("A").agent_connection_id == "agent-1"
    assert calls.active_for_customer("B").agent_connection_id == "agent-2"
    assert calls.active_count() == 2


# --------------------------
# end()
# --------------------------

def test_end_is_terminal_and_idempotent(setup):
    queue, agents, calls = setup
    session = calls.connect("agent-1", "A", now=0)

    ended = calls.end("A", now=10)
    assert ended is session
    assert session.state == 'Ended'
    assert session.ended_at == 10
    assert agents.get("agent-1").active_call is None
    assert "A" not in queue

    assert calls.end("A", now=20) is None
    assert session.ended_at == 10


def test_end_by_agent(setup):
    _, _, calls = setup
    session = calls.connect("agent-1", "A", now=0)
    assert calls.end_by_agent("agent-1") is session
    assert calls.active_for_customer("A") is None
    assert calls.end_by_agent("agent-1") is None


def test_end_by_customer_disconnect(setup):
    _, _, calls = setup
    calls.connect("agent-1", "A", now=0)
    assert calls.end_by_customer_disconnect("A").state == 'Ended'
    assert calls.active_for_agent("agent-1") is None


def test_agent_can_take_next_customer_after_end(setup):
    _, _, calls = setup
    first = calls.connect("agent-1", "A", now=0)
    calls.end("A")
    second = calls.connect("agent-1", "B", now=0)
    assert isinstance(second, CallSession)
    assert second.call_id != first.call_id


# --------------------------
# MessageRelay
# --------------------------

def test_relay_both_directions(setup):
    _, _, calls = setup
    transport = RecordingTransport()
    relay = MessageRelay(calls, transport, {"A": "cust-a"})
    calls.connect("agent-1", "A", now=0)

    assert relay.relay_from_customer("A", "namaste") is True
    assert relay.relay_from_agent("agent-1", "A", "how can I help?") is True
    assert transport.sent == [
        ("agent-1", "agent-message", {"customerId": "A", "message": "namaste"}),
        ("cust-a", "customer-message", {"message": "how can I help?"}),
    ]


def test_relay_drops_without_active_call(setup):
    _, _, calls = setup
    transport = RecordingTransport()
    relay = MessageRelay(calls, transport, {"A": "cust-a"})

    assert relay.relay_from_customer("A", "hello?") is False
    assert relay.relay_from_agent("agent-1", "A", "hi") is False
    assert transport.sent == []


def test_relay_drops_agent_message_for_other_customer(setup):
    _, _, calls = setup
    transport = RecordingTransport()
    relay = MessageRelay(calls, transport, {"A": "cust-a", "B": "cust-b"})
    calls.connect("agent-1", "A", now=0)

    assert relay.relay_from_agent("agent-1", "B", "psst") is False
    assert transport.sent == []
