# tests/conftest.py  ──  shared fakes for the broker tests

import os
import sys

import pytest

# Add parent dir to path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from broker import Broker


class RecordingTransport:
    """Collects every outbound frame instead of writing to a socket."""

    def __init__(self):
        self.sent: list[tuple[str, str, object]] = []

    def send(self, connection_id, event, payload):
        self.sent.append((connection_id, event, payload))

    def to(self, connection_id, event=None):
        return [
            payload for cid, ev, payload in self.sent
            if cid == connection_id and (event is None or ev == event)
        ]

    def clear(self):
        self.sent.clear()


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def set(self, now: float) -> None:
        self.now = now


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def broker(transport, clock):
    return Broker(transport=transport, clock=clock, service_seconds=90)


def join(broker, connection_id, customer_id, language="hi", name=None):
    broker.handle(connection_id, "join-queue", {
        "name": name or customer_id,
        "customerId": customer_id,
        "language": language,
    })


def announce(broker, connection_id, *languages):
    broker.handle(connection_id, "agent-dashboard", {"languages": list(languages)})
