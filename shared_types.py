# shared_types.py  ──  the data model every broker module shares
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Protocol

CallState = Literal['Active', 'Ended']
RejectReason = Literal['customer-unavailable', 'agent-busy', 'agent-unknown']


@dataclass
class Ticket:
    connection_id: str
    customer_id: str
    display_name: str
    language_code: str
    joined_at: float                       # monotonic, milliseconds


@dataclass
class CallSession:
    call_id: str
    agent_connection_id: str
    agent_id: str                          # public alias, never the connection id
    customer_id: str
    state: CallState              = 'Active'
    started_at: float             = 0.0
    ended_at: Optional[float]     = None

    @property
    def is_active(self) -> bool:
        return self.state == 'Active'


@dataclass
class AgentSession:
    connection_id: str
    agent_id: str
    language_codes: frozenset     = field(default_factory=frozenset)
    active_call: Optional[CallSession] = None

    def serves(self, language_code: str) -> bool:
        # an empty capability set means "no restriction"
        return not self.language_codes or language_code in self.language_codes


@dataclass(frozen=True)
class Projection:
    position: int
    estimated_wait_seconds: int


@dataclass(frozen=True)
class RankedTicket:
    ticket: Ticket
    projection: Projection

    def to_dashboard_row(self) -> dict:
        return {
            "name": self.ticket.display_name,
            "customerId": self.ticket.customer_id,
            "language": self.ticket.language_code,
            "position": self.projection.position,
            "estWait": self.projection.estimated_wait_seconds,
        }


@dataclass(frozen=True)
class Rejected:
    reason: RejectReason


class Transport(Protocol):
    """Best-effort, non-blocking delivery to one connection.

    Sending to a connection that no longer exists is silently dropped.
    """

    def send(self, connection_id: str, event: str, payload: Any) -> None: ...
