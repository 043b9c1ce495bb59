# events.py  ──  wire event names and inbound payload models
# Inbound payloads are parsed with pydantic; a payload that fails validation
# is dropped by the broker without a reply.

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

# ── customer → broker ────────────────────────────────────────────────────────
JOIN_QUEUE = "join-queue"
CUSTOMER_MESSAGE = "customer-message"

# ── agent → broker ───────────────────────────────────────────────────────────
AGENT_DASHBOARD = "agent-dashboard"
CONNECT_CUSTOMER = "connect-customer"
END_CALL = "end-call"
AGENT_MESSAGE = "agent-message"

# ── broker → clients ─────────────────────────────────────────────────────────
QUEUED = "queued"
QUEUE_UPDATE = "queue-update"
DASHBOARD_UPDATE = "dashboard-update"
CALL_CONNECTED = "call-connected"
CALL_ENDED = "call-ended"
CONNECT_REJECTED = "connect-rejected"


# Identifiers are stripped; chat text is relayed exactly as sent.
Identifier = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
LanguageCode = Annotated[str, StringConstraints(strip_whitespace=True)]


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class JoinQueuePayload(_Payload):
    name: Identifier
    customer_id: Identifier = Field(alias="customerId")
    language: Identifier


class AgentDashboardPayload(_Payload):
    languages: list[LanguageCode] = Field(default_factory=list)


class CustomerRefPayload(_Payload):
    customer_id: Identifier = Field(alias="customerId")


class ChatPayload(_Payload):
    customer_id: Identifier = Field(alias="customerId")
    message: str
