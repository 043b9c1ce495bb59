# broker.py  ──  owns every registry and turns inbound events into transitions
#
# All operations are synchronous and run on the server's single event loop,
# so no two of them ever interleave inside a read-modify-write.

import logging
import time
from typing import Any, Callable, Dict, Optional, Set

from pydantic import ValidationError

import events
from agent_registry import AgentRegistry
from call_sessions import CallSessionManager
from config import SERVICE_SECONDS_PER_CUSTOMER
from position_estimator import agent_view, customer_views, merged_queue
from queue_registry import QueueRegistry
from relay import MessageRelay
from shared_types import AgentSession, CallSession, RankedTicket, Rejected, Transport

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class Broker:
    """In-memory support broker.

    Customers are identified by their ``customerId`` from the moment they
    join; the broker keeps the current transport connection for each one
    and forgets it when that connection goes away. Agents are identified by
    their connection and exposed to customers only through an opaque alias.
    """

    def __init__(
        self,
        transport: Transport,
        clock: Callable[[], float] = monotonic_ms,
        service_seconds: int = SERVICE_SECONDS_PER_CUSTOMER,
    ):
        self.transport = transport
        self.clock = clock
        self.service_seconds = service_seconds

        self.queue = QueueRegistry()
        self.agents = AgentRegistry()
        self.calls = CallSessionManager(self.queue, self.agents)

        self._customer_connections: Dict[str, str] = {}
        self._connection_customers: Dict[str, Set[str]] = {}
        self.relay = MessageRelay(self.calls, self.transport, self._customer_connections)

        self._handlers = {
            events.JOIN_QUEUE: (events.JoinQueuePayload, self._on_join_queue),
            events.AGENT_DASHBOARD: (events.AgentDashboardPayload, self._on_agent_dashboard),
            events.CONNECT_CUSTOMER: (events.CustomerRefPayload, self._on_connect_customer),
            events.END_CALL: (events.CustomerRefPayload, self._on_end_call),
            events.CUSTOMER_MESSAGE: (events.ChatPayload, self._on_customer_message),
            events.AGENT_MESSAGE: (events.ChatPayload, self._on_agent_message),
        }

    # ── Inbound dispatch ─────────────────────────────────────────────────────

    def handle(self, connection_id: str, event: str, data: Any) -> None:
        """Route one inbound event. Unknown events and bad payloads are ignored."""
        entry = self._handlers.get(event)
        if entry is None:
            logger.debug("Ignored unknown event %r from %s", event, connection_id)
            return

        model, handler = entry
        try:
            payload = model.model_validate(data if data is not None else {})
        except ValidationError as e:
            logger.debug("Ignored malformed %s from %s: %s", event, connection_id, e.errors())
            return

        handler(connection_id, payload)

    def _on_join_queue(self, connection_id: str, payload: events.JoinQueuePayload) -> None:
        customer_id = payload.customer_id
        if self.calls.active_for_customer(customer_id) is not None:
            logger.info("Ignored join from %s: already in a call", customer_id)
            return

        # a repeated join replaces the old ticket and restarts the wait
        self.queue.remove(customer_id)
        self.queue.enroll(
            customer_id=customer_id,
            name=payload.name,
            language_code=payload.language,
            connection_id=connection_id,
            joined_at=self.clock(),
        )
        self._bind_customer(customer_id, connection_id)
        logger.info("Customer joined: %s (%s), language=%s",
                    payload.name, customer_id, payload.language)
        self.transport.send(connection_id, events.QUEUED, {"position": len(self.queue)})

    def _on_agent_dashboard(self, connection_id: str, payload: events.AgentDashboardPayload) -> None:
        agent = self.agents.upsert(connection_id, payload.languages)
        logger.info("Agent %s serves languages: %s",
                    agent.agent_id, ", ".join(sorted(agent.language_codes)) or "all")
        self.push_dashboard(agent)

    def _on_connect_customer(self, connection_id: str, payload: events.CustomerRefPayload) -> None:
        result = self.calls.connect(connection_id, payload.customer_id, self.clock())
        if isinstance(result, Rejected):
            logger.info("Connect to %s rejected for %s: %s",
                        payload.customer_id, connection_id, result.reason)
            self.transport.send(
                connection_id,
                events.CONNECT_REJECTED,
                {"customerId": payload.customer_id, "reason": result.reason},
            )
            return

        self.transport.send(connection_id, events.CALL_CONNECTED, {"customerId": result.customer_id})
        self._send_to_customer(result.customer_id, events.CALL_CONNECTED, {"agentId": result.agent_id})
        self.push_dashboards()

    def _on_end_call(self, connection_id: str, payload: events.CustomerRefPayload) -> None:
        session = self.calls.active_for_customer(payload.customer_id)
        if session is None or session.agent_connection_id != connection_id:
            return
        self.end_call(payload.customer_id)

    def _on_customer_message(self, connection_id: str, payload: events.ChatPayload) -> None:
        if self._customer_connections.get(payload.customer_id) != connection_id:
            logger.debug("Dropped message for %s from foreign connection %s",
                         payload.customer_id, connection_id)
            return
        self.relay.relay_from_customer(payload.customer_id, payload.message)

    def _on_agent_message(self, connection_id: str, payload: events.ChatPayload) -> None:
        self.relay.relay_from_agent(connection_id, payload.customer_id, payload.message)

    # ── Call lifecycle ───────────────────────────────────────────────────────

    def end_call(self, customer_id: str) -> Optional[CallSession]:
        """End the active call for ``customer_id`` and tell both parties.

        Idempotent. The customer is not put back in the queue.
        """
        session = self.calls.end(customer_id, self.clock())
        if session is None:
            return None
        self._notify_ended(session)
        return session

    def _notify_ended(self, session: CallSession) -> None:
        self.transport.send(session.agent_connection_id, events.CALL_ENDED,
                            {"customerId": session.customer_id})
        self._send_to_customer(session.customer_id, events.CALL_ENDED, {})

    # ── Disconnect cascade ───────────────────────────────────────────────────

    def disconnect(self, connection_id: str) -> None:
        """Drop everything a closed connection owned, with no grace period."""
        agent = self.agents.get(connection_id)
        if agent is not None:
            session = self.calls.end_by_agent(connection_id, self.clock())
            self.agents.remove(connection_id)
            if session is not None:
                self._send_to_customer(session.customer_id, events.CALL_ENDED, {})
            logger.info("Agent %s disconnected", agent.agent_id)

        removed = self.queue.remove_by_connection(connection_id)
        customer_ids = self._connection_customers.pop(connection_id, set())
        for customer_id in customer_ids:
            self._customer_connections.pop(customer_id, None)
            session = self.calls.end_by_customer_disconnect(customer_id, self.clock())
            if session is not None:
                self.transport.send(session.agent_connection_id, events.CALL_ENDED,
                                    {"customerId": customer_id})

        if removed or customer_ids:
            logger.info("Customer connection %s disconnected (%d ticket(s) removed)",
                        connection_id, len(removed))

    # ── Views ────────────────────────────────────────────────────────────────

    def ranked_queue(self) -> list[RankedTicket]:
        return merged_queue(
            self.queue.snapshot(), self.agents.supported_languages(), self.clock(),
            self.service_seconds,
        )

    def push_dashboard(self, agent: AgentSession, merged: Optional[list[RankedTicket]] = None) -> None:
        if merged is None:
            merged = self.ranked_queue()
        rows = [entry.to_dashboard_row() for entry in agent_view(merged, agent)]
        self.transport.send(agent.connection_id, events.DASHBOARD_UPDATE, rows)

    def push_dashboards(self, merged: Optional[list[RankedTicket]] = None) -> None:
        if merged is None:
            merged = self.ranked_queue()
        for agent in self.agents.list():
            self.push_dashboard(agent, merged)

    def tick(self) -> None:
        """Recompute the merged queue once and push it to every party."""
        snapshot = self.queue.snapshot()
        merged = merged_queue(snapshot, self.agents.supported_languages(), self.clock(),
                              self.service_seconds)

        for ticket, projection in customer_views(merged, snapshot):
            update = {}
            if projection is not None:
                update = {"position": projection.position,
                          "estWait": projection.estimated_wait_seconds}
            connection_id = self._customer_connections.get(ticket.customer_id, ticket.connection_id)
            self.transport.send(connection_id, events.QUEUE_UPDATE, update)

        self.push_dashboards(merged)

    def stats(self) -> dict:
        return {
            "queue_depth": len(self.queue),
            "agents_online": len(self.agents),
            "active_calls": self.calls.active_count(),
        }

    # ── Identity map ─────────────────────────────────────────────────────────

    def _bind_customer(self, customer_id: str, connection_id: str) -> None:
        previous = self._customer_connections.get(customer_id)
        if previous is not None and previous != connection_id:
            self._connection_customers.get(previous, set()).discard(customer_id)
        self._customer_connections[customer_id] = connection_id
        self._connection_customers.setdefault(connection_id, set()).add(customer_id)

    def _send_to_customer(self, customer_id: str, event: str, payload: Any) -> None:
        connection_id = self._customer_connections.get(customer_id)
        if connection_id is not None:
            self.transport.send(connection_id, event, payload)
