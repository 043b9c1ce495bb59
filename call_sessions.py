# call_sessions.py  ──  pairing state machine between one agent and one customer
#
#   None ──connect──▶ Active ──end / disconnect──▶ Ended (terminal)
#
# While Active, a session exclusively owns its customer_id and its
# agent_connection_id. Pairing the same parties again creates a new session.

import logging
import uuid
from typing import Dict, Optional, Union

from agent_registry import AgentRegistry
from queue_registry import QueueRegistry
from shared_types import CallSession, Rejected

logger = logging.getLogger(__name__)


class CallSessionManager:

    def __init__(self, queue: QueueRegistry, agents: AgentRegistry):
        self._queue = queue
        self._agents = agents
        self._by_customer: Dict[str, CallSession] = {}
        self._by_agent: Dict[str, CallSession] = {}

    def connect(
        self,
        agent_connection_id: str,
        customer_id: str,
        now: float,
    ) -> Union[CallSession, Rejected]:
        """Claim a queued customer for an idle agent.

        The ticket leaves the queue in the same step the session is
        recorded. Nothing changes when the call is rejected.
        """
        agent = self._agents.get(agent_connection_id)
        if agent is None:
            return Rejected('agent-unknown')
        if self.active_for_agent(agent_connection_id) is not None:
            return Rejected('agent-busy')
        if customer_id not in self._queue or customer_id in self._by_customer:
            return Rejected('customer-unavailable')

        self._queue.remove(customer_id)
        session = CallSession(
            call_id=uuid.uuid4().hex,
            agent_connection_id=agent_connection_id,
            agent_id=agent.agent_id,
            customer_id=customer_id,
            started_at=now,
        )
        self._by_customer[customer_id] = session
        self._by_agent[agent_connection_id] = session
        agent.active_call = session
        logger.info("Call %s started: agent=%s customer=%s",
                    session.call_id, agent.agent_id, customer_id)
        return session

    def end(self, customer_id: str, now: float = 0.0) -> Optional[CallSession]:
        session = self._by_customer.get(customer_id)
        if session is None:
            return None
        return self._finish(session, now)

    def end_by_agent(self, agent_connection_id: str, now: float = 0.0) -> Optional[CallSession]:
        session = self._by_agent.get(agent_connection_id)
        if session is None:
            return None
        return self._finish(session, now)

    def end_by_customer_disconnect(self, customer_id: str, now: float = 0.0) -> Optional[CallSession]:
        return self.end(customer_id, now)

    def active_for_customer(self, customer_id: str) -> Optional[CallSession]:
        return self._by_customer.get(customer_id)

    def active_for_agent(self, agent_connection_id: str) -> Optional[CallSession]:
        return self._by_agent.get(agent_connection_id)

    def active_count(self) -> int:
        return len(self._by_customer)

    def _finish(self, session: CallSession, now: float) -> CallSession:
        session.state = 'Ended'
        session.ended_at = now
        self._by_customer.pop(session.customer_id, None)
        self._by_agent.pop(session.agent_connection_id, None)

        agent = self._agents.get(session.agent_connection_id)
        if agent is not None and agent.active_call is session:
            agent.active_call = None

        logger.info("Call %s ended: customer=%s", session.call_id, session.customer_id)
        return session
