# relay.py  ──  forwards chat text between the two parties of an active call
# Holds no state: routing is resolved from the call sessions on every message.

import logging
from typing import Dict

from call_sessions import CallSessionManager
from events import AGENT_MESSAGE, CUSTOMER_MESSAGE
from shared_types import Transport

logger = logging.getLogger(__name__)


class MessageRelay:

    def __init__(
        self,
        calls: CallSessionManager,
        transport: Transport,
        customer_connections: Dict[str, str],
    ):
        self._calls = calls
        self._transport = transport
        self._customer_connections = customer_connections

    def relay_from_customer(self, customer_id: str, text: str) -> bool:
        session = self._calls.active_for_customer(customer_id)
        if session is None:
            logger.debug("Dropped customer message: no active call for %s", customer_id)
            return False

        self._transport.send(
            session.agent_connection_id,
            AGENT_MESSAGE,
            {"customerId": customer_id, "message": text},
        )
        return True

    def relay_from_agent(self, agent_connection_id: str, customer_id: str, text: str) -> bool:
        session = self._calls.active_for_agent(agent_connection_id)
        if session is None or session.customer_id != customer_id:
            logger.debug("Dropped agent message: %s is not in a call with %s",
                         agent_connection_id, customer_id)
            return False

        connection_id = self._customer_connections.get(session.customer_id)
        if connection_id is None:
            return False

        self._transport.send(connection_id, CUSTOMER_MESSAGE, {"message": text})
        return True
