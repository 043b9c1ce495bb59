# queue_registry.py  ──  waiting customer tickets, kept in join order

from typing import Optional

from shared_types import Ticket


class QueueRegistry:
    """Insertion-ordered list of waiting tickets.

    Insertion order is join order, so snapshots are already sorted by
    ``joined_at``. No uniqueness check happens here; the broker decides
    what a duplicate join means.
    """

    def __init__(self):
        self._tickets: list[Ticket] = []

    def enroll(
        self,
        customer_id: str,
        name: str,
        language_code: str,
        connection_id: str,
        joined_at: float,
    ) -> Ticket:
        ticket = Ticket(
            connection_id=connection_id,
            customer_id=customer_id,
            display_name=name,
            language_code=language_code,
            joined_at=joined_at,
        )
        self._tickets.append(ticket)
        return ticket

    def remove(self, customer_id: str) -> list[Ticket]:
        return self._remove_where(lambda t: t.customer_id == customer_id)

    def remove_by_connection(self, connection_id: str) -> list[Ticket]:
        return self._remove_where(lambda t: t.connection_id == connection_id)

    def find(self, customer_id: str) -> Optional[Ticket]:
        for ticket in self._tickets:
            if ticket.customer_id == customer_id:
                return ticket
        return None

    def snapshot(self) -> list[Ticket]:
        return list(self._tickets)

    def _remove_where(self, predicate) -> list[Ticket]:
        removed = [t for t in self._tickets if predicate(t)]
        if removed:
            self._tickets = [t for t in self._tickets if not predicate(t)]
        return removed

    def __contains__(self, customer_id: str) -> bool:
        return self.find(customer_id) is not None

    def __len__(self) -> int:
        return len(self._tickets)
