# position_estimator.py  ──  pure queue-position and wait-time computation
#
# Two filtering policies are supported:
#   personal_queue: positions counted only among tickets one agent can serve
#   merged_queue:   positions counted among tickets served by ANY online
#                   agent; this ranking is what every tick pushes to both
#                   customers and agents.

import math
from typing import Iterable, Optional

from config import SERVICE_SECONDS_PER_CUSTOMER
from shared_types import AgentSession, Projection, RankedTicket, Ticket


def project(
    ticket: Ticket,
    index: int,
    now: float,
    service_seconds: int = SERVICE_SECONDS_PER_CUSTOMER,
) -> Projection:
    """Rank a ticket sitting at ``index`` of an already filtered, sorted queue.

    The wait is a flat per-head heuristic reduced by the time already
    spent waiting, clamped at zero.
    """
    elapsed = math.floor((now - ticket.joined_at) / 1000)
    estimated_wait = max(0, service_seconds * index - elapsed)
    return Projection(position=index + 1, estimated_wait_seconds=int(estimated_wait))


def rank(
    tickets: Iterable[Ticket],
    now: float,
    service_seconds: int = SERVICE_SECONDS_PER_CUSTOMER,
) -> list[RankedTicket]:
    ordered = sorted(tickets, key=lambda t: t.joined_at)
    return [
        RankedTicket(ticket=t, projection=project(t, i, now, service_seconds))
        for i, t in enumerate(ordered)
    ]


def personal_queue(
    snapshot: list[Ticket],
    agent: AgentSession,
    now: float,
    service_seconds: int = SERVICE_SECONDS_PER_CUSTOMER,
) -> list[RankedTicket]:
    eligible = [t for t in snapshot if agent.serves(t.language_code)]
    return rank(eligible, now, service_seconds)


def merged_queue(
    snapshot: list[Ticket],
    supported_languages: Optional[frozenset],
    now: float,
    service_seconds: int = SERVICE_SECONDS_PER_CUSTOMER,
) -> list[RankedTicket]:
    """Rank tickets whose language some online agent serves.

    ``supported_languages`` is ``AgentRegistry.supported_languages()``:
    None means every language is served, an empty set means no agent is
    online.
    """
    if supported_languages is None:
        eligible = list(snapshot)
    else:
        eligible = [t for t in snapshot if t.language_code in supported_languages]
    return rank(eligible, now, service_seconds)


def agent_view(merged: list[RankedTicket], agent: AgentSession) -> list[RankedTicket]:
    return [entry for entry in merged if agent.serves(entry.ticket.language_code)]


def customer_views(
    merged: list[RankedTicket],
    snapshot: list[Ticket],
) -> list[tuple[Ticket, Optional[Projection]]]:
    """Pair every waiting ticket with its merged projection, or None if unranked."""
    by_ticket = {id(entry.ticket): entry.projection for entry in merged}
    return [(t, by_ticket.get(id(t))) for t in snapshot]
