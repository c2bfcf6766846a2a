"""
Maintenance ticket lifecycle.

    pending ──► in_progress ──► completed ──► approved
       │             │
       └──► cancelled ◄┘

``TRANSITIONS`` maps every legal (from, to) pair to the guards that must
pass, checked in order. A pair missing from the table is an invalid
transition regardless of who asks.
"""

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Tuple

from sensornet_core.domain.errors import ForbiddenError, InvalidTransitionError
from sensornet_core.domain.models import Actor, MaintenanceTicket, Role, TicketStatus


@dataclass(frozen=True)
class Guard:
    name: str
    allows: Callable[[MaintenanceTicket, Actor], bool]
    message: str


def _has_role(*roles: Role) -> Callable[[MaintenanceTicket, Actor], bool]:
    return lambda _ticket, actor: actor.role in roles


def _is_responsible(ticket: MaintenanceTicket, actor: Actor) -> bool:
    return ticket.responsible_id == actor.user_id


def _admin_or_responsible(ticket: MaintenanceTicket, actor: Actor) -> bool:
    return actor.role == Role.ADMIN or _is_responsible(ticket, actor)


STAFF_ROLE = Guard(
    "staff_role",
    _has_role(Role.ADMIN, Role.TECH),
    "Only technicians and administrators can work on maintenance tickets",
)
RESPONSIBLE = Guard(
    "responsible",
    _is_responsible,
    "Only the assigned responsible can change this ticket's progress",
)
ADMIN_OR_RESPONSIBLE = Guard(
    "admin_or_responsible",
    _admin_or_responsible,
    "Only an administrator or the assigned responsible can cancel this ticket",
)
ADMIN_ROLE = Guard(
    "admin_role",
    _has_role(Role.ADMIN),
    "Only administrators can approve maintenance tickets",
)

TRANSITIONS: Dict[Tuple[TicketStatus, TicketStatus], Tuple[Guard, ...]] = {
    (TicketStatus.PENDING, TicketStatus.IN_PROGRESS): (STAFF_ROLE, RESPONSIBLE),
    (TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED): (STAFF_ROLE, RESPONSIBLE),
    (TicketStatus.PENDING, TicketStatus.CANCELLED): (ADMIN_OR_RESPONSIBLE,),
    (TicketStatus.IN_PROGRESS, TicketStatus.CANCELLED): (ADMIN_OR_RESPONSIBLE,),
    (TicketStatus.COMPLETED, TicketStatus.APPROVED): (ADMIN_ROLE,),
}

ALL_FIELDS: FrozenSet[str] = frozenset(
    {"date", "responsible_id", "device_id", "damage_image", "priority", "description"}
)

UPDATABLE_FIELDS: Dict[TicketStatus, FrozenSet[str]] = {
    TicketStatus.PENDING: ALL_FIELDS,
    TicketStatus.IN_PROGRESS: frozenset({"damage_image", "description"}),
    TicketStatus.COMPLETED: frozenset(),
    TicketStatus.CANCELLED: frozenset(),
    TicketStatus.APPROVED: frozenset(),
}

DELETABLE_STATES: FrozenSet[TicketStatus] = frozenset({TicketStatus.PENDING, TicketStatus.CANCELLED})


def allowed_targets(current: TicketStatus) -> FrozenSet[TicketStatus]:
    return frozenset(to for (frm, to) in TRANSITIONS if frm == current)


def check_transition(ticket: MaintenanceTicket, requested: TicketStatus, actor: Actor) -> None:
    """Raise unless ``actor`` may move ``ticket`` to ``requested``."""
    guards = TRANSITIONS.get((ticket.status, requested))
    if guards is None:
        raise InvalidTransitionError(ticket.status.value, requested.value)
    for guard in guards:
        if not guard.allows(ticket, actor):
            raise ForbiddenError(guard.message)


def filter_changes(status: TicketStatus, changes: Dict[str, object]) -> Dict[str, object]:
    """Keep only the fields that may change in ``status``; the rest are dropped."""
    allowed = UPDATABLE_FIELDS[status]
    return {name: value for name, value in changes.items() if name in allowed}
