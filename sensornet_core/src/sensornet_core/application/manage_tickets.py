import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sensornet_core.domain.errors import (
    ForbiddenError,
    NotFoundError,
    TicketLockedError,
    ValidationError,
)
from sensornet_core.domain.models import (
    Actor,
    MaintenanceTicket,
    Role,
    StatusChange,
    TicketPriority,
    TicketStatus,
)
from sensornet_core.domain.ports import Clock, NotificationSink, TicketRepository, UnitOfWork, utc_now
from sensornet_core.domain.ticket_lifecycle import DELETABLE_STATES, check_transition, filter_changes

log = logging.getLogger(__name__)

STAFF_ROLES = (Role.ADMIN, Role.TECH)
CANCEL_REASON_MIN = 5
CANCEL_REASON_MAX = 500


def create_ticket(
    *,
    date: datetime,
    responsible_id: str,
    device_id: str,
    actor: Actor,
    uow: UnitOfWork,
    priority: Optional[Union[TicketPriority, str]] = None,
    description: Optional[str] = None,
    damage_image: Optional[str] = None,
    notifier: Optional[NotificationSink] = None,
    clock: Clock = utc_now,
) -> MaintenanceTicket:
    _require_role(actor, STAFF_ROLES, "Only technicians and administrators can create maintenance tickets")
    now = clock()
    ticket = MaintenanceTicket(
        date=date,
        responsible_id=responsible_id,
        device_id=device_id,
        status=TicketStatus.PENDING,
        priority=_priority(priority) if priority is not None else TicketPriority.MEDIUM,
        description=description,
        damage_image=damage_image,
        created_at=now,
        updated_at=now,
    )
    with uow:
        ticket = uow.ticket_repo().add(ticket)

    log.info("Maintenance ticket %s created by %s", ticket.id, actor.user_id)
    _notify(notifier, "maintenance_created", ticket_payload(ticket))
    return ticket


def get_ticket(ticket_id: int, uow: UnitOfWork) -> MaintenanceTicket:
    with uow:
        return _load(uow.ticket_repo(), ticket_id)


def list_tickets(uow: UnitOfWork, status: Optional[Union[TicketStatus, str]] = None) -> List[MaintenanceTicket]:
    with uow:
        return uow.ticket_repo().list(_status(status) if status is not None else None)


def get_status_history(ticket_id: int, uow: UnitOfWork) -> List[StatusChange]:
    with uow:
        repo = uow.ticket_repo()
        _load(repo, ticket_id)
        return repo.status_history(ticket_id)


def transition_ticket(
    ticket_id: int,
    requested: Union[TicketStatus, str],
    actor: Actor,
    uow: UnitOfWork,
    *,
    reason: Optional[str] = None,
    notifier: Optional[NotificationSink] = None,
    clock: Clock = utc_now,
) -> MaintenanceTicket:
    """Move a ticket along the lifecycle table.

    The notifier is called exactly once, after the change is committed.
    """
    target = _status(requested)
    if target == TicketStatus.CANCELLED and reason is not None:
        reason = _cancel_reason(reason)
    with uow:
        repo = uow.ticket_repo()
        ticket = _load(repo, ticket_id)
        check_transition(ticket, target, actor)

        previous = ticket.status
        now = clock()
        ticket.status = target
        ticket.approved_by = actor.user_id if target == TicketStatus.APPROVED else None
        if target == TicketStatus.CANCELLED:
            ticket.cancel_reason = reason
        ticket.updated_at = now
        repo.save(ticket)
        repo.add_status_change(
            StatusChange(
                ticket_id=ticket_id,
                from_status=previous,
                to_status=target,
                changed_by=actor.user_id,
                changed_at=now,
                reason=reason,
            )
        )

    log.info(
        "Maintenance ticket %s moved %s -> %s by %s", ticket_id, previous.value, target.value, actor.user_id
    )
    payload = ticket_payload(ticket)
    payload["previousStatus"] = previous.value
    payload["changedBy"] = actor.user_id
    _notify(notifier, "maintenance_status_changed", payload)
    return ticket


def approve_ticket(
    ticket_id: int,
    actor: Actor,
    uow: UnitOfWork,
    *,
    notifier: Optional[NotificationSink] = None,
    clock: Clock = utc_now,
) -> MaintenanceTicket:
    return transition_ticket(ticket_id, TicketStatus.APPROVED, actor, uow, notifier=notifier, clock=clock)


def cancel_ticket(
    ticket_id: int,
    actor: Actor,
    uow: UnitOfWork,
    *,
    reason: Optional[str] = None,
    notifier: Optional[NotificationSink] = None,
    clock: Clock = utc_now,
) -> MaintenanceTicket:
    return transition_ticket(
        ticket_id, TicketStatus.CANCELLED, actor, uow, reason=reason, notifier=notifier, clock=clock
    )


def update_ticket(
    ticket_id: int,
    changes: Dict[str, Any],
    actor: Actor,
    uow: UnitOfWork,
    *,
    notifier: Optional[NotificationSink] = None,
    clock: Clock = utc_now,
) -> MaintenanceTicket:
    """Apply a bounded, non-status update.

    Fields the current status does not allow are dropped without error.
    """
    _require_role(actor, STAFF_ROLES, "Only technicians and administrators can update maintenance tickets")
    with uow:
        repo = uow.ticket_repo()
        ticket = _load(repo, ticket_id)
        if ticket.status == TicketStatus.APPROVED:
            raise TicketLockedError(ticket.status.value, "update")

        allowed = filter_changes(ticket.status, changes)
        if "priority" in allowed:
            allowed["priority"] = _priority(allowed["priority"])
        applied = {name: value for name, value in allowed.items() if getattr(ticket, name) != value}
        if applied:
            for name, value in applied.items():
                setattr(ticket, name, value)
            ticket.updated_at = clock()
            repo.save(ticket)

    dropped = sorted(set(changes) - set(allowed))
    if dropped:
        log.debug("Ticket %s in status %s ignored fields %s", ticket_id, ticket.status.value, dropped)
    if applied:
        payload = ticket_payload(ticket)
        payload["changedFields"] = sorted(applied)
        _notify(notifier, "maintenance_updated", payload)
    return ticket


def delete_ticket(
    ticket_id: int,
    actor: Actor,
    uow: UnitOfWork,
    *,
    notifier: Optional[NotificationSink] = None,
) -> None:
    _require_role(actor, (Role.ADMIN,), "Only administrators can delete maintenance tickets")
    with uow:
        repo = uow.ticket_repo()
        ticket = _load(repo, ticket_id)
        if ticket.status not in DELETABLE_STATES:
            raise TicketLockedError(ticket.status.value, "delete")
        repo.delete(ticket_id)

    log.info("Maintenance ticket %s deleted by %s", ticket_id, actor.user_id)
    _notify(notifier, "maintenance_deleted", {"ticketId": ticket_id, "deletedBy": actor.user_id})


def ticket_payload(ticket: MaintenanceTicket) -> Dict[str, Any]:
    return {
        "ticketId": ticket.id,
        "status": ticket.status.value,
        "deviceId": ticket.device_id,
        "responsibleId": ticket.responsible_id,
        "priority": ticket.priority.value,
        "approvedBy": ticket.approved_by,
    }


def _load(repo: TicketRepository, ticket_id: int) -> MaintenanceTicket:
    ticket = repo.get(ticket_id)
    if ticket is None:
        raise NotFoundError(f"Maintenance ticket {ticket_id} not found")
    return ticket


def _require_role(actor: Actor, roles, message: str) -> None:
    if actor.role not in roles:
        raise ForbiddenError(message)


def _cancel_reason(reason: str) -> str:
    reason = reason.strip()
    if not CANCEL_REASON_MIN <= len(reason) <= CANCEL_REASON_MAX:
        raise ValidationError(f"Cancel reason must be between {CANCEL_REASON_MIN} and {CANCEL_REASON_MAX} characters")
    return reason


def _status(value: Union[TicketStatus, str]) -> TicketStatus:
    try:
        return TicketStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown ticket status: {value!r}") from exc


def _priority(value: Union[TicketPriority, str]) -> TicketPriority:
    try:
        return TicketPriority(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown ticket priority: {value!r}") from exc


def _notify(notifier: Optional[NotificationSink], event: str, payload: Dict[str, Any]) -> None:
    if notifier is None:
        return
    try:
        notifier.notify(event, payload)
    except Exception:
        log.exception("Failed to deliver %s notification", event)
