from datetime import datetime, timezone

import pytest

from sensornet_core.application.manage_tickets import (
    approve_ticket,
    cancel_ticket,
    create_ticket,
    delete_ticket,
    get_status_history,
    get_ticket,
    list_tickets,
    transition_ticket,
    update_ticket,
)
from sensornet_core.domain.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    TicketLockedError,
    ValidationError,
)
from sensornet_core.domain.models import Actor, Role, TicketPriority, TicketStatus
from sensornet_core.utils.fakes import FakeClock, RecordingNotifier, StubUoW

TECH = Actor("tech-1", Role.TECH)
ADMIN = Actor("admin-1", Role.ADMIN)
USER = Actor("user-1", Role.USER)
WHEN = datetime(2025, 7, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def uow():
    return StubUoW()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


def new_ticket(uow, **kwargs):
    params = dict(date=WHEN, responsible_id="tech-1", device_id="dev-1", actor=TECH, uow=uow, clock=FakeClock())
    params.update(kwargs)
    return create_ticket(**params)


def move(uow, ticket_id, *statuses):
    for status in statuses:
        actor = ADMIN if status == TicketStatus.APPROVED else TECH
        transition_ticket(ticket_id, status, actor, uow)


def test_create_ticket_starts_pending(uow, notifier):
    ticket = new_ticket(uow, priority="high", notifier=notifier)
    assert ticket.id == 1
    assert ticket.status == TicketStatus.PENDING
    assert ticket.priority == TicketPriority.HIGH
    assert notifier.events[0][0] == "maintenance_created"


def test_plain_user_cannot_create(uow):
    with pytest.raises(ForbiddenError):
        new_ticket(uow, actor=USER)


def test_get_unknown_ticket(uow):
    with pytest.raises(NotFoundError):
        get_ticket(42, uow)


def test_list_filters_by_status(uow):
    first = new_ticket(uow)
    new_ticket(uow)
    move(uow, first.id, TicketStatus.IN_PROGRESS)
    assert [t.id for t in list_tickets(uow, "in_progress")] == [first.id]
    assert len(list_tickets(uow)) == 2


def test_list_rejects_unknown_status(uow):
    with pytest.raises(ValidationError):
        list_tickets(uow, "archived")


def test_full_lifecycle_records_history(uow, notifier):
    ticket = new_ticket(uow)
    transition_ticket(ticket.id, "in_progress", TECH, uow, notifier=notifier)
    transition_ticket(ticket.id, "completed", TECH, uow, notifier=notifier)
    approved = approve_ticket(ticket.id, ADMIN, uow, notifier=notifier)

    assert approved.status == TicketStatus.APPROVED
    assert approved.approved_by == "admin-1"
    history = get_status_history(ticket.id, uow)
    assert [(c.from_status, c.to_status) for c in history] == [
        (TicketStatus.PENDING, TicketStatus.IN_PROGRESS),
        (TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED),
        (TicketStatus.COMPLETED, TicketStatus.APPROVED),
    ]
    assert [e for e, _ in notifier.events] == ["maintenance_status_changed"] * 3
    assert notifier.events[-1][1]["previousStatus"] == "completed"


def test_invalid_transition_leaves_ticket_untouched(uow, notifier):
    ticket = new_ticket(uow)
    with pytest.raises(InvalidTransitionError):
        transition_ticket(ticket.id, TicketStatus.COMPLETED, TECH, uow, notifier=notifier)
    assert get_ticket(ticket.id, uow).status == TicketStatus.PENDING
    assert get_status_history(ticket.id, uow) == []
    assert notifier.events == []


def test_admin_still_needs_ownership_to_start_work(uow):
    ticket = new_ticket(uow)
    with pytest.raises(ForbiddenError):
        transition_ticket(ticket.id, TicketStatus.IN_PROGRESS, ADMIN, uow)


def test_cancel_stores_trimmed_reason(uow):
    ticket = new_ticket(uow)
    cancelled = cancel_ticket(ticket.id, ADMIN, uow, reason="  duplicate report  ")
    assert cancelled.status == TicketStatus.CANCELLED
    assert cancelled.cancel_reason == "duplicate report"
    assert get_status_history(ticket.id, uow)[0].reason == "duplicate report"


@pytest.mark.parametrize("reason", ["no", "x" * 501])
def test_cancel_reason_length_is_checked(uow, reason):
    ticket = new_ticket(uow)
    with pytest.raises(ValidationError):
        cancel_ticket(ticket.id, ADMIN, uow, reason=reason)


@pytest.mark.parametrize("reason", ["x", "y" * 501])
def test_status_change_to_cancelled_checks_reason_too(uow, reason):
    ticket = new_ticket(uow)
    with pytest.raises(ValidationError):
        transition_ticket(ticket.id, TicketStatus.CANCELLED, TECH, uow, reason=reason)
    assert get_ticket(ticket.id, uow).status == TicketStatus.PENDING


def test_cancelled_ticket_is_terminal(uow):
    ticket = new_ticket(uow)
    cancel_ticket(ticket.id, TECH, uow)
    with pytest.raises(InvalidTransitionError):
        transition_ticket(ticket.id, TicketStatus.PENDING, ADMIN, uow)


def test_pending_update_applies_every_field(uow, notifier):
    ticket = new_ticket(uow)
    updated = update_ticket(
        ticket.id, {"priority": "low", "description": "filter clogged"}, TECH, uow, notifier=notifier
    )
    assert updated.priority == TicketPriority.LOW
    assert updated.description == "filter clogged"
    assert notifier.events[0][1]["changedFields"] == ["description", "priority"]


def test_in_progress_update_drops_priority_but_keeps_description(uow):
    ticket = new_ticket(uow)
    move(uow, ticket.id, TicketStatus.IN_PROGRESS)
    updated = update_ticket(ticket.id, {"priority": "high", "description": "replaced fan"}, TECH, uow)
    assert updated.priority == TicketPriority.MEDIUM
    assert updated.description == "replaced fan"


def test_completed_update_is_a_no_op(uow, notifier):
    ticket = new_ticket(uow)
    move(uow, ticket.id, TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED)
    updated = update_ticket(ticket.id, {"description": "late note"}, TECH, uow, notifier=notifier)
    assert updated.description is None
    assert notifier.events == []


def test_approved_ticket_rejects_updates(uow):
    ticket = new_ticket(uow)
    move(uow, ticket.id, TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED, TicketStatus.APPROVED)
    with pytest.raises(TicketLockedError):
        update_ticket(ticket.id, {"description": "too late"}, ADMIN, uow)


def test_delete_allowed_for_pending_and_cancelled_only(uow, notifier):
    pending = new_ticket(uow)
    cancelled = new_ticket(uow)
    working = new_ticket(uow)
    cancel_ticket(cancelled.id, TECH, uow)
    move(uow, working.id, TicketStatus.IN_PROGRESS)

    delete_ticket(pending.id, ADMIN, uow, notifier=notifier)
    delete_ticket(cancelled.id, ADMIN, uow)
    with pytest.raises(TicketLockedError):
        delete_ticket(working.id, ADMIN, uow)

    assert [t.id for t in list_tickets(uow)] == [working.id]
    assert notifier.events == [("maintenance_deleted", {"ticketId": pending.id, "deletedBy": "admin-1"})]


def test_only_admin_deletes(uow):
    ticket = new_ticket(uow)
    with pytest.raises(ForbiddenError):
        delete_ticket(ticket.id, TECH, uow)


def test_notifier_failure_does_not_undo_transition(uow):
    ticket = new_ticket(uow)
    transition_ticket(ticket.id, TicketStatus.IN_PROGRESS, TECH, uow, notifier=RecordingNotifier(fail=True))
    assert get_ticket(ticket.id, uow).status == TicketStatus.IN_PROGRESS
