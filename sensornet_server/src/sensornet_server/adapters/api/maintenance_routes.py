from typing import Optional

from fastapi import APIRouter, Depends
from sensornet_core.application import (
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
from sensornet_core.domain.models import Actor

from sensornet_server.adapters.api.routes import get_actor, get_runtime, get_uow, ok
from sensornet_server.adapters.api.schemas import (
    CancelIn,
    StatusChangeIn,
    StatusChangeOut,
    TicketCreateIn,
    TicketOut,
    TicketUpdateIn,
    as_utc,
)
from sensornet_server.adapters.db.uow import SqlAlchemyUoW

router = APIRouter(prefix="/maintenance", tags=["maintenance"])

# fields a bounded update may clear; null for any other field means "leave as is"
NULLABLE_FIELDS = {"description", "damage_image"}


@router.post("", status_code=201)
def create(
    body: TicketCreateIn,
    actor: Actor = Depends(get_actor),
    uow: SqlAlchemyUoW = Depends(get_uow),
    runtime=Depends(get_runtime),
):
    ticket = create_ticket(
        date=as_utc(body.date),
        responsible_id=body.responsible_id,
        device_id=body.device_id,
        priority=body.priority,
        description=body.description,
        damage_image=body.damage_image,
        actor=actor,
        uow=uow,
        notifier=runtime.hub,
    )
    return ok(TicketOut.from_domain(ticket))


@router.get("")
def index(status: Optional[str] = None, uow: SqlAlchemyUoW = Depends(get_uow)):
    return ok([TicketOut.from_domain(t) for t in list_tickets(uow, status)])


@router.get("/{ticket_id}")
def show(ticket_id: int, uow: SqlAlchemyUoW = Depends(get_uow)):
    return ok(TicketOut.from_domain(get_ticket(ticket_id, uow)))


@router.get("/{ticket_id}/history")
def history(ticket_id: int, uow: SqlAlchemyUoW = Depends(get_uow)):
    return ok([StatusChangeOut.from_domain(c) for c in get_status_history(ticket_id, uow)])


@router.patch("/{ticket_id}/status")
def change_status(
    ticket_id: int,
    body: StatusChangeIn,
    actor: Actor = Depends(get_actor),
    uow: SqlAlchemyUoW = Depends(get_uow),
    runtime=Depends(get_runtime),
):
    ticket = transition_ticket(ticket_id, body.status, actor, uow, reason=body.reason, notifier=runtime.hub)
    return ok(TicketOut.from_domain(ticket))


@router.patch("/{ticket_id}/approve")
def approve(
    ticket_id: int,
    actor: Actor = Depends(get_actor),
    uow: SqlAlchemyUoW = Depends(get_uow),
    runtime=Depends(get_runtime),
):
    return ok(TicketOut.from_domain(approve_ticket(ticket_id, actor, uow, notifier=runtime.hub)))


@router.patch("/{ticket_id}/cancel")
def cancel(
    ticket_id: int,
    body: Optional[CancelIn] = None,
    actor: Actor = Depends(get_actor),
    uow: SqlAlchemyUoW = Depends(get_uow),
    runtime=Depends(get_runtime),
):
    reason = body.reason if body is not None else None
    return ok(TicketOut.from_domain(cancel_ticket(ticket_id, actor, uow, reason=reason, notifier=runtime.hub)))


@router.put("/{ticket_id}")
def update(
    ticket_id: int,
    body: TicketUpdateIn,
    actor: Actor = Depends(get_actor),
    uow: SqlAlchemyUoW = Depends(get_uow),
    runtime=Depends(get_runtime),
):
    changes = {
        name: value
        for name, value in body.model_dump(exclude_unset=True).items()
        if value is not None or name in NULLABLE_FIELDS
    }
    if "date" in changes:
        changes["date"] = as_utc(changes["date"])
    ticket = update_ticket(ticket_id, changes, actor, uow, notifier=runtime.hub)
    return ok(TicketOut.from_domain(ticket))


@router.delete("/{ticket_id}")
def remove(
    ticket_id: int,
    actor: Actor = Depends(get_actor),
    uow: SqlAlchemyUoW = Depends(get_uow),
    runtime=Depends(get_runtime),
):
    delete_ticket(ticket_id, actor, uow, notifier=runtime.hub)
    return ok({"id": ticket_id})
