# sensornet_server/adapters/api/routes.py

from fastapi import APIRouter, Depends, Header
from sensornet_core.domain.models import Actor, Role
from starlette.requests import HTTPConnection

from sensornet_server.adapters.db.uow import SqlAlchemyUoW

router = APIRouter()


def get_uow():
    with SqlAlchemyUoW() as uow:
        yield uow


def get_runtime(conn: HTTPConnection):
    return conn.app.state.runtime


def get_actor(x_user_id: str = Header(...), x_user_role: Role = Header(...)) -> Actor:
    """Acting user, as forwarded by the gateway."""
    return Actor(user_id=x_user_id, role=x_user_role)


def ok(data=None, **extra) -> dict:
    return {"success": True, "data": data, **extra}


@router.get("/ping")
def ping():
    return {"status": "ok"}


@router.get("/health")
def health(runtime=Depends(get_runtime)):
    return {
        "status": "ok",
        "service": "telemetry",
        "fanout": runtime.fanout.state.value,
        "ingesting": runtime.started,
    }
