import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from sensornet_core.application import (
    get_available_metrics,
    get_history,
    get_latest,
    get_stats,
    get_summary,
    ingest_telemetry,
)
from sensornet_core.domain.errors import NotFoundError
from sensornet_core.domain.ports import utc_now

from sensornet_server.adapters.api.errors import error_response
from sensornet_server.adapters.api.routes import get_runtime, get_uow, ok
from sensornet_server.adapters.api.schemas import (
    AlertTestIn,
    MetricOverviewOut,
    StatsOut,
    SummaryBucketOut,
    TelemetryRecordOut,
    as_utc,
)
from sensornet_server.adapters.db.uow import SqlAlchemyUoW

log = logging.getLogger(__name__)

router = APIRouter(prefix="/telemetry", tags=["telemetry"])


@router.get("/device/{device_id}")
def device_history(
    device_id: str,
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    sensor_type: Optional[str] = Query(None, alias="sensorType"),
    metric: Optional[str] = None,
    limit: int = 1000,
    page: int = 1,
    uow: SqlAlchemyUoW = Depends(get_uow),
):
    records = get_history(
        device_id,
        uow,
        start=as_utc(start),
        end=as_utc(end),
        sensor_type=sensor_type,
        metric=metric,
        limit=limit,
        page=page,
    )
    return ok(
        [TelemetryRecordOut.from_domain(r) for r in records],
        pagination={"page": page, "limit": limit, "total": len(records)},
    )


@router.get("/latest/{device_id}")
def latest(
    device_id: str,
    sensor_type: Optional[str] = Query(None, alias="sensorType"),
    uow: SqlAlchemyUoW = Depends(get_uow),
):
    record = get_latest(device_id, uow, sensor_type)
    if record is None:
        raise NotFoundError("No telemetry found")
    return ok(TelemetryRecordOut.from_domain(record))


@router.get("/stats/{device_id}/{metric}")
def stats(
    device_id: str,
    metric: str,
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    sensor_type: Optional[str] = Query(None, alias="sensorType"),
    uow: SqlAlchemyUoW = Depends(get_uow),
):
    result = get_stats(device_id, metric, uow, start=as_utc(start), end=as_utc(end), sensor_type=sensor_type)
    if result is None:
        raise NotFoundError("No data found for the specified metric")
    return ok(StatsOut.from_domain(result))


@router.get("/summary/{device_id}/{metric}")
def summary(
    device_id: str,
    metric: str,
    interval: str = "1h",
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    sensor_type: Optional[str] = Query(None, alias="sensorType"),
    uow: SqlAlchemyUoW = Depends(get_uow),
):
    buckets = get_summary(
        device_id, metric, interval, uow, start=as_utc(start), end=as_utc(end), sensor_type=sensor_type
    )
    return ok([SummaryBucketOut.from_domain(b) for b in buckets], interval=interval, metric=metric)


@router.get("/metrics/{device_id}")
def metrics(
    device_id: str,
    sensor_type: Optional[str] = Query(None, alias="sensorType"),
    uow: SqlAlchemyUoW = Depends(get_uow),
):
    overview = get_available_metrics(device_id, uow, sensor_type)
    return ok([MetricOverviewOut.from_domain(o) for o in overview])


@router.post("/ingest/{device_id}", status_code=201)
def ingest(
    device_id: str,
    payload: Any = Body(...),
    uow: SqlAlchemyUoW = Depends(get_uow),
    runtime=Depends(get_runtime),
):
    record = ingest_telemetry(device_id, payload, uow, channel=runtime.channel, alerts=runtime.alerts)
    return ok(TelemetryRecordOut.from_domain(record))


@router.post("/alerts/test/{device_id}")
def trigger_test_alert(
    device_id: str,
    body: Optional[AlertTestIn] = None,
    runtime=Depends(get_runtime),
):
    message = body.message if body is not None else None
    try:
        runtime.alerts.send_test_alert(device_id, message, timestamp=utc_now())
    except Exception as exc:
        log.exception("Test alert for device %s failed", device_id)
        return error_response(502, f"Failed to send test alert: {exc}")
    return ok({"deviceId": device_id, "sent": True})
