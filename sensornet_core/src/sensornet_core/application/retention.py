import logging
from datetime import timedelta

from sensornet_core.domain.ports import Clock, UnitOfWork, utc_now

log = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=365)


def purge_expired_telemetry(
    uow: UnitOfWork,
    *,
    retention: timedelta = DEFAULT_RETENTION,
    clock: Clock = utc_now,
) -> int:
    cutoff = clock() - retention
    with uow:
        deleted = uow.telemetry_repo().delete_older_than(cutoff)
    if deleted:
        log.info("Purged %d telemetry records received before %s", deleted, cutoff.isoformat())
    return deleted
