from .alerting import ThresholdAlertEngine
from .cooldown import CooldownTracker
from .ingest_telemetry import ingest_telemetry
from .manage_tickets import (
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
from .publish_latest import publish_latest
from .query_telemetry import get_available_metrics, get_history, get_latest, get_stats, get_summary
from .retention import purge_expired_telemetry

__all__ = [
    "ThresholdAlertEngine",
    "CooldownTracker",
    "ingest_telemetry",
    "publish_latest",
    "approve_ticket",
    "cancel_ticket",
    "create_ticket",
    "delete_ticket",
    "get_status_history",
    "get_ticket",
    "list_tickets",
    "transition_ticket",
    "update_ticket",
    "get_available_metrics",
    "get_history",
    "get_latest",
    "get_stats",
    "get_summary",
    "purge_expired_telemetry",
]
