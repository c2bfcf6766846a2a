"""
Canonical entry point for sensornet_server package.

Usage:
    sensornet-api --environment development
    sensornet-server --environment development
    sensornet-setup-db --environment development
    python -m sensornet_server migrate --environment production
    python -m sensornet_server purge-telemetry --environment production
"""

import argparse
import logging
import os
import sys

import uvicorn
from sensornet_core.config.environments import get_settings


def setup_logging(config) -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    return None


def run_api_server(args: argparse.Namespace) -> None:
    """Run the FastAPI server, with MQTT ingestion unless --no-ingest is given."""
    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    # Override with command line arguments
    host = args.host or config.API_HOST
    port = args.port or config.API_PORT
    reload = args.reload and args.environment != "production"

    log.info("Starting API server...")
    log.info(f"Environment: {args.environment}")
    log.info(f"Host: {host}")
    log.info(f"Port: {port}")
    log.info(f"Reload: {reload}")
    log.info(f"Ingestion: {'off' if args.no_ingest else 'on'}")

    uvicorn.run(
        "sensornet_server.adapters.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=config.LOG_LEVEL.lower(),
    )
    return None


def run_ingest_server(args: argparse.Namespace) -> None:
    """Run the MQTT ingestion pipeline without HTTP."""
    from sensornet_server.runtime import ServiceRuntime, serve

    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    log.info("Starting ingestion server...")
    log.info(f"Environment: {args.environment}")
    log.info(f"MQTT Broker: {config.MQTT_BROKER}:{config.MQTT_PORT}")
    log.info(f"Topic: {config.MQTT_TOPIC}")
    log.info(f"Fanout exchange: {config.RABBITMQ_EXCHANGE}")

    serve(ServiceRuntime(config))
    return None


def setup_database(args: argparse.Namespace) -> None:
    """Set up the database."""
    from sqlalchemy import create_engine

    from sensornet_server.adapters.db.sqlalchemy_models import Base

    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    log.info(f"Setting up database for {args.environment} environment...")
    log.info(f"Database URL: {config.DATABASE_URL}")

    engine = create_engine(config.DATABASE_URL, future=True, echo=False)
    Base.metadata.create_all(bind=engine)
    log.info("Database setup completed successfully")
    return None


def migrate_database(args: argparse.Namespace) -> None:
    """Apply the Alembic migrations up to the latest revision."""
    from sensornet_server.adapters.db.migrations import upgrade_database

    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    log.info(f"Migrating database for {args.environment} environment...")
    upgrade_database(config.DATABASE_URL, configure_logger=False)
    log.info("Database migration completed successfully")
    return None


def purge_telemetry(args: argparse.Namespace) -> None:
    """Delete telemetry older than the retention window once and exit."""
    from datetime import timedelta

    from sensornet_core.application import purge_expired_telemetry

    from sensornet_server.adapters.db.uow import SqlAlchemyUoW

    config = get_settings()
    setup_logging(config)
    log = logging.getLogger(__name__)

    deleted = purge_expired_telemetry(SqlAlchemyUoW(), retention=timedelta(days=config.TELEMETRY_RETENTION_DAYS))
    log.info(f"Purged {deleted} telemetry records older than {config.TELEMETRY_RETENTION_DAYS} days")
    return None


def main(argv=None) -> None:
    """Main entry point for sensornet_server commands."""
    parser = argparse.ArgumentParser(description="SensorNet - telemetry API, ingestion and database management")
    parser.add_argument(
        "--environment",
        choices=["production", "development", "testing"],
        default="development",
        help="Environment to run in",
    )
    parser.add_argument(
        "command",
        choices=["api", "server", "setup-db", "migrate", "purge-telemetry"],
        help="Command to run",
    )
    parser.add_argument("--host", help="Host to bind to (overrides config)")
    parser.add_argument("--port", type=int, help="Port to bind to (overrides config)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (development only)")
    parser.add_argument("--no-ingest", action="store_true", help="Serve the API without the MQTT pipeline")

    args = parser.parse_args(argv)

    # Set environment variables for config
    os.environ["SENSORNET_ENV"] = args.environment
    if args.no_ingest:
        os.environ["SENSORNET_API_INGEST"] = "0"

    if args.command == "api":
        run_api_server(args)
    elif args.command == "server":
        run_ingest_server(args)
    elif args.command == "setup-db":
        setup_database(args)
    elif args.command == "migrate":
        migrate_database(args)
    elif args.command == "purge-telemetry":
        purge_telemetry(args)
    else:
        parser.print_help()
        sys.exit(1)


def api() -> None:
    main(["api", *sys.argv[1:]])


def server() -> None:
    main(["server", *sys.argv[1:]])


def setup_db() -> None:
    main(["setup-db", *sys.argv[1:]])


if __name__ == "__main__":
    main()
