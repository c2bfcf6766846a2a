"""
Canonical entry point for sensornet_core package.

This package contains domain models, application services, and configuration.
It does not include adapters or process orchestration.
"""

import sys

from sensornet_core.config.environments import get_settings


def main() -> None:
    """Main entry point for sensornet_core package."""
    print("sensornet_core - Domain and application layer package")
    print("This package is not intended to be run directly.")
    print("Use the sensornet_server package instead.")

    # Show current configuration
    try:
        config = get_settings()
        print("\nCurrent configuration:")
        print(f"Environment: {config.ENVIRONMENT}")
        print(f"Database: {config.DATABASE_URL}")
        print(f"MQTT: {config.MQTT_BROKER}:{config.MQTT_PORT} ({config.MQTT_TOPIC})")
        print(f"Fanout exchange: {config.RABBITMQ_EXCHANGE}")
        print(f"Alert cooldown: {config.ALERT_COOLDOWN_SEC}s")
        print(f"API: {config.API_HOST}:{config.API_PORT}")
    except Exception as e:
        print(f"Could not load configuration: {e}")

    sys.exit(0)


if __name__ == "__main__":
    main()
