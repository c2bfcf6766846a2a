import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config

log = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[4] / "alembic.ini"


def alembic_config(url: Optional[str] = None, *, configure_logger: bool = True) -> Config:
    """Alembic config for the bundled migrations; ``url`` overrides the settings URL."""
    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    if url:
        cfg.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    cfg.attributes["configure_logger"] = configure_logger
    return cfg


def upgrade_database(url: Optional[str] = None, revision: str = "head", **kwargs) -> None:
    log.info("Upgrading database schema to %s", revision)
    command.upgrade(alembic_config(url, **kwargs), revision)


def downgrade_database(revision: str, url: Optional[str] = None, **kwargs) -> None:
    log.info("Downgrading database schema to %s", revision)
    command.downgrade(alembic_config(url, **kwargs), revision)
