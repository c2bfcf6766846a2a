import logging
from functools import lru_cache

from sensornet_core.config.environments import get_settings
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

log = logging.getLogger(__name__)

Base = declarative_base()


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    """Create the engine and session factory on first use."""
    settings = get_settings()
    log.info("Initializing database connection for %s environment", settings.ENVIRONMENT.value)

    engine = create_engine(settings.DATABASE_URL, future=True, echo=False, pool_pre_ping=True)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def SessionLocal() -> Session:
    return get_session_factory()()
