from contextlib import AbstractContextManager
from typing import Optional

from sqlalchemy.orm import Session

from sensornet_server.adapters.db.session import SessionLocal


class SqlAlchemyUoW(AbstractContextManager):
    def __init__(self, session: Optional[Session] = None):
        self._external = session is not None
        self.session: Session = session or SessionLocal()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, *_):
        if self._external:
            return
        if exc_type:
            self.session.rollback()
        else:
            self.session.commit()
        self.session.close()

    def telemetry_repo(self):
        from sensornet_server.adapters.db.repository import SqlAlchemyTelemetryRepository

        return SqlAlchemyTelemetryRepository(self.session)

    def ticket_repo(self):
        from sensornet_server.adapters.db.repository import SqlAlchemyTicketRepository

        return SqlAlchemyTicketRepository(self.session)
