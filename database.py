# database.py
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import Session, sessionmaker

# --- THE BASE ---
# All our models (User, Club, Event, EventAttendance) inherit from this
Base = declarative_base()


class Database:
    """Owns the engine and session factory for one application instance."""

    def __init__(self, url: str):
        if url == "":
            raise ValueError("DATABASE URL is not configured. Please check env files")

        self.url = url

        # --- THE ENGINE ---
        # check_same_thread is needed only for SQLite
        if url.startswith("postgresql"):
            self.engine: Engine = create_engine(
                url,
                pool_size=20,
                max_overflow=10,
                pool_pre_ping=True,
                pool_recycle=3600
            )
        else:
            self.engine = create_engine(
                url,
                connect_args={"check_same_thread": False}
            )

        if url.startswith("sqlite"):
            # SQLite ignores ON DELETE / FK rules unless asked per connection
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        # --- THE SESSION ---
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# --- DEPENDENCY ---
# Opens a session for a request and closes it afterwards, even if there's an error.
def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.database.SessionLocal()
    try:
        yield db
    finally:
        db.close()
