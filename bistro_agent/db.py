"""Booking storage: SQLAlchemy model and the database service handle.

The handle is constructed explicitly and owned by whoever serves the API;
there is no module-level engine.

Usage:
    database = Database("sqlite:///./bookings.db")
    database.init()
    with database.session() as session:
        session.add(Booking(...))
    database.dispose()
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import DateTime, Integer, MetaData, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    """A committed restaurant booking."""

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    number_of_guests: Mapped[int] = mapped_column(Integer, nullable=False)
    booking_date: Mapped[str] = mapped_column(String(100), nullable=False)
    booking_time: Mapped[str] = mapped_column(String(100), nullable=False)
    cuisine_preference: Mapped[str] = mapped_column(String(200), nullable=False)
    special_requests: Mapped[str] = mapped_column(Text, nullable=False)
    seating_preference: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    weather_info: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, guests={self.number_of_guests}, "
            f"date={self.booking_date!r}, time={self.booking_time!r})>"
        )


class Database:
    """Engine and session factory with an explicit lifecycle."""

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.engine: Engine = self._create_engine(url, echo)
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        if url.startswith("sqlite"):
            kwargs: dict = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool
            return create_engine(url, echo=echo, **kwargs)
        return create_engine(url, echo=echo, pool_pre_ping=True)

    def init(self) -> None:
        """Create tables that do not exist yet."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database initialized")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Unit of work: commit on success, roll back and re-raise on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database connections closed")
