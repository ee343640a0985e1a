"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for profile and match storage.
"""

from datetime import datetime
from pathlib import Path

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class ProfileRecord(Base):
    """Participant profile."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    role = Column(String, nullable=False, index=True)  # sponsor, sponsee, both
    recovery_program = Column(String, nullable=True, index=True)
    sobriety_start_date = Column(Date, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    approach = Column(Text, nullable=False, default="")
    availability = Column(JSON, nullable=False, default=list)
    bio = Column(Text, nullable=True)
    preferences = Column(JSON, nullable=False, default=dict)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class MatchRecord(Base):
    """Relationship between a user and a candidate they were shown."""

    __tablename__ = "matches"
    __table_args__ = (UniqueConstraint("user_id", "candidate_id", name="uq_match_pair"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    candidate_id = Column(String, nullable=False)
    status = Column(String, nullable=False)  # suggested, requested, declined, connected
    compatibility_score = Column(Integer, nullable=True)
    requested_at = Column(DateTime, nullable=True)
    declined_at = Column(DateTime, nullable=True)
    connected_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


def get_engine(db_path: Path) -> Engine:
    """
    Create an engine for a SQLite file.

    Connections may be used from the fetch thread pool, so SQLite's
    same-thread check is disabled.
    """
    return create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(db_path)
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = get_engine(db_path)
    Session = sessionmaker(bind=engine)
    return Session()
