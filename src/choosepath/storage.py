"""Relational schema and engine construction for persisted game state.

Two tables survive process restarts: ``game_sessions`` (one row per user,
keyed by the user id) and the append-only ``leaderboard``. The storage engine
is built explicitly and handed to the repositories that need it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameSessionRow(Base):
    """Saved progression for a single user."""

    __tablename__ = "game_sessions"

    user_id = Column(String(64), primary_key=True)
    current_scene = Column(String(50), nullable=False)
    hp = Column(Integer, nullable=False, default=100)
    inventory = Column(JSON, nullable=False, default=list)
    choices_made = Column(JSON, nullable=False, default=list)
    started_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class LeaderboardRow(Base):
    """One completed run."""

    __tablename__ = "leaderboard"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, index=True)
    ending_reached = Column(String(100), nullable=False)
    playtime_minutes = Column(Integer, nullable=False)
    final_hp = Column(Integer, nullable=False)
    choices_count = Column(Integer, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


def create_storage_engine(url: str, *, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for ``url``.

    SQLite databases get foreign keys and WAL journaling enabled on every
    connection. In-memory SQLite URLs share a single connection so every
    repository bound to the engine sees the same data.
    """

    parsed = make_url(url)
    options: dict[str, Any] = {"echo": echo}

    is_sqlite = parsed.get_backend_name() == "sqlite"
    if is_sqlite:
        options["connect_args"] = {"check_same_thread": False}
        database = parsed.database
        if not database or database == ":memory:":
            options["poolclass"] = StaticPool
        else:
            Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, **options)

    if is_sqlite:
        event.listen(engine, "connect", _apply_sqlite_pragmas)

    return engine


def _apply_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    del connection_record
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute("PRAGMA journal_mode = WAL")
    finally:
        cursor.close()


def init_schema(engine: Engine) -> None:
    """Create any missing tables."""

    Base.metadata.create_all(engine)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Return a session factory whose objects stay readable after commit."""

    return sessionmaker(bind=engine, expire_on_commit=False)


__all__ = [
    "Base",
    "GameSessionRow",
    "LeaderboardRow",
    "create_session_factory",
    "create_storage_engine",
    "init_schema",
]
