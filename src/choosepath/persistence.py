"""Session persistence for the progression engine."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict

from sqlalchemy import delete
from sqlalchemy.engine import Engine

from .session import ChoiceRecord, Session, ensure_utc
from .storage import GameSessionRow, create_session_factory


class SessionRepository(ABC):
    """Interface describing how the single live session per user is stored."""

    @abstractmethod
    def find(self, user_id: str) -> Session | None:
        """Return the stored session for ``user_id`` or ``None``."""

    @abstractmethod
    def save(self, session: Session) -> None:
        """Insert or fully replace the session stored for ``session.user_id``."""

    @abstractmethod
    def delete(self, user_id: str) -> None:
        """Remove the stored session if it exists."""


class InMemorySessionRepository(SessionRepository):
    """Keep sessions in local process memory."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def find(self, user_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(_validate_user_id(user_id))

    def save(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.user_id] = session

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._sessions.pop(_validate_user_id(user_id), None)


class SqlSessionRepository(SessionRepository):
    """Persist sessions as rows of the ``game_sessions`` table.

    The user id is the table's primary key, so a save either inserts the
    user's row or overwrites every column of it within one transaction.
    """

    def __init__(self, engine: Engine) -> None:
        self._session_factory = create_session_factory(engine)

    def find(self, user_id: str) -> Session | None:
        key = _validate_user_id(user_id)
        with self._session_factory() as db:
            row = db.get(GameSessionRow, key)
            if row is None:
                return None
            return _session_from_row(row)

    def save(self, session: Session) -> None:
        now = datetime.now(timezone.utc)
        with self._session_factory.begin() as db:
            row = db.get(GameSessionRow, session.user_id)
            if row is None:
                row = GameSessionRow(user_id=session.user_id, created_at=now)
                db.add(row)
            row.current_scene = session.current_scene
            row.hp = session.hp
            row.inventory = list(session.inventory)
            row.choices_made = [entry.to_payload() for entry in session.choice_log]
            row.started_at = session.started_at
            row.updated_at = now

    def delete(self, user_id: str) -> None:
        key = _validate_user_id(user_id)
        with self._session_factory.begin() as db:
            db.execute(delete(GameSessionRow).where(GameSessionRow.user_id == key))


def _session_from_row(row: GameSessionRow) -> Session:
    return Session(
        user_id=row.user_id,
        current_scene=row.current_scene,
        hp=row.hp,
        inventory=tuple(str(item) for item in row.inventory or ()),
        choice_log=tuple(
            ChoiceRecord.from_payload(entry) for entry in row.choices_made or ()
        ),
        started_at=ensure_utc(row.started_at),
    )


def _validate_user_id(user_id: str) -> str:
    if not isinstance(user_id, str):
        raise TypeError("user_id must be a string")
    stripped = user_id.strip()
    if not stripped:
        raise ValueError("user_id must be a non-empty string")
    return stripped


__all__ = [
    "SessionRepository",
    "InMemorySessionRepository",
    "SqlSessionRepository",
]
