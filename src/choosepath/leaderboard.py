"""Append-only record of completed runs."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from .session import ensure_utc
from .storage import LeaderboardRow, create_session_factory


class LeaderboardOrder(str, Enum):
    """Supported orderings for leaderboard queries."""

    RANKED = "ranked"
    RECENT = "recent"


@dataclass(frozen=True)
class LeaderboardEntry:
    """An immutable record of one completed run."""

    username: str
    ending_kind: str
    playtime_minutes: int
    final_hp: int
    choice_count: int
    completed_at: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "completed_at", ensure_utc(self.completed_at))

    def rank_key(self) -> tuple[int, int, int, datetime]:
        """Sort key: most HP, then fastest, then most choices, then earliest."""

        return (
            -self.final_hp,
            self.playtime_minutes,
            -self.choice_count,
            self.completed_at,
        )


@dataclass(frozen=True)
class LeaderboardStats:
    """Aggregate figures shown alongside the leaderboard table."""

    total_games: int
    unique_players: int
    average_playtime_minutes: float


class LeaderboardSink(ABC):
    """Interface for storing and querying completed runs."""

    @abstractmethod
    def append(self, entry: LeaderboardEntry) -> None:
        """Insert ``entry``; existing entries are never updated or removed."""

    @abstractmethod
    def top(
        self,
        limit: int,
        order_by: LeaderboardOrder = LeaderboardOrder.RANKED,
    ) -> List[LeaderboardEntry]:
        """Return up to ``limit`` entries in the requested order."""

    @abstractmethod
    def stats(self) -> LeaderboardStats:
        """Return aggregate statistics across every recorded run."""


class InMemoryLeaderboard(LeaderboardSink):
    """Keep leaderboard entries in local process memory."""

    def __init__(self) -> None:
        self._entries: list[LeaderboardEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: LeaderboardEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def top(
        self,
        limit: int,
        order_by: LeaderboardOrder = LeaderboardOrder.RANKED,
    ) -> List[LeaderboardEntry]:
        _validate_limit(limit)
        with self._lock:
            entries = list(self._entries)

        if LeaderboardOrder(order_by) is LeaderboardOrder.RECENT:
            ordered = [
                entry
                for _, entry in sorted(
                    enumerate(entries),
                    key=lambda item: (item[1].completed_at, item[0]),
                    reverse=True,
                )
            ]
        else:
            ordered = sorted(entries, key=LeaderboardEntry.rank_key)
        return ordered[:limit]

    def stats(self) -> LeaderboardStats:
        with self._lock:
            entries = list(self._entries)

        if not entries:
            return LeaderboardStats(0, 0, 0.0)

        average = sum(entry.playtime_minutes for entry in entries) / len(entries)
        return LeaderboardStats(
            total_games=len(entries),
            unique_players=len({entry.username for entry in entries}),
            average_playtime_minutes=round(average, 1),
        )


class SqlLeaderboard(LeaderboardSink):
    """Persist leaderboard entries in the ``leaderboard`` table."""

    def __init__(self, engine: Engine) -> None:
        self._session_factory = create_session_factory(engine)

    def append(self, entry: LeaderboardEntry) -> None:
        with self._session_factory.begin() as db:
            db.add(
                LeaderboardRow(
                    username=entry.username,
                    ending_reached=entry.ending_kind,
                    playtime_minutes=entry.playtime_minutes,
                    final_hp=entry.final_hp,
                    choices_count=entry.choice_count,
                    completed_at=entry.completed_at,
                )
            )

    def top(
        self,
        limit: int,
        order_by: LeaderboardOrder = LeaderboardOrder.RANKED,
    ) -> List[LeaderboardEntry]:
        _validate_limit(limit)
        statement = select(LeaderboardRow)
        if LeaderboardOrder(order_by) is LeaderboardOrder.RECENT:
            statement = statement.order_by(
                LeaderboardRow.completed_at.desc(), LeaderboardRow.id.desc()
            )
        else:
            statement = statement.order_by(
                LeaderboardRow.final_hp.desc(),
                LeaderboardRow.playtime_minutes.asc(),
                LeaderboardRow.choices_count.desc(),
                LeaderboardRow.completed_at.asc(),
                LeaderboardRow.id.asc(),
            )

        with self._session_factory() as db:
            rows = db.execute(statement.limit(limit)).scalars().all()
            return [_entry_from_row(row) for row in rows]

    def stats(self) -> LeaderboardStats:
        statement = select(
            func.count(LeaderboardRow.id),
            func.count(func.distinct(LeaderboardRow.username)),
            func.avg(LeaderboardRow.playtime_minutes),
        )
        with self._session_factory() as db:
            total, unique_players, average = db.execute(statement).one()

        return LeaderboardStats(
            total_games=int(total or 0),
            unique_players=int(unique_players or 0),
            average_playtime_minutes=round(float(average or 0), 1),
        )


def _entry_from_row(row: LeaderboardRow) -> LeaderboardEntry:
    return LeaderboardEntry(
        username=row.username,
        ending_kind=row.ending_reached,
        playtime_minutes=row.playtime_minutes,
        final_hp=row.final_hp,
        choice_count=row.choices_count,
        completed_at=row.completed_at,
    )


def _validate_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise TypeError("limit must be an integer")
    if limit < 0:
        raise ValueError("limit must not be negative")


__all__ = [
    "LeaderboardEntry",
    "LeaderboardOrder",
    "LeaderboardSink",
    "LeaderboardStats",
    "InMemoryLeaderboard",
    "SqlLeaderboard",
]
