"""Test configuration for the Choose Your Path project."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest
from sqlalchemy.engine import Engine

from choosepath import (
    InMemoryLeaderboard,
    InMemorySessionRepository,
    ProgressionEngine,
    SceneStore,
    SqlLeaderboard,
    SqlSessionRepository,
    create_storage_engine,
    init_schema,
)


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def scene_store() -> SceneStore:
    """Return a store serving the bundled story."""

    return SceneStore.default()


@pytest.fixture()
def engine(scene_store: SceneStore, clock: FakeClock) -> ProgressionEngine:
    """Return an engine backed by in-memory repositories."""

    return ProgressionEngine(
        scenes=scene_store,
        sessions=InMemorySessionRepository(),
        leaderboard=InMemoryLeaderboard(),
        clock=clock,
    )


@pytest.fixture()
def storage() -> Iterator[Engine]:
    """Return an in-memory SQLite engine with the schema created."""

    storage_engine = create_storage_engine("sqlite:///:memory:")
    init_schema(storage_engine)
    yield storage_engine
    storage_engine.dispose()


@pytest.fixture()
def sql_engine(
    scene_store: SceneStore, storage: Engine, clock: FakeClock
) -> ProgressionEngine:
    """Return an engine backed by SQL repositories sharing one database."""

    return ProgressionEngine(
        scenes=scene_store,
        sessions=SqlSessionRepository(storage),
        leaderboard=SqlLeaderboard(storage),
        clock=clock,
    )


__all__ = ["FakeClock"]
