"""Tests for the session repositories."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session as DbSession

from choosepath import (
    ChoiceRecord,
    InMemorySessionRepository,
    Session,
    SessionRepository,
    SqlSessionRepository,
    create_storage_engine,
    init_schema,
)
from choosepath.storage import GameSessionRow


@pytest.fixture(params=["memory", "sql"])
def repository(request: pytest.FixtureRequest, storage: Engine) -> SessionRepository:
    if request.param == "memory":
        return InMemorySessionRepository()
    return SqlSessionRepository(storage)


def _session(**overrides: object) -> Session:
    values: dict[str, object] = {
        "user_id": "player-1",
        "current_scene": "dark_woods",
        "hp": 80,
        "inventory": ("River Stone", "River Stone"),
        "choice_log": (
            ChoiceRecord("start", "left", "Take the left path through the dark woods"),
        ),
        "started_at": datetime(2024, 5, 1, 9, 15, 30, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return Session(**values)  # type: ignore[arg-type]


def test_find_missing_returns_none(repository: SessionRepository) -> None:
    assert repository.find("nobody") is None


def test_save_then_find_round_trip(repository: SessionRepository) -> None:
    session = _session()
    repository.save(session)

    assert repository.find("player-1") == session


def test_save_replaces_previous_record(repository: SessionRepository) -> None:
    repository.save(_session())
    replacement = _session(current_scene="start", hp=100, inventory=(), choice_log=())
    repository.save(replacement)

    assert repository.find("player-1") == replacement


def test_delete_is_idempotent(repository: SessionRepository) -> None:
    repository.save(_session())

    repository.delete("player-1")
    repository.delete("player-1")

    assert repository.find("player-1") is None


def test_sessions_are_independent_per_user(repository: SessionRepository) -> None:
    repository.save(_session(user_id="a"))
    repository.save(_session(user_id="b", hp=10))
    repository.delete("a")

    remaining = repository.find("b")
    assert remaining is not None and remaining.hp == 10
    assert repository.find("a") is None


def test_repository_validates_identifier(repository: SessionRepository) -> None:
    with pytest.raises(ValueError):
        repository.find("   ")
    with pytest.raises(TypeError):
        repository.delete(42)  # type: ignore[arg-type]


def test_sql_repository_keeps_one_row_per_user(storage: Engine) -> None:
    repository = SqlSessionRepository(storage)
    for hp in (90, 80, 70):
        repository.save(_session(hp=hp))

    with DbSession(storage) as db:
        count = db.execute(select(func.count()).select_from(GameSessionRow)).scalar_one()
        row = db.get(GameSessionRow, "player-1")

    assert count == 1
    assert row is not None and row.hp == 70
    assert row.choices_made == [
        {
            "scene": "start",
            "choice": "left",
            "text": "Take the left path through the dark woods",
        }
    ]


def test_sql_repository_survives_reconnect(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'data' / 'game.db'}"
    first = create_storage_engine(url)
    init_schema(first)
    SqlSessionRepository(first).save(_session())
    first.dispose()

    second = create_storage_engine(url)
    restored = SqlSessionRepository(second).find("player-1")
    second.dispose()

    assert restored == _session()
