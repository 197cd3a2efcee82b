"""Tests for the leaderboard sinks."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.engine import Engine

from choosepath import (
    InMemoryLeaderboard,
    LeaderboardEntry,
    LeaderboardOrder,
    LeaderboardSink,
    LeaderboardStats,
    SqlLeaderboard,
)

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sql"])
def leaderboard(request: pytest.FixtureRequest, storage: Engine) -> LeaderboardSink:
    if request.param == "memory":
        return InMemoryLeaderboard()
    return SqlLeaderboard(storage)


def _entry(
    username: str,
    *,
    hp: int,
    minutes: int,
    choices: int,
    offset: int = 0,
    ending: str = "victory",
) -> LeaderboardEntry:
    return LeaderboardEntry(
        username=username,
        ending_kind=ending,
        playtime_minutes=minutes,
        final_hp=hp,
        choice_count=choices,
        completed_at=BASE_TIME + timedelta(minutes=offset),
    )


def test_empty_leaderboard(leaderboard: LeaderboardSink) -> None:
    assert leaderboard.top(10) == []
    assert leaderboard.stats() == LeaderboardStats(0, 0, 0.0)


def test_ranked_order(leaderboard: LeaderboardSink) -> None:
    slow = _entry("slow", hp=90, minutes=12, choices=4, offset=0)
    fast = _entry("fast", hp=90, minutes=6, choices=4, offset=1)
    chatty = _entry("chatty", hp=90, minutes=6, choices=7, offset=2)
    healthy = _entry("healthy", hp=100, minutes=30, choices=2, offset=3)
    fallen = _entry("fallen", hp=0, minutes=1, choices=9, offset=4, ending="defeat")
    for entry in (slow, fast, chatty, healthy, fallen):
        leaderboard.append(entry)

    assert leaderboard.top(10) == [healthy, chatty, fast, slow, fallen]


def test_ranked_ties_keep_earliest_first(leaderboard: LeaderboardSink) -> None:
    later = _entry("later", hp=80, minutes=5, choices=3, offset=10)
    earlier = _entry("earlier", hp=80, minutes=5, choices=3, offset=2)
    leaderboard.append(later)
    leaderboard.append(earlier)

    assert leaderboard.top(2, LeaderboardOrder.RANKED) == [earlier, later]


def test_recent_order(leaderboard: LeaderboardSink) -> None:
    entries = [_entry(f"p{index}", hp=50, minutes=5, choices=3, offset=index) for index in range(4)]
    for entry in entries:
        leaderboard.append(entry)

    assert leaderboard.top(3, "recent") == list(reversed(entries))[:3]  # type: ignore[arg-type]


def test_limit_truncates_and_zero_is_empty(leaderboard: LeaderboardSink) -> None:
    for index in range(5):
        leaderboard.append(_entry(f"p{index}", hp=index * 10, minutes=5, choices=3))

    assert [entry.username for entry in leaderboard.top(2)] == ["p4", "p3"]
    assert leaderboard.top(0) == []


@pytest.mark.parametrize("limit, error", [(-1, ValueError), ("5", TypeError), (True, TypeError)])
def test_limit_validation(leaderboard: LeaderboardSink, limit: object, error: type) -> None:
    with pytest.raises(error):
        leaderboard.top(limit)  # type: ignore[arg-type]


def test_entries_are_never_replaced(leaderboard: LeaderboardSink) -> None:
    first = _entry("alice", hp=40, minutes=9, choices=5, offset=0)
    second = _entry("alice", hp=95, minutes=4, choices=3, offset=5)
    leaderboard.append(first)
    leaderboard.append(second)

    assert leaderboard.top(10) == [second, first]


def test_stats(leaderboard: LeaderboardSink) -> None:
    leaderboard.append(_entry("alice", hp=70, minutes=4, choices=3, offset=0))
    leaderboard.append(_entry("alice", hp=90, minutes=5, choices=3, offset=1))
    leaderboard.append(_entry("bob", hp=10, minutes=12, choices=6, offset=2))

    stats = leaderboard.stats()

    assert stats.total_games == 3
    assert stats.unique_players == 2
    assert stats.average_playtime_minutes == pytest.approx(7.0)


def test_stats_average_is_rounded(leaderboard: LeaderboardSink) -> None:
    for minutes in (1, 2, 2):
        leaderboard.append(_entry("carol", hp=50, minutes=minutes, choices=3))

    assert leaderboard.stats().average_playtime_minutes == pytest.approx(1.7)


def test_rank_key_orders_like_sql() -> None:
    entries = [
        _entry("a", hp=50, minutes=5, choices=3, offset=1),
        _entry("b", hp=50, minutes=5, choices=4, offset=2),
        _entry("c", hp=60, minutes=9, choices=1, offset=3),
    ]

    assert [entry.username for entry in sorted(entries, key=LeaderboardEntry.rank_key)] == [
        "c",
        "b",
        "a",
    ]


def test_naive_completion_time_is_treated_as_utc() -> None:
    entry = LeaderboardEntry(
        username="dave",
        ending_kind="victory",
        playtime_minutes=3,
        final_hp=88,
        choice_count=2,
        completed_at=datetime(2024, 5, 1, 12, 0),
    )

    assert entry.completed_at == BASE_TIME


def test_recent_ties_list_newest_insert_first(leaderboard: LeaderboardSink) -> None:
    first = _entry("first", hp=50, minutes=5, choices=3, offset=0)
    second = _entry("second", hp=60, minutes=4, choices=2, offset=0)
    leaderboard.append(first)
    leaderboard.append(second)

    assert leaderboard.top(2, LeaderboardOrder.RECENT) == [second, first]
