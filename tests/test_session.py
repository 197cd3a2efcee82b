"""Tests for the session value object."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from choosepath import ChoiceRecord, Session, clamp_hp


@pytest.mark.parametrize(
    "value, expected", [(-10, 0), (0, 0), (57, 57), (100, 100), (103, 100)]
)
def test_clamp_hp(value: int, expected: int) -> None:
    assert clamp_hp(value) == expected


def test_new_session_defaults() -> None:
    session = Session(user_id="u1", current_scene="start")

    assert session.hp == 100
    assert session.inventory == ()
    assert session.choice_log == ()
    assert session.started_at.tzinfo is not None


def test_session_clamps_and_normalises() -> None:
    naive = datetime(2024, 1, 1, 8, 30)
    session = Session(
        user_id=" u1 ",
        current_scene="start",
        hp=140,
        inventory=["Map", "Map"],
        started_at=naive,
    )

    assert session.user_id == "u1"
    assert session.hp == 100
    assert session.inventory == ("Map", "Map")
    assert session.started_at == naive.replace(tzinfo=timezone.utc)


def test_session_rejects_blank_identifiers() -> None:
    with pytest.raises(ValueError):
        Session(user_id="  ", current_scene="start")
    with pytest.raises(TypeError):
        Session(user_id="u1", current_scene="start", hp="100")  # type: ignore[arg-type]


def test_evolve_returns_a_new_session() -> None:
    session = Session(user_id="u1", current_scene="start", hp=50)

    updated = session.evolve(hp=40, inventory=session.inventory + ("Torch",))

    assert session.hp == 50 and session.inventory == ()
    assert updated.hp == 40 and updated.inventory == ("Torch",)


def test_choice_record_payload_round_trip() -> None:
    record = ChoiceRecord("riverside", "bridge", "Cross the rickety bridge carefully")

    assert ChoiceRecord.from_payload(record.to_payload()) == record


@pytest.mark.parametrize("payload", [{"scene": "start"}, ["start", "left", "text"]])
def test_choice_record_rejects_malformed_payloads(payload: object) -> None:
    with pytest.raises(ValueError):
        ChoiceRecord.from_payload(payload)
