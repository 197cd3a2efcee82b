"""The per-user progression record and its serialised form."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping

MIN_HP = 0
MAX_HP = 100


def clamp_hp(value: int) -> int:
    """Clamp ``value`` to the closed interval ``[MIN_HP, MAX_HP]``."""

    return max(MIN_HP, min(MAX_HP, value))


def _validate_label(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value)!r}")

    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} must be a non-empty string")
    return stripped


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC timestamp, treating naive values as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class ChoiceRecord:
    """One entry of a session's choice log."""

    scene: str
    choice: str
    text: str

    def to_payload(self) -> dict[str, str]:
        return {"scene": self.scene, "choice": self.choice, "text": self.text}

    @classmethod
    def from_payload(cls, payload: Any) -> "ChoiceRecord":
        if not isinstance(payload, Mapping):
            raise ValueError("Choice log entries must be objects")
        try:
            return cls(
                scene=str(payload["scene"]),
                choice=str(payload["choice"]),
                text=str(payload["text"]),
            )
        except KeyError as exc:
            raise ValueError(f"Choice log entry is missing {exc.args[0]!r}") from exc


@dataclass(frozen=True)
class Session:
    """A user's live position in the story graph.

    Sessions are value objects: the engine derives a successor with
    :meth:`evolve` instead of mutating a record in place, so a failed save
    never leaves a half-applied session visible to later reads.
    """

    user_id: str
    current_scene: str
    hp: int = MAX_HP
    inventory: tuple[str, ...] = ()
    choice_log: tuple[ChoiceRecord, ...] = ()
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "user_id", _validate_label(self.user_id, "user id"))
        object.__setattr__(
            self, "current_scene", _validate_label(self.current_scene, "current scene")
        )
        if isinstance(self.hp, bool) or not isinstance(self.hp, int):
            raise TypeError(f"hp must be an integer, got {type(self.hp)!r}")
        object.__setattr__(self, "hp", clamp_hp(self.hp))
        object.__setattr__(
            self,
            "inventory",
            tuple(_validate_label(item, "item") for item in self.inventory),
        )
        object.__setattr__(self, "choice_log", tuple(self.choice_log))
        object.__setattr__(self, "started_at", ensure_utc(self.started_at))

    @property
    def choice_count(self) -> int:
        return len(self.choice_log)

    def evolve(self, **changes: Any) -> "Session":
        """Return a copy of this session with ``changes`` applied."""

        return replace(self, **changes)


__all__ = [
    "MIN_HP",
    "MAX_HP",
    "ChoiceRecord",
    "Session",
    "clamp_hp",
    "ensure_utc",
]
