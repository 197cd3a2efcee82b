"""The progression engine: the state machine that walks a player through scenes.

The engine is the only writer of session state and the only producer of
leaderboard entries. Reaching an ending is a two-step affair for callers:
``advance`` moves the session onto the ending scene so it can still be shown,
and a later ``is_terminal`` check followed by ``terminate`` closes the run.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Iterable, Literal, Mapping

from .errors import InvalidChoiceError, NoActiveSessionError
from .leaderboard import LeaderboardEntry, LeaderboardSink
from .persistence import SessionRepository
from .scenes import START_SCENE, Scene, SceneStore
from .session import MAX_HP, ChoiceRecord, Session, clamp_hp, ensure_utc

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
GameAction = Literal["start_game", "choice_made", "game_complete"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class GameEvent:
    """Notification published after a committed state change.

    ``context`` carries ``scene``/``choice`` for ``choice_made`` and
    ``ending`` for ``game_complete``; it is empty for ``start_game``.

    ``session`` is the state after the change, except for ``game_complete``:
    the stored session has been deleted by then, so the event carries the
    session as it stood on the ending scene just before deletion.
    """

    action: GameAction
    session: Session
    context: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "context", MappingProxyType(dict(self.context)))


GameEventListener = Callable[[GameEvent], None]


@dataclass(frozen=True)
class AdvanceResult:
    """Effects applied by a single choice."""

    hp_delta: int
    item_granted: str | None
    next_scene: str
    session: Session


def playtime_minutes(started_at: datetime, finished_at: datetime) -> int:
    """Return whole minutes between two instants, rounding halves up.

    A clock that moved backwards yields zero rather than a negative playtime.
    """

    seconds = (ensure_utc(finished_at) - ensure_utc(started_at)).total_seconds()
    return math.floor(max(seconds, 0.0) / 60 + 0.5)


class ProgressionEngine:
    """Start, resume, advance and finish story runs for individual users."""

    def __init__(
        self,
        scenes: SceneStore,
        sessions: SessionRepository,
        leaderboard: LeaderboardSink,
        *,
        clock: Clock | None = None,
        listeners: Iterable[GameEventListener] = (),
    ) -> None:
        self._scenes = scenes
        self._sessions = sessions
        self._leaderboard = leaderboard
        self._clock: Clock = clock or _utcnow
        self._listeners: list[GameEventListener] = list(listeners)

    @property
    def scenes(self) -> SceneStore:
        return self._scenes

    @property
    def leaderboard(self) -> LeaderboardSink:
        return self._leaderboard

    def add_listener(self, listener: GameEventListener) -> None:
        """Register ``listener`` for every subsequent :class:`GameEvent`."""

        self._listeners.append(listener)

    def start(self, user_id: str) -> Session:
        """Discard any existing run for ``user_id`` and begin a fresh one."""

        self._scenes.load(START_SCENE)
        self._sessions.delete(user_id)

        session = Session(
            user_id=user_id,
            current_scene=START_SCENE,
            hp=MAX_HP,
            started_at=self._now(),
        )
        self._sessions.save(session)
        logger.info("Started new game for user %s", session.user_id)

        self._publish(GameEvent(action="start_game", session=session))
        return session

    def resume(self, user_id: str) -> Session | None:
        """Reload the saved run for ``user_id``, or ``None`` when there is none.

        The elapsed-time clock restarts at the moment of resuming, so playtime
        is measured from here rather than from when the run was created.
        """

        stored = self._sessions.find(user_id)
        if stored is None:
            return None

        session = stored.evolve(started_at=self._now())
        self._sessions.save(session)
        logger.info(
            "Resumed game for user %s at scene %s", session.user_id, session.current_scene
        )
        return session

    def current(self, user_id: str) -> Session | None:
        """Return the stored session without touching it."""

        return self._sessions.find(user_id)

    def scene_for(self, session: Session) -> Scene:
        """Return the scene ``session`` currently stands on."""

        return self._scenes.load(session.current_scene)

    def advance(self, user_id: str, choice_key: str) -> AdvanceResult:
        """Apply ``choice_key`` to the user's session and persist the result.

        Raises:
            NoActiveSessionError: If the user has no live session.
            SceneNotFoundError: If the current scene has no definition.
            InvalidChoiceError: If the current scene does not offer the choice.
                The stored session is left unchanged.
        """

        session = self._require_session(user_id)
        scene = self._scenes.load(session.current_scene)

        choice = scene.choices.get(choice_key) if isinstance(choice_key, str) else None
        if choice is None:
            raise InvalidChoiceError(scene.id, str(choice_key))

        inventory = session.inventory
        if choice.item_granted is not None:
            inventory = inventory + (choice.item_granted,)

        updated = session.evolve(
            current_scene=choice.next_scene,
            hp=clamp_hp(session.hp + choice.hp_delta),
            inventory=inventory,
            choice_log=session.choice_log
            + (ChoiceRecord(scene=scene.id, choice=choice_key, text=choice.text),),
        )
        self._sessions.save(updated)
        logger.debug(
            "User %s chose %r in %s: hp %d -> %d, next %s",
            updated.user_id,
            choice_key,
            scene.id,
            session.hp,
            updated.hp,
            updated.current_scene,
        )

        self._publish(
            GameEvent(
                action="choice_made",
                session=updated,
                context={"scene": scene.id, "choice": choice_key},
            )
        )
        return AdvanceResult(
            hp_delta=choice.hp_delta,
            item_granted=choice.item_granted,
            next_scene=choice.next_scene,
            session=updated,
        )

    def is_terminal(self, session: Session) -> bool:
        """Return ``True`` when ``session`` stands on an ending scene."""

        return self._scenes.load(session.current_scene).is_terminal

    def terminate(self, user_id: str, username: str, ending_kind: str) -> LeaderboardEntry:
        """Record the finished run on the leaderboard and clear the session.

        The session is only deleted once the leaderboard entry has been
        written, so a failed write leaves the run intact and safe to retry.
        """

        session = self._require_session(user_id)
        if not isinstance(username, str) or not username.strip():
            raise ValueError("username must be a non-empty string")
        if not isinstance(ending_kind, str) or not ending_kind.strip():
            raise ValueError("ending_kind must be a non-empty string")

        finished_at = self._now()
        entry = LeaderboardEntry(
            username=username.strip(),
            ending_kind=ending_kind.strip(),
            playtime_minutes=playtime_minutes(session.started_at, finished_at),
            final_hp=session.hp,
            choice_count=session.choice_count,
            completed_at=finished_at,
        )
        self._leaderboard.append(entry)
        self._sessions.delete(session.user_id)
        logger.info(
            "User %s finished with ending %s (hp=%d, choices=%d, %d min)",
            session.user_id,
            entry.ending_kind,
            entry.final_hp,
            entry.choice_count,
            entry.playtime_minutes,
        )

        self._publish(
            GameEvent(
                action="game_complete",
                session=session,
                context={"ending": entry.ending_kind},
            )
        )
        return entry

    def _require_session(self, user_id: str) -> Session:
        session = self._sessions.find(user_id)
        if session is None:
            raise NoActiveSessionError(user_id)
        return session

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    def _publish(self, event: GameEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Game event listener %r failed while handling %s",
                    listener,
                    event.action,
                )


__all__ = [
    "AdvanceResult",
    "Clock",
    "GameAction",
    "GameEvent",
    "GameEventListener",
    "ProgressionEngine",
    "playtime_minutes",
]
