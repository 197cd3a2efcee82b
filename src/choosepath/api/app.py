"""FastAPI application exposing the story game to browser clients."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from pydantic import BaseModel, Field, field_serializer
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import JSONResponse

from ..bootstrap import build_engine
from ..engine import AdvanceResult, ProgressionEngine
from ..errors import InvalidChoiceError, NoActiveSessionError, SceneNotFoundError
from ..leaderboard import LeaderboardEntry, LeaderboardOrder
from ..scenes import Scene
from ..session import Session
from ..settings import GameSettings

logger = logging.getLogger(__name__)

_GENERIC_FAILURE = "Something went wrong on our side. Please try again."
_NO_SESSION_MESSAGE = "No active game. Please start a new game."
_NO_SAVE_MESSAGE = "No saved game to resume. Please start a new game."
_SCENE_MISSING_MESSAGE = "Scene not found. Please start a new game."
_INVALID_CHOICE_MESSAGE = "Invalid choice for the current scene."
_NOT_AN_ENDING_MESSAGE = "The current scene is not an ending."


@dataclass(frozen=True)
class Player:
    """Identity handed over by the authentication layer in front of the API."""

    user_id: str
    username: str


def resolve_player(
    x_user_id: str | None = Header(default=None),
    x_username: str | None = Header(default=None),
) -> Player:
    """Read the already-authenticated player from the request headers."""

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required.")
    username = (x_username or "").strip() or user_id
    return Player(user_id=user_id, username=username)


class ChoiceResource(BaseModel):
    """A choice offered by a scene."""

    key: str
    text: str
    hp_delta: int
    item_granted: str | None = None


class SceneResource(BaseModel):
    """Renderable representation of a scene."""

    id: str
    title: str
    text: str
    image_alt: str | None = None
    is_terminal: bool
    ending_kind: str | None = None
    choices: list[ChoiceResource] = Field(default_factory=list)


class ChoiceLogResource(BaseModel):
    """A previously made choice."""

    scene: str
    choice: str
    text: str


class SessionResource(BaseModel):
    """The player's progression state."""

    current_scene: str
    hp: int = Field(..., ge=0, le=100)
    inventory: list[str] = Field(default_factory=list)
    choice_log: list[ChoiceLogResource] = Field(default_factory=list)
    choice_count: int
    started_at: datetime

    @field_serializer("started_at")
    def _serialise_started_at(self, value: datetime) -> str:
        return value.isoformat()


class GameStateResponse(BaseModel):
    """Session state together with the scene it stands on."""

    session: SessionResource
    scene: SceneResource


class ChoiceRequest(BaseModel):
    """Payload submitted when the player picks a choice."""

    choice: str = Field(..., min_length=1, max_length=100)


class LeaderboardEntryResource(BaseModel):
    """A completed run as shown on the leaderboard."""

    rank: int | None = Field(None, ge=1)
    username: str
    ending_kind: str
    playtime_minutes: int
    final_hp: int
    choice_count: int
    completed_at: datetime

    @field_serializer("completed_at")
    def _serialise_completed_at(self, value: datetime) -> str:
        return value.isoformat()


class ChoiceResponse(BaseModel):
    """Outcome of a submitted choice.

    When the choice leads to an ending the run is closed immediately: ``session``
    is ``None``, ``scene`` holds the ending to display and ``leaderboard_entry``
    the recorded result.
    """

    hp_delta: int
    item_granted: str | None = None
    next_scene: str
    message: str
    scene: SceneResource
    session: SessionResource | None = None
    completed: bool = False
    leaderboard_entry: LeaderboardEntryResource | None = None


class FinishResponse(BaseModel):
    """A run closed on its ending scene."""

    scene: SceneResource
    leaderboard_entry: LeaderboardEntryResource


class LeaderboardResponse(BaseModel):
    """Leaderboard listing."""

    order: LeaderboardOrder
    data: list[LeaderboardEntryResource]


class LeaderboardStatsResponse(BaseModel):
    """Aggregates across every completed run."""

    total_games: int
    unique_players: int
    average_playtime_minutes: float


def _build_scene_resource(scene: Scene) -> SceneResource:
    return SceneResource(
        id=scene.id,
        title=scene.title,
        text=scene.text,
        image_alt=scene.image_alt,
        is_terminal=scene.is_terminal,
        ending_kind=scene.ending_kind,
        choices=[
            ChoiceResource(
                key=key,
                text=choice.text,
                hp_delta=choice.hp_delta,
                item_granted=choice.item_granted,
            )
            for key, choice in scene.choices.items()
        ],
    )


def _build_session_resource(session: Session) -> SessionResource:
    return SessionResource(
        current_scene=session.current_scene,
        hp=session.hp,
        inventory=list(session.inventory),
        choice_log=[
            ChoiceLogResource(scene=entry.scene, choice=entry.choice, text=entry.text)
            for entry in session.choice_log
        ],
        choice_count=session.choice_count,
        started_at=session.started_at,
    )


def _build_leaderboard_resource(
    rank: int | None, entry: LeaderboardEntry
) -> LeaderboardEntryResource:
    return LeaderboardEntryResource(
        rank=rank,
        username=entry.username,
        ending_kind=entry.ending_kind,
        playtime_minutes=entry.playtime_minutes,
        final_hp=entry.final_hp,
        choice_count=entry.choice_count,
        completed_at=entry.completed_at,
    )


def describe_effects(result: AdvanceResult) -> str:
    """Return the player-facing summary of a choice's effects."""

    parts: list[str] = []
    if result.hp_delta > 0:
        parts.append(f"You gained {result.hp_delta} HP!")
    elif result.hp_delta < 0:
        parts.append(f"You lost {abs(result.hp_delta)} HP!")
    if result.item_granted:
        parts.append(f"You found: {result.item_granted}!")
    return " ".join(parts)


def create_app(
    engine: ProgressionEngine | None = None,
    *,
    settings: GameSettings | None = None,
) -> FastAPI:
    """Create a FastAPI app serving the game endpoints."""

    resolved_settings = settings or GameSettings.from_env()
    game = engine or build_engine(resolved_settings)

    tags_metadata = [
        {
            "name": "Game",
            "description": "Start, resume and play through a story run.",
        },
        {
            "name": "Leaderboard",
            "description": "Completed runs ranked by health, speed and choices.",
        },
        {
            "name": "Scenes",
            "description": "Read-only access to the authored story scenes.",
        },
    ]

    app = FastAPI(
        title="Choose Your Path API",
        version="0.1.0",
        description=(
            "HTTP API powering the Choose Your Path story game. Players start "
            "or resume a run, submit choices and land on the leaderboard when "
            "they reach an ending."
        ),
        openapi_tags=tags_metadata,
    )
    app.state.engine = game
    app.state.settings = resolved_settings

    @app.exception_handler(SQLAlchemyError)
    async def _storage_failure(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception(
            "Storage failure while handling %s %s", request.method, request.url.path
        )
        return JSONResponse(status_code=500, content={"detail": _GENERIC_FAILURE})

    def _state_response(session: Session) -> GameStateResponse:
        try:
            scene = game.scene_for(session)
        except SceneNotFoundError as exc:
            raise HTTPException(status_code=404, detail=_SCENE_MISSING_MESSAGE) from exc
        return GameStateResponse(
            session=_build_session_resource(session),
            scene=_build_scene_resource(scene),
        )

    @app.post(
        "/api/game/start",
        response_model=GameStateResponse,
        status_code=201,
        tags=["Game"],
    )
    def start_game(player: Player = Depends(resolve_player)) -> GameStateResponse:
        try:
            session = game.start(player.user_id)
        except SceneNotFoundError as exc:
            raise HTTPException(status_code=500, detail=_GENERIC_FAILURE) from exc
        return _state_response(session)

    @app.post(
        "/api/game/resume",
        response_model=GameStateResponse,
        tags=["Game"],
    )
    def resume_game(player: Player = Depends(resolve_player)) -> GameStateResponse:
        session = game.resume(player.user_id)
        if session is None:
            raise HTTPException(status_code=404, detail=_NO_SAVE_MESSAGE)
        return _state_response(session)

    @app.get(
        "/api/game",
        response_model=GameStateResponse,
        tags=["Game"],
    )
    def get_game(player: Player = Depends(resolve_player)) -> GameStateResponse:
        session = game.current(player.user_id)
        if session is None:
            raise HTTPException(status_code=404, detail=_NO_SESSION_MESSAGE)
        return _state_response(session)

    @app.post(
        "/api/game/choices",
        response_model=ChoiceResponse,
        tags=["Game"],
    )
    def submit_choice(
        payload: ChoiceRequest,
        player: Player = Depends(resolve_player),
    ) -> ChoiceResponse:
        try:
            result = game.advance(player.user_id, payload.choice)
            session = result.session
            scene = game.scene_for(session)
        except NoActiveSessionError as exc:
            raise HTTPException(status_code=404, detail=_NO_SESSION_MESSAGE) from exc
        except InvalidChoiceError as exc:
            raise HTTPException(status_code=400, detail=_INVALID_CHOICE_MESSAGE) from exc
        except SceneNotFoundError as exc:
            raise HTTPException(status_code=404, detail=_SCENE_MISSING_MESSAGE) from exc

        session_resource: SessionResource | None = _build_session_resource(session)
        entry_resource: LeaderboardEntryResource | None = None
        completed = game.is_terminal(session)
        if completed:
            session_resource = None
            entry_resource = _close_run(player, scene)

        return ChoiceResponse(
            hp_delta=result.hp_delta,
            item_granted=result.item_granted,
            next_scene=result.next_scene,
            message=describe_effects(result),
            scene=_build_scene_resource(scene),
            session=session_resource,
            completed=completed,
            leaderboard_entry=entry_resource,
        )

    def _rank_of(entry: LeaderboardEntry) -> int | None:
        ranked = game.leaderboard.top(resolved_settings.leaderboard_limit)
        for index, candidate in enumerate(ranked, start=1):
            if candidate == entry:
                return index
        return None

    def _close_run(player: Player, scene: Scene) -> LeaderboardEntryResource:
        entry = game.terminate(
            player.user_id, player.username, scene.ending_kind or scene.id
        )
        return _build_leaderboard_resource(_rank_of(entry), entry)

    @app.post(
        "/api/game/finish",
        response_model=FinishResponse,
        tags=["Game"],
    )
    def finish_game(player: Player = Depends(resolve_player)) -> FinishResponse:
        """Record a run that stands on its ending but was not yet recorded."""

        session = game.current(player.user_id)
        if session is None:
            raise HTTPException(status_code=404, detail=_NO_SESSION_MESSAGE)
        try:
            scene = game.scene_for(session)
        except SceneNotFoundError as exc:
            raise HTTPException(status_code=404, detail=_SCENE_MISSING_MESSAGE) from exc
        if not game.is_terminal(session):
            raise HTTPException(status_code=409, detail=_NOT_AN_ENDING_MESSAGE)

        return FinishResponse(
            scene=_build_scene_resource(scene),
            leaderboard_entry=_close_run(player, scene),
        )

    @app.get(
        "/api/leaderboard",
        response_model=LeaderboardResponse,
        tags=["Leaderboard"],
    )
    def get_leaderboard(
        limit: int | None = Query(
            None,
            ge=1,
            le=200,
            description="Number of entries to return (defaults to the configured limit).",
        ),
        order: LeaderboardOrder = Query(
            LeaderboardOrder.RANKED,
            description="'ranked' by HP, playtime and choices, or 'recent' first.",
        ),
    ) -> LeaderboardResponse:
        entries = game.leaderboard.top(limit or resolved_settings.leaderboard_limit, order)
        return LeaderboardResponse(
            order=order,
            data=[
                _build_leaderboard_resource(rank, entry)
                for rank, entry in enumerate(entries, start=1)
            ],
        )

    @app.get(
        "/api/leaderboard/stats",
        response_model=LeaderboardStatsResponse,
        tags=["Leaderboard"],
    )
    def get_leaderboard_stats() -> LeaderboardStatsResponse:
        stats = game.leaderboard.stats()
        return LeaderboardStatsResponse(
            total_games=stats.total_games,
            unique_players=stats.unique_players,
            average_playtime_minutes=stats.average_playtime_minutes,
        )

    @app.get(
        "/api/scenes/{scene_id}",
        response_model=SceneResource,
        tags=["Scenes"],
    )
    def get_scene(scene_id: str) -> SceneResource:
        try:
            return _build_scene_resource(game.scenes.load(scene_id))
        except SceneNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    return app


__all__ = [
    "ChoiceRequest",
    "ChoiceResponse",
    "FinishResponse",
    "GameStateResponse",
    "LeaderboardResponse",
    "LeaderboardStatsResponse",
    "Player",
    "SceneResource",
    "SessionResource",
    "create_app",
    "describe_effects",
    "resolve_player",
]
