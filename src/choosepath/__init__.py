"""Core package for the Choose Your Path story game."""

from .analysis import SceneGraphReport, check_scene_graph
from .bootstrap import build_engine, build_scene_store
from .engine import (
    AdvanceResult,
    GameEvent,
    GameEventListener,
    ProgressionEngine,
    playtime_minutes,
)
from .errors import (
    GameError,
    InvalidChoiceError,
    NoActiveSessionError,
    SceneDataError,
    SceneNotFoundError,
)
from .leaderboard import (
    InMemoryLeaderboard,
    LeaderboardEntry,
    LeaderboardOrder,
    LeaderboardSink,
    LeaderboardStats,
    SqlLeaderboard,
)
from .persistence import (
    InMemorySessionRepository,
    SessionRepository,
    SqlSessionRepository,
)
from .scenes import (
    START_SCENE,
    Choice,
    Scene,
    SceneStore,
    load_default_scenes,
    load_scenes_from_file,
    load_scenes_from_mapping,
)
from .session import MAX_HP, MIN_HP, ChoiceRecord, Session, clamp_hp
from .settings import GameSettings
from .storage import create_storage_engine, init_schema

__all__ = [
    "START_SCENE",
    "MIN_HP",
    "MAX_HP",
    "Choice",
    "Scene",
    "SceneStore",
    "load_default_scenes",
    "load_scenes_from_file",
    "load_scenes_from_mapping",
    "ChoiceRecord",
    "Session",
    "clamp_hp",
    "SessionRepository",
    "InMemorySessionRepository",
    "SqlSessionRepository",
    "LeaderboardEntry",
    "LeaderboardOrder",
    "LeaderboardSink",
    "LeaderboardStats",
    "InMemoryLeaderboard",
    "SqlLeaderboard",
    "AdvanceResult",
    "GameEvent",
    "GameEventListener",
    "ProgressionEngine",
    "playtime_minutes",
    "GameError",
    "SceneNotFoundError",
    "NoActiveSessionError",
    "InvalidChoiceError",
    "SceneDataError",
    "SceneGraphReport",
    "check_scene_graph",
    "GameSettings",
    "create_storage_engine",
    "init_schema",
    "build_engine",
    "build_scene_store",
]
