"""Wire a storage-backed engine from deployment settings."""

from __future__ import annotations

from .engine import ProgressionEngine
from .leaderboard import SqlLeaderboard
from .persistence import SqlSessionRepository
from .scenes import SceneStore
from .settings import GameSettings
from .storage import create_storage_engine, init_schema


def build_scene_store(settings: GameSettings) -> SceneStore:
    """Return the configured scene store, falling back to the bundled story."""

    if settings.scene_path is not None:
        return SceneStore.from_path(settings.scene_path)
    return SceneStore.default()


def build_engine(settings: GameSettings | None = None) -> ProgressionEngine:
    """Create the database schema if needed and return a SQL-backed engine."""

    resolved = settings or GameSettings.from_env()
    storage = create_storage_engine(resolved.database_url)
    init_schema(storage)

    return ProgressionEngine(
        scenes=build_scene_store(resolved),
        sessions=SqlSessionRepository(storage),
        leaderboard=SqlLeaderboard(storage),
    )


__all__ = ["build_engine", "build_scene_store"]
