"""Configuration helpers for deploying the game service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _normalise_path(value: str | None) -> Path | None:
    if value is None:
        return None

    trimmed = value.strip()
    if not trimmed:
        return None

    return Path(trimmed).expanduser()


def _normalise_string(value: str | None, *, default: str) -> str:
    if value is None:
        return default

    trimmed = value.strip()
    return trimmed or default


@dataclass(frozen=True)
class GameSettings:
    """Deployment settings for the game service.

    Values are read from environment variables so the service can be
    configured without modifying application code. Empty strings are treated
    as if the variable was unset.
    """

    database_url: str = "sqlite:///data/game.db"
    scene_path: Path | None = None
    leaderboard_limit: int = 50
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GameSettings":
        """Return settings populated from ``environ``.

        Args:
            environ: Optional mapping of environment variables. When omitted,
                :data:`os.environ` is used.
        """

        source = environ if environ is not None else os.environ

        database_url = _normalise_string(
            source.get("CHOOSEPATH_DATABASE_URL"), default=cls.database_url
        )
        scene_path = _normalise_path(source.get("CHOOSEPATH_SCENE_PATH"))

        leaderboard_limit = cls.leaderboard_limit
        limit_raw = source.get("CHOOSEPATH_LEADERBOARD_LIMIT")
        if limit_raw is not None and limit_raw.strip():
            try:
                leaderboard_limit = int(limit_raw.strip())
            except ValueError as exc:
                raise ValueError(
                    "CHOOSEPATH_LEADERBOARD_LIMIT must be a positive integer."
                ) from exc
            if leaderboard_limit < 1:
                raise ValueError(
                    "CHOOSEPATH_LEADERBOARD_LIMIT must be greater than zero."
                )

        log_level = _normalise_string(
            source.get("CHOOSEPATH_LOG_LEVEL"), default=cls.log_level
        ).upper()
        if log_level not in _LOG_LEVELS:
            raise ValueError(
                f"CHOOSEPATH_LOG_LEVEL must be one of: {', '.join(_LOG_LEVELS)}."
            )

        return cls(
            database_url=database_url,
            scene_path=scene_path,
            leaderboard_limit=leaderboard_limit,
            log_level=log_level,
        )


__all__ = ["GameSettings"]
