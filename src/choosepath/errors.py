"""Error taxonomy shared by the progression engine and its collaborators."""

from __future__ import annotations


class GameError(RuntimeError):
    """Base class for errors the engine reports to its callers."""


class SceneNotFoundError(GameError):
    """Raised when no scene definition exists for an identifier."""

    def __init__(self, scene_id: str) -> None:
        super().__init__(f"Scene '{scene_id}' not found")
        self.scene_id = scene_id


class NoActiveSessionError(GameError):
    """Raised when an operation needs a live session and the user has none."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No active game session for user '{user_id}'")
        self.user_id = user_id


class InvalidChoiceError(GameError):
    """Raised when a choice key is not offered by the current scene."""

    def __init__(self, scene_id: str, choice: str) -> None:
        super().__init__(f"Invalid choice '{choice}' for scene '{scene_id}'")
        self.scene_id = scene_id
        self.choice = choice


class SceneDataError(ValueError):
    """Raised when a scene definition does not match the expected shape."""


__all__ = [
    "GameError",
    "SceneNotFoundError",
    "NoActiveSessionError",
    "InvalidChoiceError",
    "SceneDataError",
]
