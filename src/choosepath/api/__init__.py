"""FastAPI application exposing the story game endpoints."""

from .app import create_app
from ..settings import GameSettings

__all__ = ["create_app", "GameSettings"]
