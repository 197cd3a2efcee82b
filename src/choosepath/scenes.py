"""Static scene definitions and the store that serves them by identifier."""

from __future__ import annotations

import json
import re
import threading
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from .errors import SceneDataError, SceneNotFoundError

START_SCENE = "start"

_SCENE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def _validate_text(value: Any, *, field_name: str) -> str:
    """Validate and normalise free-form text fields used by scene records."""

    if not isinstance(value, str):
        raise SceneDataError(f"{field_name} must be a string, got {type(value)!r}")

    stripped = value.strip()
    if not stripped:
        raise SceneDataError(f"{field_name} must be a non-empty string")

    return stripped


def _validate_optional_text(value: Any, *, field_name: str) -> str | None:
    if value is None:
        return None
    return _validate_text(value, field_name=field_name)


@dataclass(frozen=True)
class Choice:
    """A labelled edge leading from one scene to another."""

    text: str
    next_scene: str
    hp_delta: int = 0
    item_granted: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "text", _validate_text(self.text, field_name="choice text"))
        object.__setattr__(
            self,
            "next_scene",
            _validate_text(self.next_scene, field_name="next scene"),
        )
        if isinstance(self.hp_delta, bool) or not isinstance(self.hp_delta, int):
            raise SceneDataError(
                f"hp delta must be an integer, got {type(self.hp_delta)!r}"
            )
        object.__setattr__(
            self,
            "item_granted",
            _validate_optional_text(self.item_granted, field_name="granted item"),
        )


@dataclass(frozen=True)
class Scene:
    """A node in the story graph.

    Terminal scenes close a run: they offer no choices and name the ending
    (``victory``, ``defeat``, ``death`` ...) recorded on the leaderboard.
    Every other scene must offer at least one choice.
    """

    id: str
    title: str
    text: str
    choices: Mapping[str, Choice] = field(default_factory=dict)
    is_terminal: bool = False
    ending_kind: str | None = None
    image_alt: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _validate_text(self.id, field_name="scene id"))
        object.__setattr__(self, "title", _validate_text(self.title, field_name="title"))
        object.__setattr__(self, "text", _validate_text(self.text, field_name="text"))
        object.__setattr__(
            self,
            "image_alt",
            _validate_optional_text(self.image_alt, field_name="image alt text"),
        )
        object.__setattr__(
            self,
            "ending_kind",
            _validate_optional_text(self.ending_kind, field_name="ending kind"),
        )

        choices: dict[str, Choice] = {}
        for key, choice in self.choices.items():
            validated_key = _validate_text(key, field_name="choice key")
            if not isinstance(choice, Choice):
                raise SceneDataError(
                    f"Choice '{validated_key}' in scene '{self.id}' must be a Choice"
                )
            choices[validated_key] = choice
        object.__setattr__(self, "choices", MappingProxyType(choices))

        if self.is_terminal:
            if choices:
                raise SceneDataError(f"Ending scene '{self.id}' must not offer choices.")
            if self.ending_kind is None:
                raise SceneDataError(f"Ending scene '{self.id}' must name its ending type.")
        else:
            if self.ending_kind is not None:
                raise SceneDataError(
                    f"Scene '{self.id}' names an ending type but is not an ending."
                )
            if not choices:
                raise SceneDataError(f"Scene '{self.id}' must offer at least one choice.")

    @property
    def choice_keys(self) -> tuple[str, ...]:
        """Return the choice keys in authored order."""

        return tuple(self.choices)


def scene_from_mapping(scene_id: str, payload: Any) -> Scene:
    """Parse a single scene definition as stored on disk.

    The on-disk format keeps the field names of the authored scene files:
    ``title``, ``text``, optional ``image_alt``, ``choices`` (an object keyed
    by choice key with ``text``/``next_scene``/``hp_change``/``add_item``),
    ``is_ending`` and ``ending_type``.
    """

    if not isinstance(payload, Mapping):
        raise SceneDataError(f"Scene '{scene_id}' must map to an object definition.")

    raw_choices = payload.get("choices", {})
    if not isinstance(raw_choices, Mapping):
        raise SceneDataError(f"Scene '{scene_id}' must define choices as an object.")

    choices: dict[str, Choice] = {}
    for key, choice_payload in raw_choices.items():
        if not isinstance(choice_payload, Mapping):
            raise SceneDataError(
                f"Choice '{key}' in scene '{scene_id}' must be an object definition."
            )
        choices[key] = Choice(
            text=choice_payload.get("text"),
            next_scene=choice_payload.get("next_scene"),
            hp_delta=choice_payload.get("hp_change", 0),
            item_granted=choice_payload.get("add_item"),
        )

    is_ending = payload.get("is_ending", False)
    if not isinstance(is_ending, bool):
        raise SceneDataError(f"Scene '{scene_id}' must use a boolean 'is_ending'.")

    return Scene(
        id=scene_id,
        title=payload.get("title"),
        text=payload.get("text"),
        choices=choices,
        is_terminal=is_ending,
        ending_kind=payload.get("ending_type"),
        image_alt=payload.get("image_alt"),
    )


def load_scenes_from_mapping(definitions: Mapping[str, Any]) -> dict[str, Scene]:
    """Convert a mapping of scene id to definition into ``Scene`` records.

    Only the shape of each record is validated. Choices pointing at scenes
    that do not exist are left for :func:`choosepath.analysis.check_scene_graph`.
    """

    scenes: dict[str, Scene] = {}
    for scene_id, payload in definitions.items():
        if not isinstance(scene_id, str):
            raise SceneDataError("Scene keys must be strings.")
        scene = scene_from_mapping(scene_id, payload)
        scenes[scene.id] = scene
    return scenes


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as exc:
        raise SceneDataError(f"Scene file '{path}' is not valid JSON: {exc}") from exc


def load_scenes_from_file(path: str | Path) -> dict[str, Scene]:
    """Load scene definitions from a JSON file on disk."""

    raw_data = _read_json(Path(path))
    if not isinstance(raw_data, Mapping):
        raise SceneDataError("Scene files must contain an object at the top level.")

    return load_scenes_from_mapping(raw_data)


def load_default_scenes() -> dict[str, Scene]:
    """Read the bundled story from the package data directory."""

    data_resource = resources.files("choosepath.data").joinpath("scenes.json")
    with data_resource.open("r", encoding="utf-8") as handle:
        raw_data = json.load(handle)

    if not isinstance(raw_data, Mapping):
        raise SceneDataError("Bundled scenes must contain an object at the top level.")

    return load_scenes_from_mapping(raw_data)


class SceneStore:
    """Serve immutable scenes by identifier.

    A store is either preloaded from a mapping or backed by a directory holding
    one ``<scene_id>.json`` file per scene. Directory-backed scenes are read on
    first request and cached for the lifetime of the store; scene content never
    changes after load, so the cache is safe to share between callers.
    """

    def __init__(
        self,
        scenes: Mapping[str, Scene] | None = None,
        *,
        directory: Path | None = None,
    ) -> None:
        if scenes is not None and directory is not None:
            raise ValueError("Provide either preloaded scenes or a directory, not both.")
        if scenes is None and directory is None:
            raise ValueError("A scene store needs preloaded scenes or a directory.")

        self._cache: dict[str, Scene] = dict(scenes or {})
        self._directory = directory
        self._lock = threading.Lock()

    @classmethod
    def default(cls) -> "SceneStore":
        """Return a store serving the bundled story."""

        return cls(load_default_scenes())

    @classmethod
    def from_file(cls, path: str | Path) -> "SceneStore":
        return cls(load_scenes_from_file(path))

    @classmethod
    def from_directory(cls, path: str | Path) -> "SceneStore":
        directory = Path(path)
        if not directory.is_dir():
            raise SceneDataError(f"Scene directory '{directory}' does not exist.")
        return cls(directory=directory)

    @classmethod
    def from_path(cls, path: str | Path) -> "SceneStore":
        """Build a store from either a JSON file or a directory of scene files."""

        resolved = Path(path)
        if resolved.is_dir():
            return cls.from_directory(resolved)
        return cls.from_file(resolved)

    def load(self, scene_id: str) -> Scene:
        """Return the scene for ``scene_id``.

        Raises:
            SceneNotFoundError: If no definition exists for ``scene_id``.
        """

        cached = self._cache.get(scene_id)
        if cached is not None:
            return cached

        if self._directory is None:
            raise SceneNotFoundError(str(scene_id))

        scene = self._read_scene_file(scene_id)
        with self._lock:
            return self._cache.setdefault(scene.id, scene)

    def scene_ids(self) -> tuple[str, ...]:
        """Return every scene identifier the store can serve, sorted."""

        if self._directory is None:
            return tuple(sorted(self._cache))
        return tuple(
            sorted(
                path.stem
                for path in self._directory.glob("*.json")
                if path.is_file() and _SCENE_ID_PATTERN.match(path.stem)
            )
        )

    def all_scenes(self) -> Mapping[str, Scene]:
        """Load every scene and return a read-only mapping of them."""

        return MappingProxyType(
            {scene_id: self.load(scene_id) for scene_id in self.scene_ids()}
        )

    def _read_scene_file(self, scene_id: str) -> Scene:
        if not isinstance(scene_id, str) or not _SCENE_ID_PATTERN.match(scene_id):
            raise SceneNotFoundError(str(scene_id))

        assert self._directory is not None
        scene_path = self._directory / f"{scene_id}.json"
        if not scene_path.is_file():
            raise SceneNotFoundError(scene_id)

        return scene_from_mapping(scene_id, _read_json(scene_path))


__all__ = [
    "START_SCENE",
    "Choice",
    "Scene",
    "SceneStore",
    "load_default_scenes",
    "load_scenes_from_file",
    "load_scenes_from_mapping",
    "scene_from_mapping",
]
