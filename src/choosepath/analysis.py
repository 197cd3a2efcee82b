"""Static integrity checks over an authored scene graph."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .scenes import START_SCENE, Scene


@dataclass(frozen=True)
class DanglingReference:
    """A choice whose ``next_scene`` has no definition."""

    scene: str
    choice: str
    target: str


@dataclass(frozen=True)
class SceneGraphReport:
    """Summary of reachability and referential integrity from the start scene."""

    start_scene: str
    reachable_scenes: tuple[str, ...]
    unreachable_scenes: tuple[str, ...]
    dangling_references: tuple[DanglingReference, ...]
    endings: tuple[str, ...]

    @property
    def is_valid(self) -> bool:
        """Return ``True`` when every choice resolves to a defined scene."""

        return not self.dangling_references


def check_scene_graph(
    scenes: Mapping[str, Scene],
    *,
    start_scene: str = START_SCENE,
) -> SceneGraphReport:
    """Walk the graph from ``start_scene`` and collect integrity problems.

    Every choice of every scene is checked, reachable or not, so authoring
    mistakes in orphaned scenes are reported too.
    """

    if start_scene not in scenes:
        raise ValueError(f"Start scene '{start_scene}' is not defined.")

    dangling: list[DanglingReference] = []
    for scene_id in sorted(scenes):
        for key, choice in scenes[scene_id].choices.items():
            if choice.next_scene not in scenes:
                dangling.append(
                    DanglingReference(scene=scene_id, choice=key, target=choice.next_scene)
                )

    visited: set[str] = set()
    frontier = [start_scene]
    while frontier:
        current = frontier.pop()
        if current in visited:
            continue

        visited.add(current)
        for choice in scenes[current].choices.values():
            target = choice.next_scene
            if target in scenes and target not in visited:
                frontier.append(target)

    return SceneGraphReport(
        start_scene=start_scene,
        reachable_scenes=tuple(sorted(visited)),
        unreachable_scenes=tuple(sorted(set(scenes) - visited)),
        dangling_references=tuple(dangling),
        endings=tuple(
            sorted(scene_id for scene_id in visited if scenes[scene_id].is_terminal)
        ),
    )


def format_scene_graph_report(report: SceneGraphReport) -> str:
    """Render ``report`` as human-readable text."""

    lines = [
        f"Start scene: {report.start_scene}",
        f"Reachable scenes ({len(report.reachable_scenes)}): "
        + (", ".join(report.reachable_scenes) or "none"),
        f"Endings reachable: {', '.join(report.endings) or 'none'}",
    ]
    if report.unreachable_scenes:
        lines.append(
            f"Unreachable scenes ({len(report.unreachable_scenes)}): "
            + ", ".join(report.unreachable_scenes)
        )
    if report.dangling_references:
        lines.append("Dangling choices:")
        lines.extend(
            f"- {ref.scene}.{ref.choice} -> {ref.target}"
            for ref in report.dangling_references
        )
    else:
        lines.append("All choices resolve to defined scenes.")
    return "\n".join(lines)


__all__ = [
    "DanglingReference",
    "SceneGraphReport",
    "check_scene_graph",
    "format_scene_graph_report",
]
