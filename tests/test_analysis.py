"""Tests for the scene graph integrity check."""

from __future__ import annotations

import pytest

from choosepath import SceneStore, check_scene_graph, load_scenes_from_mapping
from choosepath.analysis import DanglingReference, format_scene_graph_report


def test_bundled_story_is_closed(scene_store: SceneStore) -> None:
    report = check_scene_graph(scene_store.all_scenes())

    assert report.is_valid
    assert report.unreachable_scenes == ()
    assert report.endings == ("defeat", "victory")
    assert "start" in report.reachable_scenes


def test_every_reachable_choice_loads(scene_store: SceneStore) -> None:
    report = check_scene_graph(scene_store.all_scenes())

    for scene_id in report.reachable_scenes:
        for choice in scene_store.load(scene_id).choices.values():
            assert scene_store.load(choice.next_scene).id == choice.next_scene


def _definitions() -> dict[str, dict[str, object]]:
    return {
        "start": {
            "title": "Start",
            "text": "A fork in the road.",
            "choices": {
                "north": {"text": "Go north", "next_scene": "end"},
                "south": {"text": "Go south", "next_scene": "swamp"},
            },
        },
        "end": {
            "title": "End",
            "text": "You made it.",
            "is_ending": True,
            "ending_type": "victory",
            "choices": {},
        },
        "island": {
            "title": "Island",
            "text": "Nobody comes here.",
            "choices": {"sail": {"text": "Sail away", "next_scene": "atlantis"}},
        },
    }


def test_reports_dangling_and_unreachable_scenes() -> None:
    report = check_scene_graph(load_scenes_from_mapping(_definitions()))

    assert not report.is_valid
    assert report.reachable_scenes == ("end", "start")
    assert report.unreachable_scenes == ("island",)
    assert report.dangling_references == (
        DanglingReference(scene="island", choice="sail", target="atlantis"),
        DanglingReference(scene="start", choice="south", target="swamp"),
    )
    assert report.endings == ("end",)


def test_missing_start_scene_is_rejected() -> None:
    scenes = load_scenes_from_mapping(_definitions())

    with pytest.raises(ValueError, match="Start scene"):
        check_scene_graph(scenes, start_scene="prologue")


def test_format_report_lists_problems() -> None:
    text = format_scene_graph_report(check_scene_graph(load_scenes_from_mapping(_definitions())))

    assert "Unreachable scenes (1): island" in text
    assert "- start.south -> swamp" in text
    assert "All choices resolve" not in text
