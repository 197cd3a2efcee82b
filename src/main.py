"""Command-line entry point for the Choose Your Path story game."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from choosepath import (
    GameSettings,
    InvalidChoiceError,
    LeaderboardOrder,
    ProgressionEngine,
    SceneDataError,
    SceneNotFoundError,
    SceneStore,
    build_engine,
    build_scene_store,
    create_storage_engine,
    init_schema,
)
from choosepath.analysis import check_scene_graph, format_scene_graph_report
from choosepath.api.app import describe_effects
from choosepath.scenes import Scene

logger = logging.getLogger("choosepath.cli")


def _print_scene(scene: Scene, *, hp: int | None = None) -> None:
    print()
    print(f"== {scene.title} ==")
    print(scene.text)
    if hp is not None:
        print(f"[HP {hp}/100]")
    if scene.choices:
        print()
        for key, choice in scene.choices.items():
            details: list[str] = []
            if choice.hp_delta:
                details.append(f"{choice.hp_delta:+d} HP")
            if choice.item_granted:
                details.append(f"Gain: {choice.item_granted}")
            suffix = f" ({', '.join(details)})" if details else ""
            print(f"[{key}] {choice.text}{suffix}")


def run_cli(
    engine: ProgressionEngine,
    *,
    user_id: str,
    username: str,
    fresh: bool = False,
) -> None:
    """Drive an interactive run using ``input``/``print``."""

    print("Welcome to Choose Your Path!")
    print("Type 'quit' at any time to leave; your progress is saved.")

    session = None if fresh else engine.resume(user_id)
    if session is None:
        session = engine.start(user_id)
        print("A new adventure begins.")
    else:
        print("Welcome back, continuing your adventure.")

    while True:
        scene = engine.scene_for(session)
        _print_scene(scene, hp=session.hp)

        if engine.is_terminal(session):
            entry = engine.terminate(user_id, username, scene.ending_kind or scene.id)
            print()
            print(
                f"Ending reached: {entry.ending_kind}. Final HP {entry.final_hp}, "
                f"{entry.choice_count} choices in {entry.playtime_minutes} min."
            )
            return

        try:
            player_input = input("> ").strip()
        except EOFError:
            print()
            return

        if player_input.lower() in {"quit", "q", "exit"}:
            print("Progress saved. Farewell, traveller.")
            return

        try:
            result = engine.advance(user_id, player_input)
        except InvalidChoiceError:
            print(f"Invalid choice! Try one of: {', '.join(scene.choice_keys)}.")
            continue

        message = describe_effects(result)
        if message:
            print(message)
        session = result.session


def _cmd_init_db(args: argparse.Namespace, settings: GameSettings) -> int:
    init_schema(create_storage_engine(settings.database_url))
    print(f"Database ready at {settings.database_url}")
    return 0


def _cmd_check_scenes(args: argparse.Namespace, settings: GameSettings) -> int:
    try:
        store = SceneStore.from_path(args.path) if args.path else build_scene_store(settings)
        report = check_scene_graph(store.all_scenes())
    except (SceneDataError, ValueError, OSError) as exc:
        print(f"Failed to load scenes: {exc}")
        return 2

    print(format_scene_graph_report(report))
    return 0 if report.is_valid else 1


def _cmd_leaderboard(args: argparse.Namespace, settings: GameSettings) -> int:
    engine = build_engine(settings)
    entries = engine.leaderboard.top(args.limit or settings.leaderboard_limit, args.order)
    if not entries:
        print("No completed adventures yet.")
        return 0

    for rank, entry in enumerate(entries, start=1):
        print(
            f"{rank:>3}. {entry.username:<20} {entry.ending_kind:<10} "
            f"HP {entry.final_hp:>3}  {entry.playtime_minutes:>4} min  "
            f"{entry.choice_count:>3} choices"
        )
    stats = engine.leaderboard.stats()
    print(
        f"\n{stats.total_games} games, {stats.unique_players} players, "
        f"average playtime {stats.average_playtime_minutes} min"
    )
    return 0


def _cmd_play(args: argparse.Namespace, settings: GameSettings) -> int:
    engine = build_engine(settings)
    try:
        run_cli(
            engine,
            user_id=args.user,
            username=args.name or args.user,
            fresh=args.new,
        )
    except SceneNotFoundError as exc:
        print(f"{exc}. Start a new game with --new.")
        return 1
    return 0


def _cmd_serve(args: argparse.Namespace, settings: GameSettings) -> int:
    import uvicorn

    os.environ["CHOOSEPATH_DATABASE_URL"] = settings.database_url
    if settings.scene_path is not None:
        os.environ["CHOOSEPATH_SCENE_PATH"] = str(settings.scene_path)

    uvicorn.run(
        "choosepath.api.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Choose Your Path story game")
    parser.add_argument(
        "--database-url",
        type=str,
        help="SQLAlchemy database URL (overrides CHOOSEPATH_DATABASE_URL).",
    )
    parser.add_argument(
        "--scene-path",
        type=Path,
        help="Scene JSON file or directory (overrides CHOOSEPATH_SCENE_PATH).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create the database tables.")
    init_parser.set_defaults(handler=_cmd_init_db)

    check_parser = subparsers.add_parser(
        "check-scenes", help="Verify every choice leads to a defined scene."
    )
    check_parser.add_argument("--path", type=Path, help="Scene file or directory to check.")
    check_parser.set_defaults(handler=_cmd_check_scenes)

    leaderboard_parser = subparsers.add_parser(
        "leaderboard", help="Print the leaderboard."
    )
    leaderboard_parser.add_argument("--limit", type=int, help="Number of entries to show.")
    leaderboard_parser.add_argument(
        "--order",
        type=LeaderboardOrder,
        choices=list(LeaderboardOrder),
        default=LeaderboardOrder.RANKED,
        help="Sort order (default: ranked).",
    )
    leaderboard_parser.set_defaults(handler=_cmd_leaderboard)

    play_parser = subparsers.add_parser("play", help="Play in the terminal.")
    play_parser.add_argument("--user", required=True, help="Player identifier.")
    play_parser.add_argument("--name", help="Name recorded on the leaderboard.")
    play_parser.add_argument(
        "--new", action="store_true", help="Discard any saved run and start over."
    )
    play_parser.set_defaults(handler=_cmd_play)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")
    serve_parser.set_defaults(handler=_cmd_serve)

    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """Dispatch to the requested subcommand."""

    args = _parse_args(argv)
    try:
        settings = GameSettings.from_env()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}")
        raise SystemExit(2) from exc

    overrides: dict[str, object] = {}
    if args.database_url:
        overrides["database_url"] = args.database_url
    if args.scene_path:
        overrides["scene_path"] = args.scene_path
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.debug("Running %s with database %s", args.command, settings.database_url)

    raise SystemExit(args.handler(args, settings))


if __name__ == "__main__":
    main(sys.argv[1:])
