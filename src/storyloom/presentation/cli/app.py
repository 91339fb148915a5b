"""Console-driven story player."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Sequence

from storyloom.core.scheduler import ManualScheduler, wall_clock_ms
from storyloom.data import DataError, get_sample_story_path, load_story_document
from storyloom.domain.defs import ChapterDef, StoryDocument
from storyloom.presentation.cli import render
from storyloom.presentation.cli.config import load_config, save_config
from storyloom.presentation.cli.save_slots import SaveSlotStore
from storyloom.services import (
    EngineOptions,
    GameEngine,
    has_errors,
    validate_chapter_by_id,
    validate_story_document,
)

logger = logging.getLogger(__name__)

Prompt = Callable[[str], str]

_HELP_TEXT = (
    "Enter: continue | number: choose | h: backlog | slots: list saves | "
    "s N / l N: save/load slot | r: restart | q: quit"
)


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, configure logging and run the requested command."""
    args = _build_parser().parse_args(argv)
    if args.debug:
        os.environ["STORYLOOM_DEBUG"] = "1"
    _configure_logging(render.debug_enabled())

    if args.command == "config":
        return run_config(text_mode=args.text_mode, show_images=args.show_images)

    document_path = Path(args.document) if args.document else get_sample_story_path()
    try:
        document = load_story_document(document_path)
    except DataError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.command == "validate":
        return run_validate(document)
    return run_play(document, stage_id=args.stage, chapter_id=args.chapter)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storyloom", description="Play and check branching story documents.")
    parser.add_argument("--debug", action="store_true", help="show node ids and debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    play = subparsers.add_parser("play", help="play a story in the terminal")
    play.add_argument("document", nargs="?", help="story JSON file (defaults to the bundled sample)")
    play.add_argument("--stage", help="stage id to start in")
    play.add_argument("--chapter", help="chapter id to start in")

    validate = subparsers.add_parser("validate", help="report problems in a story document")
    validate.add_argument("document", nargs="?", help="story JSON file (defaults to the bundled sample)")

    settings = subparsers.add_parser("config", help="show or change player settings")
    settings.add_argument("--text-mode", choices=("instant", "step"), help="how passages are revealed")
    settings.add_argument(
        "--show-images",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="print the active image summary above each passage",
    )
    return parser


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def run_config(
    *, text_mode: str | None = None, show_images: bool | None = None, path: Path | None = None
) -> int:
    """Print the player settings, saving any changed values first."""
    settings = load_config(path)
    if text_mode is not None or show_images is not None:
        if text_mode is not None:
            settings["text_display_mode"] = text_mode
        if show_images is not None:
            settings["show_images"] = show_images
        try:
            save_config(settings, path)
        except OSError as exc:
            print(f"Error: could not write settings: {exc}", file=sys.stderr)
            return 1
    for key, value in sorted(settings.items()):
        print(f"{key} = {value}")
    return 0


def run_validate(document: StoryDocument) -> int:
    """Print every issue in the document; non-zero when any is an error."""
    issues = validate_story_document(document)
    if not issues:
        print("No issues found.")
        return 0
    render.render_issues(issues)
    return 1 if has_errors(issues) else 0


def run_play(
    document: StoryDocument,
    *,
    stage_id: str | None = None,
    chapter_id: str | None = None,
    prompt: Prompt = input,
    slots: SaveSlotStore | None = None,
    user_config: dict[str, object] | None = None,
) -> int:
    """Validate the chosen chapter, then run the interactive loop until the story ends or the player quits."""
    position = _resolve_start(document, stage_id, chapter_id)
    if position is None:
        print("Error: the requested stage or chapter does not exist.", file=sys.stderr)
        return 1
    resolved_stage_id, chapter = position
    issues = validate_chapter_by_id(document, resolved_stage_id, chapter.id)
    render.render_issues(issues)
    if has_errors(issues):
        print("Cannot start: fix the errors above.")
        return 1

    settings = user_config if user_config is not None else load_config()
    render.set_text_display_mode(str(settings.get("text_display_mode", "instant")))
    show_images = bool(settings.get("show_images", True))

    scheduler = ManualScheduler()
    engine = GameEngine(
        document,
        EngineOptions(
            scheduler=scheduler,
            clock=wall_clock_ms,
            on_game_end=lambda: render.render_heading("The End"),
        ),
    )
    slot_store = slots or SaveSlotStore()
    if chapter.title:
        render.render_heading(chapter.title)
    engine.start(resolved_stage_id, chapter.id)
    # Effects are not animated here, so waits resolve immediately.
    scheduler.flush()

    while engine.status == "playing":
        _render_current(engine, show_images=show_images, prompt=prompt)
        try:
            raw = prompt("> ")
        except EOFError:
            break
        if not _handle_command(engine, raw.strip().lower(), slot_store):
            break
        scheduler.flush()
    print("Goodbye!")
    return 0


def _resolve_start(
    document: StoryDocument, stage_id: str | None, chapter_id: str | None
) -> tuple[str, ChapterDef] | None:
    if stage_id:
        stage = document.find_stage(stage_id)
    else:
        stage = document.stages[0] if document.stages else None
    if stage is None:
        return None
    if chapter_id:
        chapter = stage.find_chapter(chapter_id)
    else:
        chapter = stage.chapters[0] if stage.chapters else None
    if chapter is None:
        return None
    return stage.id, chapter


def _render_current(engine: GameEngine, *, show_images: bool, prompt: Prompt) -> None:
    node = engine.get_current_node()
    if node is None:
        print("(nothing to show)")
        return
    if show_images:
        render.render_images(engine.get_state().active_images)
    print()
    render.render_passage(node.id, node.speaker, engine.interpolate_text(node.text), prompt=prompt)
    if node.type == "choice":
        options = engine.available_choices()
        labels = [engine.interpolate_text(option.choice.text) or "" for option in options]
        render.render_choices(options, labels)
    elif node.type == "chapter_end":
        print("(press Enter to finish)")


def _handle_command(engine: GameEngine, command: str, slots: SaveSlotStore) -> bool:
    """Apply one player command; return False when the player quits."""
    if command == "q":
        return False
    if command == "":
        node = engine.get_current_node()
        if node is not None and node.type == "choice":
            print("Choose an option by number.")
        else:
            engine.advance()
        return True
    if command.isdigit():
        _choose(engine, int(command))
        return True
    if command == "h":
        render.render_history(engine.get_history(), engine.interpolate_text)
        return True
    if command == "r":
        engine.restart()
        return True
    if command == "slots":
        render.render_slots(slots.list_slots())
        return True
    parts = command.split()
    if len(parts) == 2 and parts[0] in ("s", "l") and parts[1].isdigit():
        _save_or_load(engine, parts[0], int(parts[1]), slots)
        return True
    print(_HELP_TEXT)
    return True


def _choose(engine: GameEngine, number: int) -> None:
    options = engine.available_choices()
    if not options:
        print("There is nothing to choose here.")
        return
    if not 1 <= number <= len(options):
        print(f"Please enter a number between 1 and {len(options)}.")
        return
    option = options[number - 1]
    if not option.enabled:
        print(option.choice.disabled_text or "That choice is not available.")
        return
    engine.select_choice(option.index)


def _save_or_load(engine: GameEngine, action: str, slot: int, slots: SaveSlotStore) -> None:
    try:
        if action == "s":
            slots.write_slot(slot, engine.save())
            print(f"Saved to slot {slot}.")
            return
        if not slots.slot_exists(slot):
            print(f"Slot {slot} is empty.")
            return
        data = slots.read_slot(slot)
    except ValueError as exc:
        print(exc)
        return
    except OSError as exc:
        logger.error("Save slot %d is not accessible: %s", slot, exc)
        print(f"Slot {slot} could not be accessed.")
        return
    if engine.load(data):
        print(f"Loaded slot {slot}.")
    else:
        print(f"Slot {slot} does not hold a usable save for this story.")
