"""Shared CLI rendering helpers."""
from __future__ import annotations

import os
import textwrap
from typing import Callable, Iterable, Sequence

from storyloom.domain.state import ActiveImage, HistoryEntry
from storyloom.presentation.cli.save_slots import SlotMetadata
from storyloom.services.game_engine import AvailableChoice
from storyloom.services.story_graph_validator import Issue, format_issue

_TEXT_WIDTH = 72
_text_display_mode = "instant"


def debug_enabled() -> bool:
    """Return True only when STORYLOOM_DEBUG is explicitly set to '1'."""
    return os.getenv("STORYLOOM_DEBUG") == "1"


def set_text_display_mode(mode: str) -> None:
    """Select 'instant' (whole passage at once) or 'step' (pause between paragraphs)."""
    global _text_display_mode
    _text_display_mode = "step" if mode == "step" else "instant"


def get_text_display_mode() -> str:
    return _text_display_mode


def wrap_text(text: str, width: int = _TEXT_WIDTH) -> list[str]:
    """Wrap each paragraph on word boundaries, keeping blank lines between them."""
    if not text:
        return [""]
    lines: list[str] = []
    for paragraph in text.split("\n"):
        if not paragraph.strip():
            lines.append("")
            continue
        lines.extend(
            textwrap.wrap(paragraph, width=width, break_long_words=False, break_on_hyphens=False)
            or [""]
        )
    return lines


def render_heading(title: str) -> None:
    """Print a consistent section heading."""
    print(f"\n=== {title} ===")


def format_image(image: ActiveImage) -> str:
    label = f"{image.layer}[{image.layer_order}] {image.resource_path}"
    if image.is_exiting:
        label += f" (leaving: {image.exit_effect})"
    elif image.effects:
        label += f" ({', '.join(image.effects)})"
    elif image.effect and image.effect != "none":
        label += f" ({image.effect})"
    return label


def render_images(images: Sequence[ActiveImage]) -> None:
    if not images:
        return
    ordered = sorted(images, key=lambda image: (image.layer, image.layer_order))
    print("Images: " + "; ".join(format_image(image) for image in ordered))


def render_passage(
    node_id: str,
    speaker: str | None,
    text: str | None,
    *,
    prompt: Callable[[str], str] = input,
) -> None:
    """Print the speaker and wrapped text of a node."""
    if debug_enabled():
        print(f"[{node_id}]")
    if speaker:
        print(f"{speaker}:")
    paragraphs = [paragraph for paragraph in (text or "").split("\n\n") if paragraph.strip()]
    for index, paragraph in enumerate(paragraphs):
        for line in wrap_text(paragraph):
            print(line)
        if _text_display_mode == "step" and index < len(paragraphs) - 1:
            prompt("")


def format_choice(option: AvailableChoice, label: str) -> str:
    if option.enabled:
        return f"{option.index + 1}. {label}"
    locked_text = option.choice.disabled_text or "unavailable"
    return f"{option.index + 1}. {label} [{locked_text}]"


def render_choices(options: Sequence[AvailableChoice], labels: Sequence[str]) -> None:
    """Display numbered choices; gated ones show their disabled text."""
    if not options:
        return
    render_heading("Choices")
    for option, label in zip(options, labels):
        print(format_choice(option, label))


def format_history_entry(entry: HistoryEntry) -> str:
    if entry.type == "image":
        if entry.image_data is not None and not entry.image_data.is_removal:
            return f"[image: {entry.image_data.resource_path}]"
        return entry.content
    if entry.choice_text is not None:
        return f"> {entry.choice_text}"
    if entry.speaker:
        return f"{entry.speaker}: {entry.content}"
    return entry.content


def render_history(
    entries: Iterable[HistoryEntry], interpolate: Callable[[str], str | None] | None = None
) -> None:
    render_heading("Backlog")
    for entry in entries:
        line = format_history_entry(entry)
        if interpolate is not None:
            line = interpolate(line) or ""
        if line:
            print(line)


def render_issues(issues: Iterable[Issue]) -> None:
    for issue in issues:
        print(format_issue(issue))


def format_slot(entry: SlotMetadata) -> str:
    if not entry.exists:
        return f"Slot {entry.slot}: empty"
    if entry.is_corrupt or entry.metadata is None:
        return f"Slot {entry.slot}: unreadable"
    metadata = entry.metadata
    minutes = int(float(metadata.get("play_time") or 0) // 60000)
    return (
        f"Slot {entry.slot}: {metadata.get('current_chapter_id', '?')} / "
        f"{metadata.get('current_node_id', '?')} ({minutes} min played)"
    )


def render_slots(entries: Iterable[SlotMetadata]) -> None:
    render_heading("Save Slots")
    for entry in entries:
        print(format_slot(entry))
