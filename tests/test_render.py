"""Tests for CLI rendering utilities."""
import pytest

from storyloom.domain.defs import ChoiceDef
from storyloom.domain.state import ActiveImage, HistoryEntry, HistoryImageData
from storyloom.presentation.cli import render
from storyloom.presentation.cli.save_slots import SlotMetadata
from storyloom.services.game_engine import AvailableChoice


@pytest.fixture(autouse=True)
def _instant_mode(monkeypatch):
    monkeypatch.delenv("STORYLOOM_DEBUG", raising=False)
    render.set_text_display_mode("instant")
    yield
    render.set_text_display_mode("instant")


def test_wrap_text_short_text() -> None:
    """Short text should not be wrapped."""
    assert render.wrap_text("Hello world", width=50) == ["Hello world"]


def test_wrap_text_long_text_wraps_on_words() -> None:
    text = "This is a very long line that definitely needs to be wrapped because it exceeds the width"
    result = render.wrap_text(text, width=40)

    assert len(result) > 1
    assert all(len(line) <= 40 for line in result)
    assert " ".join(result) == text


def test_wrap_text_keeps_blank_lines() -> None:
    assert render.wrap_text("one\n\ntwo") == ["one", "", "two"]


def test_passage_prints_speaker_and_text(capsys) -> None:
    render.render_passage("greeting", "Merchant", "Well met!")
    assert capsys.readouterr().out == "Merchant:\nWell met!\n"


def test_debug_mode_prints_node_id(monkeypatch, capsys) -> None:
    monkeypatch.setenv("STORYLOOM_DEBUG", "1")
    render.render_passage("greeting", None, "Hi")
    assert capsys.readouterr().out.startswith("[greeting]\n")


def test_step_mode_pauses_between_paragraphs(capsys) -> None:
    prompts: list[str] = []
    render.set_text_display_mode("step")
    render.render_passage("n", None, "First.\n\nSecond.\n\nThird.", prompt=lambda text: prompts.append(text) or "")
    assert len(prompts) == 2
    assert "Third." in capsys.readouterr().out


def test_unknown_display_mode_falls_back_to_instant() -> None:
    render.set_text_display_mode("typewriter")
    assert render.get_text_display_mode() == "instant"


def test_choices_show_disabled_text(capsys) -> None:
    options = [
        AvailableChoice(index=0, choice=ChoiceDef(id="a", text="Buy"), enabled=True),
        AvailableChoice(index=1, choice=ChoiceDef(id="b", text="Steal", disabled_text="Too risky."), enabled=False),
        AvailableChoice(index=2, choice=ChoiceDef(id="c", text="Haggle"), enabled=False),
    ]
    render.render_choices(options, ["Buy", "Steal", "Haggle"])
    lines = capsys.readouterr().out.splitlines()
    assert lines[-3:] == ["1. Buy", "2. Steal [Too risky.]", "3. Haggle [unavailable]"]


def test_images_sorted_by_slot(capsys) -> None:
    images = [
        ActiveImage(id="c", instance_id=2, resource_path="ann.png", layer="character", layer_order=1, is_exiting=True, exit_effect="fadeOut"),
        ActiveImage(id="b", instance_id=1, resource_path="road.png", layer="background", layer_order=0, effects=["fadeIn"]),
    ]
    render.render_images(images)
    assert capsys.readouterr().out == (
        "Images: background[0] road.png (fadeIn); character[1] ann.png (leaving: fadeOut)\n"
    )


def test_history_entries_are_formatted(capsys) -> None:
    entries = [
        HistoryEntry(node_id="bg", type="image", content="", timestamp=0, image_data=HistoryImageData("road.png", "background")),
        HistoryEntry(node_id="hi", type="dialogue", content="Hello {{name}}", timestamp=1, speaker="Ann"),
        HistoryEntry(node_id="ask", type="choice", content="Well?", timestamp=2, choice_text="Leave"),
        HistoryEntry(node_id="rm", type="image", content="[image removed: character]", timestamp=3),
    ]
    render.render_history(entries, lambda text: text.replace("{{name}}", "Bo"))
    assert capsys.readouterr().out.splitlines()[-4:] == [
        "[image: road.png]",
        "Ann: Hello Bo",
        "> Leave",
        "[image removed: character]",
    ]


def test_slots_are_summarized(capsys) -> None:
    render.render_slots(
        [
            SlotMetadata(slot=1, exists=True, metadata={"current_chapter_id": "c1", "current_node_id": "n2", "play_time": 185000}),
            SlotMetadata(slot=2, exists=False),
            SlotMetadata(slot=3, exists=True, is_corrupt=True),
        ]
    )
    assert capsys.readouterr().out.splitlines()[-3:] == [
        "Slot 1: c1 / n2 (3 min played)",
        "Slot 2: empty",
        "Slot 3: unreadable",
    ]
