from __future__ import annotations

from storyloom.domain.defs import ChoiceDef
from storyloom.domain.state import ActiveImage

from tests.helpers.story_builders import choice_node, dialogue, document, image_node, make_engine, node


def _paths(images: list[ActiveImage]) -> list[str]:
    return [image.resource_path for image in images]


def test_same_slot_replaces_previous_image() -> None:
    story = document(
        [
            node("start", "start", "bg1"),
            image_node("bg1", "bg2", resource_path="forest.png"),
            image_node("bg2", "talk", resource_path="cave.png"),
            dialogue("talk", "Dark in here."),
        ]
    )
    engine, _ = make_engine(story)
    engine.start()
    assert _paths(engine.get_state().active_images) == ["cave.png"]


def test_different_slots_coexist() -> None:
    story = document(
        [
            node("start", "start", "bg"),
            image_node("bg", "left", resource_path="street.png"),
            image_node("left", "right", resource_path="ann.png", layer="character", layer_order=0),
            image_node("right", "talk", resource_path="bo.png", layer="character", layer_order=1),
            dialogue("talk", "Hello."),
        ]
    )
    engine, _ = make_engine(story)
    engine.start()
    images = engine.get_state().active_images
    assert sorted(_paths(images)) == ["ann.png", "bo.png", "street.png"]
    assert len({image.instance_id for image in images}) == 3


def test_clear_directive_empties_slot() -> None:
    story = document(
        [
            node("start", "start", "show"),
            image_node("show", "hide", resource_path="ann.png", layer="character"),
            image_node("hide", "talk", resource_path="", layer="character"),
            dialogue("talk", "She is gone."),
        ]
    )
    engine, _ = make_engine(story)
    engine.start()
    state = engine.get_state()
    assert state.active_images == []
    assert [entry.content for entry in state.history][-2:] == ["[image removed: character]", "She is gone."]


def test_sequential_exit_delays_entrance_until_exit_finishes() -> None:
    story = document(
        [
            node("start", "start", "first"),
            image_node("first", "second", resource_path="ann.png", layer="character"),
            image_node(
                "second",
                "talk",
                resource_path="ann_smile.png",
                layer="character",
                exit_effect="fadeOut",
                exit_effect_duration=300,
            ),
            dialogue("talk", "Hi!"),
        ]
    )
    engine, scheduler = make_engine(story)
    engine.start()

    images = engine.get_state().active_images
    assert _paths(images) == ["ann.png"]
    assert images[0].is_exiting
    assert engine.get_current_node().id == "talk"

    scheduler.advance(299)
    assert _paths(engine.get_state().active_images) == ["ann.png"]

    scheduler.advance(1)
    images = engine.get_state().active_images
    assert _paths(images) == ["ann_smile.png"]
    assert not images[0].is_exiting


def test_crossfade_adds_entrance_immediately() -> None:
    story = document(
        [
            node("start", "start", "first"),
            image_node("first", "second", resource_path="ann.png", layer="character"),
            image_node(
                "second",
                "talk",
                resource_path="ann_smile.png",
                layer="character",
                exit_effect="fadeOut",
                exit_effect_duration=300,
                transition_timing="crossfade",
            ),
            dialogue("talk", "Hi!"),
        ]
    )
    engine, scheduler = make_engine(story)
    engine.start()

    images = engine.get_state().active_images
    assert sorted(_paths(images)) == ["ann.png", "ann_smile.png"]
    assert [image.is_exiting for image in images if image.resource_path == "ann.png"] == [True]

    scheduler.advance(300)
    assert _paths(engine.get_state().active_images) == ["ann_smile.png"]


def test_exit_without_duration_uses_default() -> None:
    story = document(
        [
            node("start", "start", "first"),
            image_node("first", "second", resource_path="a.png"),
            image_node("second", "talk", resource_path="b.png", exit_effect="fadeOut"),
            dialogue("talk", "..."),
        ]
    )
    engine, scheduler = make_engine(story, default_exit_duration_ms=200)
    engine.start()
    scheduler.advance(199)
    assert _paths(engine.get_state().active_images) == ["a.png"]
    scheduler.advance(1)
    assert _paths(engine.get_state().active_images) == ["b.png"]


def test_entrance_effect_defers_next_node() -> None:
    story = document(
        [
            node("start", "start", "show"),
            image_node("show", "talk", resource_path="ann.png", effects=["fadeIn"], effect_duration=500),
            dialogue("talk", "Hello there."),
        ]
    )
    engine, scheduler = make_engine(story)
    engine.start()

    assert engine.get_current_node().id == "show"
    assert engine.is_waiting
    engine.advance()
    engine.advance()
    assert engine.get_current_node().id == "show"

    scheduler.advance(499)
    assert engine.get_current_node().id == "show"
    scheduler.advance(1)
    assert engine.get_current_node().id == "talk"
    assert not engine.is_waiting


def test_legacy_single_effect_also_defers() -> None:
    story = document(
        [
            node("start", "start", "show"),
            image_node("show", "talk", resource_path="ann.png", effect="shake", effect_duration=100),
            dialogue("talk", "Whoa."),
        ]
    )
    engine, scheduler = make_engine(story)
    engine.start()
    assert engine.is_waiting
    scheduler.flush()
    assert engine.get_current_node().id == "talk"


def test_choice_selection_is_ignored_while_waiting() -> None:
    story = document(
        [
            node("start", "start", "ask"),
            choice_node("ask", [ChoiceDef(id="look", text="Look", next_node_id="show")]),
            image_node("show", "ask2", resource_path="view.png", effects=["fadeIn"], effect_duration=200),
            choice_node("ask2", [ChoiceDef(id="leave", text="Leave", next_node_id="bye")]),
            dialogue("bye", "Bye."),
        ]
    )
    engine, scheduler = make_engine(story)
    engine.start()
    engine.select_choice(0)
    assert engine.is_waiting

    engine.select_choice(0)
    assert engine.get_variables().choices_made == ["look"]

    scheduler.flush()
    engine.select_choice(0)
    assert engine.get_current_node().id == "bye"


def test_newer_directive_supersedes_pending_entrance() -> None:
    story = document(
        [
            node("start", "start", "first"),
            image_node("first", "second", resource_path="a.png"),
            image_node("second", "third", resource_path="b.png", exit_effect="fadeOut", exit_effect_duration=300),
            image_node("third", "talk", resource_path="c.png"),
            dialogue("talk", "..."),
        ]
    )
    engine, scheduler = make_engine(story)
    engine.start()
    assert sorted(_paths(engine.get_state().active_images)) == ["a.png", "c.png"]

    scheduler.flush()
    assert _paths(engine.get_state().active_images) == ["c.png"]


def test_instance_ids_keep_increasing_across_restart() -> None:
    story = document(
        [
            node("start", "start", "bg"),
            image_node("bg", "talk", resource_path="bg.png"),
            dialogue("talk", "..."),
        ]
    )
    engine, _ = make_engine(story)
    engine.start()
    first = engine.get_state().active_images[0].instance_id
    engine.restart()
    second = engine.get_state().active_images[0].instance_id
    assert second > first


def test_image_history_entry_carries_image_data() -> None:
    story = document(
        [
            node("start", "start", "bg"),
            image_node("bg", "talk", resource_path="bg.png", effects=["fadeIn"]),
            dialogue("talk", "..."),
        ]
    )
    engine, _ = make_engine(story)
    engine.start()
    entry = engine.get_history()[0]
    assert entry.type == "image"
    assert entry.image_data is not None
    assert entry.image_data.resource_path == "bg.png"
    assert entry.image_data.effects == ["fadeIn"]
