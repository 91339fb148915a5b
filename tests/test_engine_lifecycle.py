from __future__ import annotations

import json

import pytest

from storyloom.core.scheduler import ManualScheduler
from storyloom.domain.defs import ChoiceDef
from storyloom.services.game_engine import EngineOptions, GameEngine

from tests.helpers.story_builders import (
    choice_node,
    dialogue,
    document,
    image_node,
    make_engine,
    node,
    var_def,
    var_op,
)


def _fade_story():
    return document(
        [
            node("start", "start", "show"),
            image_node("show", "talk", resource_path="ann.png", effects=["fadeIn"], effect_duration=500),
            dialogue("talk", "Hello.", "ask"),
            choice_node(
                "ask",
                [
                    ChoiceDef(id="stay", text="Stay", next_node_id="count"),
                    ChoiceDef(id="go", text="Go", next_node_id="bye"),
                ],
            ),
            node("count", "variable", "bye", variable_operations=[var_op("visits", "add", 1)]),
            dialogue("bye", "Farewell, visit {{visits}}."),
        ],
        variables=[var_def("visits", 0), var_def("bag", [])],
    )


def _play_to_choice(engine: GameEngine, scheduler: ManualScheduler) -> None:
    engine.start()
    scheduler.flush()
    engine.advance()


def test_restart_discards_stale_timers() -> None:
    engine, scheduler = make_engine(_fade_story())
    engine.start()
    assert engine.is_waiting
    scheduler.advance(300)

    engine.restart()
    scheduler.advance(200)

    assert engine.is_waiting
    assert engine.get_current_node().id == "show"
    scheduler.advance(300)
    assert engine.get_current_node().id == "talk"


def test_restart_resets_variables_and_history() -> None:
    engine, scheduler = make_engine(_fade_story())
    _play_to_choice(engine, scheduler)
    engine.select_choice(0)
    assert engine.get_variables().variables["visits"] == 1

    engine.restart()

    state = engine.get_state()
    assert state.variables.variables["visits"] == 0
    assert state.variables.choices_made == []
    assert [entry.node_id for entry in state.history] == ["show"]


def test_save_and_load_round_trip() -> None:
    engine, scheduler = make_engine(_fade_story())
    _play_to_choice(engine, scheduler)
    saved = engine.save()

    engine.select_choice(0)
    assert engine.get_current_node().id == "bye"

    assert engine.load(saved) is True
    state = engine.get_state()
    assert state.current_node_id == "ask"
    assert state.variables.variables == {"visits": 0, "bag": []}
    assert [image.resource_path for image in state.active_images] == ["ann.png"]
    assert engine.status == "playing"

    engine.select_choice(1)
    assert engine.get_current_node().id == "bye"


def test_save_payload_carries_metadata() -> None:
    engine, scheduler = make_engine(_fade_story())
    _play_to_choice(engine, scheduler)
    payload = json.loads(engine.save())
    assert payload["save_version"] == 1
    assert payload["metadata"]["story_name"] == "Test Story"
    assert payload["metadata"]["current_node_id"] == "ask"
    assert payload["metadata"]["play_time"] == 500


@pytest.mark.parametrize(
    "data",
    [
        "not json",
        "[]",
        json.dumps({"save_version": 99, "state": {}}),
        json.dumps({"save_version": 1}),
        pytest.param("[" * 100000 + "]" * 100000, id="deeply-nested"),
    ],
)
def test_malformed_load_leaves_state_untouched(data: str, caplog) -> None:
    engine, scheduler = make_engine(_fade_story())
    _play_to_choice(engine, scheduler)
    before = engine.get_state()

    assert engine.load(data) is False

    after = engine.get_state()
    assert after.current_node_id == before.current_node_id
    assert after.variables == before.variables
    assert "Failed to load save data" in caplog.text


def test_load_rejects_save_for_unknown_node() -> None:
    engine, scheduler = make_engine(_fade_story())
    _play_to_choice(engine, scheduler)
    payload = json.loads(engine.save())
    payload["state"]["current_node_id"] = "gone"
    assert engine.load(json.dumps(payload)) is False
    assert engine.get_current_node().id == "ask"


def test_load_drops_exiting_images_and_pending_timers() -> None:
    story = document(
        [
            node("start", "start", "first"),
            image_node("first", "second", resource_path="a.png"),
            image_node("second", "talk", resource_path="b.png", exit_effect="fadeOut", exit_effect_duration=300),
            dialogue("talk", "..."),
        ]
    )
    engine, scheduler = make_engine(story)
    engine.start()
    saved = engine.save()
    assert [image.is_exiting for image in engine.get_state().active_images] == [True]

    assert engine.load(saved)
    assert engine.get_state().active_images == []

    scheduler.flush()
    assert engine.get_state().active_images == []


def test_loaded_images_keep_instance_ids_unique() -> None:
    story = document(
        [
            node("start", "start", "bg"),
            image_node("bg", "talk", resource_path="bg.png"),
            dialogue("talk", "...", "portrait"),
            image_node("portrait", "end", resource_path="ann.png", layer="character"),
            dialogue("end", "..."),
        ]
    )
    first, _ = make_engine(story)
    first.start()
    saved = first.save()

    second, _ = make_engine(story)
    second.load(saved)
    second.advance()
    ids = [image.instance_id for image in second.get_state().active_images]
    assert len(ids) == len(set(ids)) == 2


def test_load_notifies_observers() -> None:
    seen = []
    engine, scheduler = make_engine(_fade_story(), on_node_change=seen.append)
    _play_to_choice(engine, scheduler)
    saved = engine.save()
    seen.clear()

    engine.load(saved)
    assert [current.id for current in seen] == ["ask"]


def test_play_time_accumulates_across_loads() -> None:
    engine, scheduler = make_engine(_fade_story())
    _play_to_choice(engine, scheduler)
    scheduler.advance(1000)
    saved = engine.save()

    engine.load(saved)
    scheduler.advance(250)
    assert json.loads(engine.save())["metadata"]["play_time"] == 1750


def test_default_engine_without_scheduler_uses_manual_timers() -> None:
    engine = GameEngine(_fade_story(), EngineOptions(clock=lambda: 0.0))
    engine.start()
    assert isinstance(engine.scheduler, ManualScheduler)
    assert engine.is_waiting
    engine.scheduler.flush()
    assert engine.get_current_node().id == "talk"


def test_fired_timers_are_released_across_image_loops() -> None:
    story = document(
        [
            node("start", "start", "show"),
            image_node(
                "show",
                "ask",
                resource_path="ann.png",
                effects=["fadeIn"],
                effect_duration=100,
                exit_effect="fadeOut",
                exit_effect_duration=50,
            ),
            choice_node("ask", [ChoiceDef(id="again", text="Again", next_node_id="show")]),
        ]
    )
    engine, scheduler = make_engine(story)
    engine.start()
    scheduler.flush()
    for _ in range(500):
        engine.select_choice(0)
        scheduler.flush()

    assert engine.get_current_node().id == "ask"
    assert scheduler.pending_count == 0
    assert engine._timers == []
