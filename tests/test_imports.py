def test_import_storyloom_package() -> None:
    import importlib

    module = importlib.import_module("storyloom")
    assert module.__version__


def test_import_engine_has_no_side_effects() -> None:
    from storyloom.services import GameEngine
    from storyloom.domain.defs import StoryDocument

    engine = GameEngine(StoryDocument())
    assert engine.status == "idle"
    assert engine.get_current_node() is None
