from storyloom.core.values import (
    copy_value,
    is_number,
    is_truthy,
    loose_equals,
    render_value,
    strict_equals,
    zero_value_like,
)


def test_is_number_excludes_booleans() -> None:
    assert is_number(3)
    assert is_number(2.5)
    assert not is_number(True)
    assert not is_number("3")


def test_zero_value_matches_reference_type() -> None:
    assert zero_value_like(10) == 0
    assert zero_value_like(True) is False
    assert zero_value_like("name") == ""
    assert zero_value_like(None) is False


def test_loose_equals_coerces_numbers_and_booleans() -> None:
    assert loose_equals(1, True)
    assert loose_equals(0, False)
    assert loose_equals("5", 5)
    assert loose_equals(2.0, 2)
    assert not loose_equals("abc", 0)
    assert not loose_equals(None, 0)
    assert loose_equals(None, None)


def test_strict_equals_is_type_aware() -> None:
    assert strict_equals(True, True)
    assert not strict_equals(1, True)
    assert not strict_equals("1", 1)
    assert strict_equals(1, 1.0)


def test_render_value_reads_like_json() -> None:
    assert render_value(True) == "true"
    assert render_value(None) == "null"
    assert render_value(25.0) == "25"
    assert render_value(2.5) == "2.5"
    assert render_value(["sword", "shield"]) == "sword, shield"


def test_copy_value_does_not_alias_lists() -> None:
    original = ["a"]
    copied = copy_value(original)
    copied.append("b")
    assert original == ["a"]


def test_is_truthy_treats_empty_list_as_set() -> None:
    assert is_truthy([])
    assert not is_truthy(0)
    assert not is_truthy("")
