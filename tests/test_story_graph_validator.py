from storyloom.data import get_sample_story_path, load_story_document
from storyloom.domain.defs import ChoiceDef, StageDef, StoryDocument, UnknownCondition
from storyloom.services.story_graph_validator import (
    format_issue,
    has_errors,
    validate_chapter,
    validate_chapter_by_id,
    validate_story_document,
)

from tests.helpers.story_builders import (
    chapter,
    choice_node,
    condition_node,
    dialogue,
    node,
    var_condition,
    var_def,
    var_op,
)


def _codes(issues) -> list[str]:
    return [issue.code for issue in issues]


def _valid_nodes():
    return [node("start", "start", "talk"), dialogue("talk", "Hi", "end"), node("end", "chapter_end")]


def test_bundled_sample_has_no_errors() -> None:
    issues = validate_story_document(load_story_document(get_sample_story_path()))
    assert not has_errors(issues), "\n".join(format_issue(issue) for issue in issues)


def test_valid_chapter_has_no_issues() -> None:
    assert validate_chapter(chapter("c1", _valid_nodes())) == []


def test_duplicate_node_ids_are_errors() -> None:
    issues = validate_chapter(chapter("c1", [*_valid_nodes(), dialogue("talk", "again")]))
    assert "DUPLICATE_NODE_ID" in _codes(issues)
    assert has_errors(issues)


def test_missing_start_and_chapter_end() -> None:
    issues = validate_chapter(chapter("c1", [dialogue("talk", "Hi")]))
    assert _codes(issues) == ["MISSING_START", "MISSING_CHAPTER_END"]


def test_multiple_start_nodes_warn() -> None:
    nodes = [*_valid_nodes(), node("start2", "start", "talk")]
    issues = validate_chapter(chapter("c1", nodes, start_node_id="start"))
    assert ("WARN", "MULTIPLE_START") in [(issue.severity, issue.code) for issue in issues]
    assert not has_errors(issues)


def test_dangling_references_include_field_path() -> None:
    nodes = [
        node("start", "start", "ask"),
        choice_node("ask", [ChoiceDef(id="a", text="A", next_node_id="ghost")]),
        condition_node("route", [(var_condition("x", "==", 1), "phantom")], default_next_node_id="end"),
        node("end", "chapter_end"),
    ]
    issues = [issue for issue in validate_chapter(chapter("c1", nodes)) if issue.code == "MISSING_NODE_REF"]
    assert [(issue.context["field_path"], issue.context["referenced_id"]) for issue in issues] == [
        ("choices[0].nextNodeId", "ghost"),
        ("conditionBranches[0].nextNodeId", "phantom"),
    ]


def test_missing_explicit_start_node_is_reported() -> None:
    issues = validate_chapter(chapter("c1", _valid_nodes(), start_node_id="opening"))
    assert any(
        issue.code == "MISSING_NODE_REF" and issue.context["field_path"] == "startNodeId" for issue in issues
    )


def test_unknown_variables_and_types_warn() -> None:
    nodes = [
        node("start", "start", "calc"),
        node(
            "calc",
            "variable",
            "route",
            variable_operations=[var_op("ghost", "add", 1), var_op("gold", "set", use_variable_value=True, source_variable_id="bonus")],
        ),
        condition_node("route", [(var_condition("missing", "==", 1), "end")], default_next_node_id="odd"),
        node("odd", "minigame", "end"),
        node("end", "chapter_end"),
    ]
    issues = validate_chapter(chapter("c1", nodes), global_variables=[var_def("gold", 0)])
    assert not has_errors(issues)
    assert [issue.context.get("referenced_id") for issue in issues if issue.code == "UNKNOWN_VARIABLE"] == [
        "ghost",
        "bonus",
        "missing",
    ]
    assert "UNKNOWN_NODE_TYPE" in _codes(issues)


def test_chapter_variables_count_as_declared() -> None:
    nodes = [
        node("start", "start", "calc"),
        node("calc", "variable", "end", variable_operations=[var_op("local", "set", 1)]),
        node("end", "chapter_end"),
    ]
    assert validate_chapter(chapter("c1", nodes, variables=[var_def("local", 0)])) == []


def test_unknown_condition_type_warns() -> None:
    nodes = [
        node("start", "start", "ask"),
        choice_node("ask", [ChoiceDef(id="a", text="A", next_node_id="end", condition=UnknownCondition(type="weather"))]),
        node("end", "chapter_end"),
    ]
    assert _codes(validate_chapter(chapter("c1", nodes))) == ["UNKNOWN_CONDITION_TYPE"]


def test_unreachable_nodes_warn() -> None:
    issues = validate_chapter(chapter("c1", [*_valid_nodes(), dialogue("orphan", "Nobody comes here.")]))
    assert [(issue.code, issue.context["node_id"]) for issue in issues] == [("UNREACHABLE_NODE", "orphan")]


def test_auto_advance_cycle_is_an_error() -> None:
    nodes = [
        node("start", "start", "a"),
        node("a", "variable", "b"),
        node("b", "image", "a"),
        node("end", "chapter_end"),
    ]
    issues = [issue for issue in validate_chapter(chapter("c1", nodes)) if issue.code == "AUTOADVANCE_CYCLE"]
    assert len(issues) == 1
    assert issues[0].context["cycle"] == "a -> b -> a"


def test_loop_through_condition_node_is_allowed() -> None:
    nodes = [
        node("start", "start", "count"),
        node("count", "variable", "check", variable_operations=[var_op("n", "add", 1)]),
        condition_node("check", [(var_condition("n", "<", 3), "count")], default_next_node_id="end"),
        node("end", "chapter_end"),
    ]
    issues = validate_chapter(chapter("c1", nodes), global_variables=[var_def("n", 0)])
    assert "AUTOADVANCE_CYCLE" not in _codes(issues)


def test_document_level_checks() -> None:
    assert _codes(validate_story_document(StoryDocument())) == ["NO_STAGES"]
    empty_stage = StoryDocument(stages=[StageDef(id="s1")])
    assert _codes(validate_story_document(empty_stage)) == ["EMPTY_STAGE"]


def test_validate_chapter_by_id_reports_missing_chapter() -> None:
    document = load_story_document(get_sample_story_path())
    assert _codes(validate_chapter_by_id(document, "stage1", "nope")) == ["MISSING_CHAPTER"]


def test_format_issue_includes_context() -> None:
    issues = validate_chapter(chapter("c1", [dialogue("talk", "Hi")]), stage_id="s1")
    assert format_issue(issues[0]) == "[ERROR] MISSING_START: Chapter has no start node. (stage_id=s1 chapter_id=c1)"
