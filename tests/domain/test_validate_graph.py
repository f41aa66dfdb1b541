from __future__ import annotations

from typing import Any

import pytest

from domain.models import Graph
from domain.services.validate_graph import (
    GraphValidationError,
    GraphValidator,
    IssueKind,
    format_location,
)


def _issues(raw: Any) -> list[tuple[IssueKind, str]]:
    report = GraphValidator().check(raw)
    return [(issue.kind, issue.location) for issue in report.issues]


def test_valid_payload_returns_typed_graph(raw_graph: dict[str, Any]) -> None:
    graph = GraphValidator().validate(raw_graph)

    assert isinstance(graph, Graph)
    assert graph.start_node == "a"
    assert [node.kind for node in graph.nodes] == ["agent", "agent_decision", "agent"]
    assert graph.edges[1].preconditions is not None
    assert graph.edges[1].preconditions[0].type == "agent_decision"


def test_report_is_ok_for_valid_payload(raw_graph: dict[str, Any]) -> None:
    report = GraphValidator().check(raw_graph)

    assert report.ok
    assert report.issues == []


def test_missing_start_node_is_structural(raw_graph: dict[str, Any]) -> None:
    del raw_graph["startNode"]

    assert (IssueKind.STRUCTURAL, "startNode") in _issues(raw_graph)


@pytest.mark.parametrize(
    ("mutate", "location_prefix"),
    [
        (lambda raw: raw["nodes"][0].update(kind="human"), "nodes[0]"),
        (lambda raw: raw["nodes"][1].pop("kind"), "nodes[1]"),
        (lambda raw: raw["nodes"][2].pop("text"), "nodes[2]"),
        (lambda raw: raw["nodes"][0].update(colour="red"), "nodes[0]"),
        (lambda raw: raw["edges"][1]["preconditions"][0].update(type="guess"), "edges[1]"),
        (lambda raw: raw["edges"][1]["preconditions"][0].update(value=""), "edges[1]"),
        (lambda raw: raw["edges"][0].pop("to"), "edges[0]"),
    ],
)
def test_shape_problems_are_structural(
    raw_graph: dict[str, Any], mutate: Any, location_prefix: str
) -> None:
    mutate(raw_graph)

    report = GraphValidator().check(raw_graph)

    assert report.graph is None
    structural = report.of_kind(IssueKind.STRUCTURAL)
    assert structural
    assert all(issue.location.startswith(location_prefix) for issue in structural)


def test_non_mapping_payload_is_structural() -> None:
    report = GraphValidator().check(["not", "a", "graph"])

    assert not report.ok
    assert [issue.kind for issue in report.issues] == [IssueKind.STRUCTURAL]


def test_unknown_edge_endpoint_is_referential(raw_graph: dict[str, Any]) -> None:
    raw_graph["edges"].append({"from": "c", "to": "ghost"})

    report = GraphValidator().check(raw_graph)

    [issue] = report.issues
    assert issue.kind is IssueKind.REFERENTIAL
    assert issue.location == "edges[2].to"
    assert issue.ref == "ghost"


def test_dangling_start_node_is_referential(raw_graph: dict[str, Any]) -> None:
    raw_graph["startNode"] = "nowhere"

    assert _issues(raw_graph) == [(IssueKind.REFERENTIAL, "startNode")]


def test_duplicate_node_ids_are_referential(raw_graph: dict[str, Any]) -> None:
    raw_graph["nodes"].append({"id": "b", "kind": "agent", "text": "", "description": ""})

    assert _issues(raw_graph) == [(IssueKind.REFERENTIAL, "nodes[3].id")]


def test_duplicate_agent_ids_are_referential(raw_graph: dict[str, Any]) -> None:
    raw_graph["agents"].append({"id": "helper"})

    assert _issues(raw_graph) == [(IssueKind.REFERENTIAL, "agents[1].id")]


def test_node_agent_must_reference_declared_agent(raw_graph: dict[str, Any]) -> None:
    raw_graph["nodes"][2]["agent"] = "stranger"

    assert _issues(raw_graph) == [(IssueKind.REFERENTIAL, "nodes[2].agent")]


def test_agents_keep_unknown_fields(raw_graph: dict[str, Any]) -> None:
    raw_graph["agents"][0]["voice"] = {"pitch": 3}

    graph = GraphValidator().validate(raw_graph)

    agent = graph.to_payload()["agents"][0]
    assert agent == {"id": "helper", "name": "Helper", "voice": {"pitch": 3}}


def test_mixed_precondition_types_conflict(raw_graph: dict[str, Any]) -> None:
    raw_graph["edges"][0]["preconditions"] = [
        {"type": "user_said", "value": "hi"},
        {"type": "user_said", "value": "hello"},
        {"type": "tool_call", "value": "lookup"},
    ]

    report = GraphValidator().check(raw_graph)

    [issue] = report.issues
    assert issue.kind is IssueKind.PRECONDITION_TYPE_CONFLICT
    assert issue.location == "edges[0].preconditions[2].type"
    assert issue.ref == "tool_call"


def test_all_problems_are_reported_together(raw_graph: dict[str, Any]) -> None:
    raw_graph["nodes"][0].pop("description")
    raw_graph["edges"].append({"from": "ghost", "to": "a"})
    raw_graph["edges"][1]["preconditions"].append({"type": "user_said", "value": "ok"})

    report = GraphValidator().check(raw_graph)

    kinds = {issue.kind for issue in report.issues}
    assert kinds == {
        IssueKind.STRUCTURAL,
        IssueKind.REFERENTIAL,
        IssueKind.PRECONDITION_TYPE_CONFLICT,
    }


def test_validate_raises_with_every_issue(raw_graph: dict[str, Any]) -> None:
    raw_graph["startNode"] = "nowhere"
    raw_graph["edges"].append({"from": "ghost", "to": "a"})

    with pytest.raises(GraphValidationError) as exc_info:
        GraphValidator().validate(raw_graph)

    assert isinstance(exc_info.value, ValueError)
    assert len(exc_info.value.issues) == 2
    assert "[ReferentialError] startNode" in str(exc_info.value)


def test_format_location_renders_indexes() -> None:
    assert format_location(("edges", 0, "preconditions", 2, "type")) == (
        "edges[0].preconditions[2].type"
    )
    assert format_location(()) == ""


def test_referential_checks_read_field_names_when_shape_fails(
    raw_graph: dict[str, Any],
) -> None:
    del raw_graph["startNode"]
    raw_graph["start_node"] = "ghost"
    raw_graph["nodes"][0].pop("description")
    raw_graph["edges"].append({"source": "a", "target": "nowhere"})

    issues = _issues(raw_graph)

    assert any(
        kind is IssueKind.STRUCTURAL and location.startswith("nodes[0]")
        for kind, location in issues
    )
    assert (IssueKind.REFERENTIAL, "start_node") in issues
    assert (IssueKind.REFERENTIAL, "edges[2].target") in issues
