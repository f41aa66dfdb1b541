from __future__ import annotations

import pytest

from domain.models import Agent, Graph, Position
from domain.services import edit_graph
from domain.services.edit_graph import GraphEditError, PreconditionTypeConflictError
from domain.services.validate_graph import GraphValidator, IssueKind


def _rename_fixture() -> Graph:
    return Graph.model_validate(
        {
            "startNode": "n1",
            "nodes": [
                {"id": "n1", "kind": "agent", "text": "", "description": ""},
                {"id": "n3", "kind": "agent", "text": "", "description": ""},
            ],
            "edges": [{"from": "n1", "to": "n3"}, {"from": "n3", "to": "n1"}],
        }
    )


def test_rename_updates_every_reference() -> None:
    graph = _rename_fixture()

    renamed = edit_graph.rename_node(graph, "n1", "n2")

    assert renamed.node_ids() == ["n2", "n3"]
    assert [(edge.source, edge.target) for edge in renamed.edges] == [("n2", "n3"), ("n3", "n2")]
    assert renamed.start_node == "n2"
    assert graph.node_ids() == ["n1", "n3"]
    assert GraphValidator().check(renamed.to_payload()).ok


def test_rename_to_blank_or_same_id_is_a_no_op() -> None:
    graph = _rename_fixture()

    assert edit_graph.rename_node(graph, "n1", "   ") is graph
    assert edit_graph.rename_node(graph, "n1", "n1") is graph


def test_rename_rejects_taken_and_unknown_ids() -> None:
    graph = _rename_fixture()

    with pytest.raises(GraphEditError, match="already in use"):
        edit_graph.rename_node(graph, "n1", "n3")
    with pytest.raises(GraphEditError, match="Unknown node"):
        edit_graph.rename_node(graph, "ghost", "n9")


def test_add_node_generates_unique_id(graph: Graph) -> None:
    updated = edit_graph.add_node(graph, kind="agent_decision", position=Position(x=5, y=6))

    added = updated.nodes[-1]
    assert added.id.startswith("node_")
    assert added.kind == "agent_decision"
    assert added.text == "New node"
    assert added.position == Position(x=5, y=6)
    assert len(graph.nodes) == 3


def test_add_node_rejects_duplicate_id(graph: Graph) -> None:
    with pytest.raises(GraphEditError):
        edit_graph.add_node(graph, node_id="a")


def test_update_node_changes_fields_but_not_id(graph: Graph) -> None:
    updated = edit_graph.update_node(graph, "a", text="Hi there", next_node_is_user=True)

    node = updated.find_node("a")
    assert node is not None
    assert node.text == "Hi there"
    assert node.next_node_is_user is True
    assert node.agent == "helper"
    with pytest.raises(GraphEditError):
        edit_graph.update_node(graph, "a", id="z")


def test_move_node(graph: Graph) -> None:
    moved = edit_graph.move_node(graph, "b", Position(x=42, y=7))

    node = moved.find_node("b")
    assert node is not None and node.position == Position(x=42, y=7)


def test_delete_node_drops_incident_edges(graph: Graph) -> None:
    updated = edit_graph.delete_node(graph, "b")

    assert updated.node_ids() == ["a", "c"]
    assert updated.edges == []


def test_deleting_start_node_is_caught_by_validation(graph: Graph) -> None:
    updated = edit_graph.delete_node(graph, "a")

    report = GraphValidator().check(updated.to_payload())

    assert [issue.location for issue in report.of_kind(IssueKind.REFERENTIAL)] == ["startNode"]


def test_add_and_remove_edge(graph: Graph) -> None:
    updated = edit_graph.add_edge(graph, "c", "a")

    assert (updated.edges[-1].source, updated.edges[-1].target) == ("c", "a")
    assert updated.edges[-1].preconditions is None

    trimmed = edit_graph.remove_edge(updated, 0)
    assert [(edge.source, edge.target) for edge in trimmed.edges] == [("b", "c"), ("c", "a")]

    with pytest.raises(GraphEditError):
        edit_graph.add_edge(graph, "c", "ghost")
    with pytest.raises(GraphEditError):
        edit_graph.remove_edge(graph, 5)


def test_first_precondition_locks_edge_type(graph: Graph) -> None:
    updated = edit_graph.add_precondition(graph, 0, "user_said", "hello ", description=" greeting ")
    updated = edit_graph.add_precondition(updated, 0, "user_said", "hi")

    preconditions = updated.edges[0].preconditions
    assert preconditions is not None
    assert [(item.type, item.value) for item in preconditions] == [
        ("user_said", "hello"),
        ("user_said", "hi"),
    ]
    assert preconditions[0].description == "greeting"
    assert preconditions[1].description is None

    with pytest.raises(PreconditionTypeConflictError) as exc_info:
        edit_graph.add_precondition(updated, 0, "tool_call", "lookup")
    assert exc_info.value.locked_type == "user_said"
    assert exc_info.value.attempted_type == "tool_call"
    assert exc_info.value.edge_index == 0


def test_removing_last_precondition_releases_lock(graph: Graph) -> None:
    updated = edit_graph.remove_precondition(graph, 1, 0)

    assert updated.edges[1].preconditions is None
    relocked = edit_graph.add_precondition(updated, 1, "tool_call", "lookup")
    assert relocked.edges[1].locked_precondition_type() == "tool_call"


def test_blank_precondition_value_is_rejected(graph: Graph) -> None:
    with pytest.raises(GraphEditError, match="blank"):
        edit_graph.add_precondition(graph, 0, "user_said", "   ")
    with pytest.raises(GraphEditError):
        edit_graph.remove_precondition(graph, 1, 3)


def test_context_preconditions_are_copied(graph: Graph) -> None:
    context = {"requires": ["order_id"], "ttl": 30}

    updated = edit_graph.set_context_preconditions(graph, 0, context)
    context["requires"].append("user_id")

    assert updated.edges[0].context_preconditions == {"requires": ["order_id"], "ttl": 30}
    cleared = edit_graph.set_context_preconditions(updated, 0, None)
    assert cleared.edges[0].context_preconditions is None


def test_agent_lifecycle(graph: Graph) -> None:
    updated = edit_graph.add_agent(graph, Agent(id="closer", name="Closer"))
    updated = edit_graph.update_agent(updated, "closer", name="Closing agent")
    updated = edit_graph.update_node(updated, "c", agent="closer")

    assert [agent.id for agent in updated.agents] == ["helper", "closer"]
    assert updated.agents[1].model_dump() == {"id": "closer", "name": "Closing agent"}

    removed = edit_graph.delete_agent(updated, "closer")
    node = removed.find_node("c")
    assert node is not None and node.agent is None
    assert GraphValidator().check(removed.to_payload()).ok

    with pytest.raises(GraphEditError):
        edit_graph.add_agent(graph, Agent(id="helper"))
    with pytest.raises(GraphEditError):
        edit_graph.update_agent(graph, "ghost", name="x")
