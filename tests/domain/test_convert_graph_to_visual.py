from __future__ import annotations

from typing import Any

from domain.models import Graph, Position, Size
from domain.services.convert_graph_to_visual import GraphToVisualConverter
from tests.helpers.graph_fixtures import load_example_graph, positioned_payload


def test_unpositioned_nodes_use_fallback_grid() -> None:
    nodes = [
        {"id": f"n{idx}", "kind": "agent", "text": "", "description": ""} for idx in range(7)
    ]
    graph = Graph.model_validate({"startNode": "n0", "nodes": nodes})

    visual = GraphToVisualConverter().convert(graph)

    coords = [(node.position.x, node.position.y) for node in visual.nodes]
    assert coords == [
        (0, 0),
        (300, 0),
        (600, 0),
        (900, 0),
        (1200, 0),
        (0, 150),
        (300, 150),
    ]


def test_fallback_grid_is_configurable() -> None:
    converter = GraphToVisualConverter(grid_columns=2, grid_cell=Size(100, 50))

    assert converter.fallback_position(3) == Position(x=100, y=50)


def test_nodes_keep_schema_fields(graph: Graph) -> None:
    visual = GraphToVisualConverter().convert(graph, node_width=120)

    first = visual.nodes[0]
    assert first.id == "a"
    assert first.type == "agent"
    assert first.data.node_id == "a"
    assert first.data.text == "Hello"
    assert first.data.agent == "helper"
    assert first.data.node_width == 120
    assert visual.nodes[1].type == "agent_decision"
    assert visual.nodes[2].data.next_node_is_user is True
    assert visual.start_node == "a"
    assert visual.node_width == 120


def test_edges_get_ordinal_ids_and_no_handles_without_positions(graph: Graph) -> None:
    visual = GraphToVisualConverter().convert(graph)

    assert [edge.id for edge in visual.edges] == ["a-b-0", "b-c-1"]
    assert all(edge.type == "precondition" for edge in visual.edges)
    assert all(edge.source_handle is None and edge.target_handle is None for edge in visual.edges)
    preconditions = visual.edges[1].data.preconditions
    assert preconditions is not None
    assert preconditions[0].value == "done"


def test_parallel_edges_get_distinct_ids() -> None:
    visual = GraphToVisualConverter().convert(load_example_graph("positioned_flow.json"))

    ids = [edge.id for edge in visual.edges]
    assert ids == ["greet-decide-0", "decide-farewell-1", "decide-farewell-2"]


def test_handles_follow_stored_positions() -> None:
    graph = Graph.model_validate(
        positioned_payload({"a": (0, 0), "b": (400, 20), "c": (420, 400)})
    )

    visual = GraphToVisualConverter().convert(graph, node_width=180)

    first, second = visual.edges
    assert (first.source_handle, first.target_handle) == ("right-source", "left-target")
    assert (second.source_handle, second.target_handle) == ("bottom-source", "top-target")


def test_handles_need_both_endpoints_positioned() -> None:
    graph = Graph.model_validate(positioned_payload({"a": (0, 0), "b": (400, 0)}))

    visual = GraphToVisualConverter().convert(graph)

    assert visual.edges[0].source_handle == "right-source"
    assert visual.edges[1].source_handle is None


def test_visual_graph_does_not_share_mutable_state() -> None:
    graph = load_example_graph("support_flow.json")

    visual = GraphToVisualConverter().convert(graph)
    context: Any = visual.edges[4].data.context_preconditions
    context["requires"].append("customer_id")
    visual.agents[0].name = "Renamed"

    assert graph.edges[4].context_preconditions == {"requires": ["invoice_id"]}
    assert graph.agents[0].name == "Triage agent"
