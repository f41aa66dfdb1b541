from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, Optional

from domain.models import (
    NODE_KIND_AGENT,
    Agent,
    BaseNode,
    ContextPreconditions,
    Edge,
    Graph,
    Position,
    Precondition,
    build_node,
)

NEW_NODE_TEXT = "New node"


class GraphEditError(ValueError):
    pass


class PreconditionTypeConflictError(GraphEditError):
    def __init__(self, edge_index: int, locked_type: str, attempted_type: str) -> None:
        self.edge_index = edge_index
        self.locked_type = locked_type
        self.attempted_type = attempted_type
        super().__init__(
            f"Edge {edge_index} preconditions are locked to '{locked_type}', "
            f"cannot add '{attempted_type}'"
        )


def _require_node(graph: Graph, node_id: str) -> BaseNode:
    node = graph.find_node(node_id)
    if node is None:
        msg = f"Unknown node id: {node_id}"
        raise GraphEditError(msg)
    return node


def _require_edge(graph: Graph, edge_index: int) -> Edge:
    if not 0 <= edge_index < len(graph.edges):
        msg = f"Unknown edge index: {edge_index}"
        raise GraphEditError(msg)
    return graph.edges[edge_index]


def _replace_edge(graph: Graph, edge_index: int, edge: Edge) -> Graph:
    edges = list(graph.edges)
    edges[edge_index] = edge
    return graph.model_copy(update={"edges": edges})


def new_node_id(graph: Graph) -> str:
    existing = set(graph.node_ids())
    while True:
        candidate = f"node_{uuid.uuid4().hex[:8]}"
        if candidate not in existing:
            return candidate


def rename_node(graph: Graph, old_id: str, new_id: str) -> Graph:
    """Rename a node and every reference to it in one step.

    Edge endpoints and ``startNode`` follow the new id. A blank or unchanged
    id leaves the graph as is.
    """
    new_id = new_id.strip()
    if not new_id or new_id == old_id:
        return graph
    _require_node(graph, old_id)
    if graph.find_node(new_id) is not None:
        msg = f"Node id already in use: {new_id}"
        raise GraphEditError(msg)

    nodes = [
        node.model_copy(update={"id": new_id}) if node.id == old_id else node
        for node in graph.nodes
    ]
    edges = [
        edge.model_copy(
            update={
                "source": new_id if edge.source == old_id else edge.source,
                "target": new_id if edge.target == old_id else edge.target,
            }
        )
        for edge in graph.edges
    ]
    start_node = new_id if graph.start_node == old_id else graph.start_node
    return graph.model_copy(update={"nodes": nodes, "edges": edges, "start_node": start_node})


def add_node(
    graph: Graph,
    node_id: Optional[str] = None,
    kind: str = NODE_KIND_AGENT,
    text: str = NEW_NODE_TEXT,
    description: str = "",
    position: Optional[Position] = None,
) -> Graph:
    node_id = node_id.strip() if node_id else new_node_id(graph)
    if graph.find_node(node_id) is not None:
        msg = f"Node id already in use: {node_id}"
        raise GraphEditError(msg)
    payload: Dict[str, Any] = {
        "id": node_id,
        "kind": kind,
        "text": text,
        "description": description,
    }
    if position is not None:
        payload["position"] = position.to_payload()
    node = build_node(payload)
    return graph.model_copy(update={"nodes": [*graph.nodes, node]})


def update_node(graph: Graph, node_id: str, **changes: Any) -> Graph:
    if "id" in changes:
        msg = "Use rename_node to change a node id"
        raise GraphEditError(msg)
    node = _require_node(graph, node_id)
    payload = node.model_dump(by_alias=False)
    payload.update(changes)
    updated = build_node(payload)
    nodes = [updated if item.id == node_id else item for item in graph.nodes]
    return graph.model_copy(update={"nodes": nodes})


def move_node(graph: Graph, node_id: str, position: Position) -> Graph:
    _require_node(graph, node_id)
    nodes = [
        node.model_copy(update={"position": position}) if node.id == node_id else node
        for node in graph.nodes
    ]
    return graph.model_copy(update={"nodes": nodes})


def delete_node(graph: Graph, node_id: str) -> Graph:
    _require_node(graph, node_id)
    nodes = [node for node in graph.nodes if node.id != node_id]
    edges = [
        edge for edge in graph.edges if edge.source != node_id and edge.target != node_id
    ]
    return graph.model_copy(update={"nodes": nodes, "edges": edges})


def add_edge(graph: Graph, source: str, target: str) -> Graph:
    _require_node(graph, source)
    _require_node(graph, target)
    edge = Edge(source=source, target=target)
    return graph.model_copy(update={"edges": [*graph.edges, edge]})


def remove_edge(graph: Graph, edge_index: int) -> Graph:
    _require_edge(graph, edge_index)
    edges = [edge for idx, edge in enumerate(graph.edges) if idx != edge_index]
    return graph.model_copy(update={"edges": edges})


def add_precondition(
    graph: Graph,
    edge_index: int,
    precondition_type: str,
    value: str,
    description: Optional[str] = None,
) -> Graph:
    """Append a precondition; the first one on an edge locks the type for the rest."""
    edge = _require_edge(graph, edge_index)
    value = value.strip()
    if not value:
        msg = "Precondition value must not be blank"
        raise GraphEditError(msg)
    locked = edge.locked_precondition_type()
    if locked is not None and locked != precondition_type:
        raise PreconditionTypeConflictError(edge_index, locked, precondition_type)

    description = description.strip() if description else None
    precondition = Precondition.model_validate(
        {"type": precondition_type, "value": value, "description": description or None}
    )
    preconditions = [*(edge.preconditions or []), precondition]
    updated = edge.model_copy(update={"preconditions": preconditions})
    return _replace_edge(graph, edge_index, updated)


def remove_precondition(graph: Graph, edge_index: int, precondition_index: int) -> Graph:
    edge = _require_edge(graph, edge_index)
    current = edge.preconditions or []
    if not 0 <= precondition_index < len(current):
        msg = f"Unknown precondition index {precondition_index} on edge {edge_index}"
        raise GraphEditError(msg)
    remaining = [item for idx, item in enumerate(current) if idx != precondition_index]
    return _replace_edge(
        graph, edge_index, edge.model_copy(update={"preconditions": remaining or None})
    )


def set_context_preconditions(
    graph: Graph, edge_index: int, context: Optional[ContextPreconditions]
) -> Graph:
    edge = _require_edge(graph, edge_index)
    updated = edge.model_copy(update={"context_preconditions": copy.deepcopy(context)})
    return _replace_edge(graph, edge_index, updated)


def add_agent(graph: Graph, agent: Agent) -> Graph:
    if any(item.id == agent.id for item in graph.agents):
        msg = f"Agent id already in use: {agent.id}"
        raise GraphEditError(msg)
    return graph.model_copy(update={"agents": [*graph.agents, agent]})


def update_agent(graph: Graph, agent_id: str, **changes: Any) -> Graph:
    if "id" in changes:
        msg = "Agent ids cannot be changed"
        raise GraphEditError(msg)
    if not any(agent.id == agent_id for agent in graph.agents):
        msg = f"Unknown agent id: {agent_id}"
        raise GraphEditError(msg)
    agents = [
        Agent.model_validate({**agent.model_dump(), **changes}) if agent.id == agent_id else agent
        for agent in graph.agents
    ]
    return graph.model_copy(update={"agents": agents})


def delete_agent(graph: Graph, agent_id: str) -> Graph:
    agents = [agent for agent in graph.agents if agent.id != agent_id]
    nodes = [
        node.model_copy(update={"agent": None}) if node.agent == agent_id else node
        for node in graph.nodes
    ]
    return graph.model_copy(update={"agents": agents, "nodes": nodes})
