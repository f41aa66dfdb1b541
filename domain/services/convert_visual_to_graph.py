from __future__ import annotations

import copy
from typing import Any, Dict

from domain.models import Graph, VisualEdge, VisualGraph, VisualNode, dump_agents
from domain.services.validate_graph import GraphValidator


class VisualToGraphConverter:
    """Inverts ``GraphToVisualConverter`` field for field.

    ``nodeWidth`` and handle ids are editor-only and are dropped. Only
    ``convert`` produces an exportable graph: it runs the validator and raises
    ``GraphValidationError`` with every issue found.
    """

    def __init__(self, validator: GraphValidator | None = None) -> None:
        self.validator = validator or GraphValidator()

    def convert(self, visual: VisualGraph) -> Graph:
        return self.validator.validate(self.to_payload(visual))

    def to_graph(self, visual: VisualGraph) -> Graph:
        # Shape check only; referential problems are left for export.
        return Graph.model_validate(self.to_payload(visual))

    def to_payload(self, visual: VisualGraph) -> Dict[str, Any]:
        return {
            "startNode": visual.start_node,
            "agents": dump_agents(visual.agents),
            "nodes": [self._node_payload(node) for node in visual.nodes],
            "edges": [self._edge_payload(edge) for edge in visual.edges],
        }

    def _node_payload(self, node: VisualNode) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": node.id,
            "kind": node.type,
            "text": node.data.text,
            "description": node.data.description,
        }
        if node.data.agent is not None:
            payload["agent"] = node.data.agent
        if node.data.next_node_is_user is not None:
            payload["nextNodeIsUser"] = node.data.next_node_is_user
        payload["position"] = node.position.to_payload()
        return payload

    def _edge_payload(self, edge: VisualEdge) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"from": edge.source, "to": edge.target}
        if edge.data.preconditions is not None:
            payload["preconditions"] = [
                precondition.to_payload() for precondition in edge.data.preconditions
            ]
        if edge.data.context_preconditions is not None:
            payload["contextPreconditions"] = copy.deepcopy(edge.data.context_preconditions)
        return payload
