from __future__ import annotations

import copy
from typing import Dict, Optional

from domain.models import (
    VISUAL_EDGE_TYPE,
    BaseNode,
    Edge,
    Graph,
    Point,
    Position,
    Size,
    VisualEdge,
    VisualEdgeData,
    VisualGraph,
    VisualNode,
    VisualNodeData,
)
from domain.services.handle_geometry import (
    DEFAULT_HANDLE_NODE_SIZE,
    closest_handles,
    node_center,
)

FALLBACK_GRID_COLUMNS = 5
FALLBACK_GRID_CELL = Size(300, 150)


def visual_edge_id(source: str, target: str, ordinal: int) -> str:
    return f"{source}-{target}-{ordinal}"


class GraphToVisualConverter:
    """Builds the editor representation of a schema graph.

    Nodes without a stored position land on a simple fallback grid; this never
    runs the layout engine. Handles are only chosen for edges whose endpoints
    both carry stored positions.
    """

    def __init__(
        self,
        grid_columns: int = FALLBACK_GRID_COLUMNS,
        grid_cell: Size = FALLBACK_GRID_CELL,
        handle_node_size: Size = DEFAULT_HANDLE_NODE_SIZE,
    ) -> None:
        self.grid_columns = grid_columns
        self.grid_cell = grid_cell
        self.handle_node_size = handle_node_size

    def convert(self, graph: Graph, node_width: Optional[float] = None) -> VisualGraph:
        stored_positions = {
            node.id: node.position for node in graph.nodes if node.position is not None
        }
        return VisualGraph(
            start_node=graph.start_node,
            agents=[agent.model_copy(deep=True) for agent in graph.agents],
            nodes=[
                self.convert_node(node, idx, node_width) for idx, node in enumerate(graph.nodes)
            ],
            edges=[
                self.convert_edge(edge, idx, stored_positions, node_width)
                for idx, edge in enumerate(graph.edges)
            ],
            node_width=node_width,
        )

    def fallback_position(self, index: int) -> Position:
        column = index % self.grid_columns
        row = index // self.grid_columns
        return Position(x=column * self.grid_cell.width, y=row * self.grid_cell.height)

    def convert_node(
        self, node: BaseNode, index: int, node_width: Optional[float] = None
    ) -> VisualNode:
        position = node.position or self.fallback_position(index)
        return VisualNode(
            id=node.id,
            type=node.kind,
            position=position.model_copy(),
            data=VisualNodeData(
                node_id=node.id,
                text=node.text,
                description=node.description,
                agent=node.agent,
                next_node_is_user=node.next_node_is_user,
                node_width=node_width,
            ),
        )

    def convert_edge(
        self,
        edge: Edge,
        index: int,
        stored_positions: Dict[str, Position],
        node_width: Optional[float] = None,
    ) -> VisualEdge:
        source_handle: Optional[str] = None
        target_handle: Optional[str] = None
        source_pos = stored_positions.get(edge.source)
        target_pos = stored_positions.get(edge.target)
        if source_pos is not None and target_pos is not None:
            size = Size(node_width or self.handle_node_size.width, self.handle_node_size.height)
            handles = closest_handles(
                node_center(Point(source_pos.x, source_pos.y), size),
                node_center(Point(target_pos.x, target_pos.y), size),
            )
            source_handle = handles.source_handle
            target_handle = handles.target_handle

        preconditions = (
            [precondition.model_copy() for precondition in edge.preconditions]
            if edge.preconditions is not None
            else None
        )
        return VisualEdge(
            id=visual_edge_id(edge.source, edge.target, index),
            source=edge.source,
            target=edge.target,
            source_handle=source_handle,
            target_handle=target_handle,
            type=VISUAL_EDGE_TYPE,
            data=VisualEdgeData(
                preconditions=preconditions,
                context_preconditions=copy.deepcopy(edge.context_preconditions),
            ),
        )
