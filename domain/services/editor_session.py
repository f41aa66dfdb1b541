from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Optional

from domain.models import Graph, Point, VisualEdge, VisualGraph
from domain.services.convert_graph_to_visual import GraphToVisualConverter
from domain.services.convert_visual_to_graph import VisualToGraphConverter
from domain.services.handle_geometry import (
    PROXIMITY_THRESHOLD,
    ProximityConnection,
    find_proximity_connection,
)
from domain.services.validate_graph import GraphValidationError

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    EDITING = "editing"
    EXPORTED = "exported"


class StaleGraphError(RuntimeError):
    pass


class EditorSession:
    """Owns the editor's copy of a graph between user actions.

    While ``EDITING`` the visual graph is authoritative and no schema graph is
    available. ``export`` is the only way into ``EXPORTED``; any further edit
    drops back to ``EDITING``.
    """

    def __init__(
        self,
        visual: VisualGraph,
        to_visual: GraphToVisualConverter | None = None,
        to_graph: VisualToGraphConverter | None = None,
        proximity_threshold: float = PROXIMITY_THRESHOLD,
    ) -> None:
        self._visual = visual
        self.to_visual = to_visual or GraphToVisualConverter()
        self.to_graph = to_graph or VisualToGraphConverter()
        self.proximity_threshold = proximity_threshold
        self._state = SessionState.EDITING
        self._exported: Optional[Graph] = None

    @classmethod
    def from_graph(
        cls,
        graph: Graph,
        node_width: Optional[float] = None,
        to_visual: GraphToVisualConverter | None = None,
        to_graph: VisualToGraphConverter | None = None,
        proximity_threshold: float = PROXIMITY_THRESHOLD,
    ) -> EditorSession:
        to_visual = to_visual or GraphToVisualConverter()
        return cls(
            to_visual.convert(graph, node_width),
            to_visual=to_visual,
            to_graph=to_graph,
            proximity_threshold=proximity_threshold,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def visual(self) -> VisualGraph:
        return self._visual

    @property
    def exported_graph(self) -> Graph:
        if self._state is not SessionState.EXPORTED or self._exported is None:
            msg = "Graph has been edited since the last export"
            raise StaleGraphError(msg)
        return self._exported

    def replace_visual(self, visual: VisualGraph) -> None:
        self._visual = visual
        self._mark_editing()

    def apply(self, operation: Callable[..., Graph], *args: Any, **kwargs: Any) -> None:
        """Run a schema edit (see ``edit_graph``) against the current visual graph."""
        graph = self.to_graph.to_graph(self._visual)
        updated = operation(graph, *args, **kwargs)
        self._visual = self.to_visual.convert(updated, self._visual.node_width)
        self._mark_editing()

    def connect_nearest(self, node_id: str) -> Optional[ProximityConnection]:
        positions = {
            node.id: Point(node.position.x, node.position.y) for node in self._visual.nodes
        }
        connection = find_proximity_connection(
            node_id, positions, threshold=self.proximity_threshold
        )
        if connection is None:
            return None
        exists = any(
            edge.source == connection.source and edge.target == connection.target
            for edge in self._visual.edges
        )
        if exists:
            return None
        edge_id = connection.id
        taken = {edge.id for edge in self._visual.edges}
        suffix = len(self._visual.edges)
        while edge_id in taken:
            edge_id = f"{connection.id}-{suffix}"
            suffix += 1
        edge = VisualEdge(id=edge_id, source=connection.source, target=connection.target)
        self._visual = self._visual.model_copy(update={"edges": [*self._visual.edges, edge]})
        self._mark_editing()
        logger.debug("Connected %s -> %s by proximity", connection.source, connection.target)
        return connection

    def export(self) -> Graph:
        try:
            graph = self.to_graph.convert(self._visual)
        except GraphValidationError:
            self._mark_editing()
            raise
        self._exported = graph
        self._state = SessionState.EXPORTED
        return graph

    def _mark_editing(self) -> None:
        self._state = SessionState.EDITING
        self._exported = None
