from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from domain.models import Graph, Position, Size
from domain.ports.layout import LayoutEngine, LayoutOptions, RankDir
from domain.services.estimate_dimensions import DimensionEstimator
from domain.services.validate_graph import GraphValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoaderConfig:
    rankdir: RankDir = "LR"
    rank_gap: float = 150.0
    node_gap: float = 50.0
    margin_x: float = 20.0
    margin_y: float = 20.0
    default_node_height: float = 130.0


@dataclass(frozen=True)
class LoadedGraph:
    graph: Graph
    node_width: float


@dataclass(frozen=True)
class Viewport:
    x: float
    y: float
    zoom: float = 1.0


VIEWPORT_PADDING = 50.0
VIEWPORT_NODE_HEIGHT = 120.0


class GraphLoader:
    """Validates a raw payload and makes sure every node has a position.

    Positioning is all-or-nothing: if any node lacks a position the whole graph
    is laid out again and stored positions are replaced.
    """

    def __init__(
        self,
        layout_engine: LayoutEngine,
        estimator: DimensionEstimator | None = None,
        validator: GraphValidator | None = None,
        config: LoaderConfig | None = None,
    ) -> None:
        self.layout_engine = layout_engine
        self.estimator = estimator or DimensionEstimator()
        self.validator = validator or GraphValidator()
        self.config = config or LoaderConfig()

    def load(self, raw: object) -> LoadedGraph:
        graph = self.validator.validate(raw)
        node_width = self.estimator.node_width(graph.nodes)
        return LoadedGraph(graph=self.ensure_positions(graph, node_width), node_width=node_width)

    def layout_options(self, graph: Graph, node_width: float) -> LayoutOptions:
        return LayoutOptions(
            rankdir=self.config.rankdir,
            rank_spacing=node_width + self.config.rank_gap,
            node_spacing=self.config.node_gap,
            margin_x=self.config.margin_x,
            margin_y=self.config.margin_y,
            default_size=Size(node_width, self.config.default_node_height),
            node_dimensions=self.estimator.estimate(graph.nodes),
        )

    def ensure_positions(self, graph: Graph, node_width: float) -> Graph:
        if graph.has_all_positions():
            return graph

        positioned = sum(1 for node in graph.nodes if node.position is not None)
        if positioned:
            logger.info(
                "Discarding %d stored position(s): %d of %d nodes lack a position",
                positioned,
                len(graph.nodes) - positioned,
                len(graph.nodes),
            )
        result = self.layout_engine.layout(
            graph.nodes, graph.edges, self.layout_options(graph, node_width)
        )
        return graph.model_copy(update={"nodes": result.nodes, "edges": result.edges})


def find_start_position(graph: Graph) -> Optional[Position]:
    start = graph.find_node(graph.start_node)
    return start.position if start is not None else None


def initial_viewport(graph: Graph, container_height: float) -> Optional[Viewport]:
    position = find_start_position(graph)
    if position is None:
        return None
    return Viewport(
        x=-position.x + VIEWPORT_PADDING,
        y=-position.y + container_height / 2 - VIEWPORT_NODE_HEIGHT / 2,
    )
