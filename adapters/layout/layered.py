from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable, Sequence
from dataclasses import dataclass
from itertools import pairwise
from typing import Dict, FrozenSet, List, Optional, Tuple

import networkx as nx

from domain.models import BaseNode, Edge, Point, Position
from domain.ports.layout import LayoutEngine, LayoutOptions, LayoutResult
from domain.services.handle_geometry import overlaps_along_axis

logger = logging.getLogger(__name__)

MAX_ORDERING_PASSES = 24


@dataclass(frozen=True)
class VirtualNode:
    """Placeholder occupying one intermediate rank of an edge spanning several ranks."""

    chain: int
    step: int


@dataclass(frozen=True)
class RankedGraph:
    graph: nx.DiGraph
    ranks: Dict[Hashable, int]
    reversed_edges: FrozenSet[Tuple[str, str]]

    @property
    def rank_count(self) -> int:
        return max(self.ranks.values(), default=-1) + 1


class LayeredLayoutEngine(LayoutEngine):
    """Sugiyama-style layered layout.

    Phases: greedy cycle breaking, longest-path ranking, virtual nodes for long
    edges, barycenter crossing reduction, then coordinate assignment with the
    per-node sizes from ``LayoutOptions``. Every step iterates in input order,
    so identical input always yields identical positions.
    """

    def __init__(self, options: LayoutOptions | None = None) -> None:
        self.options = options or LayoutOptions()

    def layout(
        self,
        nodes: Sequence[BaseNode],
        edges: Sequence[Edge],
        options: Optional[LayoutOptions] = None,
    ) -> LayoutResult:
        opts = options or self.options
        if not nodes:
            logger.debug("No nodes, returning empty layout")
            return LayoutResult(nodes=[], edges=[], ranks={})

        logger.debug(
            "Laying out %d nodes and %d edges (rankdir=%s)", len(nodes), len(edges), opts.rankdir
        )
        for node in nodes:
            size = opts.size_of(node.id)
            logger.debug("Node %s: width=%s, height=%s", node.id, size.width, size.height)

        order_index: Dict[str, int] = {}
        for idx, node in enumerate(nodes):
            order_index.setdefault(node.id, idx)

        graph = self.build_graph(nodes, edges)
        dag, reversed_edges = self.break_cycles(graph)
        ranks = self.assign_ranks(dag, order_index)
        ranked = self.insert_virtual_nodes(dag, ranks, reversed_edges)
        ordering = self.order_ranks(ranked)
        top_left = self.assign_coordinates(ordering, ranked, opts)

        positioned = [
            node.model_copy(
                update={"position": Position(x=top_left[node.id].x, y=top_left[node.id].y)}
            )
            for node in nodes
        ]
        self._log_rank_spans(positioned, ranks, opts)
        logger.debug(
            "Final positions: %s",
            {node.id: (node.position.x, node.position.y) for node in positioned if node.position},
        )
        return LayoutResult(nodes=positioned, edges=list(edges), ranks=dict(ranks))

    def build_graph(self, nodes: Sequence[BaseNode], edges: Sequence[Edge]) -> nx.DiGraph:
        graph: nx.DiGraph = nx.DiGraph()
        for node in nodes:
            graph.add_node(node.id)
        for edge in edges:
            # Self-loops impose no rank constraint; they are still returned untouched.
            if edge.source == edge.target:
                continue
            if edge.source not in graph or edge.target not in graph:
                continue
            self._add_weighted_edge(graph, edge.source, edge.target, 1)
        return graph

    def break_cycles(self, graph: nx.DiGraph) -> Tuple[nx.DiGraph, FrozenSet[Tuple[str, str]]]:
        """Reverse a small feedback arc set (Eades-Lin-Smyth greedy heuristic)."""
        ordered = list(graph.nodes)
        remaining = set(ordered)
        out_deg = {node: graph.out_degree(node) for node in ordered}
        in_deg = {node: graph.in_degree(node) for node in ordered}
        head: List[str] = []
        tail: List[str] = []

        def detach(node: str) -> None:
            remaining.discard(node)
            for succ in graph.successors(node):
                if succ in remaining:
                    in_deg[succ] -= 1
            for pred in graph.predecessors(node):
                if pred in remaining:
                    out_deg[pred] -= 1

        while remaining:
            active = [node for node in ordered if node in remaining]
            sinks = [node for node in active if out_deg[node] == 0]
            if sinks:
                for node in sinks:
                    detach(node)
                    tail.append(node)
                continue
            sources = [node for node in active if in_deg[node] == 0]
            if sources:
                for node in sources:
                    detach(node)
                    head.append(node)
                continue
            best = max(active, key=lambda node: out_deg[node] - in_deg[node])
            detach(best)
            head.append(best)

        sequence = head + tail[::-1]
        position = {node: idx for idx, node in enumerate(sequence)}

        dag: nx.DiGraph = nx.DiGraph()
        dag.add_nodes_from(ordered)
        reversed_edges: set[Tuple[str, str]] = set()
        for source, target, data in graph.edges(data=True):
            if position[source] > position[target]:
                reversed_edges.add((source, target))
                source, target = target, source
            self._add_weighted_edge(dag, source, target, data["weight"])
        if reversed_edges:
            logger.debug("Reversed back-edges for ranking: %s", sorted(reversed_edges))
        return dag, frozenset(reversed_edges)

    def assign_ranks(self, dag: nx.DiGraph, order_index: Dict[str, int]) -> Dict[str, int]:
        topo = list(nx.lexicographical_topological_sort(dag, key=lambda node: order_index[node]))
        ranks = {node: 0 for node in dag.nodes}
        for node in topo:
            for succ in dag.successors(node):
                ranks[succ] = max(ranks[succ], ranks[node] + 1)

        # Pull sources next to their nearest successor instead of leaving them at rank 0.
        for node in reversed(topo):
            if dag.in_degree(node) == 0 and dag.out_degree(node) > 0:
                ranks[node] = min(ranks[succ] for succ in dag.successors(node)) - 1

        lowest = min(ranks.values(), default=0)
        return {node: rank - lowest for node, rank in ranks.items()}

    def insert_virtual_nodes(
        self,
        dag: nx.DiGraph,
        ranks: Dict[str, int],
        reversed_edges: FrozenSet[Tuple[str, str]],
    ) -> RankedGraph:
        layered: nx.DiGraph = nx.DiGraph()
        layered.add_nodes_from(dag.nodes)
        layer_of: Dict[Hashable, int] = dict(ranks)

        chain = 0
        for source, target, data in dag.edges(data=True):
            weight = data["weight"]
            span = layer_of[target] - layer_of[source]
            if span <= 1:
                self._add_weighted_edge(layered, source, target, weight)
                continue
            previous: Hashable = source
            for step in range(1, span):
                virtual = VirtualNode(chain=chain, step=step)
                layered.add_node(virtual)
                layer_of[virtual] = layer_of[source] + step
                self._add_weighted_edge(layered, previous, virtual, weight)
                previous = virtual
            self._add_weighted_edge(layered, previous, target, weight)
            chain += 1

        return RankedGraph(graph=layered, ranks=layer_of, reversed_edges=reversed_edges)

    def order_ranks(self, ranked: RankedGraph) -> List[List[Hashable]]:
        ordering: List[List[Hashable]] = [[] for _ in range(ranked.rank_count)]
        for node in ranked.graph.nodes:
            ordering[ranked.ranks[node]].append(node)

        best = [list(layer) for layer in ordering]
        best_crossings = self.count_crossings(best, ranked.graph)
        for _pass in range(MAX_ORDERING_PASSES):
            if best_crossings == 0:
                break
            for idx in range(1, len(ordering)):
                self._reorder(ordering[idx], ordering[idx - 1], ranked.graph, upstream=True)
            for idx in range(len(ordering) - 2, -1, -1):
                self._reorder(ordering[idx], ordering[idx + 1], ranked.graph, upstream=False)
            crossings = self.count_crossings(ordering, ranked.graph)
            if crossings >= best_crossings:
                break
            best = [list(layer) for layer in ordering]
            best_crossings = crossings
        return best

    def count_crossings(self, ordering: List[List[Hashable]], graph: nx.DiGraph) -> int:
        total = 0
        for idx in range(len(ordering) - 1):
            lower = {node: pos for pos, node in enumerate(ordering[idx + 1])}
            segments: List[Tuple[int, int, int]] = []
            for upper_pos, node in enumerate(ordering[idx]):
                for succ in graph.successors(node):
                    if succ in lower:
                        segments.append((upper_pos, lower[succ], graph[node][succ]["weight"]))
            for i, (a1, b1, w1) in enumerate(segments):
                for a2, b2, w2 in segments[i + 1 :]:
                    if (a1 - a2) * (b1 - b2) < 0:
                        total += w1 * w2
        return total

    def assign_coordinates(
        self,
        ordering: List[List[Hashable]],
        ranked: RankedGraph,
        options: LayoutOptions,
    ) -> Dict[str, Point]:
        horizontal = options.rankdir in ("LR", "RL")

        def extent(node: Hashable) -> Tuple[float, float]:
            # (secondary, primary) extent; the primary axis runs across ranks.
            if isinstance(node, VirtualNode):
                return 0.0, 0.0
            size = options.size_of(str(node))
            if horizontal:
                return size.height, size.width
            return size.width, size.height

        graph = ranked.graph
        centers: Dict[Hashable, float] = {}
        self._place_rank(ordering[0], lambda node: None, extent, centers, options.node_spacing)
        for idx in range(1, len(ordering)):
            self._place_rank(
                ordering[idx],
                lambda node: self._anchor(node, graph.predecessors(node), graph, centers, True),
                extent,
                centers,
                options.node_spacing,
            )
        for idx in range(len(ordering) - 2, -1, -1):
            self._place_rank(
                ordering[idx],
                lambda node: self._anchor(node, graph.successors(node), graph, centers, False),
                extent,
                centers,
                options.node_spacing,
            )

        thickness = [max((extent(node)[1] for node in layer), default=0.0) for layer in ordering]
        rank_centers: List[float] = []
        offset = 0.0
        for value in thickness:
            rank_centers.append(offset + value / 2)
            offset += value + options.rank_spacing

        real_nodes = [node for node in graph.nodes if not isinstance(node, VirtualNode)]
        min_secondary = min(centers[node] - extent(node)[0] / 2 for node in real_nodes)
        primary_extent = max(
            rank_centers[ranked.ranks[node]] + extent(node)[1] / 2 for node in real_nodes
        )

        top_left: Dict[str, Point] = {}
        for node in real_nodes:
            secondary = centers[node] - min_secondary
            primary = rank_centers[ranked.ranks[node]]
            if options.rankdir == "TB":
                center = Point(secondary, primary)
            elif options.rankdir == "BT":
                center = Point(secondary, primary_extent - primary)
            elif options.rankdir == "LR":
                center = Point(primary, secondary)
            else:
                center = Point(primary_extent - primary, secondary)
            size = options.size_of(str(node))
            # Engine coordinates are centers; the rest of the system expects top-left.
            top_left[str(node)] = Point(
                center.x - size.width / 2 + options.margin_x,
                center.y - size.height / 2 + options.margin_y,
            )
        return top_left

    def _place_rank(
        self,
        layer: List[Hashable],
        anchor: Callable[[Hashable], Optional[float]],
        extent: Callable[[Hashable], Tuple[float, float]],
        centers: Dict[Hashable, float],
        spacing: float,
    ) -> None:
        cursor: Optional[float] = None
        for node in layer:
            secondary, _ = extent(node)
            desired = anchor(node)
            if desired is not None:
                start = desired - secondary / 2
            else:
                start = cursor if cursor is not None else 0.0
            if cursor is not None:
                start = max(start, cursor)
            centers[node] = start + secondary / 2
            cursor = start + secondary + spacing

    def _anchor(
        self,
        node: Hashable,
        neighbours: Iterable[Hashable],
        graph: nx.DiGraph,
        centers: Dict[Hashable, float],
        upstream: bool,
    ) -> Optional[float]:
        total = 0.0
        weight = 0
        for neighbour in neighbours:
            if neighbour not in centers:
                continue
            edge = graph[neighbour][node] if upstream else graph[node][neighbour]
            total += centers[neighbour] * edge["weight"]
            weight += edge["weight"]
        if not weight:
            return None
        return total / weight

    def _reorder(
        self,
        layer: List[Hashable],
        fixed: List[Hashable],
        graph: nx.DiGraph,
        upstream: bool,
    ) -> None:
        fixed_pos = {node: float(pos) for pos, node in enumerate(fixed)}
        current = {node: pos for pos, node in enumerate(layer)}

        def barycenter(node: Hashable) -> Tuple[float, int]:
            neighbours = graph.predecessors(node) if upstream else graph.successors(node)
            total = 0.0
            weight = 0
            for neighbour in neighbours:
                if neighbour not in fixed_pos:
                    continue
                edge = graph[neighbour][node] if upstream else graph[node][neighbour]
                total += fixed_pos[neighbour] * edge["weight"]
                weight += edge["weight"]
            if not weight:
                return float(current[node]), current[node]
            return total / weight, current[node]

        layer.sort(key=barycenter)

    def _add_weighted_edge(
        self, graph: nx.DiGraph, source: Hashable, target: Hashable, weight: int
    ) -> None:
        if graph.has_edge(source, target):
            graph[source][target]["weight"] += weight
        else:
            graph.add_edge(source, target, weight=weight)

    def _log_rank_spans(
        self,
        nodes: List[BaseNode],
        ranks: Dict[str, int],
        options: LayoutOptions,
    ) -> None:
        axis = "y" if options.rankdir in ("LR", "RL") else "x"
        by_rank: Dict[int, List[BaseNode]] = {}
        for node in nodes:
            by_rank.setdefault(ranks[node.id], []).append(node)
        for rank, members in sorted(by_rank.items()):
            spans = sorted(
                (
                    (Point(node.position.x, node.position.y), options.size_of(node.id), node.id)
                    for node in members
                    if node.position is not None
                ),
                key=lambda item: (getattr(item[0], axis), item[2]),
            )
            for (pos_a, size_a, id_a), (pos_b, size_b, id_b) in pairwise(spans):
                if overlaps_along_axis(pos_a, size_a, pos_b, size_b, axis):
                    logger.error("Overlap in rank %d: %s overlaps %s", rank, id_a, id_b)
