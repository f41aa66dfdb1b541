from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Protocol

from domain.models import BaseNode, Edge, Size

RankDir = Literal["TB", "BT", "LR", "RL"]
DEFAULT_NODE_SIZE = Size(180, 130)


@dataclass(frozen=True)
class LayoutOptions:
    rankdir: RankDir = "LR"
    rank_spacing: float = 150.0
    node_spacing: float = 50.0
    margin_x: float = 20.0
    margin_y: float = 20.0
    default_size: Size = DEFAULT_NODE_SIZE
    node_dimensions: Mapping[str, Size] = field(default_factory=dict)

    def size_of(self, node_id: str) -> Size:
        return self.node_dimensions.get(node_id, self.default_size)


@dataclass(frozen=True)
class LayoutResult:
    nodes: List[BaseNode]
    edges: List[Edge]
    ranks: Dict[str, int] = field(default_factory=dict)


class LayoutEngine(Protocol):
    def layout(
        self,
        nodes: Sequence[BaseNode],
        edges: Sequence[Edge],
        options: Optional[LayoutOptions] = None,
    ) -> LayoutResult:
        ...
