from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Dict

from domain.models import BaseNode, Size


@dataclass(frozen=True)
class EstimatorConfig:
    id_char_width: float = 7.5
    id_padding: float = 40.0
    header_height: float = 32.0
    separator_height: float = 1.0
    padding_height: float = 16.0
    body_padding: float = 8.0
    body_inset: float = 16.0
    line_height: float = 20.0
    char_width: float = 7.0
    min_height: float = 80.0


class DimensionEstimator:
    """Approximates rendered node boxes from their text content.

    All nodes share one width driven by the longest id; heights grow with the
    wrapped line count of ``text`` and ``description``.
    """

    def __init__(self, config: EstimatorConfig | None = None) -> None:
        self.config = config or EstimatorConfig()

    def node_width(self, nodes: Sequence[BaseNode]) -> float:
        max_id_length = max((len(node.id) for node in nodes), default=0)
        return max_id_length * self.config.id_char_width + self.config.id_padding

    def chars_per_line(self, width: float) -> int:
        return max(1, math.floor((width - self.config.body_inset) / self.config.char_width))

    def line_count(self, content: str | None, width: float) -> int:
        if not content:
            return 0
        return math.ceil(len(content) / self.chars_per_line(width))

    def node_height(self, node: BaseNode, width: float) -> float:
        lines = self.line_count(node.text, width) + self.line_count(node.description, width)
        height = (
            self.config.header_height
            + self.config.separator_height
            + lines * self.config.line_height
            + self.config.body_padding
            + self.config.padding_height
        )
        return max(self.config.min_height, height)

    def estimate(self, nodes: Sequence[BaseNode]) -> Dict[str, Size]:
        width = self.node_width(nodes)
        return {node.id: Size(width, self.node_height(node, width)) for node in nodes}
