from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal, Optional

from domain.models import NODE_KINDS, HandlePair, Point, Size

PROXIMITY_THRESHOLD = 150.0
DEFAULT_HANDLE_NODE_SIZE = Size(180, 80)

HANDLE_SIDES = ("top", "bottom", "left", "right")
HANDLE_ROLES = ("target", "source")

Axis = Literal["x", "y"]


def handle_id(side: str, role: str) -> str:
    return f"{side}-{role}"


def node_handles(kind: str) -> tuple[str, ...]:
    if kind in NODE_KINDS:
        return tuple(handle_id(side, role) for side in HANDLE_SIDES for role in HANDLE_ROLES)
    msg = f"Unsupported node kind: {kind}"
    raise ValueError(msg)


def node_center(position: Point, size: Size) -> Point:
    return Point(position.x + size.width / 2, position.y + size.height / 2)


def center_distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def closest_handles(source_center: Point, target_center: Point) -> HandlePair:
    """Pick the port pair facing the dominant direction between two centers.

    Horizontal wins ties, so exact diagonals connect left/right.
    """
    dx = target_center.x - source_center.x
    dy = target_center.y - source_center.y
    if abs(dx) >= abs(dy):
        if dx > 0:
            return HandlePair(handle_id("right", "source"), handle_id("left", "target"))
        return HandlePair(handle_id("left", "source"), handle_id("right", "target"))
    if dy > 0:
        return HandlePair(handle_id("bottom", "source"), handle_id("top", "target"))
    return HandlePair(handle_id("top", "source"), handle_id("bottom", "target"))


def intervals_overlap(start_a: float, size_a: float, start_b: float, size_b: float) -> bool:
    # Touching intervals share only an endpoint and do not overlap.
    return start_a < start_b + size_b and start_b < start_a + size_a


def overlaps_along_axis(
    position_a: Point,
    size_a: Size,
    position_b: Point,
    size_b: Size,
    axis: Axis,
) -> bool:
    if axis == "x":
        return intervals_overlap(position_a.x, size_a.width, position_b.x, size_b.width)
    return intervals_overlap(position_a.y, size_a.height, position_b.y, size_b.height)


@dataclass(frozen=True)
class ProximityConnection:
    source: str
    target: str

    @property
    def id(self) -> str:
        return f"{self.source}-{self.target}"


def find_proximity_connection(
    node_id: str,
    positions: Mapping[str, Point],
    sizes: Optional[Mapping[str, Size]] = None,
    threshold: float = PROXIMITY_THRESHOLD,
) -> Optional[ProximityConnection]:
    """Propose an edge between a dragged node and its nearest neighbour.

    Candidates at equal distance resolve to the smallest node id. The node
    further to the left becomes the source.
    """
    origin = positions.get(node_id)
    if origin is None:
        return None
    sizes = sizes or {}
    origin_center = node_center(origin, sizes.get(node_id, DEFAULT_HANDLE_NODE_SIZE))

    best: Optional[tuple[float, str]] = None
    for candidate_id in sorted(positions):
        if candidate_id == node_id:
            continue
        candidate_center = node_center(
            positions[candidate_id], sizes.get(candidate_id, DEFAULT_HANDLE_NODE_SIZE)
        )
        distance = center_distance(origin_center, candidate_center)
        if distance >= threshold:
            continue
        if best is None or distance < best[0]:
            best = (distance, candidate_id)

    if best is None:
        return None
    closest_id = best[1]
    if positions[closest_id].x < origin.x:
        return ProximityConnection(source=closest_id, target=node_id)
    return ProximityConnection(source=node_id, target=closest_id)
