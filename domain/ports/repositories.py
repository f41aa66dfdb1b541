from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

from domain.models import Graph, VisualGraph


class GraphRepository(Protocol):
    def load_raw(self, path: Path) -> Any: ...

    def load_all_raw_with_paths(self, directory: Path) -> Sequence[tuple[Path, Any]]: ...

    def save(self, graph: Graph, path: Path) -> None: ...


class VisualRepository(Protocol):
    def load(self, path: Path) -> VisualGraph: ...

    def save(self, visual: VisualGraph, path: Path) -> None: ...
