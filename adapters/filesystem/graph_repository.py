from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any, List

from filelock import FileLock

from adapters.filesystem.json_utils import load_json, write_json_atomic
from domain.models import Graph
from domain.ports.repositories import GraphRepository


class FileSystemGraphRepository(GraphRepository):
    """Reads raw graph payloads and writes validated graphs as indented JSON.

    Loading returns the untyped payload on purpose: the validator decides
    whether it is a graph.
    """

    def load_raw(self, path: Path) -> Any:
        return load_json(path)

    def load_all_raw_with_paths(self, directory: Path) -> List[tuple[Path, Any]]:
        return [(path, self.load_raw(path)) for path in sorted(self._iter_paths(directory))]

    def save(self, graph: Graph, path: Path) -> None:
        lock_path = path.with_suffix(f"{path.suffix}.lock")
        with FileLock(str(lock_path)):
            write_json_atomic(path, graph.to_payload())

    def _iter_paths(self, directory: Path) -> Iterable[Path]:
        yield from directory.glob("*.json")
