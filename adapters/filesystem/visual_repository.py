from __future__ import annotations

from pathlib import Path

from adapters.filesystem.json_utils import load_json, write_json_atomic
from domain.models import VisualGraph
from domain.ports.repositories import VisualRepository


class FileSystemVisualRepository(VisualRepository):
    def load(self, path: Path) -> VisualGraph:
        return VisualGraph.model_validate(load_json(path))

    def save(self, visual: VisualGraph, path: Path) -> None:
        write_json_atomic(path, visual.to_payload())
