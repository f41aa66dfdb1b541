from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Any, Optional

import orjson
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from adapters.filesystem.graph_repository import FileSystemGraphRepository
from adapters.filesystem.visual_repository import FileSystemVisualRepository
from app.config import AppSettings, load_settings
from app.graph_wiring import build_loader, build_to_graph, build_to_visual
from domain.models import VisualGraph
from domain.node_kind_labels import header_label_for_kind, humanize_precondition_type
from domain.services.validate_graph import (
    GraphValidationError,
    GraphValidator,
    structural_issues,
)

app = typer.Typer(no_args_is_help=True)
convert_app = typer.Typer(no_args_is_help=True)
app.add_typer(convert_app, name="convert")
console = Console()

_state: dict[str, Optional[Path]] = {"config": None}


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, help="YAML settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    _state["config"] = config


def _settings() -> AppSettings:
    return load_settings(_state["config"])


def _require_file(path: Path) -> None:
    if not path.exists():
        console.print(f"[red]File not found:[/] {path}")
        raise typer.Exit(code=1)


def _report(exc: GraphValidationError, path: Path) -> None:
    console.print(f"[red]Validation failed:[/] {path} ({len(exc.issues)} issue(s))")
    for issue in exc.issues:
        console.print(f"  {escape(str(issue))}")


def _invalid_json(exc: orjson.JSONDecodeError, path: Path) -> typer.Exit:
    console.print(f"[red]Invalid JSON:[/] {path}")
    console.print(f"  {escape(str(exc))}")
    return typer.Exit(code=1)


def _load_raw(path: Path) -> Any:
    _require_file(path)
    try:
        return FileSystemGraphRepository().load_raw(path)
    except orjson.JSONDecodeError as exc:
        raise _invalid_json(exc, path) from exc


def _load_visual(path: Path) -> VisualGraph:
    _require_file(path)
    try:
        return FileSystemVisualRepository().load(path)
    except orjson.JSONDecodeError as exc:
        raise _invalid_json(exc, path) from exc
    except ValidationError as exc:
        _report(GraphValidationError(structural_issues(exc)), path)
        raise typer.Exit(code=1) from exc


@app.command("validate")
def validate(input_path: Path = typer.Argument(..., help="Graph JSON file to validate.")) -> None:
    raw = _load_raw(input_path)
    try:
        graph = GraphValidator().validate(raw)
    except GraphValidationError as exc:
        _report(exc, input_path)
        raise typer.Exit(code=1) from exc

    kinds = Counter(header_label_for_kind(node.kind) for node in graph.nodes)
    gates = Counter(
        humanize_precondition_type(edge.locked_precondition_type())
        for edge in graph.edges
        if edge.preconditions
    )
    console.print(f"[green]Valid graph:[/] {input_path}")
    console.print(f"  {len(graph.nodes)} node(s) ({_counts(kinds)}), {len(graph.edges)} edge(s)")
    console.print(f"  gated edges: {_counts(gates)}")


def _counts(counter: Counter[str]) -> str:
    return ", ".join(f"{count} {label}" for label, count in sorted(counter.items())) or "none"


@app.command("layout")
def layout(
    input_path: Path = typer.Argument(..., help="Graph JSON file."),
    output_path: Path = typer.Option(..., "--output", "-o", help="Where to write the result."),
) -> None:
    raw = _load_raw(input_path)
    loader = build_loader(_settings())
    try:
        loaded = loader.load(raw)
    except GraphValidationError as exc:
        _report(exc, input_path)
        raise typer.Exit(code=1) from exc
    FileSystemGraphRepository().save(loaded.graph, output_path)
    console.print(f"[green]Wrote[/] {output_path}")


@convert_app.command("to-visual")
def convert_to_visual(
    input_path: Path = typer.Argument(..., help="Graph JSON file."),
    output_path: Path = typer.Option(..., "--output", "-o", help="Visual document to write."),
) -> None:
    raw = _load_raw(input_path)
    settings = _settings()
    try:
        loaded = build_loader(settings).load(raw)
    except GraphValidationError as exc:
        _report(exc, input_path)
        raise typer.Exit(code=1) from exc
    visual = build_to_visual(settings).convert(loaded.graph, loaded.node_width)
    FileSystemVisualRepository().save(visual, output_path)
    console.print(f"[green]Wrote[/] {output_path}")


@convert_app.command("from-visual")
def convert_from_visual(
    input_path: Path = typer.Argument(..., help="Visual document exported by the editor."),
    output_path: Path = typer.Option(..., "--output", "-o", help="Graph JSON file to write."),
) -> None:
    visual = _load_visual(input_path)
    try:
        graph = build_to_graph(_settings()).convert(visual)
    except GraphValidationError as exc:
        _report(exc, input_path)
        raise typer.Exit(code=1) from exc
    FileSystemGraphRepository().save(graph, output_path)
    console.print(f"[green]Wrote[/] {output_path}")


if __name__ == "__main__":
    app()
