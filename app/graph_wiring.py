from __future__ import annotations

from adapters.layout.layered import LayeredLayoutEngine
from app.config import AppSettings
from domain.models import Graph
from domain.ports.layout import LayoutEngine
from domain.services.convert_graph_to_visual import GraphToVisualConverter
from domain.services.convert_visual_to_graph import VisualToGraphConverter
from domain.services.editor_session import EditorSession
from domain.services.estimate_dimensions import DimensionEstimator
from domain.services.load_graph import GraphLoader
from domain.services.validate_graph import GraphValidator


def build_layout_engine(settings: AppSettings) -> LayoutEngine:
    return LayeredLayoutEngine(settings.layout.to_layout_options())


def build_estimator(settings: AppSettings) -> DimensionEstimator:
    return DimensionEstimator(settings.estimator.to_estimator_config())


def build_loader(settings: AppSettings) -> GraphLoader:
    return GraphLoader(
        layout_engine=build_layout_engine(settings),
        estimator=build_estimator(settings),
        validator=GraphValidator(),
        config=settings.layout.to_loader_config(),
    )


def build_to_visual(settings: AppSettings) -> GraphToVisualConverter:
    return GraphToVisualConverter(
        grid_columns=settings.editor.grid_columns,
        grid_cell=settings.editor.grid_cell(),
    )


def build_to_graph(settings: AppSettings) -> VisualToGraphConverter:
    return VisualToGraphConverter(GraphValidator())


def build_session(settings: AppSettings, graph: Graph, node_width: float) -> EditorSession:
    return EditorSession.from_graph(
        graph,
        node_width,
        to_visual=build_to_visual(settings),
        to_graph=build_to_graph(settings),
        proximity_threshold=settings.editor.proximity_threshold,
    )
