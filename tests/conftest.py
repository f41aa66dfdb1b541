from __future__ import annotations

import os
from collections.abc import Callable, Generator
from typing import Any

import pytest

from app.config import AppSettings, EditorSettings, LayoutSettings
from domain.models import Graph
from tests.helpers.graph_fixtures import graph_payload


def _clear_flowgraph_env() -> None:
    for key in list(os.environ):
        if key.startswith("FLOWGRAPH_"):
            os.environ.pop(key, None)


_clear_flowgraph_env()


@pytest.fixture(autouse=True)
def clear_flowgraph_env() -> Generator[None, None, None]:
    _clear_flowgraph_env()
    yield
    _clear_flowgraph_env()


@pytest.fixture
def raw_graph() -> dict[str, Any]:
    return graph_payload()


@pytest.fixture
def graph(raw_graph: dict[str, Any]) -> Graph:
    return Graph.model_validate(raw_graph)


@pytest.fixture
def raw_graph_factory() -> Callable[..., dict[str, Any]]:
    def _factory(**overrides: Any) -> dict[str, Any]:
        payload = graph_payload()
        payload.update(overrides)
        return payload

    return _factory


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(layout=LayoutSettings(), editor=EditorSettings())
